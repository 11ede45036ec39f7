"""
Re-export of the top-level `config` package for application code.

Public defaults live in `config/public_config.py`, secrets in
`config/secret_config.py`; `config/settings.py` merges and validates them.
"""

from __future__ import annotations

from config.settings import Settings as Settings
from config.settings import find_weak_settings as find_weak_settings
from config.settings import get_settings as get_settings
