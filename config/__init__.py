"""
Unified configuration entrypoint.

Prefer importing `get_settings` from `config.settings`.
"""

from .settings import ConfigError, Settings, get_settings  # noqa: F401
