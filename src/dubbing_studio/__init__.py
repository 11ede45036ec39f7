"""Video dubbing job submission and tracking service."""

__version__ = "0.1.0"
