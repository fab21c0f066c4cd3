"""
Version information for BoQPricer.

This is the single source of truth for the application version.
Used by: CLI (--version, banner) and pyproject.toml (dynamic version).
"""

__version__ = "0.3.0"
APP_NAME = "BoQPricer"
