"""Configuration module for the application.

Supports multiple environments:
- development (default)
- staging
- production

Usage:
    from config import config

    mongo_uri = config.MONGO_URI
    if config.IS_DEV:
        ...

Set environment via FLASK_ENV or APP_ENV.
"""
from .settings import config, Config

__all__ = ['config', 'Config']
