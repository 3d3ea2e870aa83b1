"""Application configuration settings.

Values are resolved from, in increasing priority:
1. config.base.yaml (shared defaults)
2. config.{env}.yaml (environment-specific: dev, staging, prod)
3. config.local.yaml (local overrides, git-ignored)
4. Environment variables

Usage:
    from config.settings import config

    secret = config.JWT_SECRET
    page_size = config.MESSAGES_PAGE_SIZE
"""
import os
from pathlib import Path
from typing import Optional, Any, Dict
import yaml


ENV_ALIASES = {
    'dev': 'development',
    'development': 'development',
    'staging': 'staging',
    'stage': 'staging',
    'prod': 'production',
    'production': 'production',
}

DEFAULT_ENV = 'development'

ENV_CONFIG_FILES = {
    'development': 'config.dev.yaml',
    'staging': 'config.staging.yaml',
    'production': 'config.prod.yaml',
}

_TRUTHY = ('1', 'true', 'yes')


class Config:
    """Centralized application configuration.

    Environment is determined by FLASK_ENV, then APP_ENV, then defaults to
    'development'.
    """

    _config_data: Dict[str, Any] = {}
    _loaded: bool = False
    _current_env: str = DEFAULT_ENV

    def __init__(self):
        if not Config._loaded:
            self._load_config()

    @classmethod
    def _get_environment(cls) -> str:
        env = os.getenv('FLASK_ENV') or os.getenv('APP_ENV') or DEFAULT_ENV
        env = env.lower().strip()
        return ENV_ALIASES.get(env, DEFAULT_ENV)

    def _load_config(self):
        """Merge the YAML layers for the current environment, lowest priority first."""
        config_dir = Path(__file__).parent
        Config._current_env = self._get_environment()
        Config._config_data = {}

        layers = ('config.base.yaml', ENV_CONFIG_FILES[Config._current_env], 'config.local.yaml')
        for name in layers:
            path = config_dir / name
            if not path.exists():
                continue
            with open(path, 'r') as f:
                Config._config_data = self._deep_merge(Config._config_data, yaml.safe_load(f) or {})

        Config._loaded = True

    def _deep_merge(self, base: dict, override: dict) -> dict:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _get_yaml_value(self, *keys, default=None) -> Any:
        """Get a nested value from YAML config."""
        value = Config._config_data
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    def _get_flag(self, env_name: str, *keys, default: bool = False) -> bool:
        env_val = os.getenv(env_name, '').lower()
        if env_val:
            return env_val in _TRUTHY
        return bool(self._get_yaml_value(*keys, default=default))

    def _get_int(self, env_name: str, *keys, default: int = 0) -> int:
        env_val = os.getenv(env_name)
        if env_val:
            return int(env_val)
        return int(self._get_yaml_value(*keys, default=default))

    @classmethod
    def reload(cls):
        """Reload configuration (useful for testing)."""
        cls._loaded = False
        cls._config_data = {}
        return cls()

    # ==========================================================================
    # Environment Info
    # ==========================================================================

    @property
    def ENV(self) -> str:
        """Application environment (development, staging, production)."""
        return Config._current_env

    @property
    def IS_DEV(self) -> bool:
        return Config._current_env == 'development'

    @property
    def IS_PROD(self) -> bool:
        return Config._current_env == 'production'

    # ==========================================================================
    # Application Settings
    # ==========================================================================

    @property
    def DEBUG(self) -> bool:
        """Flask debug mode."""
        return self._get_flag('FLASK_DEBUG', 'app', 'debug', default=False)

    @property
    def HOST(self) -> str:
        return os.getenv('HOST') or self._get_yaml_value('app', 'host', default='0.0.0.0')

    @property
    def PORT(self) -> int:
        return self._get_int('PORT', 'app', 'port', default=5000)

    @property
    def APP_NAME(self) -> str:
        return os.getenv('APP_NAME') or self._get_yaml_value('app', 'name', default='AutomateHub API')

    @property
    def APP_VERSION(self) -> str:
        return self._get_yaml_value('app', 'version', default='1.0.0')

    # ==========================================================================
    # Security Settings
    # ==========================================================================

    @property
    def JWT_SECRET(self) -> Optional[str]:
        """Secret used to verify bearer tokens."""
        return os.getenv('JWT_SECRET') or self._get_yaml_value('security', 'jwt', 'secret')

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv('JWT_ALGORITHM') or self._get_yaml_value('security', 'jwt', 'algorithm', default='HS256')

    @property
    def ACCESS_TOKEN_EXPIRE_MINUTES(self) -> int:
        return self._get_int('ACCESS_TOKEN_MINUTES', 'security', 'jwt', 'access_token_expire_minutes', default=10080)

    # ==========================================================================
    # Database Settings
    # ==========================================================================

    @property
    def MONGO_URI(self) -> str:
        return os.getenv('MONGO_URI') or self._get_yaml_value('database', 'mongo_uri', default='mongodb://localhost:27017')

    @property
    def MONGO_DB(self) -> str:
        return os.getenv('MONGO_DB') or self._get_yaml_value('database', 'name', default='automatehub')

    @property
    def MONGO_TRANSACTIONS(self) -> bool:
        """Wrap multi-document writes in a transaction (needs a replica set)."""
        return self._get_flag('MONGO_TRANSACTIONS', 'database', 'transactions', default=False)

    # ==========================================================================
    # CORS Settings
    # ==========================================================================

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv('CORS_ORIGINS') or self._get_yaml_value('cors', 'origins', default='*')

    @property
    def CORS_ORIGINS_LIST(self) -> list:
        origins = self.CORS_ORIGINS
        if origins == '*':
            return ['*']
        return [o.strip() for o in origins.split(',') if o.strip()]

    # ==========================================================================
    # Messaging Settings
    # ==========================================================================

    @property
    def MESSAGES_PAGE_SIZE(self) -> int:
        """Default page size for message history."""
        return self._get_int('MESSAGES_PAGE_SIZE', 'messaging', 'default_page_size', default=50)

    @property
    def MESSAGES_MAX_PAGE_SIZE(self) -> int:
        return self._get_int('MESSAGES_MAX_PAGE_SIZE', 'messaging', 'max_page_size', default=100)

    # ==========================================================================
    # Logging Settings
    # ==========================================================================

    @property
    def LOG_LEVEL(self) -> str:
        env_val = os.getenv('LOG_LEVEL')
        if env_val:
            return env_val.upper()
        if self._get_flag('LOG_DEBUG', 'logging', 'debug', default=False):
            return 'DEBUG'
        return str(self._get_yaml_value('logging', 'level', default='INFO')).upper()

    @property
    def LOG_PATTERN(self) -> str:
        return os.getenv('LOG_PATTERN') or self._get_yaml_value('logging', 'pattern', default='%(message)s')

    @property
    def LOG_INCLUDE_DATETIME(self) -> bool:
        return self._get_flag('LOG_INCLUDE_DATETIME', 'logging', 'include_datetime', default=False)

    @property
    def LOG_INCLUDE_NAME(self) -> bool:
        return self._get_flag('LOG_INCLUDE_NAME', 'logging', 'include_name', default=False)

    @property
    def LOG_INCLUDE_LEVEL(self) -> bool:
        return self._get_flag('LOG_INCLUDE_LEVEL', 'logging', 'include_level', default=True)

    @property
    def LOG_FORMAT(self) -> str:
        """Build log format string based on config options."""
        pattern = self.LOG_PATTERN
        if pattern and pattern != '%(message)s':
            return pattern

        parts = []
        if self.LOG_INCLUDE_DATETIME:
            parts.append('%(asctime)s')
        if self.LOG_INCLUDE_NAME:
            parts.append('%(name)s')
        if self.LOG_INCLUDE_LEVEL:
            parts.append('%(levelname)s')
        parts.append('%(message)s')

        return ' - '.join(parts) if len(parts) > 1 else parts[0]

    # ==========================================================================
    # Validation Methods
    # ==========================================================================

    def validate_required(self) -> None:
        """Raise RuntimeError when required values are missing."""
        errors = []

        if not self.JWT_SECRET:
            errors.append('JWT_SECRET environment variable is required')

        if self.IS_PROD:
            if self.MONGO_URI == 'mongodb://localhost:27017':
                errors.append('MONGO_URI should be set to production database in production')
            if self.CORS_ORIGINS == '*':
                errors.append('CORS_ORIGINS should not be "*" in production')

        if errors:
            raise RuntimeError('Configuration errors:\n' + '\n'.join(f'  - {e}' for e in errors))

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as dictionary (secrets masked)."""
        return {
            'environment': self.ENV,
            'app': {
                'debug': self.DEBUG,
                'port': self.PORT,
                'name': self.APP_NAME,
                'version': self.APP_VERSION,
            },
            'security': {
                'jwt_algorithm': self.JWT_ALGORITHM,
                'access_token_expire_minutes': self.ACCESS_TOKEN_EXPIRE_MINUTES,
                'jwt_secret_set': bool(self.JWT_SECRET),
            },
            'database': {
                'mongo_uri': '***' if self.MONGO_URI else None,
                'name': self.MONGO_DB,
                'transactions': self.MONGO_TRANSACTIONS,
            },
            'cors': {'origins': self.CORS_ORIGINS},
            'messaging': {
                'default_page_size': self.MESSAGES_PAGE_SIZE,
                'max_page_size': self.MESSAGES_MAX_PAGE_SIZE,
            },
            'logging': {'level': self.LOG_LEVEL},
        }


config = Config()
