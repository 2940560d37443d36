"""
Configuration Management Module
Loads and validates configuration from config.yaml
"""

import os
import yaml
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, List

logger = logging.getLogger(__name__)

# Provider search types per category, matching the upstream proxy routing
DEFAULT_SEARCH_TYPES = {
    'person': 'PersonSearch',
    'address': 'AddressID',
    'phone': 'ReversePhoneSearch',
    'social': 'SocialMedia',
    'criminal': 'CriminalSearchV2',
    'relatives': 'Relatives',
    'property': 'PropertySearchV2',
    'contact_enrichment': 'DevAPIContactEnrich',
}


@dataclass
class DatabaseConfig:
    """Database configuration"""
    host: str = "localhost"
    port: int = 5432
    user: str = "persona_user"
    password: str = "persona_password"
    name: str = "persona_database"


@dataclass
class ProviderConfig:
    """Data provider configuration"""
    base_url: str = "https://api.enformiongo.com/v1"
    proxy_url: Optional[str] = None
    api_key_name: str = ""
    api_key_password: str = ""
    client_type: str = "Persona-Web"
    timeout_seconds: float = 15.0
    max_retries: int = 3
    search_types: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SEARCH_TYPES))
    endpoints: Dict[str, str] = field(default_factory=dict)


@dataclass
class StorageConfig:
    """Local (guest) storage configuration"""
    local_data_dir: str = "persona_data"
    storage_key: str = "persona_guest_data"
    guest_flag_key: str = "persona_guest_user"
    local_quota_bytes: int = 5 * 1024 * 1024


@dataclass
class SearchConfig:
    """Search and listing limits"""
    history_limit: int = 50
    pending_submissions_limit: int = 50


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ApiConfig:
    """HTTP API configuration"""
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ])
    verifier_emails: List[str] = field(default_factory=list)


class ConfigurationError(Exception):
    """Raised when configuration is invalid"""
    pass


class ConfigManager:
    """Manages system configuration"""

    _instance: Optional['ConfigManager'] = None

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to config.yaml file
        """
        self.config_path = Path(config_path) if config_path else self._find_config()
        self._raw_config: Dict[str, Any] = {}
        self.provider: ProviderConfig = ProviderConfig()
        self.database: DatabaseConfig = DatabaseConfig()
        self.storage: StorageConfig = StorageConfig()
        self.search: SearchConfig = SearchConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self.api: ApiConfig = ApiConfig()

        if self.config_path and self.config_path.exists():
            self.load()
        else:
            logger.warning(f"Config file not found at {self.config_path}, using defaults")
        self._apply_env_overrides()

    def _find_config(self) -> Path:
        """Find config.yaml in common locations"""
        search_paths = [
            Path(__file__).parent / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.cwd() / "python" / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return search_paths[0]

    def load(self) -> None:
        """Load configuration from YAML file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        if not isinstance(self._raw_config, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        self._parse_provider()
        self._parse_database()
        self._parse_storage()
        self._parse_search()
        self._parse_logging()
        self._parse_api()
        self._validate()

    def _parse_provider(self) -> None:
        """Parse provider configuration"""
        cfg = self._raw_config.get('provider', {})
        search_types = dict(DEFAULT_SEARCH_TYPES)
        search_types.update(cfg.get('search_types', {}) or {})
        self.provider = ProviderConfig(
            base_url=cfg.get('base_url', self.provider.base_url),
            proxy_url=cfg.get('proxy_url'),
            api_key_name=cfg.get('api_key_name', ''),
            api_key_password=cfg.get('api_key_password', ''),
            client_type=cfg.get('client_type', self.provider.client_type),
            timeout_seconds=cfg.get('timeout_seconds', 15.0),
            max_retries=cfg.get('max_retries', 3),
            search_types=search_types,
            endpoints=cfg.get('endpoints', {}) or {}
        )

    def _parse_database(self) -> None:
        """Parse database configuration"""
        cfg = self._raw_config.get('database', {})
        self.database = DatabaseConfig(
            host=cfg.get('host', self.database.host),
            port=cfg.get('port', self.database.port),
            user=cfg.get('user', self.database.user),
            password=cfg.get('password', self.database.password),
            name=cfg.get('name', self.database.name)
        )

    def _parse_storage(self) -> None:
        """Parse local storage configuration"""
        cfg = self._raw_config.get('storage', {})
        self.storage = StorageConfig(
            local_data_dir=cfg.get('local_data_dir', self.storage.local_data_dir),
            storage_key=cfg.get('storage_key', self.storage.storage_key),
            guest_flag_key=cfg.get('guest_flag_key', self.storage.guest_flag_key),
            local_quota_bytes=cfg.get('local_quota_bytes', self.storage.local_quota_bytes)
        )

    def _parse_search(self) -> None:
        """Parse search configuration"""
        cfg = self._raw_config.get('search', {})
        self.search = SearchConfig(
            history_limit=cfg.get('history_limit', 50),
            pending_submissions_limit=cfg.get('pending_submissions_limit', 50)
        )

    def _parse_logging(self) -> None:
        """Parse logging configuration"""
        cfg = self._raw_config.get('logging', {})
        self.logging = LoggingConfig(
            level=cfg.get('level', 'INFO'),
            file=cfg.get('file'),
            console=cfg.get('console', True),
            format=cfg.get('format', self.logging.format)
        )

    def _parse_api(self) -> None:
        """Parse API configuration"""
        cfg = self._raw_config.get('api', {})
        self.api = ApiConfig(
            host=cfg.get('host', self.api.host),
            port=cfg.get('port', self.api.port),
            cors_origins=cfg.get('cors_origins', self.api.cors_origins),
            verifier_emails=[e.strip().lower() for e in cfg.get('verifier_emails', []) or [] if e.strip()]
        )

    def _apply_env_overrides(self) -> None:
        """Secrets and endpoints may come from the environment instead of the YAML file"""
        self.provider.api_key_name = os.getenv("PROVIDER_API_KEY_NAME", self.provider.api_key_name)
        self.provider.api_key_password = os.getenv("PROVIDER_API_KEY_PASSWORD", self.provider.api_key_password)
        self.provider.base_url = os.getenv("PROVIDER_BASE_URL", self.provider.base_url)
        self.provider.proxy_url = os.getenv("PROVIDER_PROXY_URL", self.provider.proxy_url)
        verifiers = os.getenv("PERSONA_VERIFIER_EMAILS")
        if verifiers:
            self.api.verifier_emails = [e.strip().lower() for e in verifiers.split(',') if e.strip()]

    def is_verifier(self, email: Optional[str]) -> bool:
        """Whether email may review submissions. Nobody may when none are configured."""
        if not email or not self.api.verifier_emails:
            return False
        return email.strip().lower() in self.api.verifier_emails

    @classmethod
    def get_instance(cls, config_path: Optional[str] = None) -> 'ConfigManager':
        """Get singleton instance of ConfigManager"""
        if cls._instance is None:
            cls._instance = ConfigManager(config_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)"""
        cls._instance = None

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary (secrets omitted)"""
        return {
            'provider': {
                'base_url': self.provider.base_url,
                'proxy_url': self.provider.proxy_url,
                'client_type': self.provider.client_type,
                'timeout_seconds': self.provider.timeout_seconds,
                'max_retries': self.provider.max_retries,
                'search_types': self.provider.search_types,
                'endpoints': self.provider.endpoints
            },
            'database': {
                'host': self.database.host,
                'port': self.database.port,
                'user': self.database.user,
                'name': self.database.name
            },
            'storage': {
                'local_data_dir': self.storage.local_data_dir,
                'storage_key': self.storage.storage_key,
                'guest_flag_key': self.storage.guest_flag_key,
                'local_quota_bytes': self.storage.local_quota_bytes
            },
            'search': {
                'history_limit': self.search.history_limit,
                'pending_submissions_limit': self.search.pending_submissions_limit
            },
            'api': {
                'host': self.api.host,
                'port': self.api.port,
                'cors_origins': self.api.cors_origins,
                'verifier_emails': self.api.verifier_emails
            }
        }

    def _validate(self) -> None:
        """Validate configuration values"""
        if self.provider.timeout_seconds <= 0:
            raise ConfigurationError("provider.timeout_seconds must be positive")
        if self.provider.max_retries < 1:
            raise ConfigurationError("provider.max_retries must be at least 1")
        unknown = set(self.provider.search_types) - set(DEFAULT_SEARCH_TYPES)
        if unknown:
            raise ConfigurationError(f"Unknown provider categories: {sorted(unknown)}")
        if self.storage.local_quota_bytes <= 0:
            raise ConfigurationError("storage.local_quota_bytes must be positive")
        if self.search.history_limit <= 0 or self.search.pending_submissions_limit <= 0:
            raise ConfigurationError("search limits must be positive")
        if logging.getLevelName(self.logging.level.upper()) == f"Level {self.logging.level.upper()}":
            raise ConfigurationError(f"Unknown logging level: {self.logging.level}")


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to get configuration instance"""
    return ConfigManager.get_instance(config_path)


def setup_logging(config: Optional[ConfigManager] = None) -> None:
    """Configure root logging from the logging section"""
    cfg = (config or get_config()).logging
    handlers: List[logging.Handler] = []
    if cfg.console:
        handlers.append(logging.StreamHandler())
    if cfg.file:
        log_path = Path(cfg.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))
    logging.basicConfig(
        level=cfg.level.upper(),
        format=cfg.format,
        handlers=handlers or None,
        force=True
    )
