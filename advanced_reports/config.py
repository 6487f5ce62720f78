"""
Configuration Management

Unified configuration management for the advanced reports service. Settings
are grouped into dataclass sections, loaded from an optional .config.json
file and overridden by REPORTS_* environment variables.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


class Environment(Enum):
    """Supported environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(Enum):
    """Supported log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    logs_dir: Path = field(default_factory=lambda: Path("data/logs"))
    file_rotation_size: int = 10 * 1024 * 1024  # 10MB
    file_retention_count: int = 5
    enable_console: bool = True
    enable_file: bool = True


@dataclass
class WebConfig:
    """Web interface configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: str = "info"
    route_prefix: str = "/advanced_reports"


@dataclass
class ElasticsearchConfig:
    """Elasticsearch occurrence index connection settings"""
    url: str = "http://localhost:9200"
    index: str = "occurrence_search"
    timeout_seconds: int = 30
    max_retries: int = 3
    verify_certs: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None
    # Bucket limits for terms aggregations
    max_taxa: int = 10000
    max_recorders: int = 10000

    @property
    def search_url(self) -> str:
        """Full _search endpoint for the configured index"""
        return f"{self.url.rstrip('/')}/{self.index}/_search"


@dataclass
class IdentityConfig:
    """Headers carrying the caller identity established upstream"""
    user_id_header: str = "X-Warehouse-User-Id"
    username_header: str = "X-Warehouse-Username"


class UnifiedConfig:
    """
    Central configuration management system
    Implements singleton pattern and environment-aware configuration
    Loads from .config.json file with environment variable overrides
    """

    _instance: Optional['UnifiedConfig'] = None
    _initialized: bool = False
    _config_file = Path(".config.json")
    _json_config: Optional[Dict[str, Any]] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self.reload()
        self._initialized = True

    def reload(self):
        """(Re)load every configuration section from file and environment"""
        self._load_json_config()

        env_mode = self._get_config_value('environment', 'mode', default='development')
        if not env_mode or not isinstance(env_mode, str):
            env_mode = 'development'
        env_var = os.getenv('REPORTS_ENVIRONMENT')
        if env_var:
            env_mode = env_var
        try:
            self.environment = Environment(env_mode.lower())
        except ValueError:
            logging.getLogger(__name__).warning(f"Unknown environment '{env_mode}'. Using development.")
            self.environment = Environment.DEVELOPMENT

        self.logging = self._load_logging_config()
        self.web = self._load_web_config()
        self.elasticsearch = self._load_elasticsearch_config()
        self.identity = self._load_identity_config()

    def _load_json_config(self):
        """Load configuration from .config.json file"""
        if self._config_file.exists():
            try:
                with open(self._config_file, 'r', encoding='utf-8') as f:
                    self._json_config = json.load(f)
                logging.getLogger(__name__).info(f"Loaded configuration from {self._config_file}")
            except (json.JSONDecodeError, IOError) as e:
                logging.getLogger(__name__).warning(f"Error loading {self._config_file}: {e}. Using defaults.")
                self._json_config = None
        else:
            logging.getLogger(__name__).debug(f"Config file {self._config_file} not found. Using defaults.")
            self._json_config = None

    def _get_config_value(self, *keys, default=None):
        """
        Get a value from JSON config using nested keys
        Example: _get_config_value('elasticsearch', 'url', default='http://localhost:9200')
        """
        if not self._json_config:
            return default

        value = self._json_config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        # Skip documentation keys (keys starting with _)
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if not k.startswith('_')} if value else default

        return value if value is not None else default

    def _load_logging_config(self) -> LoggingConfig:
        """Load logging configuration from JSON and environment overrides"""
        log_config = self._get_config_value('logging', default={})
        config = LoggingConfig()

        log_level = os.getenv('REPORTS_LOG_LEVEL', log_config.get('level', 'INFO'))
        try:
            config.level = LogLevel(log_level.upper())
        except ValueError:
            config.level = LogLevel.INFO

        config.format = os.getenv('REPORTS_LOG_FORMAT', log_config.get('format', config.format))
        config.date_format = log_config.get('date_format', config.date_format)
        config.logs_dir = Path(os.getenv('REPORTS_LOGS_DIR', log_config.get('logs_dir', 'data/logs')))
        rotation_mb = log_config.get('file_rotation_size_mb', 10)
        config.file_rotation_size = rotation_mb * 1024 * 1024
        config.file_retention_count = log_config.get('file_retention_count', 5)
        config.enable_console = log_config.get('enable_console', True)
        config.enable_file = log_config.get('enable_file', True)

        # Adjust for environment
        if self.environment == Environment.DEVELOPMENT:
            config.level = LogLevel.DEBUG
        elif self.environment == Environment.TESTING:
            config.enable_file = False
        elif self.environment == Environment.PRODUCTION:
            config.enable_console = False

        return config

    def _load_web_config(self) -> WebConfig:
        """Load web configuration from JSON and environment overrides"""
        web_config = self._get_config_value('web', default={})
        config = WebConfig()

        config.host = os.getenv('REPORTS_WEB_HOST', web_config.get('host', '0.0.0.0'))
        config.port = int(os.getenv('REPORTS_WEB_PORT', str(web_config.get('port', 8000))))
        config.reload = web_config.get('reload', False)
        config.log_level = os.getenv('REPORTS_WEB_LOG_LEVEL', web_config.get('log_level', 'info'))
        config.route_prefix = web_config.get('route_prefix', config.route_prefix)

        if self.environment == Environment.DEVELOPMENT:
            config.reload = True
            config.log_level = "debug"

        return config

    def _load_elasticsearch_config(self) -> ElasticsearchConfig:
        """Load Elasticsearch configuration from JSON and environment overrides"""
        es_config = self._get_config_value('elasticsearch', default={})
        config = ElasticsearchConfig()

        config.url = os.getenv('REPORTS_ES_URL', es_config.get('url', config.url))
        config.index = os.getenv('REPORTS_ES_INDEX', es_config.get('index', config.index))
        config.timeout_seconds = int(os.getenv('REPORTS_ES_TIMEOUT', str(es_config.get('timeout_seconds', 30))))
        config.max_retries = int(es_config.get('max_retries', 3))
        if os.getenv('REPORTS_ES_VERIFY_CERTS'):
            config.verify_certs = os.getenv('REPORTS_ES_VERIFY_CERTS', '').lower() == 'true'
        else:
            config.verify_certs = es_config.get('verify_certs', True)
        config.max_taxa = int(es_config.get('max_taxa', config.max_taxa))
        config.max_recorders = int(es_config.get('max_recorders', config.max_recorders))

        # Credentials from environment only (never from JSON for security)
        config.username = os.getenv('REPORTS_ES_USERNAME') or None
        config.password = os.getenv('REPORTS_ES_PASSWORD') or None
        config.api_key = os.getenv('REPORTS_ES_API_KEY') or None

        return config

    def _load_identity_config(self) -> IdentityConfig:
        """Load identity header names from JSON"""
        identity_config = self._get_config_value('identity', default={})
        config = IdentityConfig()

        config.user_id_header = identity_config.get('user_id_header', config.user_id_header)
        config.username_header = identity_config.get('username_header', config.username_header)

        return config

    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == Environment.PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization (no secrets)"""
        return {
            'environment': self.environment.value,
            'logging': {
                'level': self.logging.level.value,
                'logs_dir': str(self.logging.logs_dir),
                'enable_file': self.logging.enable_file
            },
            'web': {
                'host': self.web.host,
                'port': self.web.port,
                'reload': self.web.reload,
                'route_prefix': self.web.route_prefix
            },
            'elasticsearch': {
                'url': self.elasticsearch.url,
                'index': self.elasticsearch.index,
                'timeout_seconds': self.elasticsearch.timeout_seconds,
                'max_retries': self.elasticsearch.max_retries
            },
            'identity': {
                'user_id_header': self.identity.user_id_header,
                'username_header': self.identity.username_header
            }
        }


# Global configuration instance (singleton)
config = UnifiedConfig()


def get_config() -> UnifiedConfig:
    """Get the global configuration instance"""
    return config


def setup_logging():
    """Setup logging configuration based on current config"""
    import logging.handlers
    from datetime import datetime

    log_config = config.logging
    root_logger = logging.getLogger()

    logging.basicConfig(
        level=getattr(logging, log_config.level.value),
        format=log_config.format,
        datefmt=log_config.date_format,
        force=True
    )

    if log_config.enable_file:
        log_config.logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_config.logs_dir / f"reports_{datetime.now().strftime('%Y%m%d')}.log"

        # Check if a RotatingFileHandler for this log file already exists
        existing_file_handler = None
        for handler in root_logger.handlers:
            if isinstance(handler, logging.handlers.RotatingFileHandler):
                if handler.baseFilename == str(log_file.absolute()):
                    existing_file_handler = handler
                    break

        if existing_file_handler is None:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=log_config.file_rotation_size,
                backupCount=log_config.file_retention_count
            )
            file_handler.setFormatter(logging.Formatter(log_config.format, log_config.date_format))
            root_logger.addHandler(file_handler)

    # Disable console logging in production if configured
    if not log_config.enable_console and config.is_production():
        root_logger.handlers = [h for h in root_logger.handlers
                                if isinstance(h, logging.handlers.RotatingFileHandler)
                                or not isinstance(h, logging.StreamHandler)]
