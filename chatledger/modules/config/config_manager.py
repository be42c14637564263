"""
Centralized configuration management using Pydantic models.

This module provides a unified configuration system that:
- Uses Pydantic for type validation and environment variable loading
- Loads per-user-type entitlements from YAML with package defaults as fallback
- Provides proper error handling with logging tracebacks
- Supports both .env files and direct environment variables
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class EntitlementConfig(BaseModel):
    """Limits for a single user type."""
    max_messages_per_day: int = Field(default=10000, ge=0)


class EntitlementsConfig(BaseModel):
    """Entitlements keyed by user type (e.g. "guest", "regular")."""
    user_types: Dict[str, EntitlementConfig] = Field(default_factory=dict)

    @field_validator('user_types', mode='before')
    @classmethod
    def validate_user_types(cls, v):
        """Convert dict values to EntitlementConfig objects."""
        if isinstance(v, dict):
            return {name: EntitlementConfig(**config) if isinstance(config, dict) else config
                   for name, config in v.items()}
        return v


DEFAULT_ENTITLEMENTS = EntitlementsConfig(
    user_types={
        "guest": EntitlementConfig(max_messages_per_day=10000),
        "regular": EntitlementConfig(max_messages_per_day=10000),
    }
)


class AppSettings(BaseSettings):
    """Main application settings loaded from environment variables."""

    # Application settings
    app_name: str = "chatledger"
    debug_mode: bool = False
    # Logging settings
    log_level: str = "INFO"  # Override default logging level (DEBUG, INFO, WARNING, ERROR)
    app_log_dir: Optional[str] = Field(default=None, validation_alias="APP_LOG_DIR")
    environment: str = Field(default="production", validation_alias="ENVIRONMENT")

    # Backing store
    database_url: str = Field(
        default="sqlite+aiosqlite:///data/chatledger.db",
        description="SQLAlchemy async URL. sqlite+aiosqlite:///path for local, postgresql+asyncpg://... for production",
        validation_alias=AliasChoices("CHAT_DB_URL", "DATABASE_URL"),
    )
    database_connect_timeout: float = Field(default=5.0, validation_alias="DATABASE_CONNECT_TIMEOUT")
    database_idle_timeout: int = Field(
        default=20,
        description="Seconds an idle server session may live before it is reaped",
        validation_alias="DATABASE_IDLE_TIMEOUT",
    )
    database_max_lifetime: int = Field(
        default=60 * 30,
        description="Seconds before a pooled connection is recycled",
        validation_alias="DATABASE_MAX_LIFETIME",
    )
    database_pool_size: int = Field(default=5, validation_alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=10, validation_alias="DATABASE_MAX_OVERFLOW")
    database_auto_create_schema: bool = Field(
        default=True,
        description="Create missing tables on first connection. Use Alembic migrations in production.",
        validation_alias="DATABASE_AUTO_CREATE_SCHEMA",
    )

    # Authentication header configuration (identity comes from a trusted reverse proxy)
    auth_user_header: str = Field(
        default="X-User-Id",
        description="HTTP header name to extract authenticated user id from reverse proxy",
        validation_alias="AUTH_USER_HEADER",
    )
    auth_user_type_header: str = Field(
        default="X-User-Type",
        description="HTTP header carrying the user's entitlement tier",
        validation_alias="AUTH_USER_TYPE_HEADER",
    )
    test_user: str = "test-user"  # Test user for development
    default_user_type: str = "regular"

    # Quota
    quota_window_hours: int = Field(default=24, ge=1, validation_alias="QUOTA_WINDOW_HOURS")

    # Resumable streams
    stream_retention_seconds: int = Field(
        default=300,
        description="How long a finished stream stays replayable in memory",
        validation_alias="STREAM_RETENTION_SECONDS",
    )
    stream_max_age_seconds: int = Field(
        default=600,
        description="Unfinished streams older than this are treated as abandoned and completed",
        validation_alias="STREAM_MAX_AGE_SECONDS",
    )

    # History pagination
    history_page_limit_max: int = Field(default=100, validation_alias="HISTORY_PAGE_LIMIT_MAX")

    # Config file names (can be overridden via environment variables)
    entitlements_config_file: str = Field(default="entitlements.yml", validation_alias="ENTITLEMENTS_CONFIG_FILE")

    # Config directory path (user customizations; falls back to chatledger/config/ for defaults)
    app_config_dir: str = Field(default="config", validation_alias="APP_CONFIG_DIR")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_prefix": "",
        "populate_by_name": True,
    }


class ConfigManager:
    """Centralized configuration manager with proper error handling."""

    def __init__(self, package_root: Optional[Path] = None, app_settings: Optional[AppSettings] = None):
        self._package_root = package_root or Path(__file__).parent.parent.parent
        self._app_settings: Optional[AppSettings] = app_settings
        self._entitlements_config: Optional[EntitlementsConfig] = None

    def _search_paths(self, file_name: str) -> List[Path]:
        """Generate search paths for a configuration file.

        Two-layer lookup:
        1. User config dir (APP_CONFIG_DIR, default "config/") - user customizations
        2. Package defaults (chatledger/config/) - always available as fallback
        """
        project_root = self._package_root.parent

        config_dir = Path(self.app_settings.app_config_dir)
        if not config_dir.is_absolute():
            config_dir_project = project_root / config_dir
        else:
            config_dir_project = config_dir

        package_defaults = self._package_root / "config" / file_name

        candidates: List[Path] = [
            config_dir / file_name,
            config_dir_project / file_name,
            package_defaults,
        ]

        seen = set()
        search_paths: List[Path] = []
        for p in candidates:
            if p not in seen:
                seen.add(p)
                search_paths.append(p)

        logger.debug(
            "Config search paths for %s: %s", file_name, [str(p) for p in search_paths]
        )
        return search_paths

    def _load_yaml_file(self, file_paths: List[Path]) -> Optional[Dict[str, Any]]:
        """Load the first readable YAML mapping among ``file_paths``."""
        for path in file_paths:
            try:
                if not path.exists():
                    continue

                logger.info(f"Found YAML config at: {path.absolute()}")

                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)

                if not isinstance(data, dict):
                    logger.error(
                        f"Invalid YAML format in {path}: expected dict, got {type(data)}"
                    )
                    continue

                logger.info(f"Successfully loaded YAML config from {path}")
                return data

            except yaml.YAMLError as e:
                logger.error(f"YAML parsing error in {path}: {e}", exc_info=True)
                continue
            except OSError as e:
                logger.error(f"Unexpected error reading {path}: {e}", exc_info=True)
                continue

        logger.warning(f"YAML config not found in any of these locations: {[str(p) for p in file_paths]}")
        return None

    @property
    def app_settings(self) -> AppSettings:
        """Get application settings (cached)."""
        if self._app_settings is None:
            self._app_settings = AppSettings()
            logger.info("Application settings loaded successfully")
        return self._app_settings

    @property
    def entitlements_config(self) -> EntitlementsConfig:
        """Get entitlements configuration (cached)."""
        if self._entitlements_config is None:
            file_paths = self._search_paths(self.app_settings.entitlements_config_file)
            data = self._load_yaml_file(file_paths)
            if data:
                try:
                    self._entitlements_config = EntitlementsConfig(**data)
                except ValueError as e:
                    logger.error(f"Invalid entitlements config, using defaults: {e}", exc_info=True)
                    self._entitlements_config = DEFAULT_ENTITLEMENTS
            else:
                logger.info("Using built-in default entitlements")
                self._entitlements_config = DEFAULT_ENTITLEMENTS
        return self._entitlements_config

    def entitlements_for(self, user_type: Optional[str]) -> EntitlementConfig:
        """Entitlement for a user type, falling back to the default user type."""
        user_types = self.entitlements_config.user_types
        if user_type and user_type in user_types:
            return user_types[user_type]
        fallback = self.app_settings.default_user_type
        if user_type:
            logger.warning("Unknown user type %r, using %r entitlements", user_type, fallback)
        return user_types.get(fallback, EntitlementConfig())

    def reload_configs(self) -> None:
        """Reload all configurations from files."""
        self._app_settings = None
        self._entitlements_config = None
        logger.info("Configuration cache cleared, will reload on next access")

    def validate_config(self) -> Dict[str, bool]:
        """Validate all configurations and return status."""
        status = {}

        try:
            self.app_settings
            status["app_settings"] = True
        except ValueError as e:
            logger.error(f"App settings validation failed: {e}", exc_info=True)
            status["app_settings"] = False

        entitlements = self.entitlements_config
        status["entitlements_config"] = len(entitlements.user_types) > 0
        if not status["entitlements_config"]:
            logger.warning("Entitlements config is valid but defines no user types")

        return status
