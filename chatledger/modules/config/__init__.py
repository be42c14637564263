"""Configuration module."""

from .config_manager import (
    AppSettings,
    ConfigManager,
    EntitlementConfig,
    EntitlementsConfig,
)

__all__ = [
    "AppSettings",
    "ConfigManager",
    "EntitlementConfig",
    "EntitlementsConfig",
]
