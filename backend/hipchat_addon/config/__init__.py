"""Configuration module for the add-on service."""

from hipchat_addon.config.settings import (
    AddonSettings,
    get_settings,
    reset_settings,
)

__all__ = [
    "AddonSettings",
    "get_settings",
    "reset_settings",
]
