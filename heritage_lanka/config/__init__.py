"""
Configuration package for the Heritage Lanka booking backend.
"""

from .settings import (
    Settings,
    Environment,
    LogLevel,
    SecuritySettings,
    OtpSettings,
    PaymentSettings,
    WhatsAppSettings,
    GeminiSettings,
    ReminderSettings,
    settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "Environment",
    "LogLevel",
    "SecuritySettings",
    "OtpSettings",
    "PaymentSettings",
    "WhatsAppSettings",
    "GeminiSettings",
    "ReminderSettings",
    "settings",
    "get_settings",
    "reload_settings",
]
