"""Configuration management - public API.

Centralized configuration for gcp-utils using Pydantic BaseSettings with one
settings class per Google Cloud integration.

Exports:
    get_settings: Cached Settings singleton
    Settings: Main settings class (for testing/overrides)
    BigQuerySettings, FirestoreSettings, GoogleAuthSettings: Sub-settings
"""

from gcp_utils.configuration.google import (
    BigQuerySettings,
    FirestoreSettings,
    GoogleAuthSettings,
)
from gcp_utils.configuration.providers import get_settings
from gcp_utils.configuration.settings import Settings

__all__ = [
    "get_settings",
    "Settings",
    "BigQuerySettings",
    "FirestoreSettings",
    "GoogleAuthSettings",
]
