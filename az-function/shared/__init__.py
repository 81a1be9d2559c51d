"""Shared utilities for the SaveData Azure Function.

Currently exposes:
    handle_store_request - GET/POST handling against the GitHub-backed JSON file.
    get_settings - process-wide settings built once from app settings.
"""

from .settings import ConfigurationError, SecretsUnresolvedError, StoreSettings, get_settings, load_settings
from .store_proxy import handle_store_request, json_response

__all__ = [
    "ConfigurationError",
    "SecretsUnresolvedError",
    "StoreSettings",
    "get_settings",
    "load_settings",
    "handle_store_request",
    "json_response",
]
