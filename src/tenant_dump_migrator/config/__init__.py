"""Configuration management for the tenant dump migrator.

Usage:
    >>> from tenant_dump_migrator.config import get_settings
    >>> settings = get_settings()
    >>> settings.root_namespace
    'public'
"""

from tenant_dump_migrator.config.fk_overrides import FkOverrides, load_fk_overrides
from tenant_dump_migrator.config.settings import Settings, get_settings

__all__ = [
    "FkOverrides",
    "Settings",
    "get_settings",
    "load_fk_overrides",
]
