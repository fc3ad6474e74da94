"""
Configuration management for the tenant dump migrator.

Settings are loaded with Pydantic BaseSettings from TDM_-prefixed environment
variables (or a .env file), so the naming conventions of a particular Rails /
Apartment application can be adjusted without code changes.

Example:
    TDM_ROOT_NAMESPACE=public
    TDM_INCLUDE_FKS='["behavior_id"]'
    TDM_FK_OVERRIDES_FILE=config/fk_overrides.yml
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

ENV_FILE_OVERRIDE = os.getenv("TDM_ENV_FILE")
SETTINGS_ENV_FILE = Path(ENV_FILE_OVERRIDE).expanduser() if ENV_FILE_OVERRIDE else Path(".env")

# Foreign keys that must be offset even though their stem does not pluralise
# to a tenanted table.
DEFAULT_INCLUDE_FKS = ["behavior_id"]

# Foreign keys that look tenant-scoped by name but point at shared data.
DEFAULT_EXCLUDE_FKS = [
    "context_id",
    "parent_context_id",
    "deployment_id",
    "line_item_id",
    "client_id",
]


class Settings(BaseSettings):
    """
    Migrator settings with environment variable support.

    Environment variables are loaded with the TDM_ prefix, e.g.
    TDM_TENANT_COLUMN overrides tenant_column.
    """

    # Dump layout
    root_namespace: str = Field(
        default="public", description="Schema that holds global data and receives all output"
    )
    queue_table_prefix: str = Field(
        default="que_", description="Prefix of background-job tables that are never transformed"
    )
    null_sentinel: str = Field(default="\\N", description="COPY text encoding of NULL")

    # Tenant directory table (pass 1)
    tenant_directory_table: str = Field(default="tenants")
    tenant_namespace_column: str = Field(
        default="schema", description="Directory column holding the tenant's schema name"
    )
    tenant_id_column: str = Field(default="id")
    tenant_offset_column: str = Field(
        default="offset",
        description="Directory column holding the key offset; falls back to the id when absent",
    )

    # Naming conventions
    tenant_column: str = Field(default="tenant_id")
    primary_key_column: str = Field(default="id")
    foreign_key_suffix: str = Field(default="_id")

    # Foreign key overrides
    include_fks: List[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE_FKS))
    exclude_fks: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_FKS))
    fk_overrides_file: Optional[str] = Field(
        default=None, description="Optional YAML file with extra include/exclude lists"
    )

    # Operational
    progress_interval: int = Field(default=100000, gt=0)
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def validate_fk_overrides(self) -> "Settings":
        """
        Merge the optional override file and reject contradictory lists.

        Raises:
            ValueError: If the override file is missing or a column is both
                included and excluded.
        """
        if self.fk_overrides_file:
            from .fk_overrides import load_fk_overrides

            overrides = load_fk_overrides(Path(self.fk_overrides_file), required=True)
            self.include_fks = _merge_unique(self.include_fks, overrides.include)
            self.exclude_fks = _merge_unique(self.exclude_fks, overrides.exclude)

        conflicts = sorted(set(self.include_fks) & set(self.exclude_fks))
        if conflicts:
            raise ValueError(
                f"Foreign keys cannot be both included and excluded: {', '.join(conflicts)}"
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="TDM_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _merge_unique(base: List[str], extra: List[str]) -> List[str]:
    merged = list(base)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance with loaded configuration
    """
    return Settings()
