"""
Tenant Dump Migrator.

Merges a schema-per-tenant PostgreSQL dump into a single schema where tenancy
is carried by a tenant_id column, offsetting tenant-scoped primary and foreign
keys so rows from different tenants no longer collide.
"""

from .exceptions import DumpMigrationError
from .migrator import MigrationReport, TenantDumpMigrator
from .parser import CopyBlockProcessor, CopyHeader
from .registry import TableKind, Tenant, TenantRegistry

__version__ = "0.1.0"

__all__ = [
    "CopyBlockProcessor",
    "CopyHeader",
    "DumpMigrationError",
    "MigrationReport",
    "TableKind",
    "Tenant",
    "TenantDumpMigrator",
    "TenantRegistry",
]
