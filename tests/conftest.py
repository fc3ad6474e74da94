"""Shared fixtures for the tenant dump migrator test suite."""

from __future__ import annotations

import pytest

from tenant_dump_migrator.config import Settings
from tenant_dump_migrator.registry import TableKind, Tenant, TenantRegistry
from tenant_dump_migrator.utils.warning_collector import WarningCollector

from tests.dump_samples import SAMPLE_DUMP_LINES, make_dump


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from any .env file or TDM_ variables."""
    return Settings(_env_file=None)


@pytest.fixture
def sample_dump() -> str:
    return make_dump(SAMPLE_DUMP_LINES)


@pytest.fixture
def registry() -> TenantRegistry:
    """Registry equivalent to what pass 1 builds from the sample dump."""
    reg = TenantRegistry(root_namespace="public")
    reg.register_tenant(Tenant(namespace="tenant_a", id=7, offset=1000))
    reg.register_tenant(Tenant(namespace="tenant_b", id=8, offset=2000))
    reg.classify("tenants", TableKind.GLOBAL)
    reg.classify("plans", TableKind.GLOBAL)
    reg.classify("authors", TableKind.TENANTED)
    reg.classify("posts", TableKind.TENANTED)
    reg.classify("schema_migrations", TableKind.GLOBAL)
    return reg


@pytest.fixture
def warnings() -> WarningCollector:
    return WarningCollector()
