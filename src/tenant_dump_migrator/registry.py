"""
Tenant registry built during the first pass over a dump.

Pass 1 reads the root-namespace tenant directory to learn every tenant's id
and key offset, and classifies each root-namespace table as global or
tenanted depending on whether it carries the tenant column.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, TextIO

import structlog

from .config import Settings
from .exceptions import TenantDirectoryError
from .io import rewind
from .parser import CopyBlockProcessor, CopyHeader, CopyStats, RowTransformer
from .utils.warning_collector import WarningCollector

logger = structlog.get_logger(__name__)


class TableKind(str, Enum):
    """Classification of a root-namespace table."""

    GLOBAL = "global"
    TENANTED = "tenanted"


@dataclass(frozen=True)
class Tenant:
    """A tenant whose data lived in its own schema."""

    namespace: str
    id: int
    offset: int


@dataclass
class TenantRegistry:
    """Tenants and table classifications discovered in pass 1."""

    root_namespace: str = "public"
    tenants: Dict[str, Tenant] = field(default_factory=dict)
    tables: Dict[str, TableKind] = field(default_factory=dict)

    def register_tenant(self, tenant: Tenant) -> None:
        """
        Record a tenant.

        Raises:
            TenantDirectoryError: If the namespace is already registered with
                a different id or offset.
        """
        existing = self.tenants.get(tenant.namespace)
        if existing is not None and existing != tenant:
            raise TenantDirectoryError(
                f"Tenant schema {tenant.namespace} registered twice "
                f"(id {existing.id} and {tenant.id})"
            )
        self.tenants[tenant.namespace] = tenant

    def classify(self, table: str, kind: TableKind) -> None:
        if table in self.tables:
            logger.debug("registry.table_seen_again", table=table, kind=kind.value)
            return
        self.tables[table] = kind

    def tenant_for(self, namespace: str) -> Optional[Tenant]:
        return self.tenants.get(namespace)

    def kind_of(self, table: str) -> Optional[TableKind]:
        return self.tables.get(table)

    def is_tenanted(self, table: str) -> bool:
        return self.tables.get(table) is TableKind.TENANTED

    def is_global(self, table: str) -> bool:
        return self.tables.get(table) is TableKind.GLOBAL

    @property
    def global_tables(self) -> List[str]:
        return [t for t, kind in self.tables.items() if kind is TableKind.GLOBAL]

    @property
    def tenanted_tables(self) -> List[str]:
        return [t for t, kind in self.tables.items() if kind is TableKind.TENANTED]

    def format_summary(self) -> str:
        """Human-readable listing for operator review before pass 2."""

        def block(title: str, items: List[str]) -> List[str]:
            return [f"{title}:"] + [f"  {item}" for item in items] + [""]

        tenant_lines = [
            f"{t.namespace} (id={t.id}, offset={t.offset})" for t in self.tenants.values()
        ]
        lines = (
            block("Tenants", tenant_lines)
            + block("Global tables", self.global_tables)
            + block("Tenanted tables", self.tenanted_tables)
        )
        return "\n".join(lines).rstrip("\n")


class TenantDirectoryReader:
    """Registers one tenant per row of the tenant directory table."""

    def __init__(
        self,
        header: CopyHeader,
        registry: TenantRegistry,
        settings: Settings,
        warnings: WarningCollector,
    ):
        self.registry = registry
        self.warnings = warnings
        self.null_sentinel = settings.null_sentinel
        self.namespace_index = self._require(header, settings.tenant_namespace_column)
        self.id_index = self._require(header, settings.tenant_id_column)
        # Without a dedicated offset column the tenant's id doubles as its offset.
        self.offset_index = header.column_index(settings.tenant_offset_column)

    @staticmethod
    def _require(header: CopyHeader, column: str) -> int:
        index = header.column_index(column)
        if index is None:
            raise TenantDirectoryError(
                f"Tenant directory {header.table} has no {column} column"
            )
        return index

    def _integer(self, value: str, column: str) -> int:
        try:
            return int(value)
        except ValueError:
            raise TenantDirectoryError(
                f"Tenant directory {column} value {value!r} is not an integer"
            ) from None

    def transform_row(self, fields: List[str]) -> List[str]:
        namespace = fields[self.namespace_index]
        if namespace == self.null_sentinel:
            raw_id = fields[self.id_index]
            self.warnings.warn(f"Skipping tenant {raw_id} without schema", id=raw_id)
            return fields

        tenant_id = self._integer(fields[self.id_index], "id")
        offset = (
            tenant_id
            if self.offset_index is None
            else self._integer(fields[self.offset_index], "offset")
        )
        tenant = Tenant(namespace=namespace, id=tenant_id, offset=offset)
        self.registry.register_tenant(tenant)
        logger.debug(
            "registry.tenant_registered", namespace=namespace, id=tenant_id, offset=offset
        )
        return fields


class RegistryBuilder:
    """Runs pass 1 and returns the populated TenantRegistry."""

    def __init__(
        self,
        settings: Settings,
        processor: Optional[CopyBlockProcessor] = None,
        warnings: Optional[WarningCollector] = None,
    ):
        self.settings = settings
        self.warnings = warnings if warnings is not None else WarningCollector()
        self.processor = processor or CopyBlockProcessor(
            root_namespace=settings.root_namespace,
            progress_interval=settings.progress_interval,
        )
        self.registry = TenantRegistry(root_namespace=settings.root_namespace)
        self.stats = CopyStats()

    def _classify(self, header: CopyHeader) -> Optional[RowTransformer]:
        if header.namespace != self.settings.root_namespace:
            return None
        if header.table.startswith(self.settings.queue_table_prefix):
            return None

        if header.table == self.settings.tenant_directory_table:
            self.registry.classify(header.table, TableKind.GLOBAL)
            return TenantDirectoryReader(header, self.registry, self.settings, self.warnings)

        if header.has_column(self.settings.tenant_column):
            self.registry.classify(header.table, TableKind.TENANTED)
        else:
            self.registry.classify(header.table, TableKind.GLOBAL)
        return None

    def build(self, stream: TextIO) -> TenantRegistry:
        rewind(stream)
        stats = self.stats = self.processor.process(stream, self._classify)
        logger.info(
            "registry.built",
            lines=stats.lines,
            tenants=len(self.registry.tenants),
            global_tables=len(self.registry.global_tables),
            tenanted_tables=len(self.registry.tenanted_tables),
        )
        return self.registry


def build_registry(
    stream: TextIO,
    settings: Settings,
    processor: Optional[CopyBlockProcessor] = None,
) -> TenantRegistry:
    """
    Scan the whole dump once and build the tenant registry.

    Args:
        stream: Rewindable dump input.
        settings: Naming conventions for the directory table and tenant column.
        processor: Optional pre-configured COPY block processor.

    Returns:
        TenantRegistry with tenants and table classifications.
    """
    return RegistryBuilder(settings, processor).build(stream)
