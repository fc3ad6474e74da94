"""
Tenant dump migrator.

Drives the two passes over a schema-per-tenant dump:

1. Scan: build the tenant registry and print it for operator review.
2. Transform: stream the dump again, moving every tenant schema's COPY blocks
   into the root namespace with offset keys.
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, TextIO, Union

import structlog

from .config import Settings, get_settings
from .exceptions import DumpMigrationError, UnknownTableError
from .io import open_dump_input, open_dump_output, rewind
from .naming import NameResolver
from .parser import CopyBlockProcessor, CopyHeader, CopyStats, RowTransformer
from .registry import RegistryBuilder, TenantRegistry
from .transforms import ColumnTransformResolver, SectionTransformer
from .utils.warning_collector import WarningCollector

logger = structlog.get_logger(__name__)


@dataclass
class MigrationReport:
    """Outcome of a completed migration."""

    tenants: List[str] = field(default_factory=list)
    global_tables: List[str] = field(default_factory=list)
    tenanted_tables: List[str] = field(default_factory=list)
    scan_stats: CopyStats = field(default_factory=CopyStats)
    transform_stats: CopyStats = field(default_factory=CopyStats)
    skipped_sections: int = 0
    warnings: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def passthrough_sections(self) -> int:
        return self.transform_stats.sections - self.transform_stats.transformed_sections

    def format_warnings(self) -> str:
        lines = ["Warnings:"] + [f"  {warning}" for warning in self.warnings]
        return "\n".join(lines)

    def print_summary(self, echo: Callable[[str], None] = print) -> None:
        """Print human-readable summary."""
        echo("")
        echo(self.format_warnings())
        echo("")
        echo(
            f"Lines: {self.transform_stats.lines:,}  "
            f"COPY blocks: {self.transform_stats.sections:,} "
            f"({self.transform_stats.transformed_sections:,} moved, "
            f"{self.passthrough_sections:,} unchanged)  "
            f"Rows rewritten: {self.transform_stats.transformed_rows:,}  "
            f"Duration: {self.duration_seconds:.2f}s"
        )
        echo("")
        echo("DONE")


@dataclass
class MigrationContext:
    """All mutable state of one run, owned by the migrator."""

    settings: Settings
    registry: TenantRegistry
    warnings: WarningCollector = field(default_factory=WarningCollector)
    report: MigrationReport = field(default_factory=MigrationReport)
    resolver: Optional[ColumnTransformResolver] = None

    def __post_init__(self) -> None:
        if self.resolver is None:
            self.resolver = ColumnTransformResolver(self.registry, self.settings, self.warnings)


class TenantDumpMigrator:
    """
    Merges tenant schemas of a pg_dump into the root namespace.

    Example:
        >>> migrator = TenantDumpMigrator()
        >>> report = migrator.migrate_files("dump.sql.gz", "merged.sql.gz")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        name_resolver: Optional[NameResolver] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
        echo: Callable[[str], None] = print,
    ):
        """
        Initialize the migrator.

        Args:
            settings: Naming conventions and overrides; defaults to get_settings().
            name_resolver: Foreign key naming policy; defaults to Rails pluralisation.
            progress_callback: Optional callback for progress updates.
            echo: Where operator-facing summaries are printed.
        """
        self.settings = settings or get_settings()
        self.name_resolver = name_resolver
        self.echo = echo
        self.processor = CopyBlockProcessor(
            root_namespace=self.settings.root_namespace,
            progress_interval=self.settings.progress_interval,
            progress_callback=progress_callback,
        )
        self.context: Optional[MigrationContext] = None
        self.scan_stats = CopyStats()

    def scan(
        self, source: TextIO, warnings: Optional[WarningCollector] = None
    ) -> TenantRegistry:
        """Pass 1: build the registry and print it for review."""
        self.echo("Scanning dump")
        builder = RegistryBuilder(self.settings, self.processor, warnings)
        registry = builder.build(source)
        self.scan_stats = builder.stats
        self.echo(registry.format_summary())
        return registry

    def _new_context(
        self, registry: TenantRegistry, warnings: Optional[WarningCollector] = None
    ) -> MigrationContext:
        if warnings is None:
            warnings = WarningCollector()
        return MigrationContext(
            settings=self.settings,
            registry=registry,
            warnings=warnings,
            resolver=ColumnTransformResolver(
                registry, self.settings, warnings, self.name_resolver
            ),
        )

    def _route_section(
        self, ctx: MigrationContext, header: CopyHeader
    ) -> Optional[RowTransformer]:
        root = self.settings.root_namespace

        tenant = ctx.registry.tenant_for(header.namespace)
        if header.namespace != root and tenant is None:
            ctx.warnings.warn(f"Skipping schema {header.namespace}", namespace=header.namespace)
            ctx.report.skipped_sections += 1
            return None

        if header.table.startswith(self.settings.queue_table_prefix):
            return None

        if ctx.registry.kind_of(header.table) is None:
            raise UnknownTableError(f"Unknown table {header.namespace}.{header.table}")

        # Tables without a primary key are framework bookkeeping
        # (schema_migrations, ar_internal_metadata) and stay where they are.
        if not header.has_column(self.settings.primary_key_column):
            return None

        return SectionTransformer(header, tenant, ctx.resolver)

    def transform(
        self,
        source: TextIO,
        target: TextIO,
        registry: TenantRegistry,
        context: Optional[MigrationContext] = None,
    ) -> CopyStats:
        """Pass 2: stream ``source`` to ``target`` rewriting tenant sections."""
        if context is None:
            context = self._new_context(registry)
        self.context = context
        self.echo("\nTransforming...")
        rewind(source)
        route = partial(self._route_section, context)
        return self.processor.process(source, route, target)

    def run(self, source: TextIO, target: TextIO) -> MigrationReport:
        """
        Run both passes.

        Args:
            source: Rewindable dump input.
            target: Output stream for the merged dump.

        Returns:
            MigrationReport with de-duplicated warnings.

        Raises:
            DumpMigrationError: On the first fatal problem; ``line_no`` and
                ``line`` locate it in the input.
        """
        start_time = datetime.now()
        logger.info("migrator.starting", root_namespace=self.settings.root_namespace)

        try:
            warnings = WarningCollector()
            registry = self.scan(source, warnings)
            context = self._new_context(registry, warnings)
            transform_stats = self.transform(source, target, registry, context)
        except DumpMigrationError as e:
            logger.error("migrator.failed", **e.to_dict())
            raise

        report = context.report
        report.tenants = list(registry.tenants)
        report.global_tables = registry.global_tables
        report.tenanted_tables = registry.tenanted_tables
        report.scan_stats = self.scan_stats
        report.transform_stats = transform_stats
        report.warnings = context.warnings.unique()
        report.start_time = start_time
        report.end_time = datetime.now()

        logger.info(
            "migrator.completed",
            tenants=len(report.tenants),
            sections=transform_stats.sections,
            rows=transform_stats.transformed_rows,
            warnings=len(report.warnings),
            duration=report.duration_seconds,
        )
        return report

    def migrate_files(
        self, input_path: Union[str, Path], output_path: Union[str, Path]
    ) -> MigrationReport:
        """Open both dumps (gzip by suffix), run the migration and print the report."""
        with open_dump_input(input_path) as source, open_dump_output(output_path) as target:
            report = self.run(source, target)
        report.print_summary(self.echo)
        return report
