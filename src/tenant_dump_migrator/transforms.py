"""
Per-column transforms for rows moved out of a tenant schema.

A transform is decided once per COPY section from the column name, the table
classification and the owning tenant, then applied to every row of that
section by matching on its kind.

Resolution rules:
- primary key of a tenanted table: offset by the tenant's offset
- tenant column: must equal the tenant's id
- ``<name>_id`` columns: offset when ``<names>`` is tenanted (or the column is
  force-included), left alone when it is global (or force-excluded), and
  reported as a warning when the referenced table is unknown
- anything else: unchanged
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import structlog

from .config import Settings
from .exceptions import TenantDataInRootError, TenantMismatchError, ValueFormatError
from .naming import InflectionNameResolver, NameResolver
from .parser import CopyHeader
from .registry import TableKind, Tenant, TenantRegistry
from .utils.warning_collector import WarningCollector

logger = structlog.get_logger(__name__)


class TransformKind(str, Enum):
    IDENTITY = "identity"
    OFFSET_NUMERIC = "offset_numeric"
    VALIDATE_TENANT_ID = "validate_tenant_id"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class ColumnTransform:
    """Tagged description of what happens to one column's values."""

    kind: TransformKind
    column: str = ""
    offset: int = 0
    preserve_null: bool = False
    tenant_id: Optional[int] = None

    @classmethod
    def identity(cls, column: str = "") -> "ColumnTransform":
        return cls(TransformKind.IDENTITY, column)

    @classmethod
    def offset_numeric(
        cls, column: str, offset: int, preserve_null: bool = False
    ) -> "ColumnTransform":
        return cls(TransformKind.OFFSET_NUMERIC, column, offset=offset, preserve_null=preserve_null)

    @classmethod
    def validate_tenant_id(cls, column: str, tenant_id: int) -> "ColumnTransform":
        return cls(TransformKind.VALIDATE_TENANT_ID, column, tenant_id=tenant_id)

    @classmethod
    def unresolved(cls, column: str) -> "ColumnTransform":
        return cls(TransformKind.UNRESOLVED, column)

    @property
    def is_identity(self) -> bool:
        return self.kind in (TransformKind.IDENTITY, TransformKind.UNRESOLVED)

    def apply(self, value: str, null_sentinel: str = "\\N") -> str:
        """
        Transform one raw field value.

        Raises:
            ValueFormatError: If an offset column holds a non-integer.
            TenantMismatchError: If a tenant column disagrees with the tenant.
        """
        if self.kind is TransformKind.OFFSET_NUMERIC:
            if self.preserve_null and value == null_sentinel:
                return value
            try:
                return str(int(value) + self.offset)
            except ValueError:
                raise ValueFormatError(
                    f"{self.column} value {value!r} is not an integer"
                ) from None

        if self.kind is TransformKind.VALIDATE_TENANT_ID:
            try:
                matches = int(value) == self.tenant_id
            except ValueError:
                matches = False
            if not matches:
                raise TenantMismatchError(
                    f"Incorrect {self.column} {value!r}, expected {self.tenant_id}"
                )
            return value

        return value


class ColumnTransformResolver:
    """Decides the transform of every column of a COPY section."""

    def __init__(
        self,
        registry: TenantRegistry,
        settings: Settings,
        warnings: WarningCollector,
        name_resolver: Optional[NameResolver] = None,
    ):
        self.registry = registry
        self.settings = settings
        self.warnings = warnings
        self.name_resolver = name_resolver or InflectionNameResolver(settings.foreign_key_suffix)
        self.include_fks = frozenset(settings.include_fks)
        self.exclude_fks = frozenset(settings.exclude_fks)

    def resolve(self, header: CopyHeader, tenant: Optional[Tenant]) -> List[ColumnTransform]:
        """
        Resolve one transform per column, in header order.

        Args:
            header: Section header (table and column names).
            tenant: Tenant owning the section, None under the root namespace.

        Raises:
            TenantDataInRootError: If a tenanted table has rows under the root
                namespace.
        """
        kind = self.registry.kind_of(header.table)
        transforms = [self._resolve_column(header, kind, tenant, col) for col in header.columns]
        logger.debug(
            "transforms.resolved",
            namespace=header.namespace,
            table=header.table,
            transforms={t.column: t.kind.value for t in transforms if not t.is_identity},
        )
        return transforms

    def _resolve_column(
        self,
        header: CopyHeader,
        kind: Optional[TableKind],
        tenant: Optional[Tenant],
        column: str,
    ) -> ColumnTransform:
        settings = self.settings

        if column == settings.primary_key_column:
            if kind is not TableKind.TENANTED:
                return ColumnTransform.identity(column)
            if tenant is None:
                raise TenantDataInRootError(
                    f"Unexpected {header.namespace} data for tenanted table {header.table}"
                )
            return ColumnTransform.offset_numeric(column, tenant.offset)

        if column == settings.tenant_column and tenant is not None:
            return ColumnTransform.validate_tenant_id(column, tenant.id)

        if self.name_resolver.is_foreign_key(column):
            return self._resolve_foreign_key(header, tenant, column)

        return ColumnTransform.identity(column)

    def _resolve_foreign_key(
        self, header: CopyHeader, tenant: Optional[Tenant], column: str
    ) -> ColumnTransform:
        if column in self.exclude_fks:
            return ColumnTransform.identity(column)

        referenced = self.name_resolver.table_for(column)
        offset = tenant.offset if tenant is not None else 0

        if column in self.include_fks or (referenced and self.registry.is_tenanted(referenced)):
            return ColumnTransform.offset_numeric(column, offset, preserve_null=True)
        if referenced and self.registry.is_global(referenced):
            return ColumnTransform.identity(column)

        self.warnings.warn(
            f"Unknown ref {header.table}.{column}",
            table=header.table,
            column=column,
            referenced=referenced,
        )
        return ColumnTransform.unresolved(column)


class SectionTransformer:
    """
    Row transformer for one COPY section.

    Column transforms are resolved on the first data row so empty sections
    never trigger resolution errors or warnings.
    """

    def __init__(
        self,
        header: CopyHeader,
        tenant: Optional[Tenant],
        resolver: ColumnTransformResolver,
    ):
        self.header = header
        self.tenant = tenant
        self.resolver = resolver
        self.null_sentinel = resolver.settings.null_sentinel
        self.transforms: Optional[List[ColumnTransform]] = None
        self.rows = 0

    def transform_row(self, fields: List[str]) -> List[str]:
        if self.transforms is None:
            self.transforms = self.resolver.resolve(self.header, self.tenant)

        self.rows += 1
        out = list(fields)
        for index, transform in enumerate(self.transforms):
            if not transform.is_identity:
                out[index] = transform.apply(fields[index], self.null_sentinel)
        return out
