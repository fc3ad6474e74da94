"""Fatal migration errors.

Every error carries the 1-based input line number and the raw line text so an
operator can find the offending spot in a multi-gigabyte dump. The COPY block
processor fills both in for errors raised while a line is being handled.
"""

from typing import Dict, Optional


class DumpMigrationError(Exception):
    """Base class for errors that abort the migration."""

    def __init__(
        self,
        message: str,
        line_no: Optional[int] = None,
        line: Optional[str] = None,
    ):
        self.line_no = line_no
        self.line = line
        super().__init__(message)

    @property
    def message(self) -> str:
        return self.args[0]

    def with_location(self, line_no: int, line: str) -> "DumpMigrationError":
        """Attach the input position unless one is already set."""
        if self.line_no is None:
            self.line_no = line_no
            self.line = line
        return self

    def __str__(self) -> str:
        if self.line_no is None:
            return self.message
        return f"{self.line_no}: {self.message}"

    def to_dict(self) -> Dict[str, Optional[object]]:
        """Convert to structured dict for logging."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "line_no": self.line_no,
            "line": self.line,
        }


class CopyHeaderError(DumpMigrationError):
    """A line starting with COPY does not match the header grammar."""


class RowFormatError(DumpMigrationError):
    """A data row has fewer fields than its COPY header declares."""


class TruncatedSectionError(DumpMigrationError):
    """The input ended inside a COPY block."""


class ValueFormatError(DumpMigrationError):
    """A key value that must be offset is not an integer."""


class TenantDataInRootError(DumpMigrationError):
    """Tenant-scoped rows appeared under the root namespace."""


class TenantMismatchError(DumpMigrationError):
    """A tenant_id value does not match the tenant owning the schema."""


class UnknownTableError(DumpMigrationError):
    """A table was never classified as global or tenanted during pass 1."""


class TenantDirectoryError(DumpMigrationError):
    """The tenant directory table is missing columns or holds invalid values."""


class DumpReadError(DumpMigrationError):
    """The dump could not be read past a line (truncated gzip, I/O failure)."""


class LineProcessingError(DumpMigrationError):
    """An unexpected error while handling a line, e.g. a failed output write."""
