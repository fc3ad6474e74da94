"""
COPY block processing for pg_dump text output.

Streams a dump line by line, recognises ``COPY ... FROM stdin;`` sections and
hands each one to a caller-supplied handler. The handler decides whether the
section passes through verbatim or has its rows rewritten by a
``RowTransformer``. Everything outside COPY blocks is copied unchanged.
"""

import re
import sys
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Protocol, TextIO, Tuple

import structlog

from .exceptions import (
    CopyHeaderError,
    DumpMigrationError,
    DumpReadError,
    LineProcessingError,
    RowFormatError,
    TruncatedSectionError,
)

logger = structlog.get_logger(__name__)

# Progress reporting interval (lines)
PROGRESS_INTERVAL = 100000

COPY_PREFIX = "COPY "
COPY_TERMINATOR = "\\."
FIELD_DELIMITER = "\t"

_IDENTIFIER = r'(?:"(?:[^"]|"")+"|[^".\s(]+)'


def unquote_identifier(identifier: str) -> str:
    """Strip SQL double quotes from an identifier (``"a""b"`` -> ``a"b``)."""
    identifier = identifier.strip()
    if len(identifier) >= 2 and identifier.startswith('"') and identifier.endswith('"'):
        return identifier[1:-1].replace('""', '"')
    return identifier


@dataclass(frozen=True)
class CopyHeader:
    """Parsed ``COPY [namespace.]table (columns) FROM stdin;`` line."""

    namespace: str
    table: str
    columns: Tuple[str, ...]
    raw_table: str
    raw_columns: str

    def column_index(self, column: str) -> Optional[int]:
        try:
            return self.columns.index(column)
        except ValueError:
            return None

    def has_column(self, column: str) -> bool:
        return column in self.columns

    def render(self, namespace: str) -> str:
        """Render the header qualified with ``namespace``."""
        return f"COPY {namespace}.{self.raw_table} ({self.raw_columns}) FROM stdin;"


class RowTransformer(Protocol):
    """Rewrites the fields of one data row."""

    def transform_row(self, fields: List[str]) -> List[str]:
        ...


CopyHandler = Callable[[CopyHeader], Optional[RowTransformer]]


@dataclass
class CopyStats:
    """Counters gathered while processing one pass over a dump."""

    lines: int = 0
    sections: int = 0
    transformed_sections: int = 0
    rows: int = 0
    transformed_rows: int = 0


class CopyBlockProcessor:
    """
    Line-oriented processor for COPY blocks.

    Holds no per-pass state between calls to ``process``, so the same
    instance can drive both migration passes.
    """

    HEADER_PATTERN = re.compile(
        rf"^COPY (?:(?P<namespace>{_IDENTIFIER})\.)?(?P<table>{_IDENTIFIER}) "
        r"\((?P<columns>.*)\) FROM stdin;$"
    )
    COLUMN_SPLIT_PATTERN = re.compile(r",\s*")

    def __init__(
        self,
        root_namespace: str = "public",
        progress_interval: int = PROGRESS_INTERVAL,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the processor.

        Args:
            root_namespace: Namespace assumed for unqualified headers and used
                when rewriting headers of transformed sections.
            progress_interval: Number of lines between progress messages.
            progress_callback: Optional callback for progress updates.
        """
        self.root_namespace = root_namespace
        self.progress_interval = progress_interval
        self._progress_callback = progress_callback or self._default_progress

    def _default_progress(self, message: str) -> None:
        """Default progress callback - prints to stderr."""
        print(message, file=sys.stderr, flush=True)

    def parse_header(self, line: str) -> CopyHeader:
        """
        Parse a COPY header line.

        Raises:
            CopyHeaderError: If the line does not match the header grammar.
        """
        match = self.HEADER_PATTERN.match(line)
        if not match:
            raise CopyHeaderError("couldn't parse COPY header")

        raw_columns = match.group("columns")
        columns = tuple(
            unquote_identifier(col)
            for col in self.COLUMN_SPLIT_PATTERN.split(raw_columns)
            if col.strip()
        )
        namespace = match.group("namespace")
        return CopyHeader(
            namespace=unquote_identifier(namespace) if namespace else self.root_namespace,
            table=unquote_identifier(match.group("table")),
            columns=columns,
            raw_table=match.group("table"),
            raw_columns=raw_columns,
        )

    def process(
        self,
        lines: Iterable[str],
        handler: CopyHandler,
        output: Optional[TextIO] = None,
    ) -> CopyStats:
        """
        Stream ``lines`` to ``output``, rewriting COPY blocks via ``handler``.

        Args:
            lines: Input lines, terminators included (e.g. an open text file).
            handler: Called once per COPY header; returns None to copy the
                section verbatim or a RowTransformer to rewrite its rows.
            output: Destination stream, or None to only scan the input.

        Returns:
            CopyStats for this pass.

        Raises:
            DumpMigrationError: On malformed input or a rejected transform,
                annotated with the 1-based line number and line text. Other
                failures are wrapped as LineProcessingError, or DumpReadError
                when the input itself cannot be read.
        """
        stats = CopyStats()
        transformer: Optional[RowTransformer] = None
        in_section = False
        section = ""
        expected_fields = 0
        line_no = 0
        text = ""

        try:
            for line_no, raw in enumerate(lines, 1):
                stats.lines = line_no
                text = raw.rstrip("\r\n")

                if line_no % self.progress_interval == 0:
                    self._progress_callback(
                        f"  Processing... {line_no:,} lines - {stats.sections:,} COPY blocks"
                    )

                try:
                    if not in_section:
                        if not text.startswith(COPY_PREFIX):
                            if output is not None:
                                output.write(raw)
                            continue

                        header = self.parse_header(text)
                        transformer = handler(header)
                        in_section = True
                        section = f"{header.namespace}.{header.table}"
                        expected_fields = len(header.columns)
                        stats.sections += 1
                        logger.debug(
                            "copy.section_started",
                            namespace=header.namespace,
                            table=header.table,
                            line=line_no,
                            transformed=transformer is not None,
                        )

                        if transformer is None:
                            if output is not None:
                                output.write(raw)
                        else:
                            stats.transformed_sections += 1
                            if output is not None:
                                output.write(header.render(self.root_namespace) + "\n")
                        continue

                    if text == COPY_TERMINATOR:
                        in_section = False
                        transformer = None
                        if output is not None:
                            output.write(raw)
                        continue

                    stats.rows += 1
                    if transformer is None:
                        if output is not None:
                            output.write(raw)
                        continue

                    fields = text.split(FIELD_DELIMITER)
                    if len(fields) < expected_fields:
                        raise RowFormatError(
                            f"data format error: expected {expected_fields} fields "
                            f"for {section}, got {len(fields)}"
                        )

                    transformed = transformer.transform_row(fields)
                    stats.transformed_rows += 1
                    if output is not None:
                        output.write(FIELD_DELIMITER.join(transformed) + "\n")

                except DumpMigrationError as e:
                    e.with_location(line_no, text)
                    raise
                except Exception as e:
                    raise LineProcessingError(
                        f"{type(e).__name__}: {e}", line_no=line_no, line=text
                    ) from e

        except DumpMigrationError:
            raise
        except Exception as e:
            # The failing read belongs to the line after ``line_no``.
            raise DumpReadError(
                f"failed reading input after line {line_no}: {type(e).__name__}: {e}",
                line_no=line_no,
                line=text,
            ) from e

        if in_section:
            raise TruncatedSectionError(
                f"input ended inside COPY block for {section}",
                line_no=line_no,
                line=text,
            )

        return stats
