"""Unit tests for COPY block recognition and streaming."""

import io
from typing import Iterator, List, Optional

import pytest

from tenant_dump_migrator.exceptions import (
    CopyHeaderError,
    DumpReadError,
    LineProcessingError,
    RowFormatError,
    TenantMismatchError,
    TruncatedSectionError,
)
from tenant_dump_migrator.parser import (
    CopyBlockProcessor,
    CopyHeader,
    RowTransformer,
    unquote_identifier,
)


class UppercaseTransformer:
    """Test transformer that records rows and uppercases the last field."""

    def __init__(self) -> None:
        self.rows: List[List[str]] = []

    def transform_row(self, fields: List[str]) -> List[str]:
        self.rows.append(list(fields))
        return fields[:-1] + [fields[-1].upper()]


class BrokenTransformer:
    def transform_row(self, fields: List[str]) -> List[str]:
        return [fields[5]]


def truncated_lines() -> Iterator[str]:
    yield "SET x;\n"
    yield "COPY a.x (id) FROM stdin;\n"
    yield "1\n"
    raise EOFError("Compressed file ended before the end-of-stream marker was reached")


class RejectingTransformer:
    def transform_row(self, fields: List[str]) -> List[str]:
        raise TenantMismatchError("Incorrect tenant_id")


def run(text: str, handler, processor: Optional[CopyBlockProcessor] = None) -> str:
    processor = processor or CopyBlockProcessor()
    out = io.StringIO()
    processor.process(io.StringIO(text), handler, out)
    return out.getvalue()


def passthrough(header: CopyHeader) -> Optional[RowTransformer]:
    return None


@pytest.mark.unit
class TestParseHeader:
    def test_qualified_header(self):
        header = CopyBlockProcessor().parse_header(
            "COPY tenant_a.posts (id, tenant_id, author_id) FROM stdin;"
        )

        assert header.namespace == "tenant_a"
        assert header.table == "posts"
        assert header.columns == ("id", "tenant_id", "author_id")
        assert header.raw_columns == "id, tenant_id, author_id"

    def test_unqualified_header_uses_root_namespace(self):
        header = CopyBlockProcessor(root_namespace="public").parse_header(
            "COPY posts (id) FROM stdin;"
        )

        assert header.namespace == "public"
        assert header.table == "posts"

    def test_quoted_identifiers_are_unquoted(self):
        header = CopyBlockProcessor().parse_header(
            'COPY "Tenant-A"."Order" (id, "offset", name) FROM stdin;'
        )

        assert header.namespace == "Tenant-A"
        assert header.table == "Order"
        assert header.raw_table == '"Order"'
        assert header.columns == ("id", "offset", "name")

    def test_render_keeps_raw_table_and_columns(self):
        header = CopyBlockProcessor().parse_header(
            'COPY "Tenant-A"."Order" (id, "offset") FROM stdin;'
        )

        assert header.render("public") == 'COPY public."Order" (id, "offset") FROM stdin;'

    @pytest.mark.parametrize(
        "line",
        [
            "COPY tenant_a.posts (id) TO stdout;",
            "COPY tenant_a.posts FROM stdin;",
            "COPY (SELECT 1) TO stdout;",
        ],
    )
    def test_malformed_header_raises(self, line):
        with pytest.raises(CopyHeaderError):
            CopyBlockProcessor().parse_header(line)

    def test_column_lookup(self):
        header = CopyBlockProcessor().parse_header("COPY t (id, name) FROM stdin;")

        assert header.column_index("name") == 1
        assert header.column_index("missing") is None
        assert header.has_column("id")

    def test_unquote_identifier_handles_escaped_quotes(self):
        assert unquote_identifier('"a""b"') == 'a"b'
        assert unquote_identifier("plain") == "plain"


@pytest.mark.unit
class TestProcess:
    def test_lines_outside_sections_are_byte_identical(self):
        text = "-- comment\r\nSET x = 1;\n\n  indented\nno trailing newline"

        assert run(text, passthrough) == text

    def test_untransformed_section_passes_verbatim(self):
        text = "COPY tenant_a.posts (id, name) FROM stdin;\n1\tfoo\t\n\\.\n"

        assert run(text, passthrough) == text

    def test_transformed_section_rewrites_header_and_rows(self):
        transformer = UppercaseTransformer()
        text = "COPY tenant_a.posts (id, name) FROM stdin;\n1\tfoo\n2\tbar\n\\.\nSELECT 1;\n"

        result = run(text, lambda header: transformer)

        assert result == (
            "COPY public.posts (id, name) FROM stdin;\n1\tFOO\n2\tBAR\n\\.\nSELECT 1;\n"
        )
        assert transformer.rows == [["1", "foo"], ["2", "bar"]]

    def test_trailing_empty_fields_are_preserved(self):
        transformer = UppercaseTransformer()
        text = "COPY t (id, a, b) FROM stdin;\n1\t\t\n\\.\n"

        result = run(text, lambda header: transformer)

        assert transformer.rows == [["1", "", ""]]
        assert result.splitlines()[1] == "1\t\t"

    def test_handler_receives_each_header(self):
        seen = []

        def handler(header):
            seen.append((header.namespace, header.table))
            return None

        text = "COPY a.x (id) FROM stdin;\n\\.\nCOPY b.y (id) FROM stdin;\n1\n\\.\n"
        run(text, handler)

        assert seen == [("a", "x"), ("b", "y")]

    def test_scan_without_output(self):
        stats = CopyBlockProcessor().process(
            io.StringIO("COPY a.x (id) FROM stdin;\n1\n2\n\\.\n"), passthrough
        )

        assert stats.sections == 1
        assert stats.rows == 2
        assert stats.transformed_rows == 0
        assert stats.lines == 4

    def test_stats_count_transformed_sections(self):
        text = "COPY a.x (id, v) FROM stdin;\n1\tq\n\\.\nCOPY a.y (id) FROM stdin;\n1\n\\.\n"
        stats = CopyBlockProcessor().process(
            io.StringIO(text),
            lambda header: UppercaseTransformer() if header.table == "x" else None,
            io.StringIO(),
        )

        assert stats.sections == 2
        assert stats.transformed_sections == 1
        assert stats.transformed_rows == 1

    def test_progress_callback(self):
        messages = []
        processor = CopyBlockProcessor(progress_interval=2, progress_callback=messages.append)

        processor.process(io.StringIO("a\nb\nc\nd\n"), passthrough)

        assert len(messages) == 2
        assert "4 lines" in messages[1]


@pytest.mark.unit
class TestProcessErrors:
    def test_unparseable_header_reports_line(self):
        text = "-- dump\nCOPY broken\n"

        with pytest.raises(CopyHeaderError) as exc_info:
            run(text, passthrough)

        assert exc_info.value.line_no == 2
        assert exc_info.value.line == "COPY broken"

    def test_short_row_is_fatal(self):
        text = "COPY a.x (id, tenant_id, name) FROM stdin;\n1\t7\tok\n2\t7\n\\.\n"

        with pytest.raises(RowFormatError) as exc_info:
            run(text, lambda header: UppercaseTransformer())

        assert exc_info.value.line_no == 3
        assert exc_info.value.line == "2\t7"
        assert "expected 3 fields" in exc_info.value.message

    def test_short_row_in_passthrough_section_is_not_checked(self):
        text = "COPY a.x (id, name) FROM stdin;\n1\n\\.\n"

        assert run(text, passthrough) == text

    def test_transformer_error_gets_location(self):
        text = "SET x;\nCOPY a.x (id) FROM stdin;\n1\n\\.\n"

        with pytest.raises(TenantMismatchError) as exc_info:
            run(text, lambda header: RejectingTransformer())

        assert exc_info.value.line_no == 3
        assert exc_info.value.line == "1"
        assert str(exc_info.value) == "3: Incorrect tenant_id"

    def test_row_is_not_written_when_transform_fails(self):
        out = io.StringIO()
        text = "COPY a.x (id) FROM stdin;\n1\n\\.\n"

        with pytest.raises(TenantMismatchError):
            CopyBlockProcessor().process(
                io.StringIO(text), lambda header: RejectingTransformer(), out
            )

        assert out.getvalue() == "COPY public.x (id) FROM stdin;\n"

    def test_input_ending_inside_section(self):
        text = "COPY a.x (id) FROM stdin;\n1\n"

        with pytest.raises(TruncatedSectionError) as exc_info:
            run(text, passthrough)

        assert exc_info.value.line_no == 2

    def test_unexpected_error_is_wrapped_with_location(self):
        text = "COPY a.x (id) FROM stdin;\n1\n\\.\n"

        with pytest.raises(LineProcessingError) as exc_info:
            run(text, lambda header: BrokenTransformer())

        assert exc_info.value.line_no == 2
        assert exc_info.value.line == "1"
        assert isinstance(exc_info.value.__cause__, IndexError)

    def test_read_failure_reports_last_line_read(self):
        with pytest.raises(DumpReadError) as exc_info:
            CopyBlockProcessor().process(truncated_lines(), passthrough, io.StringIO())

        assert exc_info.value.line_no == 3
        assert exc_info.value.line == "1"
        assert "EOFError" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, EOFError)
