"""
Line-oriented access to plain or gzipped dump files.

Dumps are opened in text mode with ``surrogateescape`` so bytes that are not
valid UTF-8 survive the round trip, and with ``newline=""`` so line
terminators are neither translated on read nor on write.
"""

import gzip
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, TextIO, Union

import structlog

logger = structlog.get_logger(__name__)

COMPRESSED_SUFFIXES = (".gz",)
DUMP_ENCODING = "utf-8"
DUMP_ERRORS = "surrogateescape"

PathLike = Union[str, Path]


def is_compressed(path: PathLike) -> bool:
    """Return True when the path selects transparent gzip handling."""
    return str(path).endswith(COMPRESSED_SUFFIXES)


def _open(path: PathLike, mode: str) -> TextIO:
    if is_compressed(path):
        return gzip.open(  # type: ignore[return-value]
            path, mode + "t", encoding=DUMP_ENCODING, errors=DUMP_ERRORS, newline=""
        )
    return open(path, mode, encoding=DUMP_ENCODING, errors=DUMP_ERRORS, newline="")


@contextmanager
def open_dump_input(path: PathLike) -> Generator[TextIO, None, None]:
    """
    Open a dump for reading, decompressing ``.gz`` files on the fly.

    Args:
        path: Path to the dump file.

    Yields:
        Text stream positioned at the start of the dump.

    Raises:
        FileNotFoundError: If the dump does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dump file not found: {path}")

    logger.debug("dump_stream.input_opened", path=str(path), compressed=is_compressed(path))
    with _open(path, "r") as stream:
        yield stream


@contextmanager
def open_dump_output(path: PathLike) -> Generator[TextIO, None, None]:
    """
    Open a dump for writing, compressing ``.gz`` files on the fly.

    The stream is flushed and closed on every exit path, including errors.
    """
    logger.debug("dump_stream.output_opened", path=str(path), compressed=is_compressed(path))
    with _open(path, "w") as stream:
        yield stream


def rewind(stream: TextIO) -> None:
    """Reset an input stream to the start of the dump."""
    stream.seek(0)
