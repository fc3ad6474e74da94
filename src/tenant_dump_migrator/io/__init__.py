"""Dump file I/O."""

from .dump_stream import is_compressed, open_dump_input, open_dump_output, rewind

__all__ = ["is_compressed", "open_dump_input", "open_dump_output", "rewind"]
