import contextlib
import logging
import os
import pathlib
import typing
import uuid

from .data_types import Span
from .errors import LedgerIOError

logger = logging.getLogger(__name__)


def splice_out(content: bytes, span: Span) -> bytes:
    """Remove `span` from `content` together with the rest of its last line.

    Exactly one line terminator is consumed, so a blank separator line after the
    entry survives.
    """
    if not 0 <= span.start <= span.end <= len(content):
        raise ValueError(f"Span {span} out of range for {len(content)} bytes")
    end = span.end
    while end < len(content) and content[end : end + 1] != b"\n":
        end += 1
    if end < len(content):
        end += 1
    return content[: span.start] + content[end:]


def replace_span(content: bytes, span: Span, replacement: bytes) -> bytes:
    if not 0 <= span.start <= span.end <= len(content):
        raise ValueError(f"Span {span} out of range for {len(content)} bytes")
    return content[: span.start] + replacement + content[span.end :]


def read_bytes(path: str | pathlib.Path) -> bytes:
    try:
        return pathlib.Path(path).read_bytes()
    except OSError as exc:
        raise LedgerIOError(f"Failed to read {path}: {exc}") from exc


def atomic_write(path: str | pathlib.Path, data: bytes):
    """Replace the file at `path` so readers only ever see the old or the new content"""
    path = pathlib.Path(path)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except OSError as exc:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise LedgerIOError(f"Failed to write {path}: {exc}") from exc
    logger.debug("Wrote %s bytes to %s", len(data), path)


def append_bytes(path: str | pathlib.Path, data: bytes):
    path = pathlib.Path(path)
    current = read_bytes(path) if path.exists() else b""
    atomic_write(path, current + data)


class FileSnapshot:
    """Bytes of a set of files captured before a multi-step mutation, to roll back on failure"""

    def __init__(self, paths: typing.Iterable[str | pathlib.Path]):
        self.contents: dict[pathlib.Path, bytes | None] = {}
        for path in paths:
            path = pathlib.Path(path)
            if path in self.contents:
                continue
            self.contents[path] = read_bytes(path) if path.exists() else None

    def restore(self):
        for path, content in self.contents.items():
            if content is None:
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()
                logger.info("Rolled back %s by removing it", path)
            else:
                atomic_write(path, content)
                logger.info("Rolled back %s", path)
