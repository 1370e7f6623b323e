"""recollect error types and utilities."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using temp file + rename.

    Readers see either the previous file or the complete new one, never a
    partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    closed = False
    try:
        os.write(fd, content.encode())
        os.fsync(fd)
        os.close(fd)
        closed = True
        os.replace(tmp, str(path))
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class RecollectError(Exception):
    """Base exception for recollect."""

    pass


class ConfigError(RecollectError):
    """Missing or invalid configuration."""

    pass


class StoreError(RecollectError):
    """Index store could not be opened or written."""

    pass


class TranscriptNotFoundError(RecollectError):
    """No transcript matches the requested session id."""

    pass


class SummarizationError(RecollectError):
    """The summarization service call failed."""

    pass


class ResourceExhaustedError(SummarizationError):
    """The service ran out of its reasoning/thinking budget for this request."""

    def __init__(self, message: str, model: str | None = None):
        super().__init__(message)
        self.model = model
