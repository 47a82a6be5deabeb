"""JSON-lines output for located objects.

One record per pipeline invocation that found the object.  The writer is
a context manager; records are flushed every *flush_every* lines and
again on close so a crash loses at most one small batch.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)


class JsonlWriter:
    """JSON-lines writer; opening truncates an existing file.

    Parameters
    ----------
    path : str | Path
        Output file.  Parent directories are created on open.
    flush_every : int
        Flush the file after this many records.  ``1`` flushes every
        record.
    """

    def __init__(self, path: str | Path, flush_every: int = 10) -> None:
        if flush_every < 1:
            raise ValueError(f"flush_every must be >= 1, got {flush_every}")
        self.path = Path(path)
        self.flush_every = flush_every
        self._file: IO[str] | None = None
        self._records_written = 0

    @property
    def records_written(self) -> int:
        return self._records_written

    def open(self) -> JsonlWriter:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8")
        logger.info("Writing located objects to %s", self.path)
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None

    def __enter__(self) -> JsonlWriter:
        return self.open()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def write(self, record: dict[str, Any]) -> None:
        if self._file is None:
            raise RuntimeError("JsonlWriter is not open. Use as a context manager.")
        self._file.write(json.dumps(record, ensure_ascii=False) + "\n")
        self._records_written += 1
        if self._records_written % self.flush_every == 0:
            self._file.flush()
