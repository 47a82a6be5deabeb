"""Single-slot, latest-frame-wins buffer between frame arrival and the pipeline.

States::

    EMPTY      --arrive(f)-->  PENDING(f)
    PENDING(a) --arrive(b)-->  PENDING(b)      (a is dropped, never processed)
    PENDING(f) --tick-->       EMPTY           (f is handed to the pipeline)
    EMPTY      --tick-->       EMPTY           (pipeline not invoked)

Design notes
------------
- ``arrive`` is called from the frame source (any thread); ``tick`` from
  the single worker.  One ``threading.Lock`` guards the slot, and the
  lock is never held while the pipeline runs.
- ``tick`` empties the slot *before* invoking the pipeline, so the frame
  is consumed whether the pipeline returns or raises.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import Enum
from typing import Generic, TypeVar, cast

FrameT = TypeVar("FrameT")
ResultT = TypeVar("ResultT")


class GateState(Enum):
    EMPTY = "empty"
    PENDING = "pending"


class FrameGate(Generic[FrameT]):
    """Mutex-guarded slot holding at most one pending frame."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: FrameT | None = None
        self._has_pending = False

        self._arrived_count = 0
        self._dropped_count = 0
        self._processed_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def arrive(self, frame: FrameT) -> bool:
        """Store *frame*, replacing any unconsumed one.

        Returns ``True`` if a pending frame was overwritten (dropped).
        """
        with self._lock:
            dropped = self._has_pending
            self._pending = frame
            self._has_pending = True
            self._arrived_count += 1
            if dropped:
                self._dropped_count += 1
        return dropped

    def take(self) -> FrameT | None:
        """Atomically remove and return the pending frame, or ``None``."""
        with self._lock:
            if not self._has_pending:
                return None
            frame = self._pending
            self._pending = None
            self._has_pending = False
            return frame

    def tick(self, pipeline: Callable[[FrameT], ResultT]) -> ResultT | None:
        """Hand the pending frame (if any) to *pipeline* and return its result.

        Returns ``None`` without calling *pipeline* when the gate is empty.
        Exceptions raised by *pipeline* propagate; the frame is consumed
        either way.
        """
        with self._lock:
            if not self._has_pending:
                return None
            frame = self._pending
            self._pending = None
            self._has_pending = False
            self._processed_count += 1
        return pipeline(cast(FrameT, frame))

    def clear(self) -> None:
        """Drop the pending frame, if any, without processing it."""
        with self._lock:
            if self._has_pending:
                self._dropped_count += 1
            self._pending = None
            self._has_pending = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> GateState:
        with self._lock:
            return GateState.PENDING if self._has_pending else GateState.EMPTY

    @property
    def arrived_count(self) -> int:
        """Frames ever passed to :meth:`arrive`."""
        return self._arrived_count

    @property
    def dropped_count(self) -> int:
        """Frames overwritten or cleared before reaching the pipeline."""
        return self._dropped_count

    @property
    def processed_count(self) -> int:
        """Frames handed to a pipeline by :meth:`tick`."""
        return self._processed_count
