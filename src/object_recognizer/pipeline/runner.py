"""Fixed-rate scheduling around :class:`FrameGate`.

Two threads cooperate:

- :class:`FrameFeeder` reads frames from a source and calls
  ``gate.arrive`` for each one.  It does no image processing.
- :class:`RecognizerRunner` ticks at a fixed rate (30 Hz by default) on
  the calling thread.  Each tick consumes the pending frame, if any, and
  runs the full localization pipeline on it synchronously.

A tick that takes longer than the period simply delays the next one.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import numpy as np

from object_recognizer.io.frames import Frame, FrameDecodeError
from object_recognizer.pipeline.frame_gate import FrameGate, GateState
from object_recognizer.pipeline.geometry.estimator import NotFound
from object_recognizer.pipeline.localizer import LocalizationResult, ObjectLocalizer

logger = logging.getLogger(__name__)

FramePacket = tuple[int, np.ndarray]

DEFAULT_RATE_HZ = 30.0
PROGRESS_LOG_INTERVAL = 100


class FrameSourceError(RuntimeError):
    """The frame source failed while the runner was consuming it."""


# ---------------------------------------------------------------------------
# RateLimiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Sleep until the next period boundary, like a fixed-rate loop timer.

    Parameters
    ----------
    rate_hz : float
        Target loop rate.
    clock, sleep : callable
        Time source and sleep function; injectable for tests.
    """

    def __init__(
        self,
        rate_hz: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate_hz <= 0.0:
            raise ValueError(f"rate_hz must be > 0, got {rate_hz}")
        self.period = 1.0 / rate_hz
        self._clock = clock
        self._sleep = sleep
        self._next_deadline = self._clock() + self.period
        self._overrun_count = 0

    @property
    def overrun_count(self) -> int:
        """Periods whose work finished after the deadline."""
        return self._overrun_count

    def reset(self) -> None:
        self._next_deadline = self._clock() + self.period

    def sleep(self) -> float:
        """Block until the next deadline and return the time slept.

        After an overrun the schedule restarts from now instead of
        trying to catch up.
        """
        now = self._clock()
        remaining = self._next_deadline - now
        if remaining > 0.0:
            self._sleep(remaining)
            self._next_deadline += self.period
            return remaining
        self._overrun_count += 1
        self._next_deadline = now + self.period
        return 0.0


# ---------------------------------------------------------------------------
# FrameFeeder
# ---------------------------------------------------------------------------


class FrameFeeder(threading.Thread):
    """Background thread pushing ``(index, image)`` packets into a gate.

    Parameters
    ----------
    frames : Iterable[tuple[int, np.ndarray]]
        Frame source, typically an open :class:`VideoReader`.
    gate : FrameGate
        Destination slot.
    stop_event : threading.Event | None
        Set to stop feeding early.
    pace_fps : float | None
        When set, deliver at most this many frames per second.  Used to
        replay video files at their native rate instead of as fast as
        they decode.
    """

    def __init__(
        self,
        frames: Iterable[FramePacket],
        gate: FrameGate[FramePacket],
        stop_event: threading.Event | None = None,
        pace_fps: float | None = None,
    ) -> None:
        super().__init__(name="frame-feeder", daemon=True)
        self._frames = frames
        self._gate = gate
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._pace_fps = pace_fps
        self._finished = threading.Event()
        self.error: BaseException | None = None

    @property
    def finished(self) -> bool:
        """``True`` once the source is exhausted, stopped, or failed."""
        return self._finished.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        limiter = RateLimiter(self._pace_fps) if self._pace_fps else None
        try:
            for packet in self._frames:
                if self._stop_event.is_set():
                    break
                self._gate.arrive(packet)
                if limiter is not None:
                    limiter.sleep()
        except BaseException as exc:
            # Surfaced on the worker thread by RecognizerRunner.run().
            self.error = exc
        finally:
            self._finished.set()


# ---------------------------------------------------------------------------
# RecognizerRunner
# ---------------------------------------------------------------------------


@dataclass
class RunStats:
    """Counters accumulated by :class:`RecognizerRunner`."""

    ticks: int = 0
    processed: int = 0
    found: int = 0
    skipped: int = 0
    not_found_reasons: Counter[str] = field(default_factory=Counter)

    @property
    def not_found(self) -> int:
        return sum(self.not_found_reasons.values())

    def to_log_string(self) -> str:
        reasons = ", ".join(
            f"{reason}={count}" for reason, count in self.not_found_reasons.most_common()
        )
        return (
            f"ticks={self.ticks}  processed={self.processed}  found={self.found}  "
            f"not_found={self.not_found}  skipped={self.skipped}"
            + (f"  ({reasons})" if reasons else "")
        )


class RecognizerRunner:
    """Fixed-rate worker that drains a :class:`FrameGate` into the localizer.

    Parameters
    ----------
    gate : FrameGate
        Slot filled by the frame source.
    localizer : ObjectLocalizer
        Pipeline to run on each consumed frame.
    on_result : callable | None
        Called with ``(frame, result)`` after every successful pipeline
        invocation, found or not.
    rate_hz : float
        Tick rate.  Ignored when *limiter* is given.
    limiter : RateLimiter | None
        Custom limiter, mainly for tests.
    """

    def __init__(
        self,
        gate: FrameGate[FramePacket],
        localizer: ObjectLocalizer,
        on_result: Callable[[Frame, LocalizationResult], None] | None = None,
        rate_hz: float = DEFAULT_RATE_HZ,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.gate = gate
        self.localizer = localizer
        self.on_result = on_result
        self.limiter = limiter if limiter is not None else RateLimiter(rate_hz)
        self.stats = RunStats()

    def _process(self, packet: FramePacket) -> tuple[Frame, LocalizationResult]:
        frame_index, image = packet
        frame = Frame.from_image(image, index=frame_index)
        return frame, self.localizer.localize(frame)

    def run_once(self) -> LocalizationResult | None:
        """Execute one tick.

        Returns the pipeline result, or ``None`` when no frame was
        pending or the pending frame could not be decoded.
        """
        self.stats.ticks += 1
        try:
            processed = self.gate.tick(self._process)
        except FrameDecodeError as exc:
            self.stats.skipped += 1
            logger.warning("Skipping undecodable frame: %s", exc)
            return None

        if processed is None:
            return None

        frame, result = processed
        self.stats.processed += 1
        outcome = result["outcome"]
        if isinstance(outcome, NotFound):
            self.stats.not_found_reasons[outcome.reason] += 1
        else:
            self.stats.found += 1

        if self.stats.processed % PROGRESS_LOG_INTERVAL == 0:
            logger.info("Progress: %s", self.stats.to_log_string())

        if self.on_result is not None:
            self.on_result(frame, result)
        return result

    def run(
        self,
        stop_event: threading.Event | None = None,
        max_ticks: int | None = None,
        feeder: FrameFeeder | None = None,
    ) -> RunStats:
        """Tick until stopped, *max_ticks* is reached, or *feeder* is drained.

        Raises :class:`FrameSourceError`, chained to the original error,
        when *feeder* stopped because its source failed.
        """
        self.limiter.reset()
        ticks = 0
        while stop_event is None or not stop_event.is_set():
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.run_once()
            ticks += 1
            if feeder is not None and feeder.finished and self.gate.state is GateState.EMPTY:
                break
            self.limiter.sleep()

        if feeder is not None and feeder.error is not None:
            raise FrameSourceError(f"Frame source failed: {feeder.error!r}") from feeder.error
        return self.stats
