"""Tests for the fixed-rate runner, the frame feeder and the rate limiter."""

import threading

import numpy as np
import pytest

from object_recognizer.io.frames import Frame
from object_recognizer.pipeline.frame_gate import FrameGate, GateState
from object_recognizer.pipeline.geometry.estimator import NotFound
from object_recognizer.pipeline.localizer import LocalizationResult
from object_recognizer.pipeline.runner import (
    FrameFeeder,
    FrameSourceError,
    RateLimiter,
    RecognizerRunner,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.slept = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)
        self.now += seconds


class RecordingLocalizer:
    """Stands in for ObjectLocalizer; always reports ``NotFound``."""

    def __init__(self):
        self.frames = []

    def localize(self, frame: Frame) -> LocalizationResult:
        self.frames.append(frame)
        return LocalizationResult(
            outcome=NotFound("insufficient_correspondences"),
            location=None,
            frame_index=frame.index,
            debug={},
        )


def _no_wait_limiter():
    clock = FakeClock()
    return RateLimiter(1000.0, clock=clock, sleep=clock.sleep)


def _packet(index):
    return index, np.zeros((8, 8, 3), dtype=np.uint8)


# ---------------------------------------------------------------------------
# RateLimiter
# ---------------------------------------------------------------------------


def test_rate_limiter_sleeps_until_next_period():
    clock = FakeClock()
    limiter = RateLimiter(10.0, clock=clock, sleep=clock.sleep)

    clock.now += 0.03
    assert limiter.sleep() == pytest.approx(0.07)
    clock.now += 0.01
    assert limiter.sleep() == pytest.approx(0.09)
    assert clock.now == pytest.approx(0.2)
    assert limiter.overrun_count == 0


def test_rate_limiter_overrun_delays_next_tick():
    clock = FakeClock()
    limiter = RateLimiter(10.0, clock=clock, sleep=clock.sleep)

    clock.now += 0.25
    assert limiter.sleep() == 0.0
    assert limiter.overrun_count == 1

    clock.now += 0.02
    assert limiter.sleep() == pytest.approx(0.08)
    assert clock.now == pytest.approx(0.35)


def test_rate_limiter_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        RateLimiter(0.0)


# ---------------------------------------------------------------------------
# RecognizerRunner
# ---------------------------------------------------------------------------


def test_run_once_on_empty_gate_does_nothing():
    localizer = RecordingLocalizer()
    runner = RecognizerRunner(FrameGate(), localizer, limiter=_no_wait_limiter())

    assert runner.run_once() is None
    assert localizer.frames == []
    assert runner.stats.ticks == 1
    assert runner.stats.processed == 0


def test_run_once_processes_latest_frame_and_reports():
    gate = FrameGate()
    localizer = RecordingLocalizer()
    results = []
    runner = RecognizerRunner(
        gate,
        localizer,
        on_result=lambda frame, result: results.append((frame.index, result)),
        limiter=_no_wait_limiter(),
    )

    gate.arrive(_packet(0))
    gate.arrive(_packet(1))
    result = runner.run_once()

    assert result is not None
    assert [frame.index for frame in localizer.frames] == [1]
    assert [index for index, _ in results] == [1]
    assert runner.stats.processed == 1
    assert runner.stats.not_found_reasons["insufficient_correspondences"] == 1
    assert runner.stats.not_found == 1
    assert "not_found=1" in runner.stats.to_log_string()


def test_undecodable_frame_is_skipped_and_consumed():
    gate = FrameGate()
    localizer = RecordingLocalizer()
    runner = RecognizerRunner(gate, localizer, limiter=_no_wait_limiter())

    gate.arrive((0, np.zeros((8, 8), dtype=np.float64)))

    assert runner.run_once() is None
    assert runner.stats.skipped == 1
    assert gate.state is GateState.EMPTY
    assert localizer.frames == []


def test_run_stops_after_max_ticks():
    runner = RecognizerRunner(FrameGate(), RecordingLocalizer(), limiter=_no_wait_limiter())

    stats = runner.run(max_ticks=5)

    assert stats.ticks == 5


def test_run_stops_when_stop_event_is_set():
    stop_event = threading.Event()
    stop_event.set()
    runner = RecognizerRunner(FrameGate(), RecordingLocalizer(), limiter=_no_wait_limiter())

    assert runner.run(stop_event=stop_event).ticks == 0


def test_run_drains_feeder_and_processes_last_frame():
    gate = FrameGate()
    localizer = RecordingLocalizer()
    runner = RecognizerRunner(gate, localizer, limiter=_no_wait_limiter())
    feeder = FrameFeeder([_packet(index) for index in range(50)], gate)

    feeder.start()
    stats = runner.run(feeder=feeder, max_ticks=1_000_000)
    feeder.join(timeout=5.0)

    processed_indices = [frame.index for frame in localizer.frames]
    assert processed_indices[-1] == 49
    assert processed_indices == sorted(set(processed_indices))
    assert stats.processed == len(processed_indices)
    assert gate.processed_count + gate.dropped_count == 50


def test_feeder_error_surfaces_as_frame_source_error():
    def failing_source():
        yield _packet(0)
        raise RuntimeError("camera unplugged")

    gate = FrameGate()
    runner = RecognizerRunner(gate, RecordingLocalizer(), limiter=_no_wait_limiter())
    feeder = FrameFeeder(failing_source(), gate)

    feeder.start()
    with pytest.raises(FrameSourceError, match="camera unplugged") as excinfo:
        runner.run(feeder=feeder, max_ticks=1_000_000)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    feeder.join(timeout=5.0)
    assert feeder.finished


def test_feeder_stops_on_stop_event():
    gate = FrameGate()
    stop_event = threading.Event()
    stop_event.set()
    feeder = FrameFeeder([_packet(index) for index in range(5)], gate, stop_event=stop_event)

    feeder.start()
    feeder.join(timeout=5.0)

    assert feeder.finished
    assert gate.arrived_count == 0
