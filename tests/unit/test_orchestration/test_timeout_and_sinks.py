"""
Unit tests for the timeout controller and the progress sinks.
"""

import asyncio
import logging
from unittest.mock import Mock

import pytest

from buildsupervisor.models.job import BuildProgress, BuildStatus
from buildsupervisor.orchestration import (
    CallbackProgressSink,
    CompositeProgressSink,
    LoggingProgressSink,
    QueueProgressSink,
    TimeoutController,
)


def make_progress(status=BuildStatus.BUILDING, error=None):
    return BuildProgress(build_id="b1", status=status, progress_percent=20, message="Getting dependencies...", error=error)


@pytest.mark.unit
class TestTimeoutController:
    """Test cases for TimeoutController."""

    @pytest.mark.asyncio
    async def test_fires_after_deadline(self):
        fired = []
        controller = TimeoutController("b1", 0.05, fired.append)

        controller.arm()
        assert controller.armed
        await asyncio.sleep(0.2)

        assert fired == ["b1"]
        assert controller.fired
        assert not controller.armed

    @pytest.mark.asyncio
    async def test_disarm_prevents_firing(self):
        on_timeout = Mock()
        controller = TimeoutController("b1", 0.05, on_timeout)

        controller.arm()
        controller.disarm()
        controller.disarm()
        await asyncio.sleep(0.15)

        on_timeout.assert_not_called()
        assert not controller.fired

    @pytest.mark.asyncio
    async def test_arm_twice_raises(self):
        controller = TimeoutController("b1", 10.0, Mock())
        controller.arm()

        with pytest.raises(RuntimeError):
            controller.arm()

        controller.disarm()

    def test_arm_requires_running_loop(self):
        controller = TimeoutController("b1", 1.0, Mock())

        with pytest.raises(RuntimeError):
            controller.arm()

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self, caplog):
        controller = TimeoutController("b1", 0.01, Mock(side_effect=ValueError("boom")))

        with caplog.at_level(logging.ERROR):
            controller.arm()
            await asyncio.sleep(0.1)

        assert controller.fired
        assert "boom" in caplog.text


@pytest.mark.unit
class TestProgressSinks:
    """Test cases for the outbound sinks."""

    def test_callback_sink(self):
        received = []
        sink = CallbackProgressSink(received.append)
        progress = make_progress()

        sink.emit(progress)

        assert received == [progress]

    @pytest.mark.asyncio
    async def test_queue_sink(self):
        sink = QueueProgressSink()
        progress = make_progress()

        sink.emit(progress)

        assert await sink.next_event(timeout=1.0) is progress
        with pytest.raises(asyncio.TimeoutError):
            await sink.next_event(timeout=0.01)

    def test_logging_sink_levels(self, caplog):
        sink = LoggingProgressSink()

        with caplog.at_level(logging.INFO):
            sink.emit(make_progress())
            sink.emit(make_progress(status=BuildStatus.FAILED, error="No output file found"))

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.INFO, logging.WARNING]
        assert "No output file found" in caplog.records[1].getMessage()

    def test_composite_sink_isolates_failures(self):
        received = []
        failing = CallbackProgressSink(Mock(side_effect=RuntimeError("socket closed")))
        sink = CompositeProgressSink([failing, CallbackProgressSink(received.append)])
        progress = make_progress()

        sink.emit(progress)

        assert received == [progress]
