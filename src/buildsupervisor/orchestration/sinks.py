"""
Outbound progress sinks.

The registry hands every BuildProgress event to one sink. A realtime
broadcaster or a status store plugs in here; the supervisor knows nothing
about transport.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional

from ..models.job import BuildProgress
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


class ProgressSink(ABC):
    """Receives progress events, in order, for every build job."""

    @abstractmethod
    def emit(self, progress: BuildProgress) -> None:
        """Deliver one event. Must not block the event loop."""


class LoggingProgressSink(ProgressSink):
    """Writes every event to the log."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or globals()["logger"]

    def emit(self, progress: BuildProgress) -> None:
        line = (
            f"Build {progress.build_id} progress: status={progress.status.value} "
            f"progress={progress.progress_percent}% message={progress.message!r}"
        )
        if progress.error:
            self.logger.warning(f"{line} error={progress.error!r}")
        else:
            self.logger.info(line)


class CallbackProgressSink(ProgressSink):
    """Forwards every event to a callable."""

    def __init__(self, callback: Callable[[BuildProgress], None]):
        self.callback = callback

    def emit(self, progress: BuildProgress) -> None:
        self.callback(progress)


class QueueProgressSink(ProgressSink):
    """Puts every event on an asyncio queue for a consumer task."""

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    def emit(self, progress: BuildProgress) -> None:
        self.queue.put_nowait(progress)

    async def next_event(self, timeout: Optional[float] = None) -> BuildProgress:
        """
        Wait for the next event.

        Raises:
            asyncio.TimeoutError: If no event arrives within ``timeout``
        """
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class CompositeProgressSink(ProgressSink):
    """
    Fans every event out to several sinks.

    A failing sink is logged and does not keep the event from the others.
    """

    def __init__(self, sinks: Iterable[ProgressSink]):
        self.sinks: List[ProgressSink] = list(sinks)

    def emit(self, progress: BuildProgress) -> None:
        for sink in self.sinks:
            try:
                sink.emit(progress)
            except Exception as e:
                handle_error(
                    error=e,
                    context=f"{type(sink).__name__} delivering progress of build {progress.build_id}",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger,
                )
