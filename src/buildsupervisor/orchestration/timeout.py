"""
Per-job deadline timer.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


class TimeoutController:
    """
    Arms one deadline for one build job on the running event loop.

    When the deadline passes before ``disarm`` is called, ``on_timeout`` is
    invoked with the build id. ``disarm`` is idempotent and safe to call
    after the timer fired.
    """

    def __init__(self, build_id: str, timeout_seconds: float, on_timeout: Callable[[str], None]):
        self.build_id = build_id
        self.timeout_seconds = timeout_seconds
        self.on_timeout = on_timeout
        self._handle: Optional[asyncio.TimerHandle] = None
        self._fired = False

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def fired(self) -> bool:
        return self._fired

    def arm(self) -> None:
        """
        Start the deadline.

        Raises:
            RuntimeError: If already armed or called outside a running event loop
        """
        if self._handle is not None:
            raise RuntimeError(f"Timeout for build {self.build_id} is already armed")
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.timeout_seconds, self._fire)
        logger.debug(f"Armed {self.timeout_seconds:.3f}s timeout for build {self.build_id}")

    def disarm(self) -> None:
        """Cancel the deadline if it has not fired yet."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.debug(f"Disarmed timeout for build {self.build_id}")

    def _fire(self) -> None:
        self._handle = None
        self._fired = True
        logger.warning(f"Build {self.build_id} exceeded its {self.timeout_seconds:.3f}s timeout")
        try:
            self.on_timeout(self.build_id)
        except Exception as e:
            handle_error(
                error=e,
                context=f"timeout handler of build {self.build_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
