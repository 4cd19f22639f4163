"""
Graceful-then-forced termination of a running build.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable

from ..executor.build_process import BuildProcess
from ..executor.container import ContainerRuntime
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


class TerminationOutcome(Enum):
    """How a termination request ended."""
    ALREADY_EXITED = "already_exited"
    GRACEFUL = "graceful"
    FORCED = "forced"


class CancellationController:
    """
    Two-stage termination protocol for a build process.

    Stage one asks the runtime to stop the container by name and sends
    SIGTERM to the local process handle. If the handle has not exited after
    the grace period, stage two kills the container and the local process
    tree unconditionally. Runtime command failures are logged, never raised.
    """

    def __init__(self, runtime: ContainerRuntime, grace_period_seconds: float = 5.0):
        self.runtime = runtime
        self.grace_period_seconds = grace_period_seconds

    async def terminate(self, process: BuildProcess, reason: str) -> TerminationOutcome:
        """
        Stop ``process``, escalating to a forced kill after the grace period.

        Args:
            process: The running build process
            reason: Why the build is being stopped, for the log

        Returns:
            Which stage ended the process
        """
        if not process.is_running:
            logger.debug(f"Build {process.build_id} already exited, nothing to terminate")
            return TerminationOutcome.ALREADY_EXITED

        logger.info(f"Stopping build {process.build_id} ({reason})")

        stop_request = asyncio.ensure_future(
            self.runtime.stop_container(process.container_name, self.grace_period_seconds)
        )
        process.terminate()

        try:
            if await process.wait_for_exit(self.grace_period_seconds):
                outcome = TerminationOutcome.GRACEFUL
            else:
                logger.warning(
                    f"Build {process.build_id} still running {self.grace_period_seconds}s "
                    f"after stop request, forcing termination"
                )
                await self._force(process)
                outcome = TerminationOutcome.FORCED
        finally:
            await self._settle(stop_request, f"stopping container {process.container_name}")

        logger.info(f"Build {process.build_id} terminated ({outcome.value})")
        return outcome

    async def _force(self, process: BuildProcess) -> None:
        kill_request = asyncio.ensure_future(self.runtime.kill_container(process.container_name))
        process.kill()
        await self._settle(kill_request, f"killing container {process.container_name}")

        if not await process.wait_for_exit(self.grace_period_seconds):
            logger.error(f"Build {process.build_id} (PID {process.pid}) survived SIGKILL")

    async def _settle(self, request: Awaitable, context: str) -> None:
        try:
            await request
        except Exception as e:
            handle_error(
                error=e,
                context=context,
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
