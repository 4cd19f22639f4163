"""
Supervision of a single containerized build process.

This module provides BuildProcess, which launches one isolated build through
the container runtime, streams its stdout and stderr as they arrive, keeps a
bounded tail of each stream for diagnostics and reports the exit status.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..models.job import BuildOptions
from ..system.processes import kill_process_tree
from ..validation import ErrorSeverity, LaunchError, handle_error
from .container import ContainerRuntime

logger = logging.getLogger(__name__)

# Receives (stream_name, line) for every line the build prints.
OutputCallback = Callable[[str, str], None]


class LogTail:
    """Keeps the last ``max_chars`` characters written to a stream."""

    def __init__(self, max_chars: int = 500):
        self.max_chars = max_chars
        self._text = ""

    def append(self, text: str) -> None:
        if self.max_chars <= 0:
            return
        self._text = (self._text + text)[-self.max_chars:]

    @property
    def text(self) -> str:
        return self._text

    def __str__(self) -> str:
        return self._text


@dataclass
class ProcessResult:
    """Exit status of a build process with the diagnostic tails of its output."""

    exit_code: int
    stdout_tail: str
    stderr_tail: str
    duration_seconds: float = 0.0


class BuildProcess:
    """
    One build job's process, from launch to exit.

    The instance owns the OS process handle. ``start`` returns as soon as the
    process is running; ``wait`` drains both output streams and returns the
    exit status once the process is gone.
    """

    def __init__(
        self,
        options: BuildOptions,
        runtime: ContainerRuntime,
        on_output: Optional[OutputCallback] = None,
        log_tail_chars: int = 500,
    ):
        """
        Args:
            options: The build request this process runs
            runtime: Container runtime used to launch it
            on_output: Called with each line of stdout and stderr
            log_tail_chars: Characters of each stream kept for diagnostics
        """
        self.options = options
        self.runtime = runtime
        self.on_output = on_output

        self.stdout_tail = LogTail(log_tail_chars)
        self.stderr_tail = LogTail(log_tail_chars)

        self._process: Optional[asyncio.subprocess.Process] = None
        self._result: Optional[ProcessResult] = None
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    @property
    def build_id(self) -> str:
        return self.options.build_id

    @property
    def container_name(self) -> str:
        return self.runtime.container_name(self.build_id)

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def result(self) -> Optional[ProcessResult]:
        return self._result

    async def start(self) -> int:
        """
        Launch the build process.

        Returns:
            Process ID of the started process

        Raises:
            LaunchError: If the process is already started or cannot be spawned
        """
        if self._process is not None:
            raise LaunchError(f"Build {self.build_id} process already started", build_id=self.build_id)

        argv = self.runtime.build_run_argv(self.options)
        logger.info(f"Starting build {self.build_id}: {' '.join(argv)}")

        try:
            self._process = await self.runtime.spawn(argv)
        except OSError as e:
            raise LaunchError(
                f"Failed to start build process: {type(e).__name__}: {e}",
                build_id=self.build_id,
            ) from e

        self.start_time = time.time()
        logger.info(f"Build {self.build_id} process started with PID {self._process.pid}")
        return self._process.pid

    async def wait(self) -> ProcessResult:
        """
        Stream the process output until both streams close, then wait for exit.

        Returns:
            Exit code and the bounded stdout/stderr tails

        Raises:
            RuntimeError: If the process was never started
        """
        if self._process is None:
            raise RuntimeError("Build process not started")
        if self._result is not None:
            return self._result

        await asyncio.gather(
            self._pump(self._process.stdout, "stdout", self.stdout_tail),
            self._pump(self._process.stderr, "stderr", self.stderr_tail),
        )
        exit_code = await self._process.wait()
        self.end_time = time.time()

        self._result = ProcessResult(
            exit_code=exit_code,
            stdout_tail=self.stdout_tail.text,
            stderr_tail=self.stderr_tail.text,
            duration_seconds=self.end_time - (self.start_time or self.end_time),
        )
        logger.info(
            f"Build {self.build_id} process exited with code {exit_code} "
            f"after {self._result.duration_seconds:.1f}s"
        )
        return self._result

    async def wait_for_exit(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds for the process to exit.

        Returns:
            True if the process has exited
        """
        if self._process is None:
            return True
        if self._process.returncode is not None:
            return True
        try:
            await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def terminate(self) -> None:
        """Send SIGTERM to the local process handle."""
        if not self.is_running:
            return
        try:
            self._process.terminate()
            logger.debug(f"Sent SIGTERM to build {self.build_id} (PID {self._process.pid})")
        except ProcessLookupError:
            pass

    def kill(self) -> List[int]:
        """
        Send SIGKILL to the local process and all of its descendants.

        Returns:
            PIDs that were signalled
        """
        if not self.is_running:
            return []
        killed = kill_process_tree(self._process.pid, f"build {self.build_id}")
        if not killed:
            # psutil could not see it; fall back to the handle itself
            try:
                self._process.kill()
                killed = [self._process.pid]
            except ProcessLookupError:
                pass
        return killed

    async def _pump(self, stream: Optional[asyncio.StreamReader], name: str, tail: LogTail) -> None:
        """Read one output stream line by line until EOF."""
        if stream is None:
            return

        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # Line longer than the stream limit; the reader drops it
                logger.warning(f"Build {self.build_id} {name}: overlong line discarded")
                continue

            if not raw:
                break

            text = raw.decode("utf-8", errors="replace")
            tail.append(text)
            line = text.rstrip("\r\n")
            logger.debug(f"Build {self.build_id} {name}: {line}")

            if self.on_output is None:
                continue
            try:
                self.on_output(name, line)
            except Exception as e:
                handle_error(
                    error=e,
                    context=f"handling {name} output of build {self.build_id}",
                    severity=ErrorSeverity.WARNING,
                    reraise=False,
                    logger=logger,
                )
