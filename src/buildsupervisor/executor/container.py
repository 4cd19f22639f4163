"""
Container runtime access.

This module wraps the container CLI (docker by default) behind the small
set of operations the supervisor needs: run a build, list local images,
stop or kill a container by name, and build an image.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..models.config import ContainerConfig
from ..models.job import BuildOptions
from ..validation import ErrorSeverity, handle_subprocess_error

logger = logging.getLogger(__name__)

# Upper bound for one line read from a child process stream.
STREAM_LIMIT = 1024 * 1024

# Mount points inside the build container.
WORKSPACE_MOUNT = "/workspace"
OUTPUT_MOUNT = "/output"


@dataclass
class CommandResult:
    """Outcome of a short runtime command. ``returncode`` is -1 when it could not run."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ContainerRuntime:
    """
    Thin asynchronous wrapper around the container CLI.
    """

    def __init__(self, config: Optional[ContainerConfig] = None):
        self.config = config or ContainerConfig()

    @property
    def executable(self) -> str:
        return self.config.executable

    @property
    def image(self) -> str:
        return self.config.image

    def container_name(self, build_id: str) -> str:
        return f"{self.config.name_prefix}{build_id}"

    def build_run_argv(self, options: BuildOptions) -> List[str]:
        """
        Full argv that runs one build job in an isolated container.

        The project tree is mounted read-only, the output directory
        read-write, and the build parameters are passed as environment.
        """
        return [
            self.executable,
            "run",
            "--rm",
            "--name", self.container_name(options.build_id),
            "-v", f"{options.project_path}:{WORKSPACE_MOUNT}:ro",
            "-v", f"{options.output_path}:{OUTPUT_MOUNT}",
            "-e", f"BUILD_TYPE={options.build_type.value}",
            "-e", f"BUILD_MODE={options.build_mode.value}",
            "-e", f"APP_NAME={options.app_name}",
            "-e", f"BUILD_ID={options.build_id}",
            f"--memory={self.config.memory_limit}",
            f"--cpus={self.config.cpus:g}",
            self.image,
        ]

    async def spawn(self, argv: List[str]) -> asyncio.subprocess.Process:
        """
        Start ``argv`` with piped stdout and stderr in its own session.

        Raises:
            OSError: If the executable cannot be started
        """
        logger.debug(f"Spawning: {' '.join(argv)}")
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
            start_new_session=True,
        )

    async def execute(self, args: List[str], timeout: Optional[float] = None) -> CommandResult:
        """Run a short runtime command and capture its output.

        Args:
            args: Arguments passed to the runtime executable.
            timeout: Seconds to wait; defaults to ``command_timeout_seconds``.

        Returns:
            The command result. Commands that cannot be started or that time
            out report return code -1 with the reason in ``stderr``.
        """
        timeout = self.config.command_timeout_seconds if timeout is None else timeout
        command = " ".join([self.executable, *args])
        logger.debug(f"Executing runtime command: '{command}'")

        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            logger.error(f"Command not found: {self.executable}: {type(e).__name__}: {e}")
            return CommandResult(-1, "", f"Error: Command not found '{self.executable}'")
        except OSError as e:
            handle_subprocess_error(e, command, severity=ErrorSeverity.ERROR, reraise=False, logger=logger)
            return CommandResult(-1, "", f"Error: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Runtime command '{command}' did not finish within {timeout}s")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            return CommandResult(-1, "", f"Error: timed out after {timeout}s")

        return CommandResult(
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def list_images(self) -> List[str]:
        """
        List local images as ``repository:tag`` strings.

        Returns:
            Image names, empty if the runtime is unavailable
        """
        result = await self.execute(["images", "--format", "{{.Repository}}:{{.Tag}}"])
        if not result.ok:
            logger.warning(f"Listing images failed ({result.returncode}): {result.stderr.strip()}")
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def stop_container(self, name: str, timeout_seconds: float) -> bool:
        """
        Ask a container to stop, letting the runtime escalate after ``timeout_seconds``.

        Returns:
            True if the runtime accepted the request
        """
        grace = max(int(timeout_seconds), 0)
        result = await self.execute(["stop", "--time", str(grace), name], timeout=timeout_seconds + 5.0)
        if not result.ok:
            # The container is usually gone already when this fails
            logger.debug(f"Stopping container {name} returned {result.returncode}: {result.stderr.strip()}")
        return result.ok

    async def kill_container(self, name: str) -> bool:
        """
        Kill a container unconditionally.

        Returns:
            True if the runtime accepted the request
        """
        result = await self.execute(["kill", name])
        if not result.ok:
            logger.debug(f"Killing container {name} returned {result.returncode}: {result.stderr.strip()}")
        return result.ok

    async def build_image(
        self,
        tag: str,
        dockerfile: str,
        context: str,
        on_line: Optional[Callable[[str], None]] = None,
    ) -> int:
        """
        Build an image, streaming its combined output line by line.

        Returns:
            Exit code of the image build

        Raises:
            OSError: If the runtime cannot be started
        """
        process = await asyncio.create_subprocess_exec(
            self.executable,
            "build",
            "-t", tag,
            "-f", dockerfile,
            context,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            limit=STREAM_LIMIT,
        )

        try:
            while True:
                raw = await process.stdout.readline()
                if not raw:
                    break
                if on_line is not None:
                    on_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
            return await process.wait()
        finally:
            if process.returncode is None:
                logger.warning(f"Image build of {tag} interrupted, killing the runtime process")
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
