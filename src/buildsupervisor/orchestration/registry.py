"""
Build job registry.

The registry owns the table of active build jobs and is the only component
that changes a job's status. Every terminal transition goes through
``_claim_terminal``, a compare-and-set on the job status under the registry
lock: whichever of process exit, timeout or cancellation gets there first
decides the outcome, and the others become no-ops.
"""

import asyncio
import logging
import threading
import time
from functools import partial
from typing import Any, Dict, Optional, Set, Tuple, Union

from ..artifacts.locator import ArtifactLocator
from ..classification.classifier import ProgressClassifier, create_classifier
from ..config import get_config
from ..executor.build_process import BuildProcess, ProcessResult
from ..executor.container import ContainerRuntime
from ..models.config import AppConfig
from ..models.job import Artifact, BuildJob, BuildOptions, BuildProgress, BuildStatus
from ..provisioning.image import ImageProvisioner
from ..validation import (
    ArtifactNotFoundError,
    BuildError,
    BuildTimeoutError,
    CancellationError,
    DuplicateJobError,
    ErrorSeverity,
    ExecutionError,
    LaunchError,
    ProvisioningError,
    handle_error,
)
from .cancellation import CancellationController
from .sinks import LoggingProgressSink, ProgressSink
from .timeout import TimeoutController

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "timeout"
CLEANUP_REASON = "cleanup"


class BuildJobRegistry:
    """
    Orchestrates concurrent build jobs.

    All public methods must be called from the event loop that runs the
    builds. ``start_build`` returns once the process launch is accepted;
    progress and the single terminal event of each job are delivered to the
    progress sink.
    """

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        config: Optional[AppConfig] = None,
        runtime: Optional[ContainerRuntime] = None,
        provisioner: Optional[ImageProvisioner] = None,
        classifier: Optional[ProgressClassifier] = None,
        locator: Optional[ArtifactLocator] = None,
        cancellation: Optional[CancellationController] = None,
    ):
        self.config = config or get_config()
        self.runtime = runtime or ContainerRuntime(self.config.container)
        self.provisioner = provisioner or ImageProvisioner(self.runtime, self.config.container)
        self.classifier = classifier or create_classifier(self.config.progress_rules)
        self.locator = locator or ArtifactLocator(self.config.artifacts.extensions)
        self.cancellation = cancellation or CancellationController(
            self.runtime, self.config.supervisor.grace_period_seconds
        )
        self.sink = sink or LoggingProgressSink()

        self._lock = threading.Lock()
        self._jobs: Dict[str, BuildJob] = {}
        # Ids whose process outlived the terminal transition and is still being
        # stopped, or whose launch was still in flight when it was cancelled.
        # The event is set once the id may be reused.
        self._releasing: Dict[str, asyncio.Event] = {}
        self._tasks: Set[asyncio.Task] = set()
        # One future per start_build between registration and the end of its launch.
        self._launches: Set[asyncio.Future] = set()

    # --- Public interface ---

    async def start_build(self, options: Union[BuildOptions, Dict[str, Any]]) -> None:
        """
        Start a build job.

        If a previous process with the same id is still being stopped, the
        call waits for it to be gone before launching. Provisioning and launch
        failures do not raise; they end the job with a terminal ``failed``
        event.

        Args:
            options: Validated options or a raw request payload

        Raises:
            ValidationError: If a raw payload is malformed
            DuplicateJobError: If the build id is active
        """
        if not isinstance(options, BuildOptions):
            options = BuildOptions.from_dict(options)
        build_id = options.build_id
        supervisor_config = self.config.supervisor

        while True:
            with self._lock:
                if build_id in self._jobs:
                    raise DuplicateJobError(build_id)
                released = self._releasing.get(build_id)
                if released is None:
                    job = BuildJob(
                        options=options,
                        timeout_ms=options.timeout_ms or supervisor_config.default_timeout_ms,
                        progress_percent=supervisor_config.starting_percent,
                        message="Starting build container...",
                        launching=True,
                    )
                    self._jobs[build_id] = job
                    launch = asyncio.get_running_loop().create_future()
                    self._launches.add(launch)
                    break
            logger.info(f"Previous process of build {build_id} is still stopping, waiting before restart")
            await released.wait()

        logger.info(
            f"Starting build {build_id}: type={options.build_type.value} "
            f"mode={options.build_mode.value} app={options.app_name!r} timeout={job.timeout_ms}ms"
        )

        try:
            job.timer = TimeoutController(build_id, job.timeout_seconds, self._on_timeout)
            job.timer.arm()
            self._emit(job.snapshot())
            await self._launch(job)
        finally:
            with self._lock:
                self._launches.discard(launch)
            launch.set_result(None)

    def cancel_build(self, build_id: str, reason: str = "cancelled") -> None:
        """
        Cancel an active build without waiting for its process to stop.

        A ``reason`` of ``"timeout"`` ends the job with status ``timeout``;
        any other reason ends it with status ``cancelled``. Absent and
        already finished builds are ignored.
        """
        with self._lock:
            job = self._jobs.get(build_id)
        if job is None:
            logger.debug(f"Cancel for build {build_id} ignored, no active build")
            return
        self._cancel_job(job, reason)

    def get_active_builds(self) -> Set[str]:
        """Ids of all builds that have not reached a terminal state."""
        with self._lock:
            return set(self._jobs)

    def get_build_status(self, build_id: str) -> Optional[BuildProgress]:
        """Current state of an active build, or None if it is not active."""
        with self._lock:
            job = self._jobs.get(build_id)
            return job.snapshot() if job else None

    async def cleanup(self) -> None:
        """Cancel every active build and wait until their processes are gone."""
        active = self.get_active_builds()
        if active:
            logger.info(f"Cleaning up {len(active)} active builds")
        for build_id in active:
            self.cancel_build(build_id, CLEANUP_REASON)
        await self.wait_for_idle()

    async def wait_for_idle(self) -> None:
        """Wait until no build is launching and no process is running or being stopped."""
        while True:
            with self._lock:
                pending = [task for task in self._tasks if not task.done()]
                pending.extend(launch for launch in self._launches if not launch.done())
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def __aenter__(self) -> "BuildJobRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    # --- Terminal transitions ---

    def _claim_terminal(
        self,
        job: BuildJob,
        status: BuildStatus,
        message: str,
        error: Optional[BuildError] = None,
        artifact: Optional[Artifact] = None,
    ) -> Optional[Tuple[BuildProgress, Optional[BuildProcess]]]:
        """
        Move ``job`` to a terminal status if nobody else has.

        Removes the job from the table, detaches its process handle and
        disarms its timer in the same step.

        Returns:
            The terminal event and the still-running process to stop (if any),
            or None when the job was already terminal
        """
        with self._lock:
            if job.is_terminal:
                return None

            job.status = status
            job.finished_at = time.time()
            job.message = message
            if status is BuildStatus.COMPLETED:
                job.progress_percent = 100
                job.artifact = artifact
            if error is not None:
                job.error = str(error)
                job.error_type = type(error).__name__

            if self._jobs.get(job.build_id) is job:
                del self._jobs[job.build_id]

            process, job.process = job.process, None
            if process is not None and not process.is_running:
                process = None
            if process is not None or job.launching:
                self._reserve(job.build_id)

            event = job.snapshot()

        if job.timer is not None:
            job.timer.disarm()
        return event, process

    def _finish(
        self,
        job: BuildJob,
        status: BuildStatus,
        message: str,
        error: Optional[BuildError] = None,
        artifact: Optional[Artifact] = None,
    ) -> bool:
        claimed = self._claim_terminal(job, status, message, error=error, artifact=artifact)
        if claimed is None:
            logger.debug(f"Build {job.build_id} already {job.status.value}, {status.value} ignored")
            return False

        event, process = claimed
        if status is BuildStatus.COMPLETED:
            logger.info(
                f"Build {job.build_id} completed in {job.duration_seconds:.1f}s: "
                f"{artifact.path} ({artifact.size_bytes} bytes)"
            )
        else:
            logger.warning(f"Build {job.build_id} {status.value} after {job.duration_seconds:.1f}s: {job.error}")

        self._emit(event)
        if process is not None:
            self._start_release(job.build_id, process, message)
        return True

    def _fail(self, job: BuildJob, error: BuildError, message: str) -> bool:
        return self._finish(job, BuildStatus(error.terminal_status), message, error=error)

    def _cancel_job(self, job: BuildJob, reason: str) -> None:
        if reason == TIMEOUT_REASON:
            error: BuildError = BuildTimeoutError(build_id=job.build_id)
            message = "Build timeout"
        else:
            error = CancellationError(reason, build_id=job.build_id)
            message = f"Build {reason}"
        if self._fail(job, error, message):
            logger.info(f"Build {job.build_id} cancelled ({reason})")

    def _on_timeout(self, build_id: str) -> None:
        self.cancel_build(build_id, TIMEOUT_REASON)

    # --- Process lifecycle ---

    async def _launch(self, job: BuildJob) -> None:
        """Provision the image and start the process of a freshly registered job."""
        options = job.options
        build_id = options.build_id
        supervisor_config = self.config.supervisor

        process: Optional[BuildProcess] = None
        error: Optional[BuildError] = None
        try:
            await self.provisioner.ensure_image()
            self._prepare_output_dir(options)
            process = BuildProcess(
                options,
                self.runtime,
                on_output=partial(self._on_output, job),
                log_tail_chars=supervisor_config.log_tail_chars,
            )
            await process.start()
        except BuildError as e:
            error = e
            process = None
        except asyncio.CancelledError:
            self._abandon_launch(job, process)
            raise
        except Exception as e:
            handle_error(
                error=e,
                context=f"launching build {build_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            error = LaunchError(f"Unexpected error launching build: {e}", build_id=build_id)
            process = None

        with self._lock:
            job.launching = False
            claimed_during_launch = job.is_terminal
            if claimed_during_launch and process is None:
                self._unreserve(build_id)
            if not claimed_during_launch and process is not None:
                job.process = process
                job.status = BuildStatus.BUILDING
                job.message = "Build container started"

        if error is not None:
            self._fail(job, error, message=self._launch_failure_message(error))
            return

        self._track(asyncio.get_running_loop().create_task(
            self._supervise(job, process), name=f"supervise-{build_id}"
        ))
        if claimed_during_launch:
            logger.info(f"Build {build_id} ended while launching, stopping its process")
            self._start_release(build_id, process, job.error or "cancelled")

    async def _supervise(self, job: BuildJob, process: BuildProcess) -> None:
        try:
            result = await process.wait()
        except Exception as e:
            handle_error(
                error=e,
                context=f"supervising build {job.build_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            self._fail(
                job,
                ExecutionError(-1, process.stdout_tail.text, f"{type(e).__name__}: {e}", build_id=job.build_id),
                message="Build supervision failed",
            )
            return

        self._on_process_exit(job, result)

    def _on_process_exit(self, job: BuildJob, result: ProcessResult) -> None:
        if job.is_terminal:
            logger.debug(
                f"Build {job.build_id} exit code {result.exit_code} ignored, "
                f"job already {job.status.value}"
            )
            return

        options = job.options
        if result.exit_code != 0:
            logger.error(
                f"Build {job.build_id} failed with code {result.exit_code}; "
                f"stdout tail: {result.stdout_tail!r}; stderr tail: {result.stderr_tail!r}"
            )
            self._fail(
                job,
                ExecutionError(result.exit_code, result.stdout_tail, result.stderr_tail, build_id=job.build_id),
                message=f"Build failed with exit code {result.exit_code}",
            )
            return

        try:
            artifact = self.locator.locate(options.output_path, options.build_id, options.build_type)
        except ArtifactNotFoundError as e:
            logger.error(f"Build {job.build_id} completed but no output file found in {options.output_path}")
            self._fail(job, e, message="Build completed but no output file found")
            return

        self._finish(job, BuildStatus.COMPLETED, "Build completed successfully", artifact=artifact)

    def _on_output(self, job: BuildJob, stream: str, line: str) -> None:
        update = self.classifier.classify(line)
        if update is None:
            return

        with self._lock:
            if job.status is not BuildStatus.BUILDING:
                return
            if update.percent < job.progress_percent:
                logger.debug(
                    f"Build {job.build_id} progress {update.percent}% ({update.phase}) "
                    f"below current {job.progress_percent}%, discarded"
                )
                return
            if update.percent == job.progress_percent and update.message == job.message:
                return
            job.progress_percent = update.percent
            job.message = update.message
            event = job.snapshot()

        self._emit(event)

    def _start_release(self, build_id: str, process: BuildProcess, reason: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self.cancellation.terminate(process, reason), name=f"terminate-{build_id}"
        )
        self._track(task)
        task.add_done_callback(partial(self._on_released, build_id))

    def _on_released(self, build_id: str, task: asyncio.Task) -> None:
        with self._lock:
            self._unreserve(build_id)
        if task.cancelled():
            logger.warning(f"Termination of build {build_id} was interrupted")
            return
        exc = task.exception()
        if exc is not None:
            handle_error(
                error=exc,
                context=f"terminating build {build_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )

    def _abandon_launch(self, job: BuildJob, process: Optional[BuildProcess]) -> None:
        """Fail a job whose ``start_build`` caller was cancelled mid-launch."""
        running = process is not None and process.is_running
        with self._lock:
            job.launching = False
            already_terminal = job.is_terminal
            if already_terminal and not running:
                self._unreserve(job.build_id)
            elif running and not already_terminal:
                job.process = process

        if already_terminal:
            if running:
                self._start_release(job.build_id, process, job.error or "interrupted")
            return
        self._fail(job, LaunchError("Build launch was interrupted", build_id=job.build_id),
                   message="Failed to start build container")

    # --- Helpers ---

    def _reserve(self, build_id: str) -> None:
        # Caller holds the lock
        if build_id not in self._releasing:
            self._releasing[build_id] = asyncio.Event()

    def _unreserve(self, build_id: str) -> None:
        # Caller holds the lock
        released = self._releasing.pop(build_id, None)
        if released is not None:
            released.set()

    def _track(self, task: asyncio.Task) -> None:
        with self._lock:
            self._tasks.add(task)
        task.add_done_callback(self._untrack)

    def _untrack(self, task: asyncio.Task) -> None:
        with self._lock:
            self._tasks.discard(task)

    def _emit(self, progress: BuildProgress) -> None:
        try:
            self.sink.emit(progress)
        except Exception as e:
            handle_error(
                error=e,
                context=f"emitting progress of build {progress.build_id}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )

    @staticmethod
    def _prepare_output_dir(options: BuildOptions) -> None:
        try:
            options.output_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LaunchError(
                f"Cannot create output directory {options.output_path}: {e}",
                build_id=options.build_id,
            ) from e

    @staticmethod
    def _launch_failure_message(error: BuildError) -> str:
        if isinstance(error, ProvisioningError):
            return "Build image unavailable"
        return "Failed to start build container"
