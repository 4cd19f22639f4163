"""
Command-line interface for the build supervisor.

This module provides the main CLI entry point, handling command-line
arguments, configuration loading and running single build jobs or image
maintenance commands through the supervisor.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..executor.container import ContainerRuntime
from ..models.config import AppConfig
from ..models.job import BuildMode, BuildOptions, BuildStatus, BuildType
from ..orchestration import BuildJobRegistry, QueueProgressSink
from ..provisioning.image import ImageProvisioner
from ..validation import ProvisioningError, ValidationError, handle_cli_error

logger = logging.getLogger(__name__)

USER_CANCEL_REASON = "user_requested"


def _configure_logging(verbose: bool) -> None:
    # Progress events go to stdout as JSON, so log records use stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildsupervisor",
        description="Run and supervise containerized app builds.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.toml. Defaults to conf/config.toml of the installation.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging, including every line of build output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("check-image", help="Check whether the build image exists locally.")
    subparsers.add_parser("build-image", help="Build the build image from its Dockerfile.")

    build = subparsers.add_parser("build", help="Run one build job and print its progress as JSON.")
    build.add_argument("--build-id", required=True, help="Unique id of the build job.")
    build.add_argument(
        "--type",
        dest="build_type",
        required=True,
        choices=[t.value for t in BuildType],
        help="Kind of artifact to produce.",
    )
    build.add_argument(
        "--mode",
        dest="build_mode",
        default=BuildMode.RELEASE.value,
        choices=[m.value for m in BuildMode],
        help="Build mode (default: %(default)s).",
    )
    build.add_argument("--app-name", required=True, help="Display name of the app.")
    build.add_argument("--project", required=True, type=Path, help="Generated project directory.")
    build.add_argument("--output", required=True, type=Path, help="Directory that receives the artifact.")
    build.add_argument(
        "--timeout-ms",
        type=int,
        help="Build timeout in milliseconds. Defaults to the configured value.",
    )
    return parser


async def _check_image(config: AppConfig) -> int:
    provisioner = ImageProvisioner(ContainerRuntime(config.container))
    if await provisioner.check_image_available():
        logger.info(f"Build image {provisioner.image} is available")
        return 0
    logger.warning(f"Build image {provisioner.image} is not available. Run 'buildsupervisor build-image'.")
    return 1


async def _build_image(config: AppConfig) -> int:
    provisioner = ImageProvisioner(ContainerRuntime(config.container))
    await provisioner.build_image()
    return 0


async def _run_build(config: AppConfig, options: BuildOptions) -> int:
    """
    Run one build job to its terminal event.

    Every progress event is printed to stdout as one JSON object per line.
    SIGINT and SIGTERM cancel the job; the registry's cleanup then waits for
    the container process to be gone.

    Returns:
        0 if the build completed, 1 otherwise
    """
    events = QueueProgressSink()
    registry = BuildJobRegistry(sink=events, config=config)

    def request_cancel(signum: int) -> None:
        logger.info(f"Signal {signal.strsignal(signum)} received. Cancelling build {options.build_id}...")
        registry.cancel_build(options.build_id, USER_CANCEL_REASON)

    loop = asyncio.get_running_loop()
    handled_signals = (signal.SIGINT, signal.SIGTERM)
    for signum in handled_signals:
        loop.add_signal_handler(signum, request_cancel, signum)

    try:
        async with registry:
            await registry.start_build(options)
            while True:
                progress = await events.next_event()
                print(json.dumps(progress.to_dict()), flush=True)
                if progress.is_terminal:
                    return 0 if progress.status is BuildStatus.COMPLETED else 1
    finally:
        for signum in handled_signals:
            loop.remove_signal_handler(signum)


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for the build supervisor.

    Raises:
        SystemExit: With the command's exit status, or 1 on configuration
            and validation errors.
    """
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    if args.config:
        set_config_path(args.config)

    try:
        config = get_config()
    except (FileNotFoundError, KeyError, ValidationError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=1,
            logger=logger,
        )

    if args.command == "check-image":
        sys.exit(asyncio.run(_check_image(config)))

    if args.command == "build-image":
        try:
            exit_code = asyncio.run(_build_image(config))
        except ProvisioningError as e:
            handle_cli_error(error=e, context="image build", exit_code=1, logger=logger)
        sys.exit(exit_code)

    try:
        options = BuildOptions.from_dict(
            {
                "buildId": args.build_id,
                "buildType": args.build_type,
                "buildMode": args.build_mode,
                "appName": args.app_name,
                "projectPath": args.project,
                "outputPath": args.output,
                "timeoutMs": args.timeout_ms,
            }
        )
    except ValidationError as e:
        handle_cli_error(error=e, context="build options validation", exit_code=1, logger=logger)

    logger.info(f"Running build {options.build_id} with image {config.container.image}")
    sys.exit(asyncio.run(_run_build(config, options)))


if __name__ == "__main__":
    main_cli()
