"""
Pytest configuration and shared fixtures for the buildsupervisor test suite.

This module provides common fixtures, test utilities, and configuration
for all test modules. Process-level tests replace the container runtime's
``docker run`` argv with a Python child process so that real process
supervision, signals and output streaming are exercised without docker.
"""

import asyncio
import shutil
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from buildsupervisor.executor.container import ContainerRuntime  # noqa: E402
from buildsupervisor.models.config import AppConfig, ContainerConfig, SupervisorConfig  # noqa: E402
from buildsupervisor.models.job import BuildMode, BuildOptions, BuildType  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


# ============================================================================
# Build scripts run in place of the container
# ============================================================================


def _script(source: str) -> str:
    return textwrap.dedent(source).strip() + "\n"


class BuildScripts:
    """
    Python programs standing in for a build container.

    Each receives the output directory and the build id as ``sys.argv[1:3]``.
    """

    SUCCESS = _script(
        """
        import os, sys
        out, build_id = sys.argv[1], sys.argv[2]
        print("Resolving workspace")
        print("Getting Flutter dependencies")
        print("Starting Flutter build")
        print("Running Gradle task 'assembleRelease'...")
        print("Built build/app/outputs/flutter-apk/app-release.apk")
        with open(os.path.join(out, build_id + "-app-release.apk"), "wb") as f:
            f.write(b"x" * 1024)
        print("Build completed successfully")
        """
    )

    SLOW_SUCCESS = _script(
        """
        import os, sys, time
        out, build_id = sys.argv[1], sys.argv[2]
        print("Getting Flutter dependencies")
        time.sleep(0.5)
        with open(os.path.join(out, build_id + ".apk"), "wb") as f:
            f.write(b"x" * 10)
        print("Build completed successfully")
        """
    )

    # Goes backwards in the output; progress must not follow it.
    OUT_OF_ORDER = _script(
        """
        import os, sys
        out, build_id = sys.argv[1], sys.argv[2]
        print("Running Gradle task 'assembleDebug'...")
        print("Getting Flutter dependencies")
        print("Running Gradle task 'assembleDebug'...")
        print("Built build/app/outputs/flutter-apk/app-debug.apk")
        with open(os.path.join(out, build_id + ".apk"), "wb") as f:
            f.write(b"apk")
        """
    )

    NO_ARTIFACT = _script(
        """
        print("Getting Flutter dependencies")
        print("Build completed successfully")
        """
    )

    FAILURE = _script(
        """
        import sys
        print("Getting Flutter dependencies")
        print("FAILURE: Build failed with an exception.", file=sys.stderr)
        sys.exit(3)
        """
    )

    HANG = _script(
        """
        import time
        print("Getting Flutter dependencies")
        while True:
            time.sleep(0.05)
        """
    )

    # Ignores SIGTERM so only the forced kill ends it.
    STUBBORN = _script(
        """
        import signal, time
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
        print("Getting Flutter dependencies")
        while True:
            time.sleep(0.05)
        """
    )

    # Writes its artifact and exits 0 when asked to stop.
    EXIT_ZERO_ON_TERM = _script(
        """
        import os, signal, sys, time
        out, build_id = sys.argv[1], sys.argv[2]

        def finish(signum, frame):
            with open(os.path.join(out, build_id + ".apk"), "wb") as f:
                f.write(b"late")
            sys.exit(0)

        signal.signal(signal.SIGTERM, finish)
        print("Getting Flutter dependencies")
        while True:
            time.sleep(0.05)
        """
    )


class FakeContainerRuntime(ContainerRuntime):
    """
    Container runtime that runs a Python script per build instead of docker.

    Stop and kill requests are recorded and always accepted; the supervisor
    still signals the local process itself.
    """

    def __init__(self, config: Optional[ContainerConfig] = None, images: Optional[List[str]] = None):
        super().__init__(config)
        self.scripts: Dict[str, str] = {}
        self.default_script = BuildScripts.SUCCESS
        self.images = [self.image] if images is None else images
        self.stop_calls: List[str] = []
        self.kill_calls: List[str] = []
        self.image_builds: List[str] = []
        self.image_build_exit_code = 0
        self.image_build_delay = 0.0
        self.missing_executable = False

    def build_run_argv(self, options: BuildOptions) -> List[str]:
        if self.missing_executable:
            return ["/nonexistent/buildsupervisor-test-runtime"]
        script = self.scripts.get(options.build_id, self.default_script)
        return [sys.executable, "-u", "-c", script, str(options.output_path), options.build_id]

    async def list_images(self) -> List[str]:
        return list(self.images)

    async def stop_container(self, name: str, timeout_seconds: float) -> bool:
        self.stop_calls.append(name)
        return True

    async def kill_container(self, name: str) -> bool:
        self.kill_calls.append(name)
        return True

    async def build_image(self, tag, dockerfile, context, on_line=None) -> int:
        self.image_builds.append(tag)
        if self.image_build_delay:
            await asyncio.sleep(self.image_build_delay)
        if on_line is not None:
            on_line(f"Successfully tagged {tag}")
        if self.image_build_exit_code == 0:
            self.images.append(tag)
        return self.image_build_exit_code


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def build_scripts():
    """Provide the stand-in build container programs."""
    return BuildScripts


@pytest.fixture
def app_config():
    """Application configuration with short grace periods for process tests."""
    return AppConfig(
        supervisor=SupervisorConfig(
            default_timeout_ms=30_000,
            grace_period_seconds=0.5,
            log_tail_chars=200,
            starting_percent=5,
        ),
    )


@pytest.fixture
def fake_runtime(app_config):
    """Container runtime running Python build scripts."""
    return FakeContainerRuntime(app_config.container)


@pytest.fixture
def project_dir(temp_dir):
    path = temp_dir / "project"
    path.mkdir()
    return path


@pytest.fixture
def make_options(temp_dir, project_dir):
    """Factory for build options writing into a per-build output directory."""

    def factory(build_id: str = "b1", **overrides) -> BuildOptions:
        values = dict(
            build_id=build_id,
            build_type=BuildType.PACKAGE,
            build_mode=BuildMode.RELEASE,
            app_name="Demo App",
            project_path=project_dir,
            output_path=temp_dir / "output" / build_id,
        )
        values.update(overrides)
        return BuildOptions(**values)

    return factory


@pytest.fixture
def sample_config_data():
    """Sample main configuration data for testing."""
    return {
        "supervisor": {
            "default_timeout_ms": 120000,
            "grace_period_seconds": 2.5,
            "log_tail_chars": 300,
            "starting_percent": 5,
        },
        "container": {
            "executable": "docker",
            "image": "example/builder",
            "dockerfile": "docker/Dockerfile",
            "build_context": "docker",
            "memory_limit": "4g",
            "cpus": 3,
            "name_prefix": "test-",
            "auto_build_image": False,
        },
        "artifacts": {
            "extensions": {"ios-package": "IPA"},
        },
    }


@pytest.fixture
def sample_rules_config():
    """Sample progress rules for testing."""
    return [
        {
            "priority": 10,
            "phase": "dependencies",
            "percent": 20,
            "message": "Resolving packages...",
            "match_type": "contains",
            "pattern": "pub get",
        },
        {
            "priority": 50,
            "phase": "compile",
            "percent": 60,
            "message": "Compiling...",
            "match_type": "regex",
            "pattern": r"^Compiling \w+",
        },
    ]


@pytest.fixture
def config_files(temp_dir):
    """Write a minimal config.toml and progress rules file."""
    config_file = temp_dir / "config.toml"
    config_file.write_text(
        textwrap.dedent(
            """
            [paths]
            progress_rules = "rules.toml"

            [supervisor]
            default_timeout_ms = 1000
            grace_period_seconds = 1.5

            [container]
            image = "example/builder:1.2"
            dockerfile = "docker/Dockerfile"
            build_context = "docker"
            """
        )
    )
    rules_file = temp_dir / "rules.toml"
    rules_file.write_text(
        textwrap.dedent(
            """
            [[rules]]
            priority = 1
            phase = "deps"
            percent = 15
            message = "Fetching..."
            pattern = "Fetching"

            [[rules]]
            priority = 9
            phase = "link"
            percent = 80
            message = "Linking..."
            match_type = "regex"
            pattern = "Link(ing)? "
            """
        )
    )
    return {"config": config_file, "rules": rules_file, "dir": temp_dir}


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield  # Run the test

    from buildsupervisor.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(original_config_path)
