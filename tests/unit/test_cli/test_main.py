"""
Unit tests for the command-line interface.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from buildsupervisor.cli import main as cli_main


@pytest.mark.unit
class TestArgumentParsing:
    """Test cases for the argument parser."""

    def test_build_arguments(self):
        args = cli_main._build_parser().parse_args(
            [
                "--verbose",
                "build",
                "--build-id", "b1",
                "--type", "bundle",
                "--app-name", "Shop",
                "--project", "/srv/project",
                "--output", "/srv/out",
                "--timeout-ms", "5000",
            ]
        )

        assert args.verbose
        assert args.command == "build"
        assert args.build_type == "bundle"
        assert args.build_mode == "release"
        assert args.timeout_ms == 5000

    def test_unknown_build_type_is_rejected(self):
        with pytest.raises(SystemExit):
            cli_main._build_parser().parse_args(
                ["build", "--build-id", "b1", "--type", "exe", "--app-name", "A", "--project", ".", "--output", "."]
            )

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli_main._build_parser().parse_args([])


@pytest.mark.unit
class TestCommands:
    """Test cases for the CLI commands."""

    def test_check_image_exit_codes(self, config_files):
        with patch.object(cli_main.ImageProvisioner, "check_image_available", AsyncMock(return_value=False)):
            with pytest.raises(SystemExit) as exc_info:
                cli_main.main_cli(["--config", str(config_files["config"]), "check-image"])
        assert exc_info.value.code == 1

        with patch.object(cli_main.ImageProvisioner, "check_image_available", AsyncMock(return_value=True)):
            with pytest.raises(SystemExit) as exc_info:
                cli_main.main_cli(["--config", str(config_files["config"]), "check-image"])
        assert exc_info.value.code == 0

    def test_missing_config_exits(self, temp_dir):
        with pytest.raises(SystemExit) as exc_info:
            cli_main.main_cli(["--config", str(temp_dir / "missing.toml"), "check-image"])

        assert exc_info.value.code == 1

    def _build_argv(self, config_files, project_dir, temp_dir):
        return [
            "--config", str(config_files["config"]),
            "build",
            "--build-id", "b1",
            "--type", "package",
            "--app-name", "Shop",
            "--project", str(project_dir),
            "--output", str(temp_dir / "out"),
            "--timeout-ms", "30000",
        ]

    def test_build_prints_events(self, config_files, project_dir, temp_dir, fake_runtime, capsys):
        argv = self._build_argv(config_files, project_dir, temp_dir)

        with patch("buildsupervisor.orchestration.registry.ContainerRuntime", return_value=fake_runtime):
            with pytest.raises(SystemExit) as exc_info:
                cli_main.main_cli(argv)

        assert exc_info.value.code == 0
        events = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert events[0]["status"] == "starting"
        assert events[0]["buildId"] == "b1"
        assert events[-1]["status"] == "completed"
        assert events[-1]["outputPath"].endswith("b1-app-release.apk")

    def test_failed_build_exits_nonzero(self, config_files, project_dir, temp_dir, fake_runtime, build_scripts, capsys):
        fake_runtime.default_script = build_scripts.FAILURE
        argv = self._build_argv(config_files, project_dir, temp_dir)

        with patch("buildsupervisor.orchestration.registry.ContainerRuntime", return_value=fake_runtime):
            with pytest.raises(SystemExit) as exc_info:
                cli_main.main_cli(argv)

        assert exc_info.value.code == 1
        final = json.loads(capsys.readouterr().out.splitlines()[-1])
        assert final["status"] == "failed"
        assert final["errorType"] == "ExecutionError"

    def test_invalid_build_id_exits(self, config_files, project_dir, temp_dir):
        argv = self._build_argv(config_files, project_dir, temp_dir)
        argv[argv.index("b1")] = "../b1"

        with pytest.raises(SystemExit) as exc_info:
            cli_main.main_cli(argv)

        assert exc_info.value.code == 1
