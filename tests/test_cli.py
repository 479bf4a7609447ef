"""Smoke tests for the CLI.

These tests verify CLI behavior without running make or git.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from kernelpack import __version__
from kernelpack.build.stages import CollectFailure, CompileFailure
from kernelpack.cli import app
from kernelpack.types import ImportOutcome, ImportState, RunResult

runner = CliRunner()


def env_for(settings):
    """Environment variables reproducing a Settings fixture."""
    return {
        "KPACK_KERNEL_DIR": str(settings.kernel_dir),
        "KPACK_REPACK_DIR": str(settings.repack_dir),
        "KPACK_DIST_DIR": str(settings.dist_dir),
        "KPACK_LOG_DIR": str(settings.log_dir),
        "KPACK_TOOLCHAIN_PATH": str(settings.toolchain_path),
        "KPACK_JOBS": "4",
    }


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Kernel packager" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLILogLevel:
    """Test the --log-level option."""

    def test_invalid_level_rejected(self) -> None:
        """An unknown level should be a usage error, not a traceback."""
        result = runner.invoke(app, ["--log-level", "foo", "config"])
        assert result.exit_code == 2
        assert not isinstance(result.exception, ValueError)

    def test_lowercase_level_accepted(self) -> None:
        """Levels should match case-insensitively."""
        with patch("kernelpack.cli.configure_logging") as configure:
            result = runner.invoke(app, ["--log-level", "debug", "config"])

        assert result.exit_code == 0
        configure.assert_called_once_with("DEBUG")

    def test_settings_level_used_by_default(self) -> None:
        """Without the option the configured level should apply."""
        with patch.dict(os.environ, {"KPACK_LOG_LEVEL": "ERROR"}):
            with patch("kernelpack.cli.configure_logging") as configure:
                result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        configure.assert_called_once_with("ERROR")


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        """CLI config should show all sections."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Toolchain:" in result.stdout
        assert "Kernel:" in result.stdout
        assert "Release:" in result.stdout
        assert "Paths:" in result.stdout
        assert "Import:" in result.stdout
        assert "cepheus_defconfig" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should output JSON."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["defconfig"] == "cepheus_defconfig"


class TestCLIBuild:
    """Test CLI build command."""

    def test_success_report(self, tmp_path) -> None:
        """Should print the newest archive and the build time."""
        archive = tmp_path / "K-20240501-1307.zip"
        fake = RunResult(archive_path=archive, elapsed_seconds=125, newest_file=archive)

        with patch("kernelpack.build.orchestrator.run_build", return_value=fake):
            result = runner.invoke(app, ["build"])

        assert result.exit_code == 0
        assert "K-20240501-1307.zip" in result.stdout
        assert "build completed in (2:05 (mm:ss))" in result.stdout

    def test_overrides(self, tmp_path) -> None:
        """CLI flags should override settings."""
        fake = RunResult(archive_path=tmp_path / "k.zip")

        with patch("kernelpack.build.orchestrator.run_build", return_value=fake) as run:
            runner.invoke(
                app,
                ["build", "--suffix", "v2", "--jobs", "3", "--skip-clean"],
            )

        settings = run.call_args.args[0]
        assert settings.version_suffix == "v2"
        assert settings.jobs == 3
        assert run.call_args.kwargs["skip_clean"] is True

    def test_compile_failure(self, tmp_path) -> None:
        """A stage failure should exit 1 and name the stage."""
        error = CompileFailure(
            "make -j4 failed with exit code 2",
            exit_code=2,
            log_path=tmp_path / "build.log",
        )

        with patch("kernelpack.build.orchestrator.run_build", side_effect=error):
            result = runner.invoke(app, ["build"])

        assert result.exit_code == 1
        assert "compile stage failed" in result.stdout
        assert "Exit code: 2" in result.stdout

    def test_missing_artifact_hint(self) -> None:
        """A retryable collect failure should suggest a recompile."""
        error = CollectFailure("Boot image not found", retryable=True)

        with patch("kernelpack.build.orchestrator.run_build", side_effect=error):
            result = runner.invoke(app, ["build"])

        assert result.exit_code == 1
        assert "re-run the compile" in result.stdout

    def test_failure_json(self) -> None:
        """--json should report the failing stage."""
        error = CompileFailure("boom", exit_code=2)

        with patch("kernelpack.build.orchestrator.run_build", side_effect=error):
            result = runner.invoke(app, ["build", "--json"])

        assert result.exit_code == 1
        parsed = json.loads(result.stdout)
        assert parsed["success"] is False
        assert parsed["stage"] == "compile"
        assert parsed["code"] == "compile_failed"

    def test_end_to_end(self, settings, fake_make) -> None:
        """A full build against a fake kbuild should produce one zip."""
        with patch.dict(os.environ, env_for(settings)):
            with patch("subprocess.run", side_effect=fake_make):
                result = runner.invoke(
                    app, ["--log-level", "WARNING", "build", "--json"]
                )

        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["success"] is True
        assert parsed["members"] == ["Image.gz-dtb"]
        assert Path(parsed["archive_path"]).parent == settings.dist_dir


class TestCLIImport:
    """Test CLI import command."""

    def test_pending_removal(self, tmp_path) -> None:
        """Removal should exit 0 and ask for a commit."""
        outcome = ImportOutcome(
            state=ImportState.PENDING_REMOVAL,
            prefix=tmp_path / "drivers/staging/kernelsu",
            message="Commit changes and re-run the import",
        )

        with patch("kernelpack.vendor.importer.import_module", return_value=outcome):
            result = runner.invoke(app, ["import", "--repo", str(tmp_path)])

        assert result.exit_code == 0
        assert "Commit changes" in result.stdout

    def test_imported(self, tmp_path) -> None:
        """A fresh import should report the added remote."""
        outcome = ImportOutcome(
            state=ImportState.IMPORTED,
            prefix=tmp_path / "drivers/staging/kernelsu",
            remote_added=True,
            fetched=True,
            message="Done. Now commit changes.",
        )

        with patch(
            "kernelpack.vendor.importer.import_module", return_value=outcome
        ) as mock_import:
            result = runner.invoke(app, ["import", "--repo", str(tmp_path), "--fetch"])

        assert result.exit_code == 0
        assert "Added remote kernelsu" in result.stdout
        assert "Done. Now commit changes." in result.stdout
        assert mock_import.call_args.kwargs["fetch"] is True

    def test_git_failure(self, tmp_path) -> None:
        """A git failure should exit 1."""
        from kernelpack.vendor.git import GitCommandError

        with patch(
            "kernelpack.vendor.importer.import_module",
            side_effect=GitCommandError("git fetch kernelsu failed", exit_code=128),
        ):
            result = runner.invoke(app, ["import", "--repo", str(tmp_path)])

        assert result.exit_code == 1
        assert "Import failed" in result.stdout
