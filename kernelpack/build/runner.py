"""Runner for external build tool invocations.

This module handles:
- Composing kbuild `make` commands from a BuildConfig
- Executing commands with subprocess
- Appending stdout/stderr to the run's log file
- Enforcing per-command timeouts
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from kernelpack.types import BuildConfig, CommandResult

logger = logging.getLogger(__name__)


class CommandExecutionError(Exception):
    """Raised when a command cannot be run to completion."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "execution_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


def compose_make_command(
    config: BuildConfig,
    *targets: str,
    jobs: int | None = None,
) -> list[str]:
    """Compose a `make` command for the kernel tree.

    Args:
        config: BuildConfig for the run.
        targets: Make targets (e.g. "clean", a defconfig name).
        jobs: Optional -j value.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = ["make"]

    if jobs is not None:
        cmd.append(f"-j{jobs}")

    cmd.append(f"O={config.output_subdir}")

    if config.llvm:
        cmd.append("LLVM=1")
    if config.llvm_ias:
        cmd.append("LLVM_IAS=1")

    cmd.extend(targets)
    return cmd


def run_command(
    cmd: list[str],
    cwd: Path,
    log_path: Path | None = None,
    env: dict[str, str] | None = None,
    timeout: int | None = None,
) -> CommandResult:
    """Run a command, appending its output to a log file.

    A non-zero exit is reported through the result, not raised.

    Args:
        cmd: Command as list of strings.
        cwd: Working directory.
        log_path: Log file to append to; output is discarded if None.
        env: Full environment for the child process.
        timeout: Timeout in seconds (None = no timeout).

    Returns:
        CommandResult with exit code and duration.

    Raises:
        CommandExecutionError: If the command cannot be started or times out.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)
    logger.debug("Working directory: %s", cwd)

    started_at = datetime.now(timezone.utc)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# CWD: {cwd}\n")
            log_file.write("# " + "=" * 70 + "\n\n")

    try:
        if log_path is not None:
            with log_path.open("a") as log_file:
                result = subprocess.run(
                    cmd,
                    cwd=cwd,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    timeout=timeout,
                    env=env,
                    check=False,
                )
        else:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=timeout,
                env=env,
                check=False,
            )
    except subprocess.TimeoutExpired as e:
        message = f"{cmd_str} timed out after {timeout} seconds"
        logger.error(message)
        if log_path is not None:
            with log_path.open("a") as log_file:
                log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise CommandExecutionError(message, exit_code=-1, code="timeout") from e
    except OSError as e:
        message = f"Failed to execute {cmd_str}: {e}"
        logger.error(message)
        raise CommandExecutionError(message, code="execution_error") from e

    finished_at = datetime.now(timezone.utc)
    duration = (finished_at - started_at).total_seconds()
    exit_code = result.returncode

    if log_path is not None:
        with log_path.open("a") as log_file:
            log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
            log_file.write(f"# Exit code: {exit_code}\n")
            log_file.write(f"# Duration: {duration:.1f}s\n\n")

    if exit_code != 0:
        logger.error("%s exited with %d", cmd_str, exit_code)

    return CommandResult(
        command=cmd_str,
        exit_code=exit_code,
        log_path=log_path,
        duration=duration,
    )


__all__ = [
    "CommandExecutionError",
    "compose_make_command",
    "run_command",
]
