"""Build orchestrator.

This module provides the high-level build API:
- run_build(): configure, clean, compile, collect and package in order
- Locking to reject overlapping runs on the same staging directory
- Timing and reporting of the produced archive

The first failing stage aborts the run; later stages never see stale or
missing artifacts.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from kernelpack.build.archive import newest_file
from kernelpack.build.environment import configure_environment
from kernelpack.build.stages import clean, collect, compile_kernel, package
from kernelpack.types import ARCHIVE_TIMESTAMP_FORMAT, RunResult

if TYPE_CHECKING:
    from kernelpack.config import Settings

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".kernelpack.lock"


class BuildLockedError(Exception):
    """Raised when another run holds the staging directory."""

    def __init__(self, lock_path: Path, code: str = "build_locked") -> None:
        super().__init__(f"Another build is running (lock held on {lock_path})")
        self.lock_path = lock_path
        self.code = code


@contextmanager
def build_lock(lock_dir: Path) -> Iterator[Path]:
    """Hold an exclusive lock on a directory for the duration of a run.

    Args:
        lock_dir: Directory to lock; created if missing.

    Yields:
        Path of the lock file.

    Raises:
        BuildLockedError: If the lock is already held.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_file = lock_dir / LOCK_FILENAME

    fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
    lock_acquired = False
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise BuildLockedError(lock_file) from None
        lock_acquired = True
        logger.debug("Build lock acquired: %s", lock_file)
        yield lock_file
    finally:
        if lock_acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Build lock released: %s", lock_file)
        os.close(fd)


def run_build(
    settings: Settings,
    now: datetime | None = None,
    skip_clean: bool = False,
) -> RunResult:
    """Run the whole pipeline.

    Args:
        settings: Effective settings.
        now: Start timestamp used for the archive name.
        skip_clean: Keep the previous build tree for an incremental build.

    Returns:
        RunResult with archive details and elapsed time.

    Raises:
        StageError: The first stage failure (CleanFailure, CompileFailure,
            CollectFailure or PackageFailure).
        BuildLockedError: If another run holds the staging directory.
    """
    started = time.monotonic()
    env = configure_environment(settings, now=now)
    config, identity, paths = env.config, env.identity, env.paths

    log_path = (
        paths.log_dir
        / f"build-{identity.timestamp.strftime(ARCHIVE_TIMESTAMP_FORMAT)}.log"
    )
    logger.info("Building %s, log: %s", identity.archive_filename, log_path)

    with build_lock(paths.repack_dir):
        if skip_clean:
            logger.info("Skipping clean stage")
        else:
            logger.info("Starting cleaning...")
            clean(config, paths, log_path=log_path, timeout=settings.build_timeout)
            logger.info("All cleaned.")

        logger.info("Building kernel...")
        compile_kernel(config, paths, log_path=log_path, timeout=settings.build_timeout)
        collect(config, paths)
        result = package(paths, identity)

    result.elapsed_seconds = time.monotonic() - started
    result.newest_file = newest_file(paths.dist_dir)
    logger.info("Build completed in %s", result.elapsed_display)
    return result


__all__ = ["BuildLockedError", "build_lock", "run_build"]
