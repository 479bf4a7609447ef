"""Build pipeline stages.

Each stage either completes or raises a StageError subclass naming the
stage, the tool exit code and the log file holding its output:

- clean(): drop stale boot images and run `make clean mrproper`
- compile_kernel(): generate .config from the defconfig, then build
- collect(): copy the boot image into the AnyKernel staging directory
- package(): zip the staging directory and move it to the dist directory
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from kernelpack.build.archive import compute_file_hash, create_archive
from kernelpack.build.runner import (
    CommandExecutionError,
    compose_make_command,
    run_command,
)
from kernelpack.types import (
    BuildConfig,
    CommandResult,
    PathSet,
    ReleaseIdentity,
    RunResult,
    Stage,
)

logger = logging.getLogger(__name__)

STALE_IMAGE_PATTERN = "Image*"
KBUILD_VERSION_FILE = ".version"


class StageError(Exception):
    """Base error for a failed pipeline stage."""

    def __init__(
        self,
        message: str,
        stage: Stage,
        exit_code: int | None = None,
        log_path: Path | None = None,
        code: str = "stage_failed",
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.exit_code = exit_code
        self.log_path = log_path
        self.code = code


class CleanFailure(StageError):
    """Raised when the clean stage fails."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("code", "clean_failed")
        super().__init__(message, Stage.CLEAN, **kwargs)


class CompileFailure(StageError):
    """Raised when defconfig generation or compilation fails."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("code", "compile_failed")
        super().__init__(message, Stage.COMPILE, **kwargs)


class CollectFailure(StageError):
    """Raised when the boot image cannot be staged.

    Attributes:
        retryable: True when the artifact is missing (rerun the compile),
            False when the copy itself was refused by the filesystem.
    """

    def __init__(
        self, message: str, retryable: bool = False, **kwargs: Any
    ) -> None:
        kwargs.setdefault("code", "artifact_missing" if retryable else "copy_denied")
        super().__init__(message, Stage.COLLECT, **kwargs)
        self.retryable = retryable


class PackageFailure(StageError):
    """Raised when the zip cannot be created or moved."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("code", "package_failed")
        super().__init__(message, Stage.PACKAGE, **kwargs)


def _run_make(
    config: BuildConfig,
    paths: PathSet,
    targets: tuple[str, ...],
    failure: type[StageError],
    log_path: Path | None,
    timeout: int | None,
    jobs: int | None = None,
) -> CommandResult:
    cmd = compose_make_command(config, *targets, jobs=jobs)
    try:
        result = run_command(
            cmd,
            cwd=paths.kernel_dir,
            log_path=log_path,
            env=config.make_env(),
            timeout=timeout,
        )
    except CommandExecutionError as e:
        raise failure(
            str(e), exit_code=e.exit_code, log_path=log_path, code=e.code
        ) from e

    if not result.success:
        raise failure(
            f"{result.command} failed with exit code {result.exit_code}",
            exit_code=result.exit_code,
            log_path=log_path,
        )
    return result


def clean(
    config: BuildConfig,
    paths: PathSet,
    log_path: Path | None = None,
    timeout: int | None = None,
) -> list[CommandResult]:
    """Remove stale artifacts and reset the kernel tree.

    Deletes every Image* file in the staging directory and the kbuild
    .version counter, then runs `make clean` followed by `make mrproper`.

    Raises:
        CleanFailure: If a make invocation fails.
    """
    if paths.repack_dir.is_dir():
        for stale in sorted(paths.repack_dir.glob(STALE_IMAGE_PATTERN)):
            logger.info("Removing stale %s", stale)
            if stale.is_dir():
                shutil.rmtree(stale)
            else:
                stale.unlink()

    (paths.kernel_dir / KBUILD_VERSION_FILE).unlink(missing_ok=True)

    return [
        _run_make(config, paths, (target,), CleanFailure, log_path, timeout)
        for target in ("clean", "mrproper")
    ]


def compile_kernel(
    config: BuildConfig,
    paths: PathSet,
    log_path: Path | None = None,
    timeout: int | None = None,
) -> list[CommandResult]:
    """Configure from the defconfig, then build with config.jobs workers.

    Raises:
        CompileFailure: If configuration or compilation fails.
    """
    configured = _run_make(
        config, paths, (config.defconfig,), CompileFailure, log_path, timeout
    )
    logger.info("Compiling with %d parallel jobs", config.jobs)
    built = _run_make(
        config, paths, (), CompileFailure, log_path, timeout, jobs=config.jobs
    )
    return [configured, built]


def collect(config: BuildConfig, paths: PathSet) -> Path:
    """Copy the boot image into the staging directory.

    Returns:
        Path of the staged copy.

    Raises:
        CollectFailure: retryable if the image is missing, fatal if the
            copy is refused.
    """
    source = paths.output_dir(config) / config.boot_image
    if not source.is_file():
        raise CollectFailure(
            f"Boot image not found: {source}",
            retryable=True,
        )

    destination = paths.repack_dir / source.name
    try:
        paths.repack_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
    except OSError as e:
        raise CollectFailure(
            f"Cannot copy {source} to {paths.repack_dir}: {e}",
            retryable=False,
        ) from e

    logger.info("Staged %s", destination)
    return destination


def package(paths: PathSet, identity: ReleaseIdentity) -> RunResult:
    """Zip the staging directory and move the zip to the dist directory.

    Previous archives in the dist directory are kept; an archive with the
    same name (same minute) is replaced.

    Returns:
        RunResult describing the archive; timing is filled in by the caller.

    Raises:
        PackageFailure: If the archive cannot be created or moved.
    """
    staged_archive = paths.repack_dir / identity.archive_filename
    destination = paths.dist_dir / identity.archive_filename

    try:
        members = create_archive(paths.repack_dir, staged_archive)
    except (OSError, ValueError) as e:
        staged_archive.unlink(missing_ok=True)
        raise PackageFailure(f"Cannot create {staged_archive}: {e}") from e

    try:
        paths.dist_dir.mkdir(parents=True, exist_ok=True)
        if destination.exists():
            logger.warning("Replacing existing archive %s", destination)
        shutil.move(str(staged_archive), str(destination))
    except OSError as e:
        staged_archive.unlink(missing_ok=True)
        raise PackageFailure(
            f"Cannot move {staged_archive} to {paths.dist_dir}: {e}"
        ) from e

    logger.info("Packaged %s", destination)
    return RunResult(
        archive_path=destination,
        size_bytes=destination.stat().st_size,
        sha256=compute_file_hash(destination),
        members=members,
    )


__all__ = [
    "CleanFailure",
    "CollectFailure",
    "CompileFailure",
    "PackageFailure",
    "StageError",
    "clean",
    "collect",
    "compile_kernel",
    "package",
]
