"""Build environment setup.

Derives the explicit BuildConfig, ReleaseIdentity and PathSet for a run
from Settings. Nothing here touches os.environ; the make environment is
composed on demand by BuildConfig.make_env().
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from kernelpack.types import BuildConfig, PathSet, ReleaseIdentity

if TYPE_CHECKING:
    from kernelpack.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildEnvironment:
    """Everything a run needs, computed once at start."""

    config: BuildConfig
    identity: ReleaseIdentity
    paths: PathSet


def detect_jobs() -> int:
    """Return the number of processors visible to this process."""
    if hasattr(os, "sched_getaffinity"):
        return max(len(os.sched_getaffinity(0)), 1)
    return os.cpu_count() or 1


def release_identity(settings: Settings, now: datetime) -> ReleaseIdentity:
    """Build the release identity for a timestamp.

    Seconds and below are dropped so the archive name only depends on
    the minute the run started.
    """
    return ReleaseIdentity(
        label=settings.version_label,
        suffix=settings.version_suffix,
        timestamp=now.replace(second=0, microsecond=0),
    )


def configure_environment(
    settings: Settings,
    now: datetime | None = None,
) -> BuildEnvironment:
    """Derive the build environment from settings.

    Args:
        settings: Effective settings.
        now: Start timestamp; defaults to the current local time.

    Returns:
        BuildEnvironment for the run.
    """
    if now is None:
        now = datetime.now()

    jobs = settings.jobs if settings.jobs is not None else detect_jobs()

    config = BuildConfig(
        arch=settings.arch,
        subarch=settings.subarch,
        cross_compile=settings.cross_compile,
        cross_compile_arm32=settings.cross_compile_arm32,
        defconfig=settings.defconfig,
        toolchain_path=settings.toolchain_path.expanduser(),
        build_user=settings.build_user,
        build_host=settings.build_host,
        jobs=jobs,
        llvm=settings.llvm,
        llvm_ias=settings.llvm_ias,
        output_subdir=settings.output_subdir,
        boot_image=settings.boot_image,
    )
    paths = PathSet(
        kernel_dir=settings.kernel_dir.expanduser().resolve(),
        repack_dir=settings.repack_dir.expanduser(),
        dist_dir=settings.dist_dir.expanduser(),
        log_dir=settings.log_dir.expanduser(),
    )
    identity = release_identity(settings, now)

    logger.debug(
        "Configured %s build with %s (%d jobs), archive %s",
        config.arch,
        config.defconfig,
        config.jobs,
        identity.archive_filename,
    )
    return BuildEnvironment(config=config, identity=identity, paths=paths)


__all__ = [
    "BuildEnvironment",
    "configure_environment",
    "detect_jobs",
    "release_identity",
]
