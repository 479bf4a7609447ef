"""Shared type definitions for kernelpack.

This module contains dataclasses and enums shared across subpackages to
avoid circular imports.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

ARCHIVE_TIMESTAMP_FORMAT = "%Y%m%d-%H%M"


class Stage(str, Enum):
    """Stage of the build pipeline, in execution order."""

    CLEAN = "clean"
    COMPILE = "compile"
    COLLECT = "collect"
    PACKAGE = "package"


class ImportState(str, Enum):
    """State of a vendored module tree in the kernel repository."""

    ABSENT = "absent"
    IMPORTED = "imported"
    PENDING_REMOVAL = "pending_removal"


@dataclass(frozen=True)
class BuildConfig:
    """Toolchain and kbuild variables for one run."""

    arch: str
    subarch: str
    cross_compile: str
    cross_compile_arm32: str
    defconfig: str
    toolchain_path: Path
    build_user: str
    build_host: str
    jobs: int
    llvm: bool = True
    llvm_ias: bool = True
    output_subdir: str = "out"
    boot_image: str = "arch/arm64/boot/Image.gz-dtb"

    def make_env(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Compose the environment passed to make.

        Args:
            base: Environment to extend; defaults to os.environ.

        Returns:
            A new dictionary; the base mapping is not modified.
        """
        env = dict(os.environ if base is None else base)
        toolchain = str(self.toolchain_path)
        current_path = env.get("PATH")
        env["PATH"] = f"{toolchain}{os.pathsep}{current_path}" if current_path else toolchain
        env["CROSS_COMPILE"] = str(self.toolchain_path / self.cross_compile)
        env["CROSS_COMPILE_ARM32"] = str(self.toolchain_path / self.cross_compile_arm32)
        env["ARCH"] = self.arch
        env["SUBARCH"] = self.subarch
        env["KBUILD_BUILD_USER"] = self.build_user
        env["KBUILD_BUILD_HOST"] = self.build_host
        return env


@dataclass(frozen=True)
class ReleaseIdentity:
    """Version label and timestamp that name the flashable zip."""

    label: str
    suffix: str
    timestamp: datetime

    @property
    def archive_name(self) -> str:
        """Archive base name, e.g. POST-SOVIET-MI9-20240501-1307.

        The timestamp is joined with a dash unless the label and suffix
        already end in one.
        """
        stamp = self.timestamp.strftime(ARCHIVE_TIMESTAMP_FORMAT)
        base = f"{self.label}{self.suffix}"
        separator = "" if base.endswith("-") else "-"
        return f"{base}{separator}{stamp}"

    @property
    def archive_filename(self) -> str:
        return f"{self.archive_name}.zip"


@dataclass(frozen=True)
class PathSet:
    """Filesystem locations used by a run."""

    kernel_dir: Path
    repack_dir: Path
    dist_dir: Path
    log_dir: Path

    def output_dir(self, config: BuildConfig) -> Path:
        """Return the make O= directory for this kernel tree."""
        return self.kernel_dir / config.output_subdir


@dataclass
class CommandResult:
    """Result of one external tool invocation."""

    command: str
    exit_code: int
    log_path: Path | None
    duration: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class RunResult:
    """Outcome of a completed build run."""

    archive_path: Path
    elapsed_seconds: float = 0.0
    size_bytes: int = 0
    sha256: str = ""
    members: list[str] = field(default_factory=list)
    newest_file: Path | None = None

    @property
    def elapsed_display(self) -> str:
        """Elapsed wall-clock time as M:SS."""
        minutes, seconds = divmod(int(self.elapsed_seconds), 60)
        return f"{minutes}:{seconds:02d}"

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "archive_path": str(self.archive_path),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "elapsed": self.elapsed_display,
            "size_bytes": self.size_bytes,
            "sha256": self.sha256,
            "members": list(self.members),
            "newest_file": str(self.newest_file) if self.newest_file else None,
        }


@dataclass
class ImportOutcome:
    """Outcome of a vendored tree import."""

    state: ImportState
    prefix: Path
    remote_added: bool = False
    fetched: bool = False
    message: str = ""


__all__ = [
    "ARCHIVE_TIMESTAMP_FORMAT",
    "BuildConfig",
    "CommandResult",
    "ImportOutcome",
    "ImportState",
    "PathSet",
    "ReleaseIdentity",
    "RunResult",
    "Stage",
]
