"""Shared fixtures for kernelpack tests."""

from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from kernelpack.config import Settings

BOOT_IMAGE = Path("out") / "arch" / "arm64" / "boot" / "Image.gz-dtb"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every directory under tmp_path."""
    kernel_dir = tmp_path / "kernel"
    kernel_dir.mkdir()
    return Settings(
        toolchain_path=tmp_path / "clang" / "bin",
        kernel_dir=kernel_dir,
        repack_dir=tmp_path / "anykernel",
        dist_dir=tmp_path / "TREES",
        log_dir=tmp_path / "logs",
        jobs=4,
    )


@pytest.fixture
def start_time() -> datetime:
    """A fixed run start time."""
    return datetime(2024, 5, 1, 13, 7, 42)


@pytest.fixture
def fake_make():
    """Stand-in for subprocess.run that mimics a successful kbuild.

    The parallel build step (make -jN) leaves a boot image in the
    output directory.
    """

    def run(cmd, cwd=None, **kwargs):
        if any(arg.startswith("-j") for arg in cmd):
            image = Path(cwd) / BOOT_IMAGE
            image.parent.mkdir(parents=True, exist_ok=True)
            image.write_bytes(b"\x1f\x8b" + b"kernel" * 256)
        return MagicMock(returncode=0)

    return run
