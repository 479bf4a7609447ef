"""Build orchestration module.

This module handles:
- Environment setup (BuildConfig, ReleaseIdentity, PathSet)
- Running make for the clean and compile stages
- Staging the boot image
- Zipping and distributing the flashable archive
"""

from kernelpack.build.orchestrator import BuildLockedError, run_build
from kernelpack.build.stages import (
    CleanFailure,
    CollectFailure,
    CompileFailure,
    PackageFailure,
    StageError,
)

__all__ = [
    "BuildLockedError",
    "CleanFailure",
    "CollectFailure",
    "CompileFailure",
    "PackageFailure",
    "StageError",
    "run_build",
]
