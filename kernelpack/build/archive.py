"""Flashable zip creation and distribution directory helpers.

This module handles:
- Selecting the staging files that go into the zip
- Writing the zip with maximum deflate compression
- Computing checksums
- Finding the newest file in the distribution directory
"""

from __future__ import annotations

import hashlib
import logging
import zipfile
from pathlib import Path

logger = logging.getLogger(__name__)

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB

ZIP_COMPRESSLEVEL = 9


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def collect_staging_files(
    staging_dir: Path,
    exclude: set[Path] | None = None,
) -> list[Path]:
    """List the files of a staging directory that belong in the zip.

    Top-level entries starting with a dot (.git, .github, ...) are left out,
    the same set a shell `*` glob would pick.

    Args:
        staging_dir: AnyKernel staging directory.
        exclude: Absolute paths to leave out.

    Returns:
        Sorted list of file paths.
    """
    excluded = {p.resolve() for p in exclude or set()}
    files: list[Path] = []

    for top in sorted(staging_dir.iterdir()):
        if top.name.startswith("."):
            continue
        candidates = [top] if top.is_file() else sorted(top.rglob("*"))
        for path in candidates:
            if not path.is_file():
                continue
            if path.resolve() in excluded:
                continue
            files.append(path)

    return files


def create_archive(
    staging_dir: Path,
    archive_path: Path,
) -> list[str]:
    """Zip the staging directory into archive_path.

    The archive may live inside the staging directory; it never includes
    itself.

    Args:
        staging_dir: Directory whose contents are archived.
        archive_path: Output zip file.

    Returns:
        Archive member names, relative to staging_dir.
    """
    files = collect_staging_files(staging_dir, exclude={archive_path})
    members: list[str] = []

    with zipfile.ZipFile(
        archive_path,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=ZIP_COMPRESSLEVEL,
    ) as zf:
        for path in files:
            arcname = path.relative_to(staging_dir).as_posix()
            zf.write(path, arcname)
            members.append(arcname)
            logger.debug("Added %s", arcname)

    logger.info("Created %s with %d file(s)", archive_path.name, len(members))
    return members


def newest_file(directory: Path) -> Path | None:
    """Return the most recently modified file below a directory.

    Args:
        directory: Directory to search recursively.

    Returns:
        Path of the newest file, or None if there are none.
    """
    if not directory.is_dir():
        return None

    files = [p for p in directory.rglob("*") if p.is_file()]
    if not files:
        return None
    return max(files, key=lambda p: p.stat().st_mtime)


__all__ = [
    "HASH_CHUNK_SIZE",
    "ZIP_COMPRESSLEVEL",
    "collect_staging_files",
    "compute_file_hash",
    "create_archive",
    "newest_file",
]
