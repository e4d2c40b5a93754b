"""Safe archive extraction and staging.

Two independent checks guard every archive entry:

1. While extracting, entries with absolute names or `..` segments are
   skipped, and only regular files and directories are materialised.
2. While copying the extracted tree into the staging directory, every
   destination is resolved and must stay strictly inside the staging root.

A failing entry is skipped and reported as a warning; the remaining
entries are still staged.
"""

import io
import logging
import shutil
import tarfile
from pathlib import Path, PurePosixPath

from agent_fabric.exceptions import ArchiveError, OriginNotFoundError, PathSecurityViolation
from agent_fabric.fetcher.local import iter_source_files
from agent_fabric.fetcher.types import StagedFile

logger = logging.getLogger(__name__)


def is_unsafe_member_name(name: str) -> bool:
    """Check whether an archive member name is absolute or climbs upwards."""
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or PurePosixPath(normalized).is_absolute():
        return True
    # Drive-letter names such as C:/x
    if len(normalized) > 1 and normalized[1] == ":":
        return True
    return ".." in normalized.split("/")


def safe_join(root: Path, relative: str) -> Path:
    """Join a relative path onto root, refusing anything that escapes it.

    Raises:
        PathSecurityViolation: If the resolved path is not strictly inside root
    """
    resolved_root = root.resolve()
    target = (resolved_root / relative).resolve()
    if target == resolved_root or not target.is_relative_to(resolved_root):
        raise PathSecurityViolation(
            f"Entry '{relative}' resolves outside the staging directory"
        )
    return target


def extract_archive(data: bytes, dest: Path) -> list[str]:
    """Extract a (possibly compressed) tar archive into dest.

    Args:
        data: Raw archive bytes
        dest: Empty directory to extract into

    Returns:
        Warnings for every skipped entry

    Raises:
        ArchiveError: If the data is not a readable tar archive
    """
    warnings: list[str] = []
    dest.mkdir(parents=True, exist_ok=True)
    try:
        tar = tarfile.open(fileobj=io.BytesIO(data), mode="r:*")
    except tarfile.TarError as e:
        raise ArchiveError(f"Could not open archive: {e}")

    with tar:
        for member in tar:
            name = member.name
            if is_unsafe_member_name(name):
                warnings.append(f"Skipped unsafe archive entry '{name}'")
                continue
            target = dest / name
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
            elif member.isfile():
                source = tar.extractfile(member)
                if source is None:
                    warnings.append(f"Skipped unreadable archive entry '{name}'")
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                target.chmod((member.mode & 0o777) | 0o600)
            else:
                warnings.append(f"Skipped non-regular archive entry '{name}'")

    for warning in warnings:
        logger.debug(warning)
    return warnings


def archive_root(extracted: Path, subpath: str | None = None) -> Path:
    """Locate the content root of an extracted archive.

    GitHub, GitLab and npm tarballs wrap everything in one top-level
    directory; that wrapper is stripped before applying subpath.

    Raises:
        OriginNotFoundError: If subpath doesn't exist in the archive
        PathSecurityViolation: If subpath points outside the archive
    """
    entries = list(extracted.iterdir())
    root = extracted
    if len(entries) == 1 and entries[0].is_dir():
        root = entries[0]
    if subpath:
        if is_unsafe_member_name(subpath):
            raise PathSecurityViolation(f"Subpath '{subpath}' escapes the archive")
        root = root / subpath
        if not root.is_dir():
            raise OriginNotFoundError(f"Path '{subpath}' not found in archive")
    return root


def stage_tree(source_root: Path, staging_dir: Path) -> tuple[list[StagedFile], list[str]]:
    """Copy an extracted tree into the staging directory.

    Args:
        source_root: Extracted content root
        staging_dir: Destination, created if missing

    Returns:
        Tuple of (staged files, warnings)
    """
    staging_dir.mkdir(parents=True, exist_ok=True)
    files: list[StagedFile] = []
    warnings: list[str] = []

    for path in iter_source_files(source_root):
        relative = path.relative_to(source_root).as_posix()
        try:
            target = safe_join(staging_dir, relative)
        except PathSecurityViolation as e:
            warnings.append(str(e))
            logger.debug("Skipping %s: %s", relative, e)
            continue
        content = path.read_bytes()
        mode = path.stat().st_mode & 0o777
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        target.chmod(mode)
        files.append(StagedFile(path=relative, content=content, mode=mode))

    return files, warnings
