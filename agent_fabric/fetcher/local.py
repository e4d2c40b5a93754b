"""Walking source trees with the exclude deny-list applied."""

import fnmatch
import os
from pathlib import Path
from typing import Iterator

from agent_fabric.constants import EXCLUDE_PATTERNS
from agent_fabric.fetcher.types import StagedFile


def is_excluded(name: str, patterns: tuple[str, ...] = EXCLUDE_PATTERNS) -> bool:
    """Check a single path segment against the deny-list.

    Patterns are exact names, or simple globs such as `*.log` and `.env.*`.
    """
    for pattern in patterns:
        if "*" in pattern:
            if fnmatch.fnmatchcase(name, pattern):
                return True
        elif name == pattern:
            return True
    return False


def iter_source_files(root: Path, patterns: tuple[str, ...] = EXCLUDE_PATTERNS) -> Iterator[Path]:
    """Yield regular files under root, pruning excluded directories.

    Symlinks are not followed, so a link pointing outside the tree is never
    read through.
    """
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = sorted(d for d in dirnames if not is_excluded(d, patterns))
        for filename in sorted(filenames):
            if is_excluded(filename, patterns):
                continue
            path = Path(dirpath) / filename
            if path.is_symlink() or not path.is_file():
                continue
            yield path


def read_source_files(root: Path, patterns: tuple[str, ...] = EXCLUDE_PATTERNS) -> list[StagedFile]:
    """Read every file under root into StagedFile entries.

    Args:
        root: Directory to walk
        patterns: Deny-list of names and globs

    Returns:
        Files with POSIX paths relative to root, in sorted walk order
    """
    files = []
    for path in iter_source_files(root, patterns):
        files.append(
            StagedFile(
                path=path.relative_to(root).as_posix(),
                content=path.read_bytes(),
                mode=path.stat().st_mode & 0o777,
            )
        )
    return files
