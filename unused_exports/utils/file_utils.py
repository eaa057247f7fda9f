"""Path matching and source file discovery helpers."""
import logging
import os
import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional

from ..analyzer.parser import is_supported_file

logger = logging.getLogger(__name__)

# Directories never worth walking into
SKIPPED_DIRECTORIES = {
    'node_modules', '.git', 'dist', 'build', 'out', 'coverage',
    '.next', '.turbo', '.cache', '__pycache__',
}


def to_relative_path(file_path: str | Path, root: str | Path) -> str:
    """POSIX-style path of ``file_path`` relative to ``root``.

    Paths outside the root are returned unchanged (as POSIX strings).
    """
    path = Path(file_path)
    try:
        return path.resolve().relative_to(Path(root).resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def matches_glob(rel_path: str, pattern: str) -> bool:
    """fnmatch with ``**/`` prefixes also matching at the root.

    ``**/node_modules/**`` matches both ``node_modules/a.ts`` and
    ``pkg/node_modules/a.ts``.
    """
    if fnmatch(rel_path, pattern):
        return True
    while pattern.startswith('**/'):
        pattern = pattern[3:]
        if fnmatch(rel_path, pattern):
            return True
    return False


def is_excluded(file_path: str | Path, patterns: Iterable[str], root: str | Path) -> bool:
    """True if the path (relative to ``root``) matches any exclude glob."""
    rel_path = to_relative_path(file_path, root)
    return any(matches_glob(rel_path, pattern) for pattern in patterns)


def file_name_matches(file_path: str | Path, pattern: str) -> bool:
    """Match a bare file name against a pattern where only ``*`` is special."""
    regex = '^' + '.*'.join(re.escape(part) for part in pattern.split('*')) + '$'
    return re.match(regex, Path(file_path).name) is not None


def discover_source_files(root: str | Path, exclude_patterns: Iterable[str] = (),
                          limit: Optional[int] = None) -> List[Path]:
    """Find supported source files under ``root``, sorted by relative path.

    Args:
        root: Project root directory
        exclude_patterns: Globs relative to root; matching files are skipped
        limit: Maximum number of files returned (None for no limit)

    Returns:
        Absolute, resolved file paths in deterministic order
    """
    root = Path(root).resolve()
    patterns = list(exclude_patterns)
    found = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
        for filename in filenames:
            path = Path(dirpath) / filename
            if not is_supported_file(path):
                continue
            if is_excluded(path, patterns, root):
                continue
            found.append(path)

    found.sort(key=lambda p: p.relative_to(root).as_posix())
    if limit is not None and len(found) > limit:
        logger.info("Workspace has %d source files; analyzing the first %d", len(found), limit)
        found = found[:limit]
    return found


def read_text(file_path: str | Path) -> str:
    """Read a source file as UTF-8, replacing undecodable bytes.

    Raises:
        OSError: If the file cannot be read
    """
    with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
        return f.read()
