"""Project-wide text search providers for cross-file usage evidence.

Two implementations share one interface:

- RipgrepSearchProvider: shells out to ``rg -l`` (fast, needs ripgrep on PATH)
- ScanSearchProvider: walks the project and reads candidate files in-process

``select_search_provider`` picks one at start-up based on availability.
Neither raises on tool failure; a failed search comes back as an empty,
``degraded`` SearchResult so callers can fall back to local evidence.
"""
import asyncio
import logging
import os
import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..utils.file_utils import SKIPPED_DIRECTORIES, matches_glob, read_text

logger = logging.getLogger(__name__)

SOURCE_GLOBS = ('*.ts', '*.tsx', '*.mts', '*.cts', '*.js', '*.jsx', '*.mjs', '*.cjs')

DEFAULT_SEARCH_EXCLUDES = (
    'node_modules/**',
    '**/node_modules/**',
    '*.d.ts',
    'dist/**',
    'build/**',
)

# ripgrep: 0 = matches, 1 = no matches, 2 = error
NO_MATCHES_EXIT_CODE = 1


@dataclass(frozen=True)
class SearchQuery:
    """One search request: which text, where, and over which files."""
    pattern: str
    cwd: str
    literal: bool = False
    multiline: bool = False  # let character classes span lines
    includes: Tuple[str, ...] = SOURCE_GLOBS
    excludes: Tuple[str, ...] = DEFAULT_SEARCH_EXCLUDES


@dataclass
class SearchResult:
    files: List[str] = field(default_factory=list)  # absolute paths, sorted
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> 'SearchResult':
        return cls(files=[], degraded=True, error=error)


class SearchProviderError(RuntimeError):
    """The search tool ran but reported an error status."""


class SearchProvider(ABC):
    """Literal or regex search returning the files that contain a match."""

    name = 'abstract'

    @abstractmethod
    async def search(self, query: SearchQuery) -> SearchResult:
        """Run ``query`` and return matching files; never raises on tool failure."""


class RipgrepSearchProvider(SearchProvider):
    """Search provider backed by the ripgrep executable."""

    name = 'ripgrep'

    def __init__(self, executable: str = 'rg', retries: int = 0):
        """
        Args:
            executable: ripgrep binary name or absolute path
            retries: Extra attempts after an error status (not after "no matches")
        """
        self.executable = executable
        self.retries = max(0, retries)

    def build_args(self, query: SearchQuery) -> List[str]:
        args = ['--files-with-matches', '--color', 'never']
        if query.literal:
            args.append('--fixed-strings')
        if query.multiline:
            args.append('--multiline')
        for pattern in query.includes:
            args.extend(['--glob', pattern])
        for pattern in query.excludes:
            args.extend(['--glob', f'!{pattern}'])
        args.extend(['-e', query.pattern, '--', '.'])
        return args

    async def _run(self, args: List[str], cwd: str) -> Tuple[int, bytes, bytes]:
        """Run ripgrep and drain both output streams before returning."""
        process = await asyncio.create_subprocess_exec(
            self.executable, *args,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return process.returncode, stdout, stderr

    async def search(self, query: SearchQuery) -> SearchResult:
        args = self.build_args(query)
        returncode, stdout, stderr = NO_MATCHES_EXIT_CODE, b'', b''

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retries + 1),
                wait=wait_exponential(multiplier=0.1, max=2),
                retry=retry_if_exception_type(SearchProviderError),
                reraise=True,
            ):
                with attempt:
                    returncode, stdout, stderr = await self._run(args, query.cwd)
                    if returncode not in (0, NO_MATCHES_EXIT_CODE):
                        message = stderr.decode('utf-8', errors='replace').strip()
                        raise SearchProviderError(
                            f"ripgrep exited with status {returncode}: {message or 'no diagnostics'}"
                        )
        except OSError as e:
            logger.warning("ripgrep could not be started: %s", e)
            return SearchResult.failed(f"spawn failed: {e}")
        except SearchProviderError as e:
            logger.warning("%s", e)
            return SearchResult.failed(str(e))

        if stderr:
            logger.warning("ripgrep diagnostics: %s", stderr.decode('utf-8', errors='replace').strip())

        if returncode == NO_MATCHES_EXIT_CODE:
            return SearchResult()

        root = Path(query.cwd)
        files = {
            str((root / line.strip()).resolve())
            for line in stdout.decode('utf-8', errors='replace').splitlines()
            if line.strip()
        }
        return SearchResult(files=sorted(files))


class ScanSearchProvider(SearchProvider):
    """Pure in-process fallback: walk the tree and test each candidate file."""

    name = 'scan'

    def __init__(self, max_files: Optional[int] = None):
        self.max_files = max_files

    def _candidates(self, query: SearchQuery) -> List[Path]:
        root = Path(query.cwd).resolve()
        candidates = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                rel_path = path.relative_to(root).as_posix()
                if query.includes and not any(fnmatch(filename, g) or matches_glob(rel_path, g)
                                              for g in query.includes):
                    continue
                if any(fnmatch(filename, g) or matches_glob(rel_path, g) for g in query.excludes):
                    continue
                candidates.append(path)
                if self.max_files is not None and len(candidates) >= self.max_files:
                    return candidates
        return candidates

    def _matcher(self, query: SearchQuery) -> Callable[[str], bool]:
        if query.literal:
            return lambda text: query.pattern in text
        regex = re.compile(query.pattern)
        return lambda text: regex.search(text) is not None

    async def search(self, query: SearchQuery) -> SearchResult:
        try:
            matcher = self._matcher(query)
        except re.error as e:
            logger.warning("Invalid search pattern %r: %s", query.pattern, e)
            return SearchResult.failed(f"invalid pattern: {e}")

        files = []
        for path in self._candidates(query):
            try:
                text = read_text(path)
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                continue
            if matcher(text):
                files.append(str(path))
            # Let other tasks run between files on large trees
            await asyncio.sleep(0)
        return SearchResult(files=files)


def select_search_provider(prefer: Optional[str] = None, retries: int = 0) -> SearchProvider:
    """Pick a provider by availability.

    Args:
        prefer: 'ripgrep', 'scan' or None (ripgrep when installed)
        retries: Retry count handed to the ripgrep provider

    Returns:
        A ready-to-use SearchProvider
    """
    if prefer == 'scan':
        return ScanSearchProvider()

    executable = shutil.which('rg')
    if executable:
        logger.debug("Using ripgrep at %s", executable)
        return RipgrepSearchProvider(executable, retries=retries)

    if prefer == 'ripgrep':
        logger.warning("ripgrep not found on PATH; falling back to in-process scan")
    return ScanSearchProvider()
