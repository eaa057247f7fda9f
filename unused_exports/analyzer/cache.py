"""Analysis cache for repeat file analyses.

Cache Strategy:
- One entry per absolute file path: extracted symbols + usage verdicts
- Entries are valid while the md5 fingerprint of the file content matches
  and they are younger than the max age (default 5 minutes)
- Entries are replaced whole on every put, never patched
- Dependency edges (declaring file -> file whose import proved a symbol
  used) live in a networkx DiGraph so a changed file can evict every entry
  whose verdicts relied on it
"""
import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

import networkx as nx

from .extractor import Symbol, SymbolKind
from .resolver import UsageVerdict

logger = logging.getLogger(__name__)

ACCESSOR_KINDS = (SymbolKind.GETTER, SymbolKind.SETTER)


def verdict_key(symbol: Symbol) -> str:
    """Key of ``symbol`` in ``CacheEntry.verdicts_by_name``.

    A getter and setter pair shares one qualified name, so accessors carry
    their kind as a suffix (``Box.size:getter``).
    """
    if symbol.kind in ACCESSOR_KINDS:
        return f'{symbol.qualified_name}:{symbol.kind.value}'
    return symbol.qualified_name


@dataclass(frozen=True)
class CacheEntry:
    """Memoized analysis of one file."""
    file_path: str
    extracted_symbols: Tuple[Symbol, ...]
    verdicts_by_name: Mapping[str, UsageVerdict]  # keyed by verdict_key()
    content_fingerprint: str
    created_at: float
    verdicts: Tuple[UsageVerdict, ...] = ()  # every stored verdict, in analysis order

    def unused_verdicts(self) -> List[UsageVerdict]:
        return [v for v in self.verdicts if not v.is_used]

    def external_files(self) -> Set[str]:
        """Every other file this entry's verdicts depend on."""
        files = set()
        for verdict in self.verdicts:
            files.update(verdict.external_references)
        return files


class AnalysisCache:
    """In-memory, content-fingerprinted cache of per-file analysis results."""

    DEFAULT_MAX_AGE_SECONDS = 5 * 60

    def __init__(self, max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            max_age_seconds: Entries older than this are treated as absent
            clock: Monotonic time source (injectable for tests)
        """
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        # edge (A, B): a verdict cached for A lists B as an external reference
        self._dependencies = nx.DiGraph()

    @staticmethod
    def _key(file_path: str | Path) -> str:
        return str(Path(file_path).resolve())

    @staticmethod
    def compute_fingerprint(content: str) -> str:
        """Stable hash of file content."""
        return hashlib.md5(content.encode('utf-8', errors='surrogatepass')).hexdigest()

    def get(self, file_path: str | Path) -> Optional[CacheEntry]:
        """Cached entry for the path, or None if absent or expired."""
        key = self._key(file_path)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.created_at > self.max_age_seconds:
            logger.debug("Cache entry expired: %s", key)
            self._evict(key)
            return None

        return entry

    def put(self, file_path: str | Path, symbols: Iterable[Symbol],
            verdicts: Union[Mapping[str, UsageVerdict], Iterable[UsageVerdict]],
            content: str) -> CacheEntry:
        """Store (or replace) the analysis of one file.

        Args:
            file_path: File the analysis belongs to
            symbols: Symbols extracted from ``content``
            verdicts: Verdicts keyed by name, or a plain iterable of verdicts
            content: The exact text that was analyzed

        Returns:
            The stored entry
        """
        key = self._key(file_path)
        if isinstance(verdicts, Mapping):
            by_name = dict(verdicts)
            ordered = tuple(by_name.values())
        else:
            ordered = tuple(verdicts)
            by_name = {verdict_key(verdict.symbol): verdict for verdict in ordered}

        entry = CacheEntry(
            file_path=key,
            extracted_symbols=tuple(symbols),
            verdicts_by_name=MappingProxyType(by_name),
            content_fingerprint=self.compute_fingerprint(content),
            created_at=self._clock(),
            verdicts=ordered,
        )

        self._drop_edges(key)
        self._entries[key] = entry
        for referencing_file in entry.external_files():
            self._dependencies.add_edge(key, self._key(referencing_file))
        return entry

    def has_changed(self, file_path: str | Path, content: str) -> bool:
        """False only when ``content`` is identical to what produced the entry."""
        entry = self._entries.get(self._key(file_path))
        if entry is None:
            return True
        return entry.content_fingerprint != self.compute_fingerprint(content)

    def invalidate(self, file_path: str | Path):
        """Remove the entry for one file."""
        self._evict(self._key(file_path))

    def invalidate_related(self, changed_file_path: str | Path) -> List[str]:
        """Evict every entry whose verdicts list ``changed_file_path`` as a reference.

        Returns:
            Paths of the evicted entries
        """
        key = self._key(changed_file_path)
        if key not in self._dependencies:
            return []

        dependents = sorted(self._dependencies.predecessors(key))
        for dependent in dependents:
            self._evict(dependent)
        if dependents:
            logger.debug("Change to %s evicted %d dependent entries", key, len(dependents))
        return dependents

    def clear(self):
        """Drop all entries and dependency edges."""
        self._entries.clear()
        self._dependencies.clear()

    def stats(self) -> Dict[str, int]:
        return {
            'entries': len(self._entries),
            'dependency_edges': self._dependencies.number_of_edges(),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_path: object) -> bool:
        if not isinstance(file_path, (str, Path)):
            return False
        return self._key(file_path) in self._entries

    def _drop_edges(self, key: str):
        """Forget what ``key``'s entry depended on; keep edges pointing at it."""
        if key not in self._dependencies:
            return
        targets = list(self._dependencies.successors(key))
        self._dependencies.remove_edges_from([(key, target) for target in targets])
        for node in targets + [key]:
            if node in self._dependencies and self._dependencies.degree(node) == 0:
                self._dependencies.remove_node(node)

    def _evict(self, key: str):
        self._entries.pop(key, None)
        self._drop_edges(key)
