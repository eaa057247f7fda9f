"""Two-phase usage resolution for exported symbols and class members.

Local phase: search the declaring file's own text.
External phase: ask a SearchProvider for other files that use the symbol.

The external phase only runs when the local phase found nothing and the
symbol is reachable from outside its file (public exports, public members).
Matching is by name, not by scope: an identical identifier in an unrelated
file counts as a use.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from .extractor import AccessLevel, SourceRange, Symbol
from .parser import is_supported_file
from .search import DEFAULT_SEARCH_EXCLUDES, SOURCE_GLOBS, SearchProvider, SearchQuery, SearchResult
from ..utils.file_utils import is_excluded

logger = logging.getLogger(__name__)

IMPORT_LINE = re.compile(r'^\s*import\s+')


class ResolutionState(str, Enum):
    UNRESOLVED = 'unresolved'
    LOCAL_SEARCH_DONE = 'local_search_done'
    EXTERNAL_SEARCH_SKIPPED = 'external_search_skipped'
    EXTERNAL_SEARCH_DONE = 'external_search_done'
    VERDICTED = 'verdicted'


@dataclass
class UsageVerdict:
    """Used/unused determination for one symbol plus its evidence."""
    symbol: Symbol
    local_references: List[SourceRange] = field(default_factory=list)
    external_references: List[str] = field(default_factory=list)  # file paths
    is_used: bool = False
    external_short_circuit: bool = False
    degraded: bool = False
    states: Tuple[ResolutionState, ...] = ()

    @property
    def referencing_locations(self) -> List[Union[SourceRange, str]]:
        """Local ranges, or the referencing files once cross-file evidence won."""
        if self.external_short_circuit:
            return list(self.external_references)
        return list(self.local_references)

    @property
    def state(self) -> ResolutionState:
        return self.states[-1] if self.states else ResolutionState.UNRESOLVED


def _bounded(name: str) -> str:
    """Escaped ``name`` with identifier boundaries usable by Python re and ripgrep.

    ``\\b`` only works next to word characters, so names starting or ending
    with ``$`` or ``#`` get no boundary on that side.
    """
    escaped = re.escape(name)
    left = r'\b' if re.match(r'\w', name) else ''
    right = r'\b' if re.search(r'\w$', name) else ''
    return f'{left}{escaped}{right}'


def export_usage_pattern(name: str) -> re.Pattern:
    """Any occurrence of ``name`` not embedded in a longer identifier."""
    return re.compile(rf'(?<![\w$]){re.escape(name)}(?![\w$])')


def member_access_patterns(name: str) -> Tuple[re.Pattern, ...]:
    """Attribute, call and assignment forms of ``receiver.name``.

    The ``name`` group marks the reported span; the receiver is any
    identifier, ``this``, or a closing bracket/paren.
    """
    access = rf'(?<=[\w$\)\]])\??\.(?P<name>{re.escape(name)})(?![\w$])'
    return (
        re.compile(access),
        re.compile(access + r'\s*\('),
        re.compile(access + r'\s*=(?![=>])'),
    )


def import_search_pattern(name: str) -> str:
    """Regex (valid for both ripgrep and Python) for an import of ``name``.

    Matches ``import { name }``, ``import { a, name as b }``,
    ``import type { name }``, ``import Default, { name }``,
    ``import name from`` and ``import * as ns from`` followed later in the
    file by ``.name``. The namespace alias is not tied to the access
    because ripgrep has no backreferences.
    """
    bounded = _bounded(name)
    named = rf'import\s+(?:type\s+)?(?:[\w$]+\s*,\s*)?\{{[^}}]*{bounded}[^}}]*\}}'
    default = rf'import\s+(?:type\s+)?{re.escape(name)}\s*(?:,|\s+from\b)'
    namespace = rf'import\s+(?:type\s+)?\*\s+as\s+[\w$]+\s+from\b[\s\S]*\.{bounded}'
    return f'{named}|{default}|{namespace}'


class UsageResolver:
    """Decide whether each symbol is referenced, locally first, then project-wide."""

    def __init__(self, project_root: str | Path, exclude_patterns: Iterable[str] = (),
                 search_excludes: Iterable[str] = DEFAULT_SEARCH_EXCLUDES):
        """
        Args:
            project_root: Directory searched by the external phase
            exclude_patterns: Globs (relative to root) whose files never count
                as external evidence
            search_excludes: Globs handed to the search provider itself
        """
        self.project_root = Path(project_root).resolve()
        self.exclude_patterns = list(exclude_patterns)
        self.search_excludes = tuple(search_excludes)

    def set_exclude_patterns(self, patterns: Iterable[str]):
        self.exclude_patterns = list(patterns)

    # ------------------------------------------------------------------
    # Local phase
    # ------------------------------------------------------------------

    def find_local_references(self, symbol: Symbol, file_text: str) -> List[SourceRange]:
        """Uses of ``symbol`` inside its own file, outside its declaration."""
        if symbol.is_member:
            return self._member_references(symbol, file_text)
        return self._export_references(symbol, file_text)

    def _member_references(self, symbol: Symbol, file_text: str) -> List[SourceRange]:
        hits = {}
        for pattern in member_access_patterns(symbol.name):
            for match in pattern.finditer(file_text):
                start, end = match.span('name')
                if symbol.range.contains(start, end) or start in hits:
                    continue
                hits[start] = end
        return [SourceRange.from_offsets(file_text, start, hits[start]) for start in sorted(hits)]

    def _export_references(self, symbol: Symbol, file_text: str) -> List[SourceRange]:
        references = []
        for match in export_usage_pattern(symbol.name).finditer(file_text):
            start, end = match.span()
            if symbol.range.contains(start, end):
                continue
            line_start = file_text.rfind('\n', 0, start) + 1
            line_end = file_text.find('\n', start)
            line = file_text[line_start:line_end if line_end != -1 else len(file_text)]
            # re-exports and imports of the same name are not uses
            if IMPORT_LINE.match(line):
                continue
            references.append(SourceRange.from_offsets(file_text, start, end))
        return references

    # ------------------------------------------------------------------
    # External phase
    # ------------------------------------------------------------------

    @staticmethod
    def has_external_reach(symbol: Symbol) -> bool:
        """Whether another file could reference ``symbol``.

        Protected members are treated like private ones: subclasses in other
        files are not searched (inheritance-aware lookup is not implemented).
        """
        return symbol.access_level is AccessLevel.PUBLIC

    def build_query(self, symbol: Symbol) -> SearchQuery:
        if symbol.is_member:
            return SearchQuery(
                pattern=f'.{symbol.name}',
                cwd=str(self.project_root),
                literal=True,
                includes=SOURCE_GLOBS,
                excludes=self.search_excludes,
            )
        return SearchQuery(
            pattern=import_search_pattern(symbol.name),
            cwd=str(self.project_root),
            literal=False,
            multiline=True,
            includes=SOURCE_GLOBS,
            excludes=self.search_excludes,
        )

    async def find_external_references(self, symbol: Symbol,
                                       search_provider: SearchProvider) -> SearchResult:
        """Files other than the declaring one that reference ``symbol``."""
        result = await search_provider.search(self.build_query(symbol))
        if result.degraded:
            logger.warning("External search for %s degraded: %s", symbol.qualified_name, result.error)
            return result

        own_path = Path(symbol.file_path).resolve()
        files = []
        for file_path in result.files:
            path = Path(file_path).resolve()
            if path == own_path or not is_supported_file(path):
                continue
            if is_excluded(path, self.exclude_patterns, self.project_root):
                continue
            files.append(str(path))
        return SearchResult(files=files)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(self, symbol: Symbol, file_text: str,
                      search_provider: SearchProvider) -> UsageVerdict:
        """Resolve one symbol; search failures degrade the verdict instead of raising."""
        states = [ResolutionState.UNRESOLVED]

        local = self.find_local_references(symbol, file_text)
        states.append(ResolutionState.LOCAL_SEARCH_DONE)

        if local or not self.has_external_reach(symbol):
            states.extend([ResolutionState.EXTERNAL_SEARCH_SKIPPED, ResolutionState.VERDICTED])
            return UsageVerdict(
                symbol=symbol,
                local_references=local,
                is_used=bool(local),
                states=tuple(states),
            )

        external = await self.find_external_references(symbol, search_provider)
        states.extend([ResolutionState.EXTERNAL_SEARCH_DONE, ResolutionState.VERDICTED])

        if external.files:
            return UsageVerdict(
                symbol=symbol,
                external_references=external.files,
                is_used=True,
                external_short_circuit=True,
                states=tuple(states),
            )

        return UsageVerdict(
            symbol=symbol,
            is_used=False,
            degraded=external.degraded,
            states=tuple(states),
        )

    async def resolve_batch(self, symbols: Iterable[Symbol], file_text: str,
                            search_provider: SearchProvider) -> List[UsageVerdict]:
        """Resolve symbols one after another, preserving input order."""
        verdicts = []
        for symbol in symbols:
            verdicts.append(await self.resolve(symbol, file_text, search_provider))
        return verdicts
