"""Per-file and workspace analysis: extract, filter, resolve, cache.

The pipeline owns one extractor, exclusion filter, resolver, cache and
search provider. Hosts (the CLI, a file watcher) call ``analyze_file`` on
open/save, ``on_file_saved`` on change events and ``apply_config`` when
configuration changes.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from ..config import Config
from ..utils.file_utils import discover_source_files, file_name_matches, is_excluded, read_text
from .cache import AnalysisCache
from .exclusion import ExclusionFilter
from .extractor import SourceRange, Symbol, SymbolExtractor
from .parser import is_supported_file
from .resolver import UsageResolver, UsageVerdict
from .search import SearchProvider, select_search_provider

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Path], None]


@dataclass(frozen=True)
class UnusedItem:
    """One unused export or member, ready for presentation."""
    type: str  # 'export' or 'member'
    name: str
    range: SourceRange
    detail: str

    @classmethod
    def from_symbol(cls, symbol: Symbol) -> 'UnusedItem':
        if symbol.is_member:
            detail = (f"Unused {symbol.access_level.value} {symbol.kind.value} "
                      f"in {symbol.container_name}")
            return cls('member', symbol.name, symbol.range, detail)
        return cls('export', symbol.name, symbol.range, f"Unused {symbol.kind.value}")


@dataclass
class FileReport:
    file_path: str
    items: List[UnusedItem] = field(default_factory=list)
    from_cache: bool = False
    degraded: bool = False  # some external search failed; "unused" may be wrong
    diagnostics: List[str] = field(default_factory=list)
    skipped_reason: Optional[str] = None

    @property
    def unused_exports(self) -> List[UnusedItem]:
        return [item for item in self.items if item.type == 'export']

    @property
    def unused_members(self) -> List[UnusedItem]:
        return [item for item in self.items if item.type == 'member']


@dataclass
class WorkspaceReport:
    total_files: int = 0
    reports: List[FileReport] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def analyzed_files(self) -> int:
        return sum(1 for report in self.reports if report.skipped_reason is None)

    @property
    def unused_exports_count(self) -> int:
        return sum(len(report.unused_exports) for report in self.reports)

    @property
    def unused_members_count(self) -> int:
        return sum(len(report.unused_members) for report in self.reports)


class CancellationToken:
    """Cooperative cancellation flag checked between files."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AnalysisPipeline:
    """Coordinates extraction, exclusion, usage resolution and caching."""

    def __init__(self, config: Config, project_root: str | Path,
                 search_provider: Optional[SearchProvider] = None,
                 cache: Optional[AnalysisCache] = None):
        """
        Args:
            config: Settings source; read again on every analysis
            project_root: Root searched for cross-file references
            search_provider: Provider for the external phase (default: by availability)
            cache: Shared cache instance (default: a fresh one)
        """
        self.config = config
        self.project_root = Path(project_root).resolve()
        if search_provider is None:
            search_provider = select_search_provider(config.search_provider, config.search_retries)
        self.search_provider = search_provider
        self.cache = cache if cache is not None else AnalysisCache(config.cache_max_age)
        self.extractor = SymbolExtractor()
        self.exclusion_filter = ExclusionFilter(config.exclude_decorators)
        self.resolver = UsageResolver(self.project_root, config.exclude_patterns)

    # ------------------------------------------------------------------
    # Configuration and change events
    # ------------------------------------------------------------------

    def apply_config(self, config: Config):
        """Adopt new settings; cached verdicts computed under the old ones are dropped."""
        self.config = config
        self.exclusion_filter.set_exclusion_markers(config.exclude_decorators)
        self.resolver.set_exclude_patterns(config.exclude_patterns)
        self.cache.max_age_seconds = config.cache_max_age
        self.cache.clear()
        logger.debug("Configuration applied; cache cleared")

    def on_file_saved(self, file_path: str | Path) -> List[str]:
        """Invalidate the saved file and every entry that relied on it.

        Returns:
            Paths of the dependent entries that were evicted
        """
        self.cache.invalidate(file_path)
        return self.cache.invalidate_related(file_path)

    def is_excluded_from_member_analysis(self, file_path: str | Path) -> bool:
        return any(file_name_matches(file_path, pattern)
                   for pattern in self.config.exclude_member_patterns)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _candidates(self, file_path: Path, exports: List[Symbol],
                    members: List[Symbol]) -> List[Symbol]:
        if not self.config.include_default_exports:
            exports = [s for s in exports if not s.is_default]
        symbols = self.exclusion_filter.filter_analyzable(exports)

        if self.config.analyze_class_members and not self.is_excluded_from_member_analysis(file_path):
            levels = set(self.config.member_access_levels)
            symbols += [
                member for member in self.exclusion_filter.filter_analyzable(members)
                if member.access_level.value in levels
            ]
        return symbols

    async def analyze_file(self, file_path: str | Path, content: Optional[str] = None) -> FileReport:
        """Analyze one file, reusing the cached result while its content is unchanged.

        Args:
            file_path: File to analyze
            content: Current text (e.g. an unsaved buffer); read from disk when None

        Returns:
            FileReport with the unused items in document order, exports first

        Raises:
            OSError: If ``content`` is None and the file cannot be read
        """
        path = Path(file_path).resolve()
        report = FileReport(file_path=str(path))

        if not self.config.enabled:
            report.skipped_reason = 'disabled'
            return report
        if not is_supported_file(path):
            report.skipped_reason = 'unsupported file type'
            return report
        if is_excluded(path, self.config.exclude_patterns, self.project_root):
            report.skipped_reason = 'excluded'
            return report

        if content is None:
            content = read_text(path)

        if not self.cache.has_changed(path, content):
            entry = self.cache.get(path)
            if entry is not None:
                logger.debug("Cache hit: %s", path)
                report.items = [UnusedItem.from_symbol(v.symbol) for v in entry.unused_verdicts()]
                report.from_cache = True
                return report

        extraction = self.extractor.extract_file(content, path)
        report.diagnostics = list(extraction.diagnostics)

        symbols = self._candidates(path, extraction.exports, extraction.members)
        verdicts: List[UsageVerdict] = await self.resolver.resolve_batch(
            symbols, content, self.search_provider
        )

        report.items = [UnusedItem.from_symbol(v.symbol) for v in verdicts if not v.is_used]
        report.degraded = any(v.degraded for v in verdicts)

        if report.degraded:
            logger.warning("Not caching %s: external search degraded", path)
        else:
            self.cache.put(path, extraction.symbols, verdicts, content)

        logger.debug("Analyzed %s: %d unused of %d checked", path, len(report.items), len(symbols))
        return report

    async def analyze_workspace(self, token: Optional[CancellationToken] = None,
                                progress: Optional[ProgressCallback] = None) -> WorkspaceReport:
        """Analyze every supported file under the project root, one at a time.

        Args:
            token: Checked before each file; a cancelled token stops the run
            progress: Called as ``progress(done, total, path)`` after each file

        Returns:
            WorkspaceReport; files that could not be read are listed in
            ``failed_files`` instead of aborting the run
        """
        files = discover_source_files(
            self.project_root,
            self.config.exclude_patterns,
            limit=self.config.max_workspace_files,
        )
        workspace = WorkspaceReport(total_files=len(files))

        for index, path in enumerate(files):
            if token is not None and token.cancelled:
                logger.info("Workspace analysis cancelled after %d of %d files", index, len(files))
                workspace.cancelled = True
                break

            try:
                workspace.reports.append(await self.analyze_file(path))
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                workspace.failed_files.append(str(path))

            if progress is not None:
                progress(index + 1, len(files), path)

        return workspace
