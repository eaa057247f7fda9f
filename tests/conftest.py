"""Shared fixtures: a clean configuration environment and a recording search provider."""
import os
from pathlib import Path
from typing import Dict, Iterable, List

import pytest

from unused_exports import config as config_module
from unused_exports.analyzer.extractor import SymbolExtractor
from unused_exports.analyzer.search import SearchProvider, SearchQuery, SearchResult
from unused_exports.config import ENV_PREFIX, Config

FIXTURES_DIR = Path(__file__).parent / 'fixtures'
SAMPLE_PROJECT = FIXTURES_DIR / 'sample_project'


class RecordingSearchProvider(SearchProvider):
    """Returns canned files and remembers every query it was asked."""

    name = 'recording'

    def __init__(self, files: Iterable[str] = (), fail: bool = False):
        self.files = [str(f) for f in files]
        self.fail = fail
        self.queries: List[SearchQuery] = []

    async def search(self, query: SearchQuery) -> SearchResult:
        self.queries.append(query)
        if self.fail:
            return SearchResult.failed("ripgrep exited with status 2: boom")
        return SearchResult(files=list(self.files))


@pytest.fixture
def clean_env(monkeypatch):
    """Remove UNUSED_EXPORTS_* variables before and after the test.

    python-dotenv writes straight into os.environ, so anything a .env file
    set during the test is removed on teardown as well.
    """
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.setattr(config_module, '_config', None)
    yield
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            del os.environ[key]


@pytest.fixture
def config(clean_env, tmp_path):
    """Config with defaults only (no .env file on disk)."""
    return Config(env_path=tmp_path / '.env')


@pytest.fixture
def extractor():
    return SymbolExtractor()


@pytest.fixture
def write_project(tmp_path):
    """Write ``{relative path: text}`` under tmp_path and return the root."""
    def _write(files: Dict[str, str]) -> Path:
        for rel_path, text in files.items():
            path = tmp_path / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding='utf-8')
        return tmp_path.resolve()
    return _write
