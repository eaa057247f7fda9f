"""Tests for two-phase usage resolution."""
import asyncio
import re

import pytest

from conftest import RecordingSearchProvider
from unused_exports.analyzer.resolver import (
    ResolutionState,
    UsageResolver,
    import_search_pattern,
)


def symbol_named(extractor, text, name, file_path):
    return next(s for s in extractor.extract(text, file_path) if s.name == name)


@pytest.fixture
def resolver(tmp_path):
    return UsageResolver(tmp_path)


class TestLocalPhase:

    def test_private_property_used_once(self, extractor, resolver, tmp_path):
        text = (
            "class Counter {\n"
            "  private count = 0;\n"
            "  increment() { this.count++; }\n"
            "}\n"
        )
        symbol = symbol_named(extractor, text, 'count', str(tmp_path / 'counter.ts'))
        provider = RecordingSearchProvider()

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert verdict.is_used
        assert len(verdict.local_references) == 1
        assert text[verdict.local_references[0].start:verdict.local_references[0].end] == 'count'
        assert provider.queries == []

    def test_private_property_never_used(self, extractor, resolver, tmp_path):
        text = "class Counter {\n  private count = 0;\n}\n"
        symbol = symbol_named(extractor, text, 'count', str(tmp_path / 'counter.ts'))
        provider = RecordingSearchProvider(files=[tmp_path / 'other.ts'])

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert not verdict.is_used
        assert verdict.local_references == []
        # private members have no external reach
        assert provider.queries == []
        assert verdict.states == (
            ResolutionState.UNRESOLVED,
            ResolutionState.LOCAL_SEARCH_DONE,
            ResolutionState.EXTERNAL_SEARCH_SKIPPED,
            ResolutionState.VERDICTED,
        )

    def test_call_and_access_forms_count_once(self, extractor, resolver, tmp_path):
        text = (
            "class Repo {\n"
            "  private save() {}\n"
            "  run() { this.save(); }\n"
            "}\n"
        )
        symbol = symbol_named(extractor, text, 'save', str(tmp_path / 'repo.ts'))

        verdict = asyncio.run(resolver.resolve(symbol, text, RecordingSearchProvider()))

        assert len(verdict.local_references) == 1

    def test_assignment_form(self, extractor, resolver, tmp_path):
        text = (
            "class Flags {\n"
            "  private ready = false;\n"
            "  start() { this.ready = true; }\n"
            "}\n"
        )
        symbol = symbol_named(extractor, text, 'ready', str(tmp_path / 'flags.ts'))

        verdict = asyncio.run(resolver.resolve(symbol, text, RecordingSearchProvider()))

        assert verdict.is_used
        assert verdict.local_references[0].start_line == 2

    def test_longer_member_name_is_not_a_use(self, extractor, resolver, tmp_path):
        text = (
            "class Store {\n"
            "  private item = 1;\n"
            "  private items = [];\n"
            "  all() { return this.items; }\n"
            "}\n"
        )
        symbol = symbol_named(extractor, text, 'item', str(tmp_path / 'store.ts'))

        verdict = asyncio.run(resolver.resolve(symbol, text, RecordingSearchProvider()))

        assert not verdict.is_used

    def test_export_used_in_own_file_skips_external_search(self, extractor, resolver, tmp_path):
        text = "export function helper() {}\nhelper();\n"
        symbol = symbol_named(extractor, text, 'helper', str(tmp_path / 'a.ts'))
        provider = RecordingSearchProvider()

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert verdict.is_used
        assert len(verdict.local_references) == 1
        assert provider.queries == []
        assert verdict.state is ResolutionState.VERDICTED
        assert ResolutionState.EXTERNAL_SEARCH_SKIPPED in verdict.states

    def test_import_lines_are_not_uses(self, extractor, resolver, tmp_path):
        text = "export const shared = 1;\nimport { shared as alias } from './other';\n"
        symbol = symbol_named(extractor, text, 'shared', str(tmp_path / 'a.ts'))

        assert resolver.find_local_references(symbol, text) == []

    def test_word_boundaries(self, extractor, resolver, tmp_path):
        text = "export const item = 1;\nconst items = [];\nconst $item = 2;\n"
        symbol = symbol_named(extractor, text, 'item', str(tmp_path / 'a.ts'))

        assert resolver.find_local_references(symbol, text) == []


class TestExternalPhase:

    def test_unreferenced_export_is_unused(self, extractor, resolver, tmp_path):
        text = "export function helper() {}\n"
        symbol = symbol_named(extractor, text, 'helper', str(tmp_path / 'a.ts'))
        provider = RecordingSearchProvider()

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert not verdict.is_used
        assert not verdict.degraded
        assert len(provider.queries) == 1
        query = provider.queries[0]
        assert not query.literal
        assert re.search(query.pattern, "import { helper } from './a';")
        assert verdict.state is ResolutionState.VERDICTED
        assert ResolutionState.EXTERNAL_SEARCH_DONE in verdict.states

    def test_external_hit_supersedes_local_detail(self, extractor, resolver, tmp_path):
        text = "export function helper() {}\n"
        own = tmp_path / 'a.ts'
        consumer = tmp_path / 'b.ts'
        symbol = symbol_named(extractor, text, 'helper', str(own))
        provider = RecordingSearchProvider(files=[own, consumer])

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert verdict.is_used
        assert verdict.external_short_circuit
        assert verdict.external_references == [str(consumer.resolve())]
        assert verdict.local_references == []
        assert verdict.referencing_locations == [str(consumer.resolve())]

    def test_public_member_searches_literal_property_access(self, extractor, resolver, tmp_path):
        text = "export class Widget {\n  render() {}\n}\n"
        symbol = symbol_named(extractor, text, 'render', str(tmp_path / 'widget.ts'))
        provider = RecordingSearchProvider(files=[tmp_path / 'page.tsx'])

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert provider.queries[0].literal
        assert provider.queries[0].pattern == '.render'
        assert verdict.is_used

    def test_protected_member_stays_local(self, extractor, resolver, tmp_path):
        text = "export class Base {\n  protected hook() {}\n}\n"
        symbol = symbol_named(extractor, text, 'hook', str(tmp_path / 'base.ts'))
        provider = RecordingSearchProvider(files=[tmp_path / 'child.ts'])

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert not verdict.is_used
        assert provider.queries == []

    def test_excluded_and_unsupported_files_are_not_evidence(self, extractor, tmp_path):
        resolver = UsageResolver(tmp_path, exclude_patterns=['**/*.spec.ts'])
        text = "export function helper() {}\n"
        symbol = symbol_named(extractor, text, 'helper', str(tmp_path / 'src' / 'a.ts'))
        provider = RecordingSearchProvider(files=[
            tmp_path / 'src' / 'a.spec.ts',
            tmp_path / 'docs' / 'notes.md',
        ])

        verdict = asyncio.run(resolver.resolve(symbol, text, provider))

        assert not verdict.is_used
        assert verdict.external_references == []

    def test_search_failure_degrades_instead_of_raising(self, extractor, resolver, tmp_path):
        text = "export function helper() {}\n"
        symbol = symbol_named(extractor, text, 'helper', str(tmp_path / 'a.ts'))

        verdict = asyncio.run(resolver.resolve(symbol, text, RecordingSearchProvider(fail=True)))

        assert not verdict.is_used
        assert verdict.degraded

    def test_batch_preserves_extraction_order(self, extractor, resolver, tmp_path):
        text = "export const a = 1;\nexport const b = a;\nexport const c = 3;\n"
        symbols = extractor.extract(text, str(tmp_path / 'abc.ts'))

        verdicts = asyncio.run(resolver.resolve_batch(symbols, text, RecordingSearchProvider()))

        assert [(v.symbol.name, v.is_used) for v in verdicts] == [
            ('a', True), ('b', False), ('c', False),
        ]


class TestImportSearchPattern:

    @pytest.mark.parametrize('source', [
        "import { helper } from './a';",
        "import { other, helper as h } from './a';",
        "import type { helper } from './a';",
        "import helper from './a';",
        "import Default, { helper } from './a';",
        "import {\n  other,\n  helper,\n} from './a';",
        "import * as utils from './a';\nutils.helper();",
    ])
    def test_matches_import_forms(self, source):
        assert re.search(import_search_pattern('helper'), source)

    @pytest.mark.parametrize('source', [
        "import { helperFn } from './a';",
        "const helper = 1;",
        "export { helper } from './a';",
        "import * as utils from './a';\nutils.helperFn();",
        "import * as utils from './a';\nhelper();",
    ])
    def test_ignores_non_imports(self, source):
        assert not re.search(import_search_pattern('helper'), source)
