"""Tests for path matching and source discovery."""
import pytest

from unused_exports.utils.file_utils import (
    discover_source_files,
    file_name_matches,
    is_excluded,
    matches_glob,
    to_relative_path,
)


class TestGlobs:

    @pytest.mark.parametrize('rel_path, pattern, expected', [
        ('node_modules/lib/a.ts', '**/node_modules/**', True),
        ('packages/web/node_modules/lib/a.ts', '**/node_modules/**', True),
        ('src/types.d.ts', '**/*.d.ts', True),
        ('types.d.ts', '**/*.d.ts', True),
        ('src/index.ts', '**/index.ts', True),
        ('src/reindex.ts', '**/index.ts', False),
        ('src/app.ts', '**/*.d.ts', False),
    ])
    def test_matches_glob(self, rel_path, pattern, expected):
        assert matches_glob(rel_path, pattern) is expected

    def test_is_excluded_uses_root_relative_path(self, tmp_path):
        assert is_excluded(tmp_path / 'src' / 'index.ts', ['**/index.ts'], tmp_path)
        assert not is_excluded(tmp_path / 'src' / 'app.ts', ['**/index.ts'], tmp_path)

    def test_to_relative_path(self, tmp_path):
        assert to_relative_path(tmp_path / 'src' / 'a.ts', tmp_path) == 'src/a.ts'

    def test_file_name_pattern_only_star_is_special(self):
        assert file_name_matches('/p/src/user.entity.ts', '*.entity.ts')
        assert not file_name_matches('/p/src/user_entity_ts', '*.entity.ts')
        assert file_name_matches('/p/src/[id].page.ts', '[id].*.ts')
        assert not file_name_matches('/p/src/i.page.ts', '[id].*.ts')


class TestDiscovery:

    def test_finds_supported_files_in_order(self, write_project):
        root = write_project({
            'src/b.ts': '',
            'src/a.tsx': '',
            'lib/util.mjs': '',
            'README.md': '',
            'node_modules/pkg/index.js': '',
            'dist/bundle.js': '',
        })

        found = discover_source_files(root)

        assert [p.relative_to(root).as_posix() for p in found] == [
            'lib/util.mjs', 'src/a.tsx', 'src/b.ts',
        ]

    def test_exclude_patterns_and_limit(self, write_project):
        root = write_project({
            'a.ts': '',
            'b.d.ts': '',
            'c.ts': '',
            'd.ts': '',
        })

        found = discover_source_files(root, ['**/*.d.ts'], limit=2)

        assert [p.name for p in found] == ['a.ts', 'c.ts']
