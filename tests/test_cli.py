"""CLI tests driven through typer's CliRunner."""
import json

import pytest
from typer.testing import CliRunner

from conftest import SAMPLE_PROJECT
from unused_exports.main import app

runner = CliRunner()


@pytest.fixture
def cli_env(clean_env, monkeypatch):
    """Deterministic search: always the in-process scan provider."""
    monkeypatch.setenv('UNUSED_EXPORTS_SEARCH_PROVIDER', 'scan')


class TestAnalyzeCommand:

    def test_json_output(self, cli_env):
        result = runner.invoke(app, [
            'analyze', str(SAMPLE_PROJECT / 'src' / 'math.ts'),
            '--root', str(SAMPLE_PROJECT), '--json',
        ])

        assert result.exit_code == 0, result.output
        [report] = json.loads(result.stdout)
        assert report['file'] == 'src/math.ts'
        assert report['items'] == [{
            'type': 'export',
            'name': 'subtract',
            'detail': 'Unused function',
            'line': 5,
            'column': 1,
        }]

    def test_table_output(self, cli_env):
        result = runner.invoke(app, [
            'analyze', str(SAMPLE_PROJECT / 'src' / 'app.ts'), '--root', str(SAMPLE_PROJECT),
        ])

        assert result.exit_code == 0, result.output
        assert 'Calculator' in result.output
        assert 'unusedCache' in result.output

    def test_fail_on_unused(self, cli_env):
        result = runner.invoke(app, [
            'analyze', str(SAMPLE_PROJECT / 'src' / 'math.ts'),
            '--root', str(SAMPLE_PROJECT), '--fail-on-unused',
        ])

        assert result.exit_code == 1

    def test_clean_file_passes_fail_on_unused(self, cli_env):
        result = runner.invoke(app, [
            'analyze', str(SAMPLE_PROJECT / 'src' / 'main.ts'),
            '--root', str(SAMPLE_PROJECT), '--fail-on-unused',
        ])

        assert result.exit_code == 0, result.output
        assert 'No unused exports or members found!' in result.output

    def test_missing_file(self, cli_env, tmp_path):
        result = runner.invoke(app, ['analyze', str(tmp_path / 'gone.ts'), '--root', str(tmp_path)])

        assert result.exit_code == 1
        assert 'Cannot read' in result.output


class TestWorkspaceCommand:

    def test_summary(self, cli_env):
        result = runner.invoke(app, ['workspace', str(SAMPLE_PROJECT)])

        assert result.exit_code == 0, result.output
        assert 'Files analyzed: 4/4' in result.output
        assert 'Unused exports: 2' in result.output
        assert 'Unused members: 1' in result.output

    def test_json(self, cli_env):
        result = runner.invoke(app, ['workspace', str(SAMPLE_PROJECT), '--json'])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload['total_files'] == 4
        assert payload['cancelled'] is False
        assert sorted(r['file'] for r in payload['reports']) == ['src/app.ts', 'src/math.ts']

    def test_missing_directory(self, cli_env, tmp_path):
        result = runner.invoke(app, ['workspace', str(tmp_path / 'nope')])

        assert result.exit_code == 1
        assert 'does not exist' in result.output

    def test_invalid_configuration(self, cli_env, monkeypatch):
        monkeypatch.setenv('UNUSED_EXPORTS_CACHE_MAX_AGE', 'forever')

        result = runner.invoke(app, ['workspace', str(SAMPLE_PROJECT)])

        assert result.exit_code == 1
        assert 'UNUSED_EXPORTS_CACHE_MAX_AGE' in result.output


class TestWatchCommand:

    def test_invalid_debounce_reports_configuration_error(self, cli_env, monkeypatch):
        monkeypatch.setenv('UNUSED_EXPORTS_DEBOUNCE_MS', 'soon')

        result = runner.invoke(app, ['watch', str(SAMPLE_PROJECT)])

        assert result.exit_code == 1
        assert 'Configuration error' in result.output
        assert 'UNUSED_EXPORTS_DEBOUNCE_MS' in result.output

    def test_unknown_search_provider_reports_configuration_error(self, cli_env, monkeypatch):
        monkeypatch.setenv('UNUSED_EXPORTS_SEARCH_PROVIDER', 'grep')

        result = runner.invoke(app, ['watch', str(SAMPLE_PROJECT)])

        assert result.exit_code == 1
        assert 'UNUSED_EXPORTS_SEARCH_PROVIDER' in result.output


class TestConfigCommand:

    def test_prints_settings(self, cli_env):
        result = runner.invoke(app, ['config'])

        assert result.exit_code == 0, result.output
        assert 'debounce_ms' in result.output
        assert 'scan' in result.output

    def test_reports_invalid_value(self, cli_env, monkeypatch):
        monkeypatch.setenv('UNUSED_EXPORTS_OPACITY', '3')

        result = runner.invoke(app, ['config'])

        assert result.exit_code == 1
        assert 'UNUSED_EXPORTS_OPACITY' in result.output


def test_version(cli_env):
    result = runner.invoke(app, ['version'])

    assert result.exit_code == 0
    assert 'unused-exports' in result.output
