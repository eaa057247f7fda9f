"""Tree-sitter parser for TypeScript and JavaScript sources."""
from pathlib import Path
from typing import Optional
from tree_sitter import Language, Parser, Tree
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript


class LanguageParser:
    """Multi-language parser using tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = {
        '.ts': 'typescript',
        '.mts': 'typescript',
        '.cts': 'typescript',
        '.tsx': 'tsx',
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
    }

    def __init__(self, language: str):
        """Initialize parser for given language (typescript, tsx, javascript).

        Args:
            language: One of 'typescript', 'tsx', 'javascript'

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        """Build a Parser bound to the grammar for ``self.language``.

        Raises:
            ValueError: If language is not supported
        """
        if self.language == 'typescript':
            lang = Language(tstypescript.language_typescript())
        elif self.language == 'tsx':
            lang = Language(tstypescript.language_tsx())
        elif self.language == 'javascript':
            lang = Language(tsjavascript.language())
        else:
            raise ValueError(f"Unsupported language: {self.language}")

        return Parser(lang)

    def parse_source(self, source_code: bytes) -> Tree:
        """Parse in-memory source bytes.

        Tree-sitter is error tolerant: malformed input yields a tree whose
        root reports ``has_error`` instead of raising.
        """
        return self.parser.parse(source_code)


def language_for_path(file_path: str | Path) -> Optional[str]:
    """Return the grammar name used for ``file_path``, or None."""
    return LanguageParser.SUPPORTED_LANGUAGES.get(Path(file_path).suffix.lower())


def is_supported_file(file_path: str | Path) -> bool:
    """Check whether the file is a TypeScript/JavaScript source we analyze."""
    return language_for_path(file_path) is not None
