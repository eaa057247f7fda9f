"""Configuration management for unused-exports.

Loads environment variables (optionally from a .env file) and provides
centralized config access. Values are read at access time, so a call to
``reload()`` after an external change is picked up by the next analysis.
"""
import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .analyzer.exclusion import DEFAULT_EXCLUDE_DECORATORS

__version__ = "0.3.0"

ENV_PREFIX = "UNUSED_EXPORTS_"

ANALYSIS_STRATEGIES = ('fast', 'accurate', 'hybrid')

SEARCH_PROVIDERS = ('ripgrep', 'scan')

DEFAULT_EXCLUDE_PATTERNS = [
    '**/node_modules/**',
    '**/*.d.ts',
    '**/index.ts',
    '**/index.tsx',
]

DEFAULT_EXCLUDE_MEMBER_PATTERNS = [
    '*.entity.ts',
    '*.dto.ts',
    '*.model.ts',
]

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: Optional[Path] = None):
        """Initialize config by loading the .env file.

        Args:
            env_path: .env file to load (default: .env in the working directory)
        """
        self.env_path = Path(env_path) if env_path else Path.cwd() / ".env"
        load_dotenv(self.env_path)

    def reload(self):
        """Re-read the .env file, letting its values override the process environment."""
        load_dotenv(self.env_path, override=True)

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    @staticmethod
    def _raw(name: str) -> Optional[str]:
        value = os.getenv(ENV_PREFIX + name)
        if value is None or not value.strip():
            return None
        return value.strip()

    def _bool(self, name: str, default: bool) -> bool:
        value = self._raw(name)
        if value is None:
            return default
        if value.lower() in _TRUE:
            return True
        if value.lower() in _FALSE:
            return False
        raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")

    def _float(self, name: str, default: float) -> float:
        value = self._raw(name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from None

    def _int(self, name: str, default: int) -> int:
        value = self._raw(name)
        if value is None:
            return default
        try:
            number = int(value)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None
        if number < 0:
            raise ValueError(f"{ENV_PREFIX}{name} must not be negative, got {number}")
        return number

    def _list(self, name: str, default: List[str]) -> List[str]:
        value = self._raw(name)
        if value is None:
            return list(default)
        return [item.strip() for item in value.split(',') if item.strip()]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._bool("ENABLED", True)

    @property
    def opacity(self) -> float:
        """Visual intensity used by hosts when dimming unused items (0.1 - 1.0).

        Raises:
            ValueError: If the configured value is out of range
        """
        opacity = self._float("OPACITY", 0.5)
        if not 0.1 <= opacity <= 1.0:
            raise ValueError(f"{ENV_PREFIX}OPACITY must be between 0.1 and 1.0, got {opacity}")
        return opacity

    @property
    def exclude_patterns(self) -> List[str]:
        """Globs (relative to the project root) of files never analyzed."""
        return self._list("EXCLUDE_PATTERNS", DEFAULT_EXCLUDE_PATTERNS)

    @property
    def include_default_exports(self) -> bool:
        return self._bool("INCLUDE_DEFAULT_EXPORTS", False)

    @property
    def debounce_ms(self) -> int:
        return self._int("DEBOUNCE_MS", 1000)

    @property
    def analysis_strategy(self) -> str:
        """fast / accurate / hybrid. Informational for now."""
        strategy = (self._raw("ANALYSIS_STRATEGY") or 'hybrid').lower()
        if strategy not in ANALYSIS_STRATEGIES:
            raise ValueError(
                f"{ENV_PREFIX}ANALYSIS_STRATEGY must be one of {', '.join(ANALYSIS_STRATEGIES)}, "
                f"got {strategy!r}"
            )
        return strategy

    @property
    def analyze_class_members(self) -> bool:
        return self._bool("ANALYZE_CLASS_MEMBERS", True)

    @property
    def exclude_decorators(self) -> List[str]:
        return self._list("EXCLUDE_DECORATORS", DEFAULT_EXCLUDE_DECORATORS)

    @property
    def exclude_member_patterns(self) -> List[str]:
        """File-name patterns (``*`` wildcard only) skipped by member analysis."""
        return self._list("EXCLUDE_MEMBER_PATTERNS", DEFAULT_EXCLUDE_MEMBER_PATTERNS)

    @property
    def member_access_levels(self) -> List[str]:
        """Access levels whose members are analyzed. Default: private only."""
        levels = [level.lower() for level in self._list("MEMBER_ACCESS_LEVELS", ['private'])]
        for level in levels:
            if level not in ('public', 'protected', 'private'):
                raise ValueError(f"{ENV_PREFIX}MEMBER_ACCESS_LEVELS has unknown level {level!r}")
        return levels

    @property
    def cache_max_age(self) -> float:
        """Seconds before a cache entry is treated as absent."""
        return self._float("CACHE_MAX_AGE", 300.0)

    @property
    def search_retries(self) -> int:
        return self._int("SEARCH_RETRIES", 0)

    @property
    def search_provider(self) -> Optional[str]:
        """'ripgrep', 'scan', or None to pick by availability."""
        provider = self._raw("SEARCH_PROVIDER")
        if provider is None:
            return None
        provider = provider.lower()
        if provider not in SEARCH_PROVIDERS:
            raise ValueError(
                f"{ENV_PREFIX}SEARCH_PROVIDER must be one of {', '.join(SEARCH_PROVIDERS)}, "
                f"got {provider!r}"
            )
        return provider

    @property
    def max_workspace_files(self) -> int:
        return self._int("MAX_WORKSPACE_FILES", 500)

    def as_dict(self) -> Dict[str, object]:
        """Effective settings, for display."""
        return {
            'enabled': self.enabled,
            'opacity': self.opacity,
            'exclude_patterns': self.exclude_patterns,
            'include_default_exports': self.include_default_exports,
            'debounce_ms': self.debounce_ms,
            'analysis_strategy': self.analysis_strategy,
            'analyze_class_members': self.analyze_class_members,
            'exclude_decorators': self.exclude_decorators,
            'exclude_member_patterns': self.exclude_member_patterns,
            'member_access_levels': self.member_access_levels,
            'cache_max_age': self.cache_max_age,
            'search_retries': self.search_retries,
            'search_provider': self.search_provider,
            'max_workspace_files': self.max_workspace_files,
        }


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Apply an external configuration change to the singleton."""
    config = get_config()
    config.reload()
    return config
