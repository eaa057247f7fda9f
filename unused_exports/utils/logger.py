"""Terminal-safe logging setup with Unicode fallback.

Detects terminal encoding and provides ASCII alternatives for the few
Unicode glyphs the CLI prints, so output never crashes on terminals that
don't support UTF-8. ``configure_logging`` routes every module logger
under ``unused_exports`` to one rich handler.
"""
import locale
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = 'unused_exports'

# Unicode to ASCII glyph mapping for non-UTF-8 terminals
ICON_MAP = {
    '✓': '[OK]',      # check mark
    '✗': '[FAIL]',    # ballot x
    '⚠': '[WARN]',    # warning sign
    '→': '->',
    '←': '<-',
    '─': '-',
    '│': '|',
    '…': '...',
    '•': '*',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if getattr(sys.stdout, 'encoding', None):
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (AttributeError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str, force: bool = False) -> str:
    """Replace Unicode glyphs with ASCII equivalents if the terminal needs it.

    Args:
        text: Text potentially containing Unicode glyphs
        force: Sanitize even on a UTF-8 terminal

    Returns:
        str: Text safe for the current terminal
    """
    if not force and is_utf8_capable():
        return text

    for unicode_char, ascii_replacement in ICON_MAP.items():
        text = text.replace(unicode_char, ascii_replacement)
    return text


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> logging.Logger:
    """Install a RichHandler on the package logger.

    Calling it again replaces the previous handler instead of stacking a
    second one.

    Args:
        verbose: DEBUG level when True, WARNING otherwise
        console: Console the handler writes to (default: a stderr console)

    Returns:
        The configured package logger
    """
    if console is None:
        console = Console(stderr=True)

    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)

    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=verbose,
        markup=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter('%(message)s'))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return package_logger
