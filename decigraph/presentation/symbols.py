"""
Symbols — Visual vocabulary for node kinds and statuses

Progressive enhancement: Unicode when supported, ASCII fallback.
Configurable via display.symbols setting.

Also provides safe output utilities:
- safe_print(): Encoding-safe printing for user-entered titles
- truncate(): Consistent shortening of long text
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional


# Common Unicode to ASCII replacements for display
UNICODE_TO_ASCII = {
    '→': '->',
    '←': '<-',
    '…': '...',
    '–': '-',
    '—': '--',
    '“': '"',
    '”': '"',
    '‘': "'",
    '’': "'",
    '•': '*',
    '×': 'x',
}


def safe_print(text: str, end: str = '\n', file=None) -> None:
    """
    Print with graceful encoding fallback.

    Handles UnicodeEncodeError by replacing unencodable characters
    with ASCII equivalents or '?' as last resort.

    Args:
        text: Text to print (may contain any Unicode)
        end: String appended after text (default: newline)
        file: Output stream (default: sys.stdout)
    """
    if file is None:
        file = sys.stdout

    try:
        print(text, end=end, file=file)
    except UnicodeEncodeError:
        safe_text = text
        for unicode_char, ascii_equiv in UNICODE_TO_ASCII.items():
            safe_text = safe_text.replace(unicode_char, ascii_equiv)

        try:
            print(safe_text, end=end, file=file)
        except UnicodeEncodeError:
            encoding = getattr(file, 'encoding', 'utf-8') or 'utf-8'
            encoded = safe_text.encode(encoding, errors='replace')
            print(encoded.decode(encoding), end=end, file=file)


# =============================================================================
# Display Truncation Constants
# =============================================================================

TITLE_LENGTH = 80         # Titles in listings
DETAIL_LENGTH = 200       # Descriptions and rationales
ID_DISPLAY_LENGTH = 8     # change_id prefixes (e.g., "3f2a9c1b")
DATE_DISPLAY_LENGTH = 10  # Date displays (e.g., "2025-01-15")


def truncate(text: str, length: int = TITLE_LENGTH, full: bool = False) -> str:
    """
    Truncate text with ellipsis, respecting full mode.

    Examples:
        truncate("Short", 50)                 -> "Short" (no change)
        truncate("Any length", 50, full=True) -> "Any length" (no truncation)
    """
    if not text:
        return ""
    if full or len(text) <= length:
        return text
    if length <= 3:
        return text[:length]
    return text[:length - 3] + "..."


@dataclass(frozen=True)
class SymbolSet:
    """Complete set of symbols for node kinds and states."""
    # Node kinds
    goal: str
    decision: str
    option: str
    observation: str
    action: str
    outcome: str
    revisit: str

    # Statuses
    active: str
    rejected: str
    completed: str
    superseded: str

    # Markers
    check_pass: str
    check_warn: str
    check_fail: str
    pending: str
    arrow: str
    bullet: str
    tree_branch: str
    tree_end: str


UNICODE = SymbolSet(
    goal='◎',
    decision='◇',
    option='○',
    observation='◈',
    action='▶',
    outcome='●',
    revisit='↻',
    active='·',
    rejected='✗',
    completed='✓',
    superseded='⊘',
    check_pass='✓',
    check_warn='⚠',
    check_fail='❌',
    pending='…',
    arrow='→',
    bullet='•',
    tree_branch='├─',
    tree_end='└─',
)

ASCII = SymbolSet(
    goal='[G]',
    decision='[D]',
    option='[O]',
    observation='[B]',
    action='[A]',
    outcome='[R]',
    revisit='[V]',
    active='.',
    rejected='x',
    completed='+',
    superseded='-',
    check_pass='[OK]',
    check_warn='[!]',
    check_fail='[ERR]',
    pending='...',
    arrow='->',
    bullet='*',
    tree_branch='+-',
    tree_end='+-',
)


def supports_unicode() -> bool:
    """
    Check if environment likely supports Unicode output.

    Conservative: defaults to ASCII if uncertain.
    """
    if os.environ.get('DECIGRAPH_ASCII_ONLY', '').lower() in ('1', 'true', 'yes'):
        return False

    stdout_encoding = getattr(sys.stdout, 'encoding', None) or ''
    encoding_lower = stdout_encoding.lower().replace('-', '').replace('_', '')
    if encoding_lower.startswith('cp') or encoding_lower in ('ascii', 'latin1', 'iso88591'):
        return False
    if 'utf' in encoding_lower:
        return True

    lang = os.environ.get('LANG', '').lower()
    lc_all = os.environ.get('LC_ALL', '').lower()
    return 'utf-8' in lang or 'utf8' in lang or 'utf-8' in lc_all or 'utf8' in lc_all


def get_symbols(preference: Optional[str] = None) -> SymbolSet:
    """
    Get appropriate symbol set based on preference or auto-detection.

    Args:
        preference: "unicode", "ascii", or "auto" (None = auto)
    """
    if preference == 'unicode':
        return UNICODE
    if preference == 'ascii':
        return ASCII
    return UNICODE if supports_unicode() else ASCII


def symbol_for_kind(symbols: SymbolSet, kind: str) -> str:
    return getattr(symbols, kind, symbols.bullet)


def symbol_for_status(symbols: SymbolSet, status: str) -> str:
    return getattr(symbols, status, symbols.active)
