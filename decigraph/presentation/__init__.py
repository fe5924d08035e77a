"""
Presentation — Display layer for the decigraph CLI

Contains display and formatting:
- Symbols: Visual vocabulary (unicode/ascii), safe printing
- Formatters: Node, edge, pulse and pivot-chain rendering
"""

from .symbols import (
    SymbolSet, get_symbols, UNICODE, ASCII,
    safe_print, truncate,
)
from .formatters import (
    format_node_line, format_edge_line, format_node_detail,
    format_pulse, format_pivot_chain, format_diagnostics,
)

__all__ = [
    # Symbols
    "SymbolSet", "get_symbols", "UNICODE", "ASCII",
    "safe_print", "truncate",
    # Formatters
    "format_node_line", "format_edge_line", "format_node_detail",
    "format_pulse", "format_pivot_chain", "format_diagnostics",
]
