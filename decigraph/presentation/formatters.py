"""
Formatters — Data-to-string transformations for consistent output

Centralized formatting for CLI output:
- Node and edge one-liners (dual display: #local id + change_id prefix + WHAT)
- Node detail blocks
- Pulse report and pivot chains
- Diagnostics

Dependency direction: commands → presentation → core
Commands import formatters; formatters import core types.
"""

from typing import List, TYPE_CHECKING

from .symbols import (
    SymbolSet, symbol_for_kind, symbol_for_status, truncate,
    TITLE_LENGTH, DETAIL_LENGTH, ID_DISPLAY_LENGTH, DATE_DISPLAY_LENGTH,
)

if TYPE_CHECKING:
    from ..core.errors import Diagnostic
    from ..core.graph import GraphStore, Node, Edge
    from ..core.queries import PulseReport, PivotChain


def short_id(change_id: str) -> str:
    return change_id[:ID_DISPLAY_LENGTH]


def format_date(timestamp: str) -> str:
    """Date part of a logical timestamp."""
    return (timestamp or "")[:DATE_DISPLAY_LENGTH]


def format_node_ref(node: 'Node') -> str:
    """Compact reference: #12 [3f2a9c1b]"""
    return f"#{node.local_id} [{short_id(node.change_id)}]"


def format_node_line(symbols: SymbolSet, node: 'Node', full: bool = False) -> str:
    """
    One-line node listing.

    Example: ◇ #3 [3f2a9c1b] Chose in-memory cache (active, 2025-01-15, alice)
    """
    kind_symbol = symbol_for_kind(symbols, node.kind.value)
    meta = [node.status.value, format_date(node.created_at), node.author]
    if node.confidence is not None:
        meta.append(f"{node.confidence}%")
    return f"{kind_symbol} {format_node_ref(node)} {truncate(node.title, TITLE_LENGTH, full)} ({', '.join(meta)})"


def format_edge_line(symbols: SymbolSet, edge: 'Edge', graph: 'GraphStore', full: bool = False) -> str:
    """
    One-line edge listing with endpoint titles when known.

    Example: #1 Cache strategy → [possible_approach] → #2 in-memory cache
    """
    def endpoint(change_id: str) -> str:
        node = graph.nodes.get(change_id)
        if node is None:
            return f"[{short_id(change_id)}] {symbols.pending}"
        return f"#{node.local_id} {truncate(node.title, 40, full)}"

    line = f"{endpoint(edge.from_id)} {symbols.arrow} [{edge.edge_type}] {symbols.arrow} {endpoint(edge.to_id)}"
    if edge.rationale:
        line += f"\n    {truncate(edge.rationale, DETAIL_LENGTH, full)}"
    return line


def format_node_detail(symbols: SymbolSet, node: 'Node', graph: 'GraphStore') -> str:
    """Multi-line view of one node and its live neighbourhood."""
    lines = [
        f"{symbol_for_kind(symbols, node.kind.value)} {node.kind.value} {format_node_ref(node)}",
        f"  Title: {node.title}",
        f"  Status: {symbol_for_status(symbols, node.status.value)} {node.status.value}",
        f"  Created: {node.created_at} by {node.author}",
        f"  change_id: {node.change_id}",
    ]
    if node.confidence is not None:
        lines.append(f"  Confidence: {node.confidence}")
    if node.description:
        lines.append(f"  Description: {node.description}")
    if node.commit:
        lines.append(f"  Commit: {node.commit}")
    if node.files:
        lines.append(f"  Files: {', '.join(node.files)}")

    incoming = graph.get_incoming(node.change_id)
    outgoing = graph.get_outgoing(node.change_id)
    if incoming:
        lines.append("")
        lines.append("  From:")
        for edge, source in incoming:
            lines.append(f"    {format_node_ref(source)} {truncate(source.title, 50)} [{edge.edge_type}]")
    if outgoing:
        lines.append("")
        lines.append("  To:")
        for edge, target in outgoing:
            lines.append(f"    [{edge.edge_type}] {format_node_ref(target)} {truncate(target.title, 50)}")
    return "\n".join(lines)


def format_pulse(symbols: SymbolSet, report: 'PulseReport', summary_only: bool = False) -> str:
    lines = [
        f"Nodes: {report.node_count}  Edges: {report.edge_count}  Pending edges: {report.pending_edges}",
    ]
    if report.by_kind:
        lines.append("By kind: " + ", ".join(f"{k} {v}" for k, v in sorted(report.by_kind.items())))
    if report.by_status:
        lines.append("By status: " + ", ".join(f"{k} {v}" for k, v in sorted(report.by_status.items())))

    goals = len(report.covered_goals) + len(report.coverage_gaps)
    marker = symbols.check_pass if report.healthy else symbols.check_warn
    lines.append(f"{marker} Goals covered: {len(report.covered_goals)}/{goals}  Orphans: {len(report.orphans)}")
    if summary_only:
        return "\n".join(lines)

    if report.coverage_gaps:
        lines.append("")
        lines.append("Coverage gaps (active goals with no chosen or completed outcome):")
        for node in report.coverage_gaps:
            lines.append(f"  {symbols.bullet} {format_node_line(symbols, node)}")
    if report.orphans:
        lines.append("")
        lines.append("Orphans (no outgoing edge):")
        for node in report.orphans:
            lines.append(f"  {symbols.bullet} {format_node_line(symbols, node)}")
    return "\n".join(lines)


def format_pivot_chain(symbols: SymbolSet, chain: 'PivotChain') -> str:
    """
    Origin at the top, revisit in the middle, successors below.
    """
    lines = [f"{symbols.revisit} {format_node_ref(chain.revisit)} {chain.revisit.title}"]
    for node in reversed(chain.origin):
        lines.append(f"  {symbols.tree_branch} from {format_node_line(symbols, node)}")
    for index, node in enumerate(chain.successors):
        branch = symbols.tree_end if index == len(chain.successors) - 1 else symbols.tree_branch
        lines.append(f"  {branch} to {format_node_line(symbols, node)}")
    return "\n".join(lines)


def format_diagnostics(symbols: SymbolSet, diagnostics: List['Diagnostic'], limit: int = 10) -> str:
    lines = []
    for diagnostic in diagnostics[:limit]:
        marker = symbols.check_warn if diagnostic.is_warning else symbols.bullet
        lines.append(f"  {marker} {diagnostic.format()}")
    if len(diagnostics) > limit:
        lines.append(f"  ... and {len(diagnostics) - limit} more")
    return "\n".join(lines)
