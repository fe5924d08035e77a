"""
Node Resolver — Human-friendly node references for CLI commands

Enables users to reference nodes by:
- Full change_id (exact match)
- Local id ("12" or "#12")
- change_id prefix (4+ characters)
- Keywords in the title (case-insensitive)

Local ids are per-installation shorthand only; everything the resolver
returns is keyed by change_id, which is what gets written to the log.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Union
from enum import Enum

from rapidfuzz import fuzz

from .graph import GraphStore, Node
from .types import NodeKind, parse_kind


class ResolveStatus(Enum):
    """Resolution outcome."""
    FOUND = "found"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"


@dataclass
class ResolveResult:
    """Result of reference resolution."""
    status: ResolveStatus
    node: Optional[Node] = None
    candidates: List[Node] = field(default_factory=list)
    query: str = ""


class NodeResolver:
    """
    Reference resolution over live nodes.

    Resolution strategies (in order):
    1. Exact change_id
    2. Local id
    3. Prefix match (4+ chars)
    4. Keyword match in titles
    Unresolved queries come back with fuzzy-ranked suggestions.
    """

    def __init__(self, graph: GraphStore):
        self.graph = graph

    def resolve(
        self,
        query: str,
        kind: Optional[Union[str, NodeKind]] = None,
        min_prefix_length: int = 4
    ) -> ResolveResult:
        query = (query or "").strip()
        node_kind = parse_kind(kind) if kind else None
        candidates = [
            n for n in self.graph.live_nodes()
            if node_kind is None or n.kind == node_kind
        ]

        # Strategy 1: Exact match
        node = self.graph.get_node(query)
        if node and (node_kind is None or node.kind == node_kind):
            return ResolveResult(status=ResolveStatus.FOUND, node=node, query=query)

        # Strategy 2: Local id
        local = query[1:] if query.startswith("#") else query
        if local.isdigit():
            node = self.graph.get_by_local_id(int(local))
            if node and (node_kind is None or node.kind == node_kind):
                return ResolveResult(status=ResolveStatus.FOUND, node=node, query=query)

        # Strategy 3: Prefix match
        if len(query) >= min_prefix_length:
            query_lower = query.lower()
            prefix_matches = [n for n in candidates if n.change_id.startswith(query_lower)]
            if len(prefix_matches) == 1:
                return ResolveResult(status=ResolveStatus.FOUND, node=prefix_matches[0], query=query)
            elif len(prefix_matches) > 1:
                return ResolveResult(status=ResolveStatus.AMBIGUOUS, candidates=prefix_matches, query=query)

        # Strategy 4: Keyword match in titles
        keyword_matches = self._search_by_keyword(candidates, query)
        if len(keyword_matches) == 1:
            return ResolveResult(status=ResolveStatus.FOUND, node=keyword_matches[0], query=query)
        elif len(keyword_matches) > 1:
            return ResolveResult(
                status=ResolveStatus.AMBIGUOUS,
                candidates=keyword_matches[:10],
                query=query
            )

        return ResolveResult(
            status=ResolveStatus.NOT_FOUND,
            candidates=self.suggest(candidates, query),
            query=query
        )

    def _search_by_keyword(self, candidates: List[Node], keyword: str) -> List[Node]:
        keyword_lower = keyword.lower()
        if not keyword_lower:
            return []
        return [n for n in candidates if keyword_lower in n.title.lower()]

    def suggest(self, candidates: List[Node], query: str, limit: int = 5, threshold: float = 50.0) -> List[Node]:
        """Closest titles by token-set similarity."""
        scored = [
            (fuzz.token_set_ratio(query.lower(), n.title.lower()), n)
            for n in candidates
        ]
        scored = [(score, n) for score, n in scored if score >= threshold]
        scored.sort(key=lambda item: (-item[0], item[1].order_key))
        return [n for _, n in scored[:limit]]


def format_resolve_message(result: ResolveResult) -> str:
    """
    Format a failed resolution for user display.

    Returns formatted string for CLI output.
    """
    if result.status == ResolveStatus.FOUND:
        node = result.node
        return f"Found: {node.kind.value} #{node.local_id} [{node.change_id[:8]}] \"{node.title}\""

    elif result.status == ResolveStatus.AMBIGUOUS:
        lines = [f"Multiple matches for \"{result.query}\":"]
        for node in result.candidates:
            lines.append(f"  #{node.local_id} [{node.change_id[:8]}] {node.title[:50]}")
        lines.append("Use a longer prefix or the #local id.")
        return "\n".join(lines)

    else:  # NOT_FOUND
        lines = [f"No node matches \"{result.query}\"."]
        if result.candidates:
            lines.append("Did you mean:")
            for node in result.candidates:
                lines.append(f"  #{node.local_id} [{node.change_id[:8]}] {node.title[:50]}")
        lines.append("Other authors' nodes appear after their logs are pulled and rebuilt.")
        return "\n".join(lines)
