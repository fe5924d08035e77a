"""
AddCommand — Node creation

Appends one create_node record to the acting author's log and rebuilds
the local projection so the node is addressable right away.
"""

from ..commands.base import BaseCommand
from ..core.types import NodeKind
from ..presentation.formatters import format_node_ref
from ..presentation.symbols import symbol_for_kind


class AddCommand(BaseCommand):
    """Command for adding goals, options, decisions and the rest."""

    def add(self, kind: str, title: str, description: str = None, confidence: int = None,
            date: str = None, commit: str = None, files=None):
        self._cli.require_initialized()
        node = self.workspace.commands().add(
            kind,
            title,
            description=description,
            confidence=confidence,
            date=date,
            commit=commit,
            files=files,
        )
        self._cli.refresh()

        # Preview has no local id yet; read it back from the rebuilt graph
        stored = self.graph.get_node(node.change_id) or node
        symbol = symbol_for_kind(self.symbols, stored.kind.value)
        self.print_line(f"{symbol} Added {stored.kind.value} {format_node_ref(stored)}: {stored.title}")


def register_parser(subparsers):
    """Register add command parser."""
    p = subparsers.add_parser('add', help='Add a node to the decision graph')
    p.add_argument('kind', choices=[k.value for k in NodeKind], help='Node kind')
    p.add_argument('title', help='Short label')
    p.add_argument('--description', '-d', help='Longer rationale')
    p.add_argument('--confidence', '-c', type=int, help='Confidence 0-100')
    p.add_argument('--date', help='Backdate (YYYY-MM-DD or ISO-8601) for historical entries')
    p.add_argument('--commit', help='Associated commit reference')
    p.add_argument('--file', dest='files', action='append', metavar='PATH',
                   help='Associated file (repeatable)')
    return p


def handle(cli, args):
    """Handle add command dispatch."""
    cli._add_cmd.add(
        args.kind,
        args.title,
        description=args.description,
        confidence=args.confidence,
        date=args.date,
        commit=args.commit,
        files=args.files,
    )
