"""
LinkCommand — Edge creation and removal

- link: from -> to with a relation (leads_to by default)
- unlink: tombstone every matching edge (or one relation with --type)

Endpoints may be given as #local ids, change_id prefixes or title
keywords. A full change_id that is not known locally is accepted for
link: the edge waits as pending until that node's log is pulled.
"""

from ..commands.base import BaseCommand
from ..core.types import EdgeType


class LinkCommand(BaseCommand):
    """Command for linking and unlinking nodes."""

    def link(self, from_ref: str, to_ref: str, edge_type: str = EdgeType.LEADS_TO.value,
             rationale: str = None, date: str = None):
        self._cli.require_initialized()
        symbols = self.symbols
        from_id = self._cli.resolve_endpoint(from_ref)
        to_id = self._cli.resolve_endpoint(to_ref)

        edge = self.workspace.commands().link(from_id, to_id, edge_type=edge_type, rationale=rationale, date=date)
        self._cli.refresh()

        if edge.change_id in self.graph.pending_edges:
            print(f"{symbols.pending} Linked {from_id[:8]} {symbols.arrow} {to_id[:8]} [{edge.edge_type}] "
                  f"(pending: endpoint not known locally yet)")
            return

        source = self.graph.get_node(from_id)
        target = self.graph.get_node(to_id)
        self.print_line(
            f"{symbols.check_pass} Linked #{source.local_id} {source.title} "
            f"{symbols.arrow} [{edge.edge_type}] {symbols.arrow} #{target.local_id} {target.title}"
        )

    def unlink(self, from_ref: str, to_ref: str, edge_type: str = None):
        self._cli.require_initialized()
        from_id = self._cli.resolve_endpoint(from_ref)
        to_id = self._cli.resolve_endpoint(to_ref)

        self.workspace.commands().unlink(from_id, to_id, edge_type=edge_type)
        self._cli.refresh()

        relation = f" [{edge_type}]" if edge_type else ""
        print(f"{self.symbols.check_pass} Unlinked {from_id[:8]} {self.symbols.arrow} {to_id[:8]}{relation}")


COMMAND_NAMES = ['link', 'unlink']


def register_parser(subparsers):
    """Register link and unlink command parsers."""
    p1 = subparsers.add_parser('link', help='Link two nodes')
    p1.add_argument('from_ref', help='Source node (#id, change_id prefix or keyword)')
    p1.add_argument('to_ref', help='Target node')
    p1.add_argument('--type', '-t', dest='edge_type', default=EdgeType.LEADS_TO.value,
                    help='leads_to | chosen | rejected | possible_approach | custom slug')
    p1.add_argument('--rationale', '-r', help='Why this relation holds')
    p1.add_argument('--date', help='Backdate (YYYY-MM-DD or ISO-8601)')

    p2 = subparsers.add_parser('unlink', help='Remove the edge(s) between two nodes')
    p2.add_argument('from_ref', help='Source node')
    p2.add_argument('to_ref', help='Target node')
    p2.add_argument('--type', '-t', dest='edge_type', help='Only this relation (default: all)')
    return p1, p2


def handle(cli, args):
    """Handle link/unlink command dispatch."""
    if args.command == 'unlink':
        cli._link_cmd.unlink(args.from_ref, args.to_ref, edge_type=args.edge_type)
    else:
        cli._link_cmd.link(
            args.from_ref,
            args.to_ref,
            edge_type=args.edge_type,
            rationale=args.rationale,
            date=args.date,
        )
