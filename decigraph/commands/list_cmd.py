"""
ListCommand — Node and edge listings

- nodes [--kind] [--status]: live nodes in replay order
- edges [--type] [--pending]: live edges (or edges still waiting on a node)
- timeline [--kind]: nodes by logical timestamp, grouped by day
- show <ref>: one node with its neighbours
"""

from ..commands.base import BaseCommand
from ..core.types import NodeKind, NodeStatus
from ..presentation.formatters import (
    format_node_line, format_edge_line, format_node_detail, format_date,
)
from ..utils.pagination import add_pagination_args, paginate_from_args


class ListCommand(BaseCommand):
    """Command for read-only listings."""

    def nodes(self, args, kind: str = None, status: str = None, output_format: str = None, full: bool = False):
        self._cli.require_initialized()
        nodes = self.queries.list_nodes(kind=kind, status=status)

        if self.output_format(output_format) == "json":
            self.print_json([n.to_dict() for n in nodes])
            return

        paginator = paginate_from_args(nodes, args)
        print(paginator.header("Nodes"))
        for node in paginator.items():
            self.print_line(f"  {format_node_line(self.symbols, node, full)}")
        if paginator.has_more() or paginator.has_previous():
            print(paginator.summary(command_hint="decigraph nodes"))

    def edges(self, args, edge_type: str = None, pending: bool = False, output_format: str = None,
              full: bool = False):
        self._cli.require_initialized()
        queries = self.queries
        edges = queries.pending_edges() if pending else queries.list_edges(edge_type=edge_type)

        if self.output_format(output_format) == "json":
            self.print_json([e.to_dict() for e in edges])
            return

        paginator = paginate_from_args(edges, args)
        print(paginator.header("Pending edges" if pending else "Edges"))
        for edge in paginator.items():
            self.print_line(f"  {format_edge_line(self.symbols, edge, self.graph, full)}")
        if paginator.has_more() or paginator.has_previous():
            print(paginator.summary(command_hint="decigraph edges"))

    def timeline(self, args, kind: str = None, output_format: str = None, full: bool = False):
        self._cli.require_initialized()
        nodes = self.queries.timeline(kind=kind)

        if self.output_format(output_format) == "json":
            self.print_json([n.to_dict() for n in nodes])
            return

        paginator = paginate_from_args(nodes, args)
        print(paginator.header("Timeline"))
        current_day = None
        for node in paginator.items():
            day = format_date(node.created_at)
            if day != current_day:
                print(f"\n{day}")
                current_day = day
            self.print_line(f"  {format_node_line(self.symbols, node, full)}")
        if paginator.has_more() or paginator.has_previous():
            print()
            print(paginator.summary(command_hint="decigraph timeline"))

    def show(self, ref: str, output_format: str = None):
        self._cli.require_initialized()
        node = self._cli.resolve_node(ref)

        if self.output_format(output_format) == "json":
            self.print_json(node.to_dict())
            return
        self.print_line(format_node_detail(self.symbols, node, self.graph))


COMMAND_NAMES = ['nodes', 'edges', 'timeline', 'show']


def _add_display_args(parser):
    parser.add_argument('--format', '-f', dest='output_format', choices=['list', 'json'],
                        help='Output format (default: display.format)')
    parser.add_argument('--full', action='store_true', help='Do not truncate titles')
    add_pagination_args(parser, default_limit=None)


def register_parser(subparsers):
    """Register nodes, edges, timeline and show command parsers."""
    p1 = subparsers.add_parser('nodes', help='List live nodes')
    p1.add_argument('--kind', '-k', choices=[k.value for k in NodeKind], help='Filter by kind')
    p1.add_argument('--status', '-s', choices=[s.value for s in NodeStatus], help='Filter by status')
    _add_display_args(p1)

    p2 = subparsers.add_parser('edges', help='List live edges')
    p2.add_argument('--type', '-t', dest='edge_type', help='Filter by relation')
    p2.add_argument('--pending', action='store_true', help='List edges waiting on an unknown node')
    _add_display_args(p2)

    p3 = subparsers.add_parser('timeline', help='Nodes in replay order, by day')
    p3.add_argument('--kind', '-k', choices=[k.value for k in NodeKind], help='Filter by kind')
    _add_display_args(p3)

    p4 = subparsers.add_parser('show', help='Show one node and its neighbours')
    p4.add_argument('ref', help='Node (#id, change_id prefix or keyword)')
    p4.add_argument('--format', '-f', dest='output_format', choices=['list', 'json'],
                    help='Output format (default: display.format)')
    return p1, p2, p3, p4


def handle(cli, args):
    """Handle listing command dispatch."""
    if getattr(args, 'limit', 0) is None:
        args.limit = cli.config.display.limit

    if args.command == 'nodes':
        cli._list_cmd.nodes(args, kind=args.kind, status=args.status,
                            output_format=args.output_format, full=args.full)
    elif args.command == 'edges':
        cli._list_cmd.edges(args, edge_type=args.edge_type, pending=args.pending,
                            output_format=args.output_format, full=args.full)
    elif args.command == 'timeline':
        cli._list_cmd.timeline(args, kind=args.kind, output_format=args.output_format, full=args.full)
    else:
        cli._list_cmd.show(args.ref, output_format=args.output_format)
