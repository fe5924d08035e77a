"""
PivotCommand — Composite operations

- pivot: observation + revisit + new approach, chained from the old
  approach, which becomes superseded. Written as one atomic burst.
- supersede: mark a node superseded, optionally everything downstream.
"""

from ..commands.base import BaseCommand
from ..core.types import PIVOT_TARGET_KINDS
from ..presentation.formatters import format_node_ref


class PivotCommand(BaseCommand):
    """Command for pivots and supersession."""

    def pivot(self, ref: str, observation: str, new_approach: str, new_kind: str = "decision",
              description: str = None, confidence: int = None, date: str = None, rationale: str = None):
        self._cli.require_initialized()
        symbols = self.symbols
        origin = self._cli.resolve_node(ref)

        result = self.workspace.commands().pivot(
            origin.change_id,
            observation,
            new_approach,
            new_kind=new_kind,
            description=description,
            confidence=confidence,
            date=date,
            rationale=rationale,
        )
        self._cli.refresh()

        graph = self.graph
        chain = [graph.get_node(n.change_id) or n
                 for n in (result.observation, result.revisit, result.new_approach)]
        print(f"{symbols.revisit} Pivoted from {format_node_ref(origin)} (now superseded)")
        self.print_line(f"  {symbols.tree_branch} {origin.title}")
        for index, node in enumerate(chain):
            branch = symbols.tree_end if index == len(chain) - 1 else symbols.tree_branch
            self.print_line(f"  {branch} {node.kind.value} {format_node_ref(node)}: {node.title}")

    def supersede(self, ref: str, cascade: bool = False):
        self._cli.require_initialized()
        node = self._cli.resolve_node(ref)
        records = self.workspace.commands().supersede(node.change_id, cascade=cascade)
        self._cli.refresh()

        self.print_line(f"{self.symbols.superseded} Superseded {format_node_ref(node)}: {node.title}")
        for record in records[1:]:
            downstream = self.graph.get_node(record.change_id)
            if downstream is not None:
                self.print_line(f"  {self.symbols.tree_branch} {format_node_ref(downstream)}: {downstream.title}")


COMMAND_NAMES = ['pivot', 'supersede']


def register_parser(subparsers):
    """Register pivot and supersede command parsers."""
    p1 = subparsers.add_parser('pivot', help='Replace an approach: observation -> revisit -> new approach')
    p1.add_argument('ref', help='Node being pivoted away from')
    p1.add_argument('observation', help='What was learned')
    p1.add_argument('new_approach', help='Title of the new approach')
    p1.add_argument('--kind', dest='new_kind', default='decision',
                    choices=[k.value for k in PIVOT_TARGET_KINDS], help='Kind of the new approach')
    p1.add_argument('--description', '-d', help='Rationale for the new approach')
    p1.add_argument('--confidence', '-c', type=int, help='Confidence 0-100 in the new approach')
    p1.add_argument('--date', help='Backdate (YYYY-MM-DD or ISO-8601)')
    p1.add_argument('--rationale', '-r', help='Why the old approach led to the observation')

    p2 = subparsers.add_parser('supersede', help='Mark a node superseded')
    p2.add_argument('ref', help='Node (#id, change_id prefix or keyword)')
    p2.add_argument('--cascade', action='store_true', help='Also supersede every node reachable from it')
    return p1, p2


def handle(cli, args):
    """Handle pivot/supersede command dispatch."""
    if args.command == 'supersede':
        cli._pivot_cmd.supersede(args.ref, cascade=args.cascade)
    else:
        cli._pivot_cmd.pivot(
            args.ref,
            args.observation,
            args.new_approach,
            new_kind=args.new_kind,
            description=args.description,
            confidence=args.confidence,
            date=args.date,
            rationale=args.rationale,
        )
