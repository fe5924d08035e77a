"""
StatusCommand — Node status changes and deletion

- status: set active | rejected | completed | superseded (last writer wins)
- delete: tombstone a node; its history stays in the logs
"""

from ..commands.base import BaseCommand
from ..core.types import NodeStatus
from ..presentation.formatters import format_node_ref
from ..presentation.symbols import symbol_for_status


class StatusCommand(BaseCommand):
    """Command for node status and deletion."""

    def set_status(self, ref: str, status: str):
        self._cli.require_initialized()
        node = self._cli.resolve_node(ref)
        record = self.workspace.commands().set_status(node.change_id, status)
        self._cli.refresh()

        new_status = record.payload["status"]
        symbol = symbol_for_status(self.symbols, new_status)
        self.print_line(f"{symbol} {format_node_ref(node)} {node.title}: {node.status.value} -> {new_status}")

    def delete(self, ref: str):
        self._cli.require_initialized()
        node = self._cli.resolve_node(ref)
        self.workspace.commands().delete(node.change_id)
        self._cli.refresh()
        self.print_line(f"{self.symbols.check_pass} Deleted {node.kind.value} {format_node_ref(node)}: {node.title}")


COMMAND_NAMES = ['status', 'delete']


def register_parser(subparsers):
    """Register status and delete command parsers."""
    p1 = subparsers.add_parser('status', help='Set a node status')
    p1.add_argument('ref', help='Node (#id, change_id prefix or keyword)')
    p1.add_argument('status', choices=[s.value for s in NodeStatus], help='New status')

    p2 = subparsers.add_parser('delete', help='Delete a node (tombstone)')
    p2.add_argument('ref', help='Node (#id, change_id prefix or keyword)')
    return p1, p2


def handle(cli, args):
    """Handle status/delete command dispatch."""
    if args.command == 'delete':
        cli._status_cmd.delete(args.ref)
    else:
        cli._status_cmd.set_status(args.ref, args.status)
