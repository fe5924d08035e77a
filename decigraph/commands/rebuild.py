"""
RebuildCommand — Replay and compaction

- rebuild: replay checkpoint + every author log into the local projection
  (--dry-run reports without saving)
- checkpoint: snapshot the graph and advance cursors (--clear also
  truncates logs through those cursors, after the snapshot is durable)
"""

from ..commands.base import BaseCommand
from ..presentation.formatters import format_diagnostics


class RebuildCommand(BaseCommand):
    """Command for rebuild and checkpoint."""

    def rebuild(self, dry_run: bool = False, verbose: bool = False):
        self._cli.require_initialized()
        symbols = self.symbols
        before = self.workspace.projection.stats()

        result = self.workspace.rebuild(dry_run=dry_run)
        stats = result.graph.stats()

        label = "Dry run" if dry_run else "Rebuilt"
        print(f"{symbols.check_pass} {label}: {result.applied} record(s) replayed from "
              f"{len(self.workspace.logs.authors())} author log(s)")
        print(f"  Nodes: {stats['nodes']}  Edges: {stats['edges']}  "
              f"Pending edges: {stats['pending_edges']}  Deleted: {stats['deleted_nodes']}")
        if dry_run:
            print(f"  Local projection has {before['nodes']} node(s), {before['edges']} edge(s); not modified")
        if result.skipped_duplicates:
            print(f"  Duplicates ignored: {result.skipped_duplicates}")
        if result.pending_transactions:
            print(f"  {symbols.pending} Incomplete transaction(s) held back: {len(result.pending_transactions)}")

        shown = result.diagnostics if verbose else result.warnings
        if shown:
            print(f"\n{symbols.check_warn} Diagnostics ({len(shown)}):")
            self.print_line(format_diagnostics(symbols, shown, limit=len(shown) if verbose else 10))

    def checkpoint(self, clear: bool = False):
        self._cli.require_initialized()
        symbols = self.symbols
        result = self.workspace.checkpoint(clear_events=clear)
        checkpoint = result.checkpoint

        print(f"{symbols.check_pass} Checkpoint written: {result.path}")
        print(f"  Nodes: {len(checkpoint.graph.nodes)}  Edges: {len(checkpoint.graph.edges)}  "
              f"Pending edges: {len(checkpoint.graph.pending_edges)}")
        for author, cursor in sorted(checkpoint.cursors.items()):
            print(f"  {author}: through sequence {cursor}")
        if clear:
            print(f"  Truncated {result.records_removed} record(s) from the logs")
        if result.rebuild.pending_transactions:
            print(f"  {symbols.pending} {len(result.rebuild.pending_transactions)} incomplete transaction(s) kept in the logs")


COMMAND_NAMES = ['rebuild', 'checkpoint']


def register_parser(subparsers):
    """Register rebuild and checkpoint command parsers."""
    p1 = subparsers.add_parser('rebuild', help='Replay all logs into the local graph')
    p1.add_argument('--dry-run', action='store_true', help='Report without saving')
    p1.add_argument('--all-diagnostics', dest='all_diagnostics', action='store_true',
                    help='Also list dangling references and held-back transactions')

    p2 = subparsers.add_parser('checkpoint', help='Snapshot the graph (compaction)')
    p2.add_argument('--clear', action='store_true',
                    help='Truncate logs through the checkpoint cursors after writing it')
    return p1, p2


def handle(cli, args):
    """Handle rebuild/checkpoint command dispatch."""
    if args.command == 'checkpoint':
        cli._rebuild_cmd.checkpoint(clear=args.clear)
    else:
        cli._rebuild_cmd.rebuild(dry_run=args.dry_run, verbose=args.all_diagnostics)
