"""
ExportCommand — Flattened {nodes, edges} document

Read-only, denormalized, regenerated on demand. Renderers and viewers
consume this instead of the logs.
"""

from pathlib import Path

import orjson

from ..commands.base import BaseCommand


class ExportCommand(BaseCommand):
    """Command for exporting the graph."""

    def export(self, output: str = None):
        self._cli.require_initialized()
        document = self.queries.export()
        data = orjson.dumps(document, option=orjson.OPT_INDENT_2)

        if output is None or output == "-":
            print(data.decode())
            return

        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data + b"\n")
        print(f"{self.symbols.check_pass} Exported {len(document['nodes'])} node(s), "
              f"{len(document['edges'])} edge(s) to {path}")


def register_parser(subparsers):
    """Register export command parser."""
    p = subparsers.add_parser('export', help='Export {nodes, edges} JSON')
    p.add_argument('--output', '-o', help='Output file (default: stdout)')
    return p


def handle(cli, args):
    """Handle export command dispatch."""
    cli._export_cmd.export(output=args.output)
