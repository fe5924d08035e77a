"""
PulseCommand — Graph health and pivot history

- pulse: orphans, coverage gaps and counts (--summary for counts only)
- pivots: every revisit with the approach it replaced and what followed
"""

from ..commands.base import BaseCommand
from ..presentation.formatters import format_pulse, format_pivot_chain


class PulseCommand(BaseCommand):
    """Command for pulse and pivot-chain views."""

    def pulse(self, summary_only: bool = False, output_format: str = None):
        self._cli.require_initialized()
        report = self.queries.pulse()

        if self.output_format(output_format) == "json":
            data = report.summary()
            if not summary_only:
                data["orphans"] = [n.change_id for n in report.orphans]
                data["coverage_gaps"] = [n.change_id for n in report.coverage_gaps]
                data["covered_goals"] = [n.change_id for n in report.covered_goals]
            self.print_json(data)
            return

        self.print_line(format_pulse(self.symbols, report, summary_only=summary_only))

    def pivots(self, output_format: str = None):
        self._cli.require_initialized()
        chains = self.queries.pivot_chains()

        if self.output_format(output_format) == "json":
            self.print_json([
                {
                    "revisit": chain.revisit.change_id,
                    "origin": [n.change_id for n in chain.origin],
                    "successors": [n.change_id for n in chain.successors],
                }
                for chain in chains
            ])
            return

        if not chains:
            print("No pivots recorded.")
            return
        print(f"Pivots ({len(chains)}):\n")
        for chain in chains:
            self.print_line(format_pivot_chain(self.symbols, chain))
            print()


COMMAND_NAMES = ['pulse', 'pivots']


def register_parser(subparsers):
    """Register pulse and pivots command parsers."""
    p1 = subparsers.add_parser('pulse', help='Orphans, coverage gaps and counts')
    p1.add_argument('--summary', action='store_true', help='Counts only')
    p1.add_argument('--format', '-f', dest='output_format', choices=['list', 'json'],
                    help='Output format (default: display.format)')

    p2 = subparsers.add_parser('pivots', help='List pivot chains')
    p2.add_argument('--format', '-f', dest='output_format', choices=['list', 'json'],
                    help='Output format (default: display.format)')
    return p1, p2


def handle(cli, args):
    """Handle pulse/pivots command dispatch."""
    if args.command == 'pivots':
        cli._pulse_cmd.pivots(output_format=args.output_format)
    else:
        cli._pulse_cmd.pulse(summary_only=args.summary, output_format=args.output_format)
