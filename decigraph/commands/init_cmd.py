"""
InitCommand — Workspace creation

Creates .decigraph/ with the shared logs directory and the git-ignored
local directory. Safe to run again: existing logs are never touched.
"""

from ..commands.base import BaseCommand


class InitCommand(BaseCommand):
    """Command for creating the decision graph workspace."""

    def init(self):
        symbols = self.symbols
        created = self.workspace.init()
        paths = self.workspace.paths

        if not created:
            print(f"{symbols.check_pass} Already initialized: {paths.base}")
            return

        print(f"{symbols.check_pass} Initialized decision graph in {paths.base}")
        print(f"  Logs: {paths.logs}  (commit these)")
        print(f"  Local projection: {paths.local}  (git-ignored)")
        print(f"  Writing as: {self.author}")
        print()
        print("Next: decigraph add goal \"What are we trying to achieve?\"")


def register_parser(subparsers):
    """Register init command parser."""
    p = subparsers.add_parser('init', help='Create the .decigraph workspace')
    return p


def handle(cli, args):
    """Handle init command dispatch."""
    cli._init_cmd.init()
