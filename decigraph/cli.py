"""
CLI -- Command interface

One process, one author: writes go to that author's log only, reads see
every log present in .decigraph/logs (pulled in by whatever sync the
project uses, typically git).

Write commands rebuild the local projection right after appending, so the
next invocation validates against a graph that already includes them.
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

from .config import ConfigManager, AUTHOR_PATTERN
from .core.errors import DecisionGraphError, ConfigurationError, NotFoundError
from .core.graph import GraphStore, Node
from .core.rebuild import RebuildResult
from .core.resolver import NodeResolver, ResolveStatus, format_resolve_message
from .core.workspace import Workspace
from .presentation.symbols import get_symbols, safe_print
from .commands.init_cmd import InitCommand
from .commands.add import AddCommand
from .commands.link import LinkCommand
from .commands.status import StatusCommand
from .commands.pivot import PivotCommand
from .commands.list_cmd import ListCommand
from .commands.pulse import PulseCommand
from .commands.rebuild import RebuildCommand
from .commands.export import ExportCommand
from .commands.config_cmd import ConfigCommand
from .utils.logger import setup_logging, get_logger
from . import __version__

log = get_logger(__name__)


class DecisionCLI:
    """Command-line interface for the decision graph."""

    def __init__(self, project_dir: Path, author: Optional[str] = None):
        self.project_dir = Path(project_dir)
        self.config_manager = ConfigManager(self.project_dir)
        self.config = self.config_manager.load()

        self.author = author or self.config.author.effective_name
        if not AUTHOR_PATTERN.match(self.author):
            raise ConfigurationError(
                f"Invalid author name '{self.author}'. Use letters, digits, '.', '_' or '-'",
                context={"author": self.author}
            )

        # Initialize symbols based on config
        self.symbols = get_symbols(self.config.display.symbols)

        self.workspace = Workspace(self.project_dir, self.author)

        # Initialize command handlers (modular architecture)
        self._init_cmd = InitCommand(self)
        self._add_cmd = AddCommand(self)
        self._link_cmd = LinkCommand(self)
        self._status_cmd = StatusCommand(self)
        self._pivot_cmd = PivotCommand(self)
        self._list_cmd = ListCommand(self)
        self._pulse_cmd = PulseCommand(self)
        self._rebuild_cmd = RebuildCommand(self)
        self._export_cmd = ExportCommand(self)
        self._config_cmd = ConfigCommand(self)

    # -------------------------------------------------------------------------
    # Shared helpers for command modules
    # -------------------------------------------------------------------------

    @property
    def graph(self) -> GraphStore:
        return self.workspace.load_graph().graph

    @property
    def resolver(self) -> NodeResolver:
        return NodeResolver(self.graph)

    def require_initialized(self):
        if not self.workspace.is_initialized():
            raise DecisionGraphError(
                f"No decision graph in {self.project_dir}. Run: decigraph init",
                context={"project": str(self.project_dir)}
            )

    def resolve_node(self, ref: str, kind: Optional[str] = None) -> Node:
        """Resolve a user reference or raise NotFoundError with suggestions."""
        result = self.resolver.resolve(ref, kind=kind)
        if result.status == ResolveStatus.FOUND:
            return result.node
        raise NotFoundError(format_resolve_message(result), context={"ref": ref})

    def resolve_endpoint(self, ref: str) -> str:
        """
        change_id for an edge endpoint.

        A full change_id that is not known locally is accepted as-is: the
        edge stays pending until the other author's log arrives.
        """
        result = self.resolver.resolve(ref)
        if result.status == ResolveStatus.FOUND:
            return result.node.change_id
        candidate = ref.strip().lower()
        if len(candidate) == 32 and all(c in "0123456789abcdef" for c in candidate):
            return candidate
        raise NotFoundError(format_resolve_message(result), context={"ref": ref})

    def refresh(self) -> RebuildResult:
        """Rebuild the projection after a write (warnings are logged by the rebuild)."""
        return self.workspace.rebuild()


def main(argv=None):
    """
    Main entry point for the decigraph CLI.

    Uses command registry pattern for modular command handling.
    Parser definitions and dispatch logic are in individual command modules.
    """
    parser = argparse.ArgumentParser(
        prog='decigraph',
        description="decigraph -- Multi-author decision graph",
        epilog="Append-only logs per author. Same logs, same graph."
    )

    parser.add_argument(
        '--project', '-p',
        default=os.environ.get("DECIGRAPH_PROJECT_PATH", "."),
        help='Project directory (default: DECIGRAPH_PROJECT_PATH or current)'
    )

    parser.add_argument(
        '--author',
        help='Write as this author (default: author.name config, DECIGRAPH_AUTHOR or login name)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show debug logging on stderr'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'decigraph {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Register all commands from command modules (self-registration pattern)
    from .commands import register_all, dispatch
    register_all(subparsers)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    cli = None
    try:
        cli = DecisionCLI(Path(args.project), author=args.author)
        setup_logging("DEBUG" if args.verbose else cli.config.logging.level)
        dispatch(args.command, cli, args)
    except DecisionGraphError as e:
        safe_print(f"Error: {e.message}", file=sys.stderr)
        log.debug(f"{e.__class__.__name__} context: {e.context}")
        return 1
    except KeyError as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_help()
        return 1
    finally:
        if cli is not None:
            cli.workspace.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
