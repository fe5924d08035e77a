"""
BaseCommand — Shared foundation for all CLI commands

Provides access to CLI resources via composition.
Commands receive the CLI instance and access its resources through properties.
"""

import orjson
from typing import TYPE_CHECKING, Any, Optional

from ..presentation.symbols import safe_print

if TYPE_CHECKING:
    from ..cli import DecisionCLI


class BaseCommand:
    """
    Base class for CLI commands with access to shared resources.

    Design principle: Composition over inheritance.
    Commands don't reinitialize resources; they access them via the CLI instance.
    """

    def __init__(self, cli: 'DecisionCLI'):
        self._cli = cli

    # -------------------------------------------------------------------------
    # Core resources (convenience properties)
    # -------------------------------------------------------------------------

    @property
    def project_dir(self):
        """Project root directory."""
        return self._cli.project_dir

    @property
    def workspace(self):
        """Workspace (logs, checkpoint, projection)."""
        return self._cli.workspace

    @property
    def graph(self):
        """The local materialized graph."""
        return self._cli.graph

    @property
    def queries(self):
        """Query Layer over the local graph."""
        return self._cli.workspace.queries()

    @property
    def config(self):
        """Application configuration."""
        return self._cli.config

    @property
    def symbols(self):
        """Symbol set for display (Unicode/ASCII)."""
        return self._cli.symbols

    @property
    def author(self) -> str:
        return self._cli.author

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def output_format(self, requested: Optional[str] = None) -> str:
        """Explicit --format wins over display.format."""
        return requested or self.config.display.format

    def print_json(self, data: Any):
        print(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())

    def print_line(self, text: str):
        safe_print(text)
