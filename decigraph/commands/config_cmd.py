"""
ConfigCommand — Configuration management

Displays the effective configuration or sets one value in the project
(default) or user config file.
"""

from ..commands.base import BaseCommand


class ConfigCommand(BaseCommand):
    """Command for configuration display and modification."""

    def show_config(self):
        self.print_line(self._cli.config_manager.display())

    def set_config(self, key: str, value: str, scope: str = "project"):
        manager = self._cli.config_manager
        manager.set(key, value, scope=scope)
        print(f"{self.symbols.check_pass} Set {key} = {manager.get(key)} ({scope})")


def register_parser(subparsers):
    """Register config command parser."""
    p = subparsers.add_parser('config', help='View or set configuration')
    p.add_argument('--set', nargs=2, metavar=('KEY', 'VALUE'),
                   help='Set config value (e.g., display.symbols ascii)')
    p.add_argument('--user', action='store_true',
                   help='Apply to user config instead of project')
    return p


def handle(cli, args):
    """Handle config command dispatch."""
    if args.set:
        key, value = args.set
        cli._config_cmd.set_config(key, value, scope="user" if args.user else "project")
    else:
        cli._config_cmd.show_config()
