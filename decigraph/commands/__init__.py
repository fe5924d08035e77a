"""
Commands — Modular CLI command implementations with self-registration

Each command module:
1. Defines XxxCommand class (handler implementation)
2. Exports register_parser(subparsers) to configure its argparse
3. Exports handle(cli, args) to dispatch to handler methods

Registry pattern enables:
- Locality: Parser definition next to implementation
- Open/Closed: Add command = add module to COMMAND_MODULES
- Single Responsibility: Each module owns its full lifecycle
"""

import importlib
from typing import Dict, Callable, Any

from .base import BaseCommand

# Command modules that participate in auto-registration
# Order determines help display order
COMMAND_MODULES = [
    # Setup
    'init_cmd',
    # Writes
    'add',
    'link',
    'status',
    'pivot',
    # Reads
    'list_cmd',
    'pulse',
    # Maintenance
    'rebuild',
    'export',
    'config_cmd',
]

# Handler registry: command_name -> handle function
_handlers: Dict[str, Callable] = {}


def register_all(subparsers) -> None:
    """
    Discover and register all command parsers.

    Imports each module in COMMAND_MODULES and calls its register_parser()
    function. Also registers the handle() function for dispatch.

    Args:
        subparsers: argparse subparsers object from main parser
    """
    _handlers.clear()

    for module_name in COMMAND_MODULES:
        module = importlib.import_module(f'.{module_name}', __package__)

        if hasattr(module, 'register_parser'):
            module.register_parser(subparsers)

        if hasattr(module, 'handle'):
            # Derive from module name: 'add' -> 'add', 'init_cmd' -> 'init'
            cmd_name = getattr(module, 'COMMAND_NAME', module_name.replace('_cmd', ''))

            # Modules that register several commands list them explicitly
            for name in getattr(module, 'COMMAND_NAMES', [cmd_name]):
                _handlers[name] = module.handle


def dispatch(command: str, cli: Any, args: Any) -> Any:
    """
    Dispatch command to its registered handler.

    Raises:
        KeyError: If command not registered
    """
    if command not in _handlers:
        raise KeyError(f"Unknown command: {command}. Available: {list(_handlers.keys())}")

    return _handlers[command](cli, args)


def get_registered_commands() -> list:
    """Get list of registered command names."""
    return list(_handlers.keys())


__all__ = ['BaseCommand', 'register_all', 'dispatch', 'get_registered_commands']
