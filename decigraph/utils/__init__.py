"""
decigraph utilities — Cross-cutting concerns

Reusable utilities that serve multiple commands and components.
"""

from .logger import setup_logging, get_logger
from .pagination import Paginator, add_pagination_args

__all__ = ['setup_logging', 'get_logger', 'Paginator', 'add_pagination_args']
