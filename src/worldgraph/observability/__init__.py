"""Observability module for worldgraph.

Provides structured logging for the CLI and the graph engine.
"""

from worldgraph.observability.logging import (
    bind_run_context,
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "bind_run_context",
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
