"""Exit codes and exception taxonomy for capgraph.

Exit code scheme:

    0  SUCCESS              -- command completed
    1  GENERAL_ERROR        -- unexpected failure
    2  USAGE_ERROR          -- invalid arguments (Click default)
    3  INDEX_MISSING        -- .capgraph/index.db not found, run `capgraph load`
    7  SYMBOL_NOT_FOUND     -- root symbol of a call-graph build is absent
    8  CAPABILITY_NOT_FOUND -- health/evolution query against an unknown capability

The exceptions double as library errors: the graph and capability layers raise
them, and the Click front-end turns them into the matching exit code.
"""

from __future__ import annotations

import click

EXIT_ERROR: int = 1
EXIT_INDEX_MISSING: int = 3
EXIT_SYMBOL_NOT_FOUND: int = 7
EXIT_CAPABILITY_NOT_FOUND: int = 8


class CapgraphError(click.ClickException):
    """Base class for capgraph errors with exit codes."""

    def __init__(self, message: str, exit_code: int = EXIT_ERROR):
        super().__init__(message)
        self.exit_code = exit_code

    def format_message(self) -> str:
        return self.message


class IndexMissingError(CapgraphError):
    """Raised when the index database does not exist."""

    def __init__(self, message: str = "No index found. Run `capgraph load <records.json>` first."):
        super().__init__(message, EXIT_INDEX_MISSING)


class SymbolNotFoundError(CapgraphError):
    """Raised when the root symbol of a call-graph build does not exist."""

    def __init__(self, symbol_id: str):
        super().__init__(f"Symbol not found: {symbol_id}", EXIT_SYMBOL_NOT_FOUND)
        self.symbol_id = symbol_id


class CapabilityNotFoundError(CapgraphError):
    """Raised when a capability id does not resolve."""

    def __init__(self, capability_id: str):
        super().__init__(f"Capability {capability_id} not found", EXIT_CAPABILITY_NOT_FOUND)
        self.capability_id = capability_id
