"""
Exception types raised by studio_graph.

Numeric failures inside the engine heal in place; only misuse of the
driving contract surfaces as an exception.
"""

from __future__ import annotations


class StudioGraphError(Exception):
    """Base class for all studio_graph errors."""


class SimulationBusyError(StudioGraphError):
    """Raised when a second driver tries to step an engine that is already owned."""

    def __init__(self, owner: object, contender: object):
        self.owner = owner
        self.contender = contender
        super().__init__(
            f"simulation engine is already driven by {owner!r}; "
            f"cancel it before stepping with {contender!r}"
        )
