"""Typed exceptions for hepbranch.

Configuration problems are reported and skipped by the branch registry;
graph-shape problems indicate a broken upstream graph builder and are
always raised.
"""

from __future__ import annotations


class HepBranchError(Exception):
    """Base exception for all hepbranch errors."""


class BranchConfigError(HepBranchError):
    """Raised when a branch configuration entry cannot be parsed."""


class UnknownBranchClassError(BranchConfigError):
    """Raised when an output class name has no projector."""

    def __init__(self, class_name: str):
        self.class_name = class_name
        super().__init__(f"cannot find class '{class_name}'")


class UnresolvedArrayError(HepBranchError, KeyError):
    """Raised when an input array name is not present in the event."""

    def __init__(self, array_name: str):
        self.array_name = array_name
        super().__init__(f"cannot find input array '{array_name}'")

    def __str__(self) -> str:
        return self.args[0]


class GraphShapeError(HepBranchError):
    """Raised when the candidate graph violates the expected shape."""


class RegistryStateError(HepBranchError):
    """Raised when the registry is used in the wrong state."""
