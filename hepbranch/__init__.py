"""hepbranch: flatten simulation candidate graphs into analysis-tree records."""

from __future__ import annotations

__version__ = "0.1.0"

from .convert import check, info, read, write_tree
from .config import load_branches, parse_branch_args, parse_card
from .models import Candidate, EventGraph
from .projectors import BranchClass, ProjectionOptions
from .records import EventRecords, RecordFile
from .registry import BranchRegistry, BranchSpec, build_registry
from .validation import validate_events

__all__ = [
    "__version__",
    "write_tree",
    "read",
    "info",
    "check",
    "load_branches",
    "parse_branch_args",
    "parse_card",
    "Candidate",
    "EventGraph",
    "BranchClass",
    "ProjectionOptions",
    "EventRecords",
    "RecordFile",
    "BranchRegistry",
    "BranchSpec",
    "build_registry",
    "validate_events",
]
