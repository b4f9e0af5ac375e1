"""
Consistency checks for projected records.

Provides checks for:
- Reference integrity (every referenced unique id has an output record)
- Null references where an originating particle is required
- Duplicate unique ids
- Fixed-size array lengths

Checks run on ``EventRecords`` straight from the registry as well as on
plain dictionaries read back from a record file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from .records import RECORD_TYPES, EventRecords


@dataclass
class ValidationIssue:
    """A single issue found in an event's records."""

    level: str  # "error", "warning", "info"
    event_number: int
    branch: Optional[str]
    record_index: Optional[int]  # None for branch-level issues
    message: str

    def __str__(self) -> str:
        loc = f"event {self.event_number}"
        if self.branch is not None:
            loc += f", {self.branch}"
            if self.record_index is not None:
                loc += f"[{self.record_index}]"
        return f"[{self.level.upper()}] {loc}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "event_number": self.event_number,
            "branch": self.branch,
            "record_index": self.record_index,
            "message": self.message,
        }


@dataclass
class ValidationReport:
    """Summary of all validation issues."""

    issues: list[ValidationIssue] = field(default_factory=list)
    n_events: int = 0

    @property
    def n_errors(self) -> int:
        return sum(1 for i in self.issues if i.level == "error")

    @property
    def n_warnings(self) -> int:
        return sum(1 for i in self.issues if i.level == "warning")

    @property
    def is_valid(self) -> bool:
        return self.n_errors == 0

    def __str__(self) -> str:
        lines = [
            f"Validation: {self.n_events} events, {self.n_errors} errors, "
            f"{self.n_warnings} warnings, {len(self.issues)} total issues"
        ]
        for issue in self.issues[:50]:  # Cap output
            lines.append(f"  {issue}")
        if len(self.issues) > 50:
            lines.append(f"  ... and {len(self.issues) - 50} more")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "n_events": self.n_events,
            "n_errors": self.n_errors,
            "n_warnings": self.n_warnings,
            "n_issues": len(self.issues),
            "is_valid": self.is_valid,
            "issues": [i.to_dict() for i in self.issues],
        }


EventLike = Union[EventRecords, Mapping[str, Any]]


def _as_rows(event: EventLike, classes: Optional[Mapping[str, str]]) -> tuple[int, dict[str, list[dict]], dict[str, str]]:
    if isinstance(event, EventRecords):
        rows = {name: [r.to_dict() for r in records] for name, records in event.branches.items()}
        return event.event_number, rows, dict(classes or event.classes)
    evt = int(event.get("event_number", 0) or 0)
    rows = {k: list(v or []) for k, v in event.items() if k != "event_number"}
    return evt, rows, dict(classes or {})


def check_references(event: EventLike, *, classes: Optional[Mapping[str, str]] = None) -> list[ValidationIssue]:
    """Check one event's records.

    Args:
        event: Records of one event, as ``EventRecords`` or as the dict
            produced by ``EventRecords.to_dict``.
        classes: Branch name -> class name. Taken from ``event`` when it is
            an ``EventRecords``.

    Returns:
        List of issues found.
    """
    issues: list[ValidationIssue] = []
    evt, rows, classes = _as_rows(event, classes)

    known: dict[int, str] = {}
    for name, records in rows.items():
        seen: set[int] = set()
        for i, rec in enumerate(records):
            uid = int(rec.get("unique_id", 0) or 0)
            if not uid:
                continue
            if uid in seen:
                issues.append(ValidationIssue("error", evt, name, i, f"duplicate unique id {uid} in branch"))
            elif uid in known:
                issues.append(ValidationIssue(
                    "info", evt, name, i, f"unique id {uid} also stored in branch '{known[uid]}'"
                ))
            seen.add(uid)
            known.setdefault(uid, name)

    for name, records in rows.items():
        class_name = classes.get(name)
        if class_name is None:
            issues.append(ValidationIssue("warning", evt, name, None, "unknown record class, branch not checked"))
            continue
        record_type = RECORD_TYPES.get(class_name)
        if record_type is None:
            issues.append(ValidationIssue("error", evt, name, None, f"unknown record class '{class_name}'"))
            continue

        for i, rec in enumerate(records):
            for f in record_type.reference_fields:
                ref = int(rec.get(f, 0) or 0)
                if not ref:
                    issues.append(ValidationIssue("error", evt, name, i, f"null reference in '{f}'"))
                elif ref not in known:
                    issues.append(ValidationIssue("error", evt, name, i, f"dangling reference {ref} in '{f}'"))
            for f in record_type.reference_list_fields:
                for ref in rec.get(f) or []:
                    if int(ref) not in known:
                        issues.append(ValidationIssue("error", evt, name, i, f"dangling reference {ref} in '{f}'"))
            for f, size in record_type.array_sizes.items():
                n = len(rec.get(f) or [])
                if n != size:
                    issues.append(ValidationIssue(
                        "error", evt, name, i, f"'{f}' has {n} entries, expected {size}"
                    ))

    return issues


def validate_events(
    events: Iterable[EventLike],
    *,
    classes: Optional[Mapping[str, str]] = None,
    max_events: int = -1,
) -> ValidationReport:
    """Check a sequence of events.

    Args:
        events: Events as ``EventRecords`` or dicts.
        classes: Branch name -> class name for dict input.
        max_events: Maximum number of events to check (-1 for all).

    Returns:
        A ValidationReport summarizing all issues found.
    """
    report = ValidationReport()
    for i, event in enumerate(events):
        if max_events >= 0 and i >= max_events:
            break
        report.issues.extend(check_references(event, classes=classes))
        report.n_events += 1
    return report
