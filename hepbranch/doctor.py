from __future__ import annotations

from typing import Any, Dict, List


def _smoke_projection() -> str:
    # every class must accept an empty input array
    from .models import EventGraph
    from .projectors import BranchClass
    from .registry import build_registry

    graph = EventGraph()
    graph.set_array("empty", [])
    registry = build_registry([("empty", bc.value, bc.value) for bc in BranchClass])
    records = registry.process(graph)
    return f"{len(records)} record classes"


def doctor_report() -> Dict[str, Any]:
    checks: List[Dict[str, Any]] = []

    try:
        checks.append({"name": "projectors", "ok": True, "detail": _smoke_projection()})
    except Exception as e:
        checks.append({"name": "projectors", "ok": False, "detail": str(e)})

    # Optional deps
    try:
        import pyarrow

        checks.append({"name": "pyarrow (parquet)", "ok": True, "detail": f"installed ({pyarrow.__version__})"})
    except ImportError:
        checks.append({"name": "pyarrow (parquet)", "ok": True, "detail": "not installed (optional)"})

    from .io.registry import available_formats

    checks.append({"name": "record formats", "ok": True, "detail": ", ".join(available_formats())})

    ok_all = all(c["ok"] for c in checks)
    summary = "hepbranch doctor: OK" if ok_all else "hepbranch doctor: FAIL"

    return {"summary": summary, "checks": checks}
