from __future__ import annotations

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


def sha256_file(path: str | Path, *, chunk_size: int = 1024 * 1024) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


def _git_sha() -> str:
    """Git SHA of the checkout hepbranch runs from, or "" outside a worktree."""
    here = Path(__file__).resolve().parent
    if not any((parent / ".git").exists() for parent in [here] + list(here.parents)):
        return ""
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=str(here), stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):
        return ""
    return out.decode("utf-8").strip()


def build_provenance(
    *,
    tool_version: str,
    input_path: str | Path,
    output_path: str | Path,
    output_format: str,
    branches: Iterable[tuple[str, str, str]],
    argv: Optional[list[str]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    prov: Dict[str, Any] = {
        "tool": "hepbranch",
        "tool_version": tool_version,
        "git_sha": _git_sha(),
        "utc_timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "input": {
            "path": str(input_path),
            "sha256": sha256_file(input_path),
        },
        "output": {
            "path": str(output_path),
            "format": output_format,
        },
        "branches": [list(b) for b in branches],
        "argv": list(argv or []),
    }
    if extra:
        prov["extra"] = extra
    return prov


def stable_json_dumps(obj: Any) -> str:
    """Deterministic JSON for hashing / embedding."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
