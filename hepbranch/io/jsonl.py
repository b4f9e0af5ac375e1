"""JSON lines record files.

The first line is a header ``{"hepbranch": {"classes": ..., "metadata": ...}}``;
every following line holds one event as produced by ``EventRecords.to_dict``.
"""

from __future__ import annotations

import json
from typing import Iterable, Iterator, Mapping, Optional

from ..provenance import stable_json_dumps
from ..records import EventRecords, RecordFile
from ._open import open_text
from .reader_base import Reader
from .writer_base import Writer

HEADER_KEY = "hepbranch"


class JSONLinesWriter(Writer):
    def write(
        self,
        path: str,
        events: Iterable[EventRecords],
        classes: Mapping[str, str],
        metadata: Optional[Mapping[str, str]] = None,
        **kwargs,
    ) -> None:
        header = {HEADER_KEY: {"classes": dict(classes), "metadata": dict(metadata or {})}}
        with open_text(path, "w") as f:
            # keep branch order in the header
            f.write(json.dumps(header, separators=(",", ":"), ensure_ascii=False) + "\n")
            for ev in events:
                f.write(stable_json_dumps(ev.to_dict()) + "\n")


class JSONLinesReader(Reader):
    def _header(self, path: str) -> dict:
        with open_text(path) as f:
            first = f.readline()
        if not first.strip():
            return {}
        obj = json.loads(first)
        return obj.get(HEADER_KEY, {}) if isinstance(obj, dict) else {}

    def iter_events(self, path: str) -> Iterator[dict]:
        with open_text(path) as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError as e:
                    raise ValueError(f"{path}:{lineno}: invalid JSON ({e})") from e
                if HEADER_KEY in obj:
                    continue
                yield obj

    def read(self, path: str) -> RecordFile:
        header = self._header(path)
        return RecordFile(
            events=list(self.iter_events(path)),
            classes=dict(header.get("classes", {})),
            metadata=dict(header.get("metadata", {})),
            format_name="jsonl",
        )
