from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

from ..records import RecordFile


class Reader(ABC):
    @abstractmethod
    def read(self, path: str) -> RecordFile:
        ...

    def iter_events(self, path: str) -> Iterator[dict]:
        """Optional streaming path; default loads via read()."""
        return iter(self.read(path).events)
