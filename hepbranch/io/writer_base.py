from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional

from ..records import EventRecords


class Writer(ABC):
    @abstractmethod
    def write(
        self,
        path: str,
        events: Iterable[EventRecords],
        classes: Mapping[str, str],
        metadata: Optional[Mapping[str, str]] = None,
        **kwargs,
    ) -> None:
        ...
