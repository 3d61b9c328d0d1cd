from __future__ import annotations

import threading
from typing import Final, Union

from lessonwatch.domain import Snapshot


class _Uninitialized:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNINITIALIZED"


UNINITIALIZED: Final = _Uninitialized()


class SnapshotStore:
    """Holds the last committed lesson snapshot for the process lifetime.

    Written only by the refresh orchestrator, replaced wholesale.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Union[Snapshot, _Uninitialized] = UNINITIALIZED

    def get(self) -> Union[Snapshot, _Uninitialized]:
        with self._lock:
            return self._snapshot

    def replace(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = tuple(snapshot)

    @property
    def is_initialized(self) -> bool:
        return self.get() is not UNINITIALIZED
