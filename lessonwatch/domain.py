from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Union

LessonId = Union[int, str]


@dataclass(frozen=True)
class Lesson:
    """A single scheduled lesson as seen in one fetch.

    Identity is ``id``; the other fields are compared when diffing snapshots.
    """

    id: LessonId
    start_date: dt.datetime  # UTC
    end_date: dt.datetime  # UTC
    type_name: str
    has_space: bool
    reservation: bool


# Fetch order, ids unique.
Snapshot = tuple[Lesson, ...]


def dedupe_lessons(lessons: Iterable[Lesson]) -> Snapshot:
    # Last occurrence of an id wins and keeps its own position.
    seen: set[LessonId] = set()
    result: list[Lesson] = []
    for lesson in reversed(list(lessons)):
        if lesson.id in seen:
            continue
        seen.add(lesson.id)
        result.append(lesson)
    result.reverse()
    return tuple(result)


class FetchError(RuntimeError):
    """Upstream unreachable, login expired or payload malformed.

    The refresh cycle is aborted and the stored snapshot stays as it was.
    """


class NotifyError(RuntimeError):
    """Mail delivery failed. Does not affect the stored snapshot."""


class BusyError(RuntimeError):
    """A refresh cycle is already running; the caller may retry later."""
