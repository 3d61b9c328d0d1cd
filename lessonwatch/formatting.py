from __future__ import annotations

import datetime as dt
from typing import Callable, Iterable, TypeVar
from zoneinfo import ZoneInfo

from lessonwatch.domain import Lesson

K = TypeVar("K")


def _group_by(lessons: Iterable[Lesson], key: Callable[[Lesson], K]) -> dict[K, list[Lesson]]:
    # Groups appear in first-seen order; members keep input order.
    groups: dict[K, list[Lesson]] = {}
    for lesson in lessons:
        groups.setdefault(key(lesson), []).append(lesson)
    return groups


def _local(value: dt.datetime, tz: ZoneInfo) -> dt.datetime:
    return value.astimezone(tz)


def _day_label(value: dt.datetime) -> str:
    # e.g. "Mon 5.3."
    return f"{value:%a} {value.day}.{value.month}."


def format_freed_digest(lessons: Iterable[Lesson], tz: str = "UTC") -> str:
    zone = ZoneInfo(tz)
    groups = _group_by(lessons, lambda lesson: _day_label(_local(lesson.start_date, zone)))

    blocks = []
    for day, day_lessons in groups.items():
        lines = [
            f"  {_local(lesson.start_date, zone):%H:%M} - {_local(lesson.end_date, zone):%H:%M} {lesson.type_name}"
            for lesson in day_lessons
        ]
        blocks.append(day + "\n" + "\n".join(lines))

    return "Freed lessons:\n\n" + "\n\n".join(blocks)


def format_lessons_overview(lessons: Iterable[Lesson], tz: str = "UTC") -> str:
    """Plain-text listing of a snapshot for the operator console.

    Own reservations are marked with ``X``, lessons without space get a
    ``(full)`` suffix.
    """

    zone = ZoneInfo(tz)
    groups = _group_by(lessons, lambda lesson: _local(lesson.start_date, zone).strftime("%Y-%m-%d"))

    lines: list[str] = []
    for day, day_lessons in groups.items():
        lines.append(day)
        for lesson in day_lessons:
            marker = "X" if lesson.reservation else " "
            suffix = "" if lesson.has_space else " (full)"
            lines.append(f"  {marker} {_local(lesson.start_date, zone):%H:%M} {lesson.type_name}{suffix}")
    return "\n".join(lines)
