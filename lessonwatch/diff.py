from __future__ import annotations

from lessonwatch.domain import Lesson, LessonId, Snapshot


def _is_freed(old: Lesson, new: Lesson, notify_from_own_actions: bool) -> bool:
    was_freed = not old.has_space and new.has_space
    if not was_freed:
        return False
    if notify_from_own_actions:
        return True
    # Approximation: a reservation on either side suggests the opening came
    # from the user's own booking activity, not from someone else cancelling.
    return not (old.reservation or new.reservation)


def classify(previous: Snapshot, current: Snapshot, notify_from_own_actions: bool) -> Snapshot:
    """Return the lessons of ``current`` worth reporting as freed.

    A lesson unknown to ``previous`` is always reported. A known lesson is
    reported when it went from full to having space, unless the reservation
    flag on either side points to the user's own action and
    ``notify_from_own_actions`` is false. The result keeps ``current`` order.
    """

    by_id: dict[LessonId, Lesson] = {}
    for lesson in previous:
        # First match is authoritative.
        by_id.setdefault(lesson.id, lesson)

    freed: list[Lesson] = []
    seen: set[LessonId] = set()
    for lesson in current:
        if lesson.id in seen:
            continue
        seen.add(lesson.id)
        old = by_id.get(lesson.id)
        if old is None or _is_freed(old, lesson, notify_from_own_actions):
            freed.append(lesson)
    return tuple(freed)
