"""Smart lists of the sidebar (Today, Upcoming, Anytime, Someday, Logbook)."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional

from models.task import Task

VIEWS = ("today", "upcoming", "anytime", "someday", "logbook")
UPCOMING_DAYS = 7


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def view_query(view: str, today: Optional[date] = None):
    """Return a query of the tasks shown in ``view``.

    Every list except the logbook renders in ``(order, id)`` sequence; the
    logbook shows the most recently completed tasks first.
    """
    if view not in VIEWS:
        raise ValueError(f"Unknown view '{view}'.")
    start = _day_start(today or date.today())
    query = Task.query
    if view == "today":
        query = query.filter(Task.due_date >= start, Task.due_date < start + timedelta(days=1))
    elif view == "upcoming":
        query = query.filter(
            Task.due_date >= start,
            Task.due_date < start + timedelta(days=UPCOMING_DAYS),
        )
    elif view == "anytime":
        query = query.filter(Task.due_date.is_(None))
    elif view == "someday":
        query = query.filter(Task.due_date.is_(None), Task.status == "pending")
    else:
        return query.filter(Task.status == "completed").order_by(
            Task.completed_at.desc(), Task.id.desc()
        )
    return query.order_by(Task.order.asc(), Task.id.asc())


def tasks_for_view(view: str, today: Optional[date] = None) -> list[Task]:
    return view_query(view, today=today).all()
