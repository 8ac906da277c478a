"""
Item normalizer: turns raw events and tasks into RetrievableItems.

Every item gets one synthesized sentence carrying all displayable fields
plus a temporal tag. That sentence is what the lexical and vector
matchers see, so both long and short weekday/month names are included.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from loguru import logger

from .models import (
    ItemKind, RetrievableItem, ScheduleEvent, ScheduleTask, TemporalTag
)


def describe_day(moment: datetime) -> str:
    """Human date string, e.g. 'Monday (Mon), October (Oct) 15, 2025'."""
    return (
        f"{moment.strftime('%A')} ({moment.strftime('%a')}), "
        f"{moment.strftime('%B')} ({moment.strftime('%b')}) "
        f"{moment.day}, {moment.year}"
    )


def classify_day(day: Optional[date], now: datetime) -> TemporalTag:
    """Tag a calendar day relative to the current instant."""
    if day is None:
        return TemporalTag.GENERAL
    today = now.date()
    if day == today:
        return TemporalTag.TODAY
    if day < today:
        return TemporalTag.PAST
    return TemporalTag.UPCOMING


def _time_range(event: ScheduleEvent) -> str:
    if event.is_all_day:
        return "All Day"
    if event.start_time and event.end_time:
        return f"{event.start_time}-{event.end_time}"
    return event.start_time or event.end_time or "All Day"


def normalize_event(event: ScheduleEvent, now: datetime) -> RetrievableItem:
    tag = classify_day(event.date.date(), now)
    text = (
        f"{tag.value} Event: {event.title}. Category: {event.category}. "
        f"Priority: {event.priority}. "
        f"Date: {describe_day(event.date)} {_time_range(event)}. "
        f"Details: {event.description or 'None'}"
    )
    return RetrievableItem(
        id=f"evt-{event.id}",
        kind=ItemKind.EVENT,
        title=event.title,
        rendered_text=text,
        tag=tag,
        source_ref=event,
        iso_date=event.date.isoformat(),
        priority=event.priority,
        category=event.category,
    )


def normalize_task(task: ScheduleTask, now: datetime) -> RetrievableItem:
    due = task.due_date
    tag = classify_day(due.date() if due else None, now)
    due_str = describe_day(due) if due else "No Due Date"
    status = "Done" if task.completed else "Pending"
    text = (
        f"{tag.value} Task: {task.title}. Category: {task.category}. "
        f"Priority: {task.priority}. Due: {due_str}. Status: {status}. "
        f"Details: {task.description or 'None'}"
    )
    return RetrievableItem(
        id=f"tsk-{task.id}",
        kind=ItemKind.TASK,
        title=task.title,
        rendered_text=text,
        tag=tag,
        source_ref=task,
        iso_date=due.isoformat() if due else None,
        priority=task.priority,
        category=task.category,
    )


def normalize(
    events: Iterable[ScheduleEvent],
    tasks: Iterable[ScheduleTask],
    now: datetime
) -> List[RetrievableItem]:
    """Build the full item set for one query. Pure apart from ``now``."""
    items = [normalize_event(e, now) for e in events]
    items.extend(normalize_task(t, now) for t in tasks)

    ids = [item.id for item in items]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate event or task ids in schedule")

    logger.debug(f"Normalized {len(items)} items")
    return items
