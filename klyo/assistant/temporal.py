"""
Temporal intent detection and date filtering.

Two filter passes run per query:

- coarse: before reranking, present/future questions lose every [PAST] item
  except tasks that are still open
- strict: after reranking, explicit "today"/"tonight" or month mentions
  narrow the candidates to that calendar day or month
"""

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, TypeVar

from .models import ItemKind, RetrievableItem, ScoredCandidate, TemporalTag


class TemporalIntent(Enum):
    """What part of the timeline a question is about."""
    PAST = "past"
    PRESENT = "present"
    NEUTRAL = "neutral"


_PAST_PATTERNS = re.compile(
    r"\b(yesterday|last|done|completed|finished|ago|previous|past|earlier|did)\b",
    re.IGNORECASE,
)

_PRESENT_PATTERNS = re.compile(
    r"\b(today|tonight|now|currently|upcoming|next|tomorrow|this week|soon|left|remaining)\b",
    re.IGNORECASE,
)

# Explicit forward markers outrank past phrasing ("did I book anything for tomorrow?")
_FUTURE_PATTERNS = re.compile(
    r"\b(tomorrow|next|upcoming|soon|later)\b",
    re.IGNORECASE,
)

_GREETING_OPENER = re.compile(
    r"^\s*(hi|hello|hey|good (morning|afternoon|evening))\b",
    re.IGNORECASE,
)

_TODAY_PATTERN = re.compile(r"\b(today|tonight)\b", re.IGNORECASE)

_THIS_MONTH_PATTERN = re.compile(r"\bthis month\b", re.IGNORECASE)

_MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

# Longest names first so "march" wins over "mar"; "may" is skipped when
# used as a modal verb ("may I ...").
_MONTH_PATTERN = re.compile(
    r"\b(" + "|".join(
        name if name != "may" else r"may(?!\s+(?:i|we|you)\b)"
        for name in sorted(_MONTHS, key=len, reverse=True)
    ) + r")\b",
    re.IGNORECASE,
)


def detect_intent(question: str) -> TemporalIntent:
    """Past phrasing wins over present phrasing unless a forward marker appears."""
    if _FUTURE_PATTERNS.search(question):
        return TemporalIntent.PRESENT
    if _PAST_PATTERNS.search(question):
        return TemporalIntent.PAST
    if _PRESENT_PATTERNS.search(question) or _GREETING_OPENER.search(question):
        return TemporalIntent.PRESENT
    return TemporalIntent.NEUTRAL


def asks_for_today(question: str) -> bool:
    return bool(_TODAY_PATTERN.search(question))


def target_month(question: str, now: datetime) -> Optional[int]:
    """Month (1-12) a question is scoped to, or None."""
    if _THIS_MONTH_PATTERN.search(question):
        return now.month
    match = _MONTH_PATTERN.search(question)
    if match:
        return _MONTHS[match.group(1).lower()]
    return None


def is_open_task(item: RetrievableItem) -> bool:
    return item.kind is ItemKind.TASK and not item.source_ref.completed


def coarse_filter(
    candidates: List[ScoredCandidate],
    intent: TemporalIntent
) -> List[ScoredCandidate]:
    """Drop [PAST] candidates for present/future questions. Overdue open tasks stay."""
    if intent is not TemporalIntent.PRESENT:
        return candidates
    return [
        c for c in candidates
        if TemporalTag.PAST.value not in c.item.rendered_text or is_open_task(c.item)
    ]


Item = TypeVar("Item", bound=RetrievableItem)


def strict_filter(
    items: Sequence[Item],
    question: str,
    now: datetime
) -> List[Item]:
    """
    Apply date-literal filtering.

    "today"/"tonight" keeps items dated on the current day. A month
    mention keeps items in that month of any year. Undated items never
    survive either filter. Otherwise the input is returned unchanged.
    """
    if asks_for_today(question):
        today = now.date().isoformat()
        return [i for i in items if i.iso_date and i.iso_date.startswith(today)]

    month = target_month(question, now)
    if month is not None:
        return [i for i in items if i.day is not None and i.day.month == month]

    return list(items)
