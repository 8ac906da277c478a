"""Shared fixtures. All tests run against a fixed clock and a mocked model."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from klyo.assistant.config import Config, LLMConfig
from klyo.assistant.llm import Critique, ScheduleLLM
from klyo.assistant.models import ScheduleEvent, ScheduleTask

# Sunday
NOW = datetime(2025, 3, 2, 9, 30)


def make_event(id, title, when, **kwargs) -> ScheduleEvent:
    fields = {
        "id": id,
        "title": title,
        "date": when,
        "startTime": "09:00",
        "endTime": "10:00",
        "category": "work",
        "priority": "medium",
    }
    fields.update(kwargs)
    return ScheduleEvent.model_validate(fields)


def make_task(id, title, due=None, **kwargs) -> ScheduleTask:
    fields = {"id": id, "title": title, "dueDate": due}
    fields.update(kwargs)
    return ScheduleTask.model_validate(fields)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def config():
    return Config(llm=LLMConfig(api_key="test-key"))


@pytest.fixture
def llm():
    """ScheduleLLM double with harmless defaults for every stage."""
    mock = AsyncMock(spec=ScheduleLLM)
    mock.expand.return_value = []
    mock.rerank.return_value = []
    mock.generate.return_value = "Here is what I found."
    mock.critique.return_value = Critique(score=95, critique="Accurate.")
    mock.rewrite.return_value = "Rewritten answer."
    return mock


@pytest.fixture
def schedule():
    """A small schedule around NOW: one past, one today, two upcoming, two tasks."""
    events = [
        make_event("1", "Team Meeting", NOW - timedelta(days=1), description="Weekly team sync"),
        make_event("2", "Doctor Appointment", NOW.replace(hour=0, minute=0),
                   startTime="14:00", endTime="15:00", category="health",
                   description="Annual checkup"),
        make_event("3", "Coffee with Sarah", NOW + timedelta(days=2),
                   category="social", priority="low", description="Catch up over coffee"),
        make_event("4", "Project Presentation", NOW + timedelta(days=10),
                   priority="high", description="Present Q4 results"),
    ]
    tasks = [
        make_task("1", "Review budget", NOW + timedelta(days=1), priority="high"),
        make_task("2", "Read a book", None, category="personal"),
    ]
    return events, tasks
