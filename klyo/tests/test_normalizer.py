"""Tests for item normalization."""

import time
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from klyo.assistant.models import ItemKind, ScheduleTask, TemporalTag
from klyo.assistant.normalizer import (
    classify_day, describe_day, normalize, normalize_event, normalize_task
)

from conftest import NOW, make_event, make_task


def test_describe_day_long_and_short_names():
    assert describe_day(datetime(2025, 3, 2)) == "Sunday (Sun), March (Mar) 2, 2025"
    assert describe_day(datetime(2025, 10, 15, 14, 0)) == "Wednesday (Wed), October (Oct) 15, 2025"


class TestClassifyDay:

    def test_same_day_is_today(self):
        assert classify_day(date(2025, 3, 2), NOW) is TemporalTag.TODAY

    def test_earlier_is_past(self):
        assert classify_day(date(2025, 3, 1), NOW) is TemporalTag.PAST

    def test_later_is_upcoming(self):
        assert classify_day(date(2026, 1, 1), NOW) is TemporalTag.UPCOMING

    def test_no_date_is_general(self):
        assert classify_day(None, NOW) is TemporalTag.GENERAL


class TestNormalizeEvent:

    def test_rendered_text_carries_all_fields(self):
        event = make_event(
            "2", "Doctor Appointment", datetime(2025, 3, 2),
            startTime="14:00", endTime="15:00", category="health",
            priority="medium", description="Annual checkup",
        )
        item = normalize_event(event, NOW)

        assert item.id == "evt-2"
        assert item.kind is ItemKind.EVENT
        assert item.tag is TemporalTag.TODAY
        assert item.iso_date == "2025-03-02T00:00:00"
        assert item.category == "health"
        assert item.priority == "medium"
        assert item.source_ref is event
        assert item.rendered_text == (
            "[TODAY] Event: Doctor Appointment. Category: health. Priority: medium. "
            "Date: Sunday (Sun), March (Mar) 2, 2025 14:00-15:00. "
            "Details: Annual checkup"
        )

    def test_all_day_event(self):
        item = normalize_event(make_event("5", "Holiday", datetime(2025, 3, 10), isAllDay=True), NOW)
        assert "All Day" in item.rendered_text
        assert item.rendered_text.startswith("[UPCOMING]")

    def test_missing_description(self):
        item = normalize_event(make_event("6", "Gym", datetime(2025, 2, 1)), NOW)
        assert item.rendered_text.endswith("Details: None")
        assert item.tag is TemporalTag.PAST

    def test_normalizing_twice_is_identical(self):
        event = make_event("7", "Dentist", datetime(2025, 3, 4))
        assert normalize_event(event, NOW).rendered_text == normalize_event(event, NOW).rendered_text


class TestNormalizeTask:

    def test_undated_task_is_general(self):
        item = normalize_task(make_task("1", "Read a book"), NOW)
        assert item.id == "tsk-1"
        assert item.kind is ItemKind.TASK
        assert item.tag is TemporalTag.GENERAL
        assert item.iso_date is None
        assert item.day is None
        assert "Due: No Due Date" in item.rendered_text
        assert "Status: Pending" in item.rendered_text

    def test_dated_completed_task(self):
        item = normalize_task(make_task("2", "File taxes", datetime(2025, 2, 20), completed=True), NOW)
        assert item.tag is TemporalTag.PAST
        assert item.day == date(2025, 2, 20)
        assert "Due: Thursday (Thu), February (Feb) 20, 2025" in item.rendered_text
        assert "Status: Done" in item.rendered_text


def test_normalize_empty_inputs():
    assert normalize([], [], NOW) == []


def test_normalize_prefixes_ids_by_kind():
    items = normalize([make_event("1", "A", NOW)], [make_task("1", "B")], NOW)
    assert [i.id for i in items] == ["evt-1", "tsk-1"]


def test_normalize_rejects_duplicate_ids():
    events = [make_event("1", "A", NOW), make_event("1", "B", NOW)]
    with pytest.raises(ValueError):
        normalize(events, [], NOW)


def test_task_accepts_camel_case_and_date_strings():
    task = ScheduleTask.model_validate({"id": 7, "title": "Call mom", "dueDate": "2025-03-05"})
    assert task.id == "7"
    assert task.due_date == datetime(2025, 3, 5)


def test_source_models_are_read_only():
    event = make_event("1", "A", NOW)
    with pytest.raises(ValidationError):
        event.title = "changed"


@pytest.fixture
def new_york_tz(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is unavailable on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestAwareTimestamps:

    def test_utc_string_becomes_local_naive(self):
        event = make_event("1", "Late call", "2025-03-03T02:00:00Z")
        expected = datetime(2025, 3, 3, 2, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert event.date.tzinfo is None
        assert event.date == expected

    def test_string_and_datetime_inputs_agree(self):
        from_string = make_event("1", "Late call", "2025-03-03T02:00:00Z")
        from_object = make_event("1", "Late call", datetime(2025, 3, 3, 2, tzinfo=timezone.utc))
        assert from_string.date == from_object.date

    def test_task_due_date_with_offset(self):
        task = make_task("1", "Submit report", "2025-03-05T12:00:00+02:00")
        assert task.due_date.tzinfo is None

    def test_utc_evening_is_local_today(self, new_york_tz):
        now = datetime(2025, 3, 2, 22, 0)
        items = normalize([make_event("1", "Late call", "2025-03-03T02:00:00Z")], [], now)
        assert items[0].tag is TemporalTag.TODAY
        assert items[0].iso_date.startswith("2025-03-02T21:00")
