"""Tests for Pydantic request models."""

import pytest
from pydantic import ValidationError

from scheduler_api.models import (
    DeadlineRequest,
    SliderEntry,
    TaskUpdateRequest,
    TaskUpsertRequest,
)


class TestTaskUpsertRequest:
    def test_minimal(self):
        t = TaskUpsertRequest(Key=1)
        assert t.Step_ID is None
        assert t.sliders == []
        assert t.Emails is None

    def test_timestamps_parsed(self, sample_task):
        t = TaskUpsertRequest(**sample_task())
        assert t.Planned_Start_Timestamp.year == 2025
        assert len(t.sliders) == 2
        assert t.sliders[0].personResponsible == "Zoya"

    def test_missing_key_raises(self):
        with pytest.raises(ValidationError):
            TaskUpsertRequest(Step_ID=0)

    def test_bad_key_raises(self):
        with pytest.raises(ValidationError):
            TaskUpsertRequest(Key="abc")


class TestSliderEntry:
    def test_numeric_string_duration(self):
        s = SliderEntry(day="2025-01-10", duration="45", slot="AM")
        assert s.duration == 45
        assert s.personResponsible is None

    def test_missing_slot_raises(self):
        with pytest.raises(ValidationError):
            SliderEntry(day="2025-01-10", duration=45)


def test_task_update_all_optional():
    assert TaskUpdateRequest().model_dump(exclude_none=True) == {}


def test_deadline_requires_delivery():
    with pytest.raises(ValidationError):
        DeadlineRequest()
