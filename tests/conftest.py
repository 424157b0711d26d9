"""Shared fixtures for the test suite."""

import pytest
from unittest.mock import MagicMock

from scheduler_api.access import AdminDirectory
from scheduler_api.config import Settings
from scheduler_api.data_access import TaskDataProvider


@pytest.fixture
def test_settings():
    """Settings pointing at a fake project with a static admin list."""
    s = Settings()
    s.PROJECT_ID = "proj"
    s.DATASET = "sched"
    s.TASK_TABLE = "Tasks"
    s.PER_KEY_TABLE = "Per_Key_Per_Day"
    s.PER_PERSON_TABLE = "Per_Person_Per_Day"
    s.ADMIN_TABLE = "Admins"
    s.ADMIN_SOURCE = "static"
    s.ADMIN_EMAILS = ["admin@example.com"]
    s.ADMIN_CACHE_TTL = 300
    s.SHEET_ID = "sheet-123"
    s.SHEET_ADMIN_RANGE = "Admins!A2:A"
    s.SHEET_MAPPING_RANGE = "Mapping!A2:B"
    s.DEFAULT_PAGE_SIZE = 500
    return s


@pytest.fixture
def warehouse():
    """Mock WarehouseClient: query() returns [] and execute() affects 1 row by default."""
    wh = MagicMock()
    wh.query.return_value = []
    wh.execute.return_value = 1
    return wh


@pytest.fixture
def sheets():
    sh = MagicMock()
    sh.get_values.return_value = []
    sh.update_values.return_value = 2
    return sh


@pytest.fixture
def provider(warehouse, test_settings, sheets):
    return TaskDataProvider(warehouse, test_settings, sheets=sheets)


@pytest.fixture
def admins(test_settings):
    return AdminDirectory(test_settings)


@pytest.fixture
def sample_task():
    """Factory fixture; call with overrides to get a task body dict."""
    def _make(**overrides):
        task = {
            "Key": 101,
            "Delivery_code": "DEL-001/A",
            "DelCode_w_o__": "DEL-001",
            "Step_ID": 1,
            "Task_Details": "Prepare draft",
            "Client": "Acme",
            "Short_Description": "Quarterly report",
            "Planned_Start_Timestamp": "2025-01-10T09:00:00Z",
            "Planned_Delivery_Timestamp": "2025-01-15T18:00:00Z",
            "Responsibility": "Zoya",
            "Current_Status": "Planned",
            "Emails": "zoya.a@example.com, hitesh.r@example.com",
            "sliders": [
                {"day": "2025-01-10", "duration": 60, "slot": "AM", "personResponsible": "Zoya"},
                {"day": "2025-01-11", "duration": 30, "slot": "PM", "personResponsible": "Zoya"},
            ],
        }
        task.update(overrides)
        return task
    return _make
