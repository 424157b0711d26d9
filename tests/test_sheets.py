"""Tests for SheetsClient with a mocked Sheets v4 service."""

import pytest
from unittest.mock import MagicMock

from googleapiclient.errors import HttpError

from scheduler_api.errors import SheetsError
from scheduler_api.sheets import SheetsClient


def _make_client(test_settings, response=None):
    service = MagicMock()
    values = service.spreadsheets.return_value.values.return_value
    values.get.return_value.execute.return_value = response or {}
    values.update.return_value.execute.return_value = response or {}
    return SheetsClient(service=service, settings=test_settings), values


def test_get_values(test_settings):
    client, values = _make_client(test_settings, {"values": [["Zoya", "z@x.com"]]})
    assert client.get_values("Mapping!A2:B") == [["Zoya", "z@x.com"]]
    values.get.assert_called_once_with(spreadsheetId="sheet-123", range="Mapping!A2:B")


def test_get_values_empty_range(test_settings):
    client, _ = _make_client(test_settings, {})
    assert client.get_values("Mapping!A2:B") == []


def test_update_values(test_settings):
    client, values = _make_client(test_settings, {"updatedCells": 2})
    assert client.update_values("Mapping!A3:B3", [["Hitesh", "h@x.com"]]) == 2
    kwargs = values.update.call_args.kwargs
    assert kwargs["valueInputOption"] == "USER_ENTERED"
    assert kwargs["body"] == {"values": [["Hitesh", "h@x.com"]]}


def test_http_error_wrapped(test_settings):
    client, values = _make_client(test_settings)
    resp = MagicMock(status=403, reason="Forbidden")
    values.get.return_value.execute.side_effect = HttpError(resp, b"denied")
    with pytest.raises(SheetsError, match="Failed to read"):
        client.get_values("Admins!A2:A")


def test_missing_sheet_id(test_settings):
    test_settings.SHEET_ID = ""
    client = SheetsClient(service=MagicMock(), settings=test_settings)
    with pytest.raises(SheetsError, match="SHEET_ID"):
        client.get_values("Admins!A2:A")
