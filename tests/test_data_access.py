"""Tests for TaskDataProvider with a mocked warehouse and sheets client."""

import pytest

from scheduler_api.data_access import (
    group_by_delivery_code,
    group_per_key,
    group_per_person,
    _a1_column_shift,
)
from scheduler_api.errors import NotFoundError, WarehouseError
from scheduler_api.models import (
    DeadlineRequest,
    ReassignRequest,
    TaskUpdateRequest,
    TaskUpsertRequest,
)


# ---------------------------------------------------------------------------
# Row reshaping
# ---------------------------------------------------------------------------

class TestGrouping:
    def test_group_by_delivery_code_keeps_order(self):
        rows = [
            {"DelCode_w_o__": "D1", "Step_ID": 0},
            {"DelCode_w_o__": "D2", "Step_ID": 0},
            {"DelCode_w_o__": "D1", "Step_ID": 2},
        ]
        grouped = group_by_delivery_code(rows)
        assert list(grouped) == ["D1", "D2"]
        assert [r["Step_ID"] for r in grouped["D1"]] == [0, 2]

    def test_group_per_key_sums_durations(self):
        rows = [
            {"Key": 1, "Day": "2025-01-10", "Duration": 60},
            {"Key": 1, "Day": "2025-01-11", "Duration": "30"},
            {"Key": 2, "Day": "2025-01-10", "Duration": None},
        ]
        grouped = group_per_key(rows)
        assert grouped["1"]["totalDuration"] == 90
        assert len(grouped["1"]["entries"]) == 2
        assert grouped["2"]["totalDuration"] == 0

    def test_group_per_person_nests_days(self):
        rows = [
            {"Responsibility": "Zoya", "Day": "2025-01-10", "Duration_In_Minutes": 120},
            {"Responsibility": "Zoya", "Day": "2025-01-10", "Duration_In_Minutes": 30},
            {"Responsibility": "Zoya", "Day": "2025-01-11", "Duration_In_Minutes": 60},
            {"Responsibility": "Hitesh", "Day": "2025-01-10", "Duration_In_Minutes": "bad"},
        ]
        grouped = group_per_person(rows)
        assert grouped["Zoya"] == {
            "totalDuration": 210,
            "days": {"2025-01-10": 150, "2025-01-11": 60},
        }
        assert grouped["Hitesh"]["totalDuration"] == 0


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestGetTasks:
    def test_admin_list(self, provider, warehouse):
        warehouse.query.return_value = [{"DelCode_w_o__": "D1", "Step_ID": 0}]
        result = provider.get_tasks(["admin@example.com"], is_admin=True, limit=10)

        assert result == {"D1": [{"DelCode_w_o__": "D1", "Step_ID": 0}]}
        sql, params = warehouse.query.call_args[0]
        assert "`proj.sched.Tasks`" in sql
        assert params["limit"] == 10

    def test_non_admin_list_two_step(self, provider, warehouse):
        warehouse.query.side_effect = [
            [{"DelCode_w_o__": "D1"}, {"DelCode_w_o__": "D3"}],
            [{"DelCode_w_o__": "D1", "Step_ID": 0}, {"DelCode_w_o__": "D3", "Step_ID": 0}],
        ]
        result = provider.get_tasks(["zoya@example.com"], is_admin=False)

        assert list(result) == ["D1", "D3"]
        second_params = warehouse.query.call_args_list[1][0][1]
        assert second_params["codes"] == ["D1", "D3"]

    def test_non_admin_list_no_codes(self, provider, warehouse):
        warehouse.query.return_value = []
        assert provider.get_tasks(["nobody@example.com"], is_admin=False) == {}
        assert warehouse.query.call_count == 1

    def test_admin_detail(self, provider, warehouse):
        warehouse.query.return_value = [
            {"DelCode_w_o__": "D1", "Step_ID": 0},
            {"DelCode_w_o__": "D1", "Step_ID": 1},
        ]
        result = provider.get_tasks([], is_admin=True, del_code="D1")
        assert len(result["D1"]) == 2
        assert warehouse.query.call_count == 1

    def test_non_admin_detail_header_plus_assigned(self, provider, warehouse):
        warehouse.query.side_effect = [
            [{"DelCode_w_o__": "D1", "Step_ID": 0}],
            [{"DelCode_w_o__": "D1", "Step_ID": 3, "Emails": "Zoya@Example.com, h@example.com"}],
        ]
        result = provider.get_tasks(["zoya@example.com"], is_admin=False, del_code="D1")
        assert [r["Step_ID"] for r in result["D1"]] == [0, 3]

    def test_non_admin_detail_drops_rows_without_matching_email(self, provider, warehouse):
        warehouse.query.side_effect = [
            [{"DelCode_w_o__": "D1", "Step_ID": 0}],
            [
                {"DelCode_w_o__": "D1", "Step_ID": 2, "Emails": "bzoya@example.com"},
                {"DelCode_w_o__": "D1", "Step_ID": 3, "Emails": "zoya@example.com"},
                {"DelCode_w_o__": "D1", "Step_ID": 4, "Emails": None},
            ],
        ]
        result = provider.get_tasks(["zoya@example.com"], is_admin=False, del_code="D1")
        assert [r["Step_ID"] for r in result["D1"]] == [0, 3]

    def test_non_admin_detail_without_emails_returns_header(self, provider, warehouse):
        warehouse.query.return_value = [{"DelCode_w_o__": "D1", "Step_ID": 0}]
        result = provider.get_tasks([], is_admin=False, del_code="D1")
        assert result == {"D1": [{"DelCode_w_o__": "D1", "Step_ID": 0}]}
        assert warehouse.query.call_count == 1


def test_get_persons(provider, warehouse):
    warehouse.query.return_value = [{"Responsibility": "Hitesh"}, {"Responsibility": "Zoya"}]
    assert provider.get_persons() == ["Hitesh", "Zoya"]


def test_per_person_passes_filters(provider, warehouse):
    warehouse.query.return_value = [
        {"Responsibility": "Zoya", "Day": "2025-01-10", "Duration_In_Minutes": 45},
    ]
    result = provider.get_per_person_per_day(person="Zoya", start="2025-01-01")
    assert result["Zoya"]["days"] == {"2025-01-10": 45}
    assert warehouse.query.call_args[0][1] == {"person": "Zoya", "start": "2025-01-01"}


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------

class TestUpsertTask:
    def test_insert_new_task_and_sliders(self, provider, warehouse, sample_task):
        request = TaskUpsertRequest(**sample_task())
        warehouse.query.return_value = []

        result = provider.upsert_task(request)

        assert result == {"taskAction": "inserted", "slidersInserted": 2, "slidersUpdated": 0}
        task_sql, task_params, task_types = warehouse.execute.call_args_list[0][0]
        assert task_sql.startswith("INSERT INTO `proj.sched.Tasks`")
        assert "Emails" in task_sql
        assert task_params["Key"] == 101
        assert task_params["Planned_Tasks"] is None
        assert task_types["Planned_Start_Timestamp"] == "TIMESTAMP"

    def test_update_existing_task(self, provider, warehouse, sample_task):
        request = TaskUpsertRequest(**sample_task(sliders=[
            {"day": "2025-01-10", "duration": 90, "slot": "AM"},
        ]))
        warehouse.query.side_effect = [
            [{"Key": 101}],        # task exists
            [{"Duration": 60}],    # slider exists
        ]

        result = provider.upsert_task(request)

        assert result == {"taskAction": "updated", "slidersInserted": 0, "slidersUpdated": 1}
        task_sql = warehouse.execute.call_args_list[0][0][0]
        assert task_sql.startswith("UPDATE `proj.sched.Tasks` SET Delivery_code = @Delivery_code")
        assert "Key = @Key" in task_sql
        slider_sql, slider_params, _ = warehouse.execute.call_args_list[1][0]
        assert "UPDATE `proj.sched.Per_Key_Per_Day`" in slider_sql
        assert slider_params == {
            "Key": 101, "Day": "2025-01-10", "Slot": "AM",
            "Duration": 90, "Responsibility": None,
        }

    def test_missing_step_id_written_as_null(self, provider, warehouse, sample_task):
        task = sample_task()
        del task["Step_ID"]
        provider.upsert_task(TaskUpsertRequest(**task))

        task_params = warehouse.execute.call_args_list[0][0][1]
        assert task_params["Step_ID"] is None

    def test_sliders_written_serially(self, provider, warehouse, sample_task):
        request = TaskUpsertRequest(**sample_task())
        provider.upsert_task(request)
        # task check, then check/write per slider in order
        calls = [c[0] for c in warehouse.method_calls]
        assert calls == ["query", "execute", "query", "execute", "query", "execute"]


# ---------------------------------------------------------------------------
# Updates & deletes
# ---------------------------------------------------------------------------

class TestUpdates:
    def test_update_task_maps_fields(self, provider, warehouse):
        provider.update_task(5, TaskUpdateRequest(taskName="New", assignTo="Zoya"))
        sql, params, types = warehouse.execute.call_args[0]
        assert "Task_Details = @Task_Details" in sql
        assert "Responsibility = @Responsibility" in sql
        assert "Updated_at = @Updated_at" in sql
        assert sql.endswith("WHERE Key = @key")
        assert params["key"] == 5
        assert types["Task_Details"] == "STRING"

    def test_update_task_requires_fields(self, provider):
        with pytest.raises(ValueError, match="No fields"):
            provider.update_task(5, TaskUpdateRequest())

    def test_update_task_not_found(self, provider, warehouse):
        warehouse.execute.return_value = 0
        with pytest.raises(NotFoundError):
            provider.update_task(5, TaskUpdateRequest(status="Done"))

    def test_delivery_counts_header_only(self, provider, warehouse):
        provider.update_delivery_counts("D1", planned_tasks=4)
        sql, params, types = warehouse.execute.call_args[0]
        assert "SET Planned_Tasks = @Planned_Tasks WHERE DelCode_w_o__ = @del_code AND Step_ID = 0" in sql
        assert "Total_Tasks" not in sql
        assert types == {"Planned_Tasks": "INT64"}

    def test_delivery_counts_requires_value(self, provider):
        with pytest.raises(ValueError):
            provider.update_delivery_counts("D1")

    def test_delete_runs_both_deletes_in_one_transaction(self, provider, warehouse):
        warehouse.query.return_value = [{"n": 2}]
        assert provider.delete_delivery("D1") == 2

        warehouse.execute.assert_called_once()
        sql, params = warehouse.execute.call_args[0]
        assert params == {"del_code": "D1"}
        assert sql.strip().startswith("BEGIN TRANSACTION;")
        assert sql.strip().endswith("COMMIT TRANSACTION;")
        assert sql.index("DELETE FROM `proj.sched.Per_Key_Per_Day`") < sql.index(
            "DELETE FROM `proj.sched.Tasks` WHERE"
        )

    def test_delete_failure_propagates_without_other_writes(self, provider, warehouse):
        warehouse.query.return_value = [{"n": 2}]
        warehouse.execute.side_effect = WarehouseError("Transaction aborted")
        with pytest.raises(WarehouseError, match="aborted"):
            provider.delete_delivery("D1")
        assert warehouse.execute.call_count == 1

    def test_delete_unknown_code(self, provider, warehouse):
        warehouse.query.return_value = [{"n": 0}]
        with pytest.raises(NotFoundError):
            provider.delete_delivery("NOPE")
        warehouse.execute.assert_not_called()

    def test_reassign(self, provider, warehouse):
        provider.reassign_task(9, ReassignRequest(Responsibility="Hitesh", Emails="h@x.com"))
        params = warehouse.execute.call_args[0][1]
        assert params["Responsibility"] == "Hitesh"
        assert params["Emails"] == "h@x.com"
        assert "Email" not in params

    def test_deadline_targets_header(self, provider, warehouse):
        provider.update_deadline("D1", DeadlineRequest(Planned_Delivery_Timestamp="2025-02-01T00:00:00Z"))
        sql, params, types = warehouse.execute.call_args[0]
        assert "Step_ID = 0" in sql
        assert types["Planned_Delivery_Timestamp"] == "TIMESTAMP"
        assert "Planned_Start_Timestamp" not in params

    def test_status(self, provider, warehouse):
        provider.update_status(9, "Done")
        params = warehouse.execute.call_args[0][1]
        assert params["Current_Status"] == "Done"
        assert params["key"] == 9


# ---------------------------------------------------------------------------
# Spreadsheet mapping
# ---------------------------------------------------------------------------

class TestPersonEmails:
    def test_get_person_emails(self, provider, sheets):
        sheets.get_values.return_value = [
            ["Zoya", "zoya@example.com"],
            ["Hitesh"],
            ["", "orphan@example.com"],
        ]
        assert provider.get_person_emails() == {"Zoya": "zoya@example.com"}

    def test_set_existing_person(self, provider, sheets):
        sheets.get_values.return_value = [["Zoya", "old@x.com"], ["Hitesh", "h@x.com"]]
        target = provider.set_person_email("Hitesh", "new@x.com")
        assert target == "Mapping!A3:B3"
        sheets.update_values.assert_called_once_with("Mapping!A3:B3", [["Hitesh", "new@x.com"]])

    def test_set_new_person_appends(self, provider, sheets):
        sheets.get_values.return_value = [["Zoya", "z@x.com"]]
        assert provider.set_person_email("Neelam", "n@x.com") == "Mapping!A3:B3"

    def test_column_shift(self):
        assert _a1_column_shift("A", 1) == "B"
        assert _a1_column_shift("Z", 1) == "AA"
        assert _a1_column_shift("AZ", 1) == "BA"
