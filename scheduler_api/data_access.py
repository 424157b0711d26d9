"""
Data access layer for the scheduler task tables.
Provides the read/write operations behind every HTTP endpoint and the
reshaping of flat BigQuery rows into the nested maps the UI consumes.
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from . import queries
from .access import emails_match
from .config import settings as default_settings
from .errors import NotFoundError, SheetsError
from .models import (
    DeadlineRequest,
    ReassignRequest,
    TaskUpdateRequest,
    TaskUpsertRequest,
)

logger = logging.getLogger(__name__)


# Column -> BigQuery type for the task table. Explicit types are needed
# because NULL parameters cannot be inferred.
TASK_COLUMN_TYPES = {
    "Key": "INT64",
    "Delivery_code": "STRING",
    "DelCode_w_o__": "STRING",
    "Step_ID": "INT64",
    "Task_Details": "STRING",
    "Frequency___Timeline": "STRING",
    "Client": "STRING",
    "Short_Description": "STRING",
    "Planned_Start_Timestamp": "TIMESTAMP",
    "Planned_Delivery_Timestamp": "TIMESTAMP",
    "Responsibility": "STRING",
    "Current_Status": "STRING",
    "Email": "STRING",
    "Emails": "STRING",
    "Total_Tasks": "INT64",
    "Completed_Tasks": "INT64",
    "Planned_Tasks": "INT64",
    "Percent_Tasks_Completed": "FLOAT64",
    "Created_at": "STRING",
    "Updated_at": "STRING",
    "Time_Left_For_Next_Task_dd_hh_mm_ss": "STRING",
    "Card_Corner_Status": "STRING",
}
TASK_COLUMNS = list(TASK_COLUMN_TYPES)

SLIDER_TYPES = {
    "Key": "INT64",
    "Day": "STRING",
    "Slot": "STRING",
    "Duration": "INT64",
    "Responsibility": "STRING",
}

# PUT /api/data/{key} body field -> task column
TASK_UPDATE_COLUMNS = {
    "taskName": "Task_Details",
    "startDate": "Planned_Start_Timestamp",
    "endDate": "Planned_Delivery_Timestamp",
    "assignTo": "Responsibility",
    "status": "Current_Status",
    "client": "Client",
    "totalTasks": "Total_Tasks",
    "plannedTasks": "Planned_Tasks",
    "completedTasks": "Completed_Tasks",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_number(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ----------------------------------------------------------------
# Row reshaping
# ----------------------------------------------------------------

def group_by_delivery_code(rows: List[Dict]) -> Dict[str, List[Dict]]:
    """Group task rows by delivery code, keeping row order within a group."""
    grouped = {}
    for row in rows:
        grouped.setdefault(row.get("DelCode_w_o__"), []).append(row)
    return grouped


def group_per_key(rows: List[Dict]) -> Dict:
    """
    Group Per_Key_Per_Day rows by task Key.

    Returns:
        {str(Key): {"totalDuration": float, "entries": [rows...]}}
        Non-numeric durations count as 0.
    """
    grouped = {}
    for row in rows:
        group = grouped.setdefault(str(row.get("Key")), {"totalDuration": 0.0, "entries": []})
        group["totalDuration"] += _to_number(row.get("Duration"))
        group["entries"].append(row)
    return grouped


def group_per_person(rows: List[Dict]) -> Dict:
    """
    Group Per_Person_Per_Day rows by person, then by day.

    Returns:
        {Responsibility: {"totalDuration": float, "days": {Day: minutes}}}
        Repeated (person, day) rows are summed.
    """
    days = defaultdict(lambda: defaultdict(float))
    for row in rows:
        minutes = _to_number(row.get("Duration_In_Minutes"))
        days[row.get("Responsibility") or ""][str(row.get("Day"))] += minutes

    return {
        person: {"totalDuration": sum(per_day.values()), "days": dict(per_day)}
        for person, per_day in days.items()
    }


def _a1_column_shift(column: str, offset: int) -> str:
    """Spreadsheet column letters moved right by `offset` (A + 1 -> B, Z + 1 -> AA)."""
    n = 0
    for ch in column:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    n += offset
    letters = ""
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _parse_a1_start(cell_range: str) -> Tuple[str, str, int]:
    """Split 'Sheet!A2:B' into ('Sheet', 'A', 2)."""
    sheet, _, cells = cell_range.rpartition("!")
    match = re.match(r"([A-Z]+)(\d*)", cells.upper())
    if not match:
        raise SheetsError(f"Unsupported range: {cell_range}")
    return sheet, match.group(1), int(match.group(2) or 1)


class TaskDataProvider:
    """
    Reads and writes the task, per-key and per-person tables.

    Stateless apart from its clients; every call is one or more
    independent BigQuery jobs.
    """

    def __init__(self, warehouse, settings=None, sheets=None):
        self.warehouse = warehouse
        self.settings = settings or default_settings
        self.sheets = sheets

    @property
    def task_table(self) -> str:
        return self.settings.table(self.settings.TASK_TABLE)

    @property
    def per_key_table(self) -> str:
        return self.settings.table(self.settings.PER_KEY_TABLE)

    @property
    def per_person_table(self) -> str:
        return self.settings.table(self.settings.PER_PERSON_TABLE)

    # ----------------------------------------------------------------
    # Persons
    # ----------------------------------------------------------------

    def get_persons(self) -> List[str]:
        """Distinct, non-empty Responsibility values in alphabetical order."""
        sql, params = queries.persons_query(self.task_table)
        rows = self.warehouse.query(sql, params)
        persons = [row["Responsibility"] for row in rows]
        logger.info(f"Fetched {len(persons)} distinct persons")
        return persons

    # ----------------------------------------------------------------
    # Task listing
    # ----------------------------------------------------------------

    def get_tasks(
        self,
        emails: List[str],
        is_admin: bool,
        del_code: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
        filters: Optional[Dict] = None
    ) -> Dict[str, List[Dict]]:
        """
        Task rows visible to the requester, grouped by delivery code.

        Args:
            emails: Requester addresses (already parsed and lowercased)
            is_admin: Admins see every workflow and every task
            del_code: Restrict to one workflow (detail view)
            limit: Page size for the delivery list
            offset: Page offset for the delivery list
            filters: Optional header filters (client, status,
                     responsibility, planned_from, planned_to)

        Returns:
            {DelCode_w_o__: [rows...]}
        """
        if del_code:
            rows = self._delivery_detail(del_code, emails, is_admin)
        elif is_admin:
            sql, params = queries.admin_tasks_query(self.task_table, limit, offset, filters)
            rows = self.warehouse.query(sql, params)
            logger.info(f"List view (admin): fetched {len(rows)} workflow headers")
        else:
            rows = self._visible_headers(emails, limit, offset, filters)

        return group_by_delivery_code(rows)

    def _delivery_detail(self, del_code: str, emails: List[str], is_admin: bool) -> List[Dict]:
        if is_admin:
            sql, params = queries.delivery_detail_query(self.task_table, del_code)
            rows = self.warehouse.query(sql, params)
            logger.info(f"Detail view (admin): fetched {len(rows)} rows for {del_code}")
            return rows

        sql, params = queries.delivery_header_query(self.task_table, del_code)
        header = self.warehouse.query(sql, params)
        if not emails:
            return header

        sql, params = queries.delivery_tasks_for_emails_query(self.task_table, del_code, emails)
        rows = self.warehouse.query(sql, params)
        # Same boundary rule as the SQL predicate, checked again on the returned rows
        tasks = [r for r in rows if any(emails_match(r.get("Emails"), e) for e in emails)]
        if len(tasks) != len(rows):
            logger.warning(
                f"Detail view: dropped {len(rows) - len(tasks)} row(s) of {del_code} "
                f"not assigned to {', '.join(emails)}"
            )
        logger.info(
            f"Detail view: {len(header)} header row(s) and {len(tasks)} assigned task(s) for {del_code}"
        )
        return header + tasks

    def _visible_headers(
        self,
        emails: List[str],
        limit: int,
        offset: int,
        filters: Optional[Dict]
    ) -> List[Dict]:
        sql, params = queries.relevant_delcodes_query(self.task_table, emails)
        codes = [row["DelCode_w_o__"] for row in self.warehouse.query(sql, params)]
        logger.info(f"List view: {len(codes)} delivery codes mention {', '.join(emails)}")
        if not codes:
            return []

        sql, params = queries.headers_for_delcodes_query(self.task_table, codes, limit, offset, filters)
        return self.warehouse.query(sql, params)

    # ----------------------------------------------------------------
    # Durations
    # ----------------------------------------------------------------

    def get_per_key_per_day(self, key: Optional[int] = None) -> Dict:
        sql, params = queries.per_key_query(self.per_key_table, key)
        return group_per_key(self.warehouse.query(sql, params))

    def get_per_person_per_day(
        self,
        person: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> Dict:
        sql, params = queries.per_person_query(self.per_person_table, person, start, end)
        return group_per_person(self.warehouse.query(sql, params))

    # ----------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------

    def upsert_task(self, request: TaskUpsertRequest) -> Dict:
        """
        Insert or update a task row, then its slider rows one at a time.

        Each write is check-then-act against the warehouse with no
        transaction around it.

        Returns:
            {"taskAction": "inserted"|"updated", "slidersInserted": n, "slidersUpdated": n}
        """
        values = request.model_dump(include=set(TASK_COLUMNS))
        key = values["Key"]

        exists = self.warehouse.query(
            f"SELECT Key FROM {self.task_table} WHERE Key = @Key",
            {"Key": key},
            {"Key": "INT64"},
        )

        if exists:
            assignments = queries.set_clause({c: None for c in TASK_COLUMNS if c != "Key"})
            sql = f"UPDATE {self.task_table} SET {assignments} WHERE Key = @Key"
            task_action = "updated"
        else:
            columns = ", ".join(TASK_COLUMNS)
            placeholders = ", ".join(f"@{c}" for c in TASK_COLUMNS)
            sql = f"INSERT INTO {self.task_table} ({columns}) VALUES ({placeholders})"
            task_action = "inserted"

        self.warehouse.execute(sql, values, TASK_COLUMN_TYPES)
        logger.info(f"Task {key} {task_action}")

        inserted = updated = 0
        for slider in request.sliders:
            if self._upsert_slider(key, slider):
                updated += 1
            else:
                inserted += 1

        logger.info(f"Task {key}: {inserted} slider row(s) inserted, {updated} updated")
        return {"taskAction": task_action, "slidersInserted": inserted, "slidersUpdated": updated}

    def _upsert_slider(self, key: int, slider) -> bool:
        """Write one (Key, Day, Slot) allocation. Returns True when an existing row was updated."""
        params = {"Key": key, "Day": slider.day, "Slot": slider.slot}
        existing = self.warehouse.query(
            f"""
            SELECT Duration FROM {self.per_key_table}
            WHERE Key = @Key AND Day = @Day AND Planned_Delivery_Slot = @Slot
            LIMIT 1
            """,
            params,
            SLIDER_TYPES,
        )

        params.update(Duration=slider.duration, Responsibility=slider.personResponsible)
        if existing:
            sql = f"""
                UPDATE {self.per_key_table}
                SET Duration = @Duration, Responsibility = @Responsibility
                WHERE Key = @Key AND Day = @Day AND Planned_Delivery_Slot = @Slot
            """
        else:
            sql = f"""
                INSERT INTO {self.per_key_table} (Key, Day, Duration, Planned_Delivery_Slot, Responsibility)
                VALUES (@Key, @Day, @Duration, @Slot, @Responsibility)
            """
        self.warehouse.execute(sql, params, SLIDER_TYPES)
        return bool(existing)

    def _update_columns(self, where: str, fields: Dict, where_params: Dict, what: str) -> int:
        params = dict(fields, **where_params)
        types = {c: TASK_COLUMN_TYPES[c] for c in fields}
        sql = f"UPDATE {self.task_table} SET {queries.set_clause(fields)} WHERE {where}"
        affected = self.warehouse.execute(sql, params, types)
        if not affected:
            raise NotFoundError(f"No {what} found")
        logger.info(f"Updated {', '.join(fields)} on {affected} row(s) of {what}")
        return affected

    def update_task(self, key: int, update: TaskUpdateRequest) -> int:
        """
        Partial update of one task row.

        Raises:
            ValueError: no updatable field was provided
            NotFoundError: no row has this Key
        """
        provided = update.model_dump(exclude_none=True)
        fields = {TASK_UPDATE_COLUMNS[name]: value for name, value in provided.items()}
        if not fields:
            raise ValueError("No fields to update.")
        fields["Updated_at"] = _now()
        return self._update_columns("Key = @key", fields, {"key": key}, f"task with Key {key}")

    def update_delivery_counts(
        self,
        del_code: str,
        planned_tasks: Optional[int] = None,
        total_tasks: Optional[int] = None
    ) -> int:
        """Update Planned_Tasks / Total_Tasks on the workflow header."""
        fields = {}
        if planned_tasks is not None:
            fields["Planned_Tasks"] = planned_tasks
        if total_tasks is not None:
            fields["Total_Tasks"] = total_tasks
        if not fields:
            raise ValueError("At least one of newPlannedTasks or newTotalTasks must be provided.")
        return self._update_columns(
            "DelCode_w_o__ = @del_code AND Step_ID = 0",
            fields,
            {"del_code": del_code},
            f"workflow header for {del_code}",
        )

    def delete_delivery(self, del_code: str) -> int:
        """
        Delete every row of a workflow and the slider rows of its tasks.

        Both deletes run in one multi-statement transaction, so a failure
        leaves the workflow and its allocations untouched.

        Returns:
            Number of task rows deleted
        """
        params = {"del_code": del_code}
        rows = self.warehouse.query(
            f"SELECT COUNT(*) AS n FROM {self.task_table} WHERE DelCode_w_o__ = @del_code",
            params,
        )
        count = rows[0]["n"] if rows else 0
        if not count:
            raise NotFoundError(f"No rows found for delivery code {del_code}")

        self.warehouse.execute(
            f"""
            BEGIN TRANSACTION;
            DELETE FROM {self.per_key_table}
            WHERE Key IN (SELECT Key FROM {self.task_table} WHERE DelCode_w_o__ = @del_code);
            DELETE FROM {self.task_table} WHERE DelCode_w_o__ = @del_code;
            COMMIT TRANSACTION;
            """,
            params,
        )
        logger.info(f"Deleted {count} task row(s) and their slider rows for {del_code}")
        return count

    # ----------------------------------------------------------------
    # Admin edits
    # ----------------------------------------------------------------

    def reassign_task(self, key: int, request: ReassignRequest) -> int:
        fields = request.model_dump(exclude_none=True)
        fields["Updated_at"] = _now()
        return self._update_columns("Key = @key", fields, {"key": key}, f"task with Key {key}")

    def update_deadline(self, del_code: str, request: DeadlineRequest) -> int:
        fields = request.model_dump(exclude_none=True)
        fields["Updated_at"] = _now()
        return self._update_columns(
            "DelCode_w_o__ = @del_code AND Step_ID = 0",
            fields,
            {"del_code": del_code},
            f"workflow header for {del_code}",
        )

    def update_status(self, key: int, status: str) -> int:
        fields = {"Current_Status": status, "Updated_at": _now()}
        return self._update_columns("Key = @key", fields, {"key": key}, f"task with Key {key}")

    # ----------------------------------------------------------------
    # Spreadsheet mapping table
    # ----------------------------------------------------------------

    def _require_sheets(self):
        if self.sheets is None:
            raise SheetsError("Sheets client is not configured")
        return self.sheets

    def get_person_emails(self) -> Dict[str, str]:
        """Responsibility -> email from the mapping sheet. Rows without an email are skipped."""
        values = self._require_sheets().get_values(self.settings.SHEET_MAPPING_RANGE)
        return {
            row[0].strip(): row[1].strip()
            for row in values
            if len(row) >= 2 and row[0].strip() and row[1].strip()
        }

    def set_person_email(self, person: str, email: str) -> str:
        """
        Write `person`'s email into the mapping sheet.

        Overwrites the person's row when present, otherwise writes the
        first row after the data.

        Returns:
            The A1 range that was written
        """
        sheets = self._require_sheets()
        cell_range = self.settings.SHEET_MAPPING_RANGE
        values = sheets.get_values(cell_range)

        index = next(
            (i for i, row in enumerate(values) if row and row[0].strip() == person),
            len(values),
        )
        sheet, first_col, first_row = _parse_a1_start(cell_range)
        row_number = first_row + index
        target = f"{first_col}{row_number}:{_a1_column_shift(first_col, 1)}{row_number}"
        if sheet:
            target = f"{sheet}!{target}"

        sheets.update_values(target, [[person, email]])
        return target
