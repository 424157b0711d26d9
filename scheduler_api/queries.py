"""
SQL assembly for the task endpoints.

Every builder returns `(sql, params)`; values always travel as named
BigQuery parameters, only table references and column names are
interpolated.
"""

from typing import Dict, List, Optional, Tuple

from .access import email_match_condition, email_pattern

Query = Tuple[str, Dict]

# Query-string filter name -> (column, operator)
HEADER_FILTERS = {
    "client": ("Client", "="),
    "status": ("Current_Status", "="),
    "responsibility": ("Responsibility", "="),
    "planned_from": ("Planned_Delivery_Timestamp", ">="),
    "planned_to": ("Planned_Delivery_Timestamp", "<="),
}

TIMESTAMP_FILTERS = {"planned_from", "planned_to"}


def filter_conditions(filters: Optional[Dict], params: Dict) -> List[str]:
    """
    Turn optional header filters into WHERE conditions.

    Unknown or empty filters are ignored. Parameter values are added to
    `params` in place.
    """
    conditions = []
    for name, value in (filters or {}).items():
        if value in (None, "") or name not in HEADER_FILTERS:
            continue
        column, op = HEADER_FILTERS[name]
        if name in TIMESTAMP_FILTERS:
            conditions.append(f"{column} {op} TIMESTAMP(@{name})")
        else:
            conditions.append(f"{column} {op} @{name}")
        params[name] = value
    return conditions


def email_conditions(emails: List[str], params: Dict) -> str:
    """OR-joined Emails column match for each address, parameters added in place."""
    parts = []
    for i, email in enumerate(emails):
        params[f"email_{i}"] = email_pattern(email)
        parts.append(email_match_condition(f"email_{i}"))
    return " OR ".join(parts)


def set_clause(fields: Dict) -> str:
    """`Col = @Col` assignments for a partial UPDATE."""
    return ", ".join(f"{col} = @{col}" for col in fields)


# ----------------------------------------------------------------
# Persons
# ----------------------------------------------------------------

def persons_query(task_table: str) -> Query:
    sql = f"""
        SELECT DISTINCT Responsibility
        FROM {task_table}
        WHERE Responsibility IS NOT NULL AND Responsibility != ''
        ORDER BY Responsibility
    """
    return sql, {}


# ----------------------------------------------------------------
# Delivery list (Step_ID = 0 headers)
# ----------------------------------------------------------------

def admin_tasks_query(
    task_table: str,
    limit: int,
    offset: int,
    filters: Optional[Dict] = None
) -> Query:
    params = {"limit": limit, "offset": offset}
    conditions = ["Step_ID = 0"] + filter_conditions(filters, params)
    sql = f"""
        SELECT * FROM {task_table}
        WHERE {' AND '.join(conditions)}
        ORDER BY DelCode_w_o__
        LIMIT @limit OFFSET @offset
    """
    return sql, params


def relevant_delcodes_query(task_table: str, emails: List[str]) -> Query:
    """Delivery codes with at least one row mentioning any of `emails`."""
    params = {}
    sql = f"""
        SELECT DISTINCT DelCode_w_o__
        FROM {task_table}
        WHERE ({email_conditions(emails, params)})
    """
    return sql, params


def headers_for_delcodes_query(
    task_table: str,
    codes: List[str],
    limit: int,
    offset: int,
    filters: Optional[Dict] = None
) -> Query:
    params = {"codes": list(codes), "limit": limit, "offset": offset}
    conditions = ["DelCode_w_o__ IN UNNEST(@codes)", "Step_ID = 0"]
    conditions += filter_conditions(filters, params)
    sql = f"""
        SELECT * FROM {task_table}
        WHERE {' AND '.join(conditions)}
        ORDER BY DelCode_w_o__
        LIMIT @limit OFFSET @offset
    """
    return sql, params


# ----------------------------------------------------------------
# Delivery detail
# ----------------------------------------------------------------

def delivery_detail_query(task_table: str, del_code: str) -> Query:
    sql = f"""
        SELECT * FROM {task_table}
        WHERE DelCode_w_o__ = @del_code
        ORDER BY Step_ID ASC
    """
    return sql, {"del_code": del_code}


def delivery_header_query(task_table: str, del_code: str) -> Query:
    sql = f"""
        SELECT * FROM {task_table}
        WHERE DelCode_w_o__ = @del_code AND Step_ID = 0
    """
    return sql, {"del_code": del_code}


def delivery_tasks_for_emails_query(task_table: str, del_code: str, emails: List[str]) -> Query:
    params = {"del_code": del_code}
    sql = f"""
        SELECT * FROM {task_table}
        WHERE DelCode_w_o__ = @del_code AND Step_ID != 0
          AND ({email_conditions(emails, params)})
        ORDER BY Step_ID ASC
    """
    return sql, params


# ----------------------------------------------------------------
# Durations
# ----------------------------------------------------------------

def per_key_query(per_key_table: str, key: Optional[int] = None) -> Query:
    params = {}
    sql = f"""
        SELECT Key, Day, Duration, Planned_Delivery_Slot, Responsibility
        FROM {per_key_table}
    """
    if key is not None:
        sql += " WHERE Key = @key"
        params["key"] = key
    sql += " ORDER BY Key, Day"
    return sql, params


def per_person_query(
    per_person_table: str,
    person: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None
) -> Query:
    conditions = []
    params = {}

    if person:
        conditions.append("Responsibility = @person")
        params["person"] = person

    if start:
        conditions.append("Day >= @start")
        params["start"] = start

    if end:
        conditions.append("Day <= @end")
        params["end"] = end

    sql = f"""
        SELECT Responsibility, Day, Duration_In_Minutes
        FROM {per_person_table}
    """
    if conditions:
        sql += f" WHERE {' AND '.join(conditions)}"
    sql += " ORDER BY Responsibility, Day"
    return sql, params
