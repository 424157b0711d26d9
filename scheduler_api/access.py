"""
Email matching and admin allow-list resolution.

Task visibility for non-admin users is decided by matching the requester's
email(s) against the free-text `Emails` column of the task table. Admin
rights come from a flat allow-list that can live in the config, a BigQuery
table or a spreadsheet column.
"""

import logging
import re
import time
from typing import List, Optional

from .config import settings as default_settings
from .errors import AccessListError

logger = logging.getLogger(__name__)

# Characters that may legally appear inside an address. An email only
# matches when it is not glued to more of them on either side.
EMAIL_CHARS = "a-z0-9.@_-"
LEFT_BOUNDARY = f"(^|[^{EMAIL_CHARS}])"
RIGHT_BOUNDARY = f"([^{EMAIL_CHARS}]|$)"

ADMIN_SOURCES = ("static", "bigquery", "sheet")


def parse_emails(raw: Optional[str]) -> List[str]:
    """Split a comma-separated email parameter into trimmed, lowercase addresses."""
    if not raw:
        return []
    return [e.strip().lower() for e in raw.split(",") if e.strip()]


def email_pattern(email: str) -> str:
    """Regex literal for `email`, safe to bind as a REGEXP_CONTAINS argument."""
    return re.escape(email.strip().lower())


def email_match_condition(param_name: str) -> str:
    """SQL predicate matching the bound @param_name inside the Emails column."""
    return (
        f"REGEXP_CONTAINS(LOWER(Emails), "
        f"CONCAT('{LEFT_BOUNDARY}', @{param_name}, '{RIGHT_BOUNDARY}'))"
    )


def emails_match(column_value: Optional[str], email: str) -> bool:
    """Python twin of email_match_condition."""
    if not column_value or not email:
        return False
    pattern = LEFT_BOUNDARY + email_pattern(email) + RIGHT_BOUNDARY
    return re.search(pattern, column_value.lower()) is not None


class AdminDirectory:
    """
    Time-bounded memo of the admin allow-list.

    No locking: concurrent requests may both reload after expiry, which
    only costs an extra query.
    """

    def __init__(self, settings=None, warehouse=None, sheets=None, clock=time.monotonic):
        self.settings = settings or default_settings
        self.warehouse = warehouse
        self.sheets = sheets
        self.clock = clock
        self.source = self.settings.ADMIN_SOURCE
        if self.source not in ADMIN_SOURCES:
            raise ValueError(
                f"Unknown ADMIN_SOURCE '{self.source}'. Expected one of {', '.join(ADMIN_SOURCES)}"
            )
        self._emails: List[str] = []
        self._loaded_at: Optional[float] = None

    def _load(self) -> List[str]:
        if self.source == "static":
            return list(self.settings.ADMIN_EMAILS)

        if self.source == "bigquery":
            if self.warehouse is None:
                raise AccessListError("ADMIN_SOURCE=bigquery but no warehouse client configured")
            sql = f"""
                SELECT Emails
                FROM {self.settings.table(self.settings.ADMIN_TABLE)}
                WHERE Access = TRUE
            """
            rows = self.warehouse.query(sql)
            return [row["Emails"] for row in rows if row.get("Emails")]

        if self.sheets is None:
            raise AccessListError("ADMIN_SOURCE=sheet but no sheets client configured")
        values = self.sheets.get_values(self.settings.SHEET_ADMIN_RANGE)
        return [row[0] for row in values if row and row[0].strip()]

    def refresh(self) -> List[str]:
        """Reload the allow-list from its source."""
        try:
            emails = self._load()
        except Exception as e:
            self._emails = []
            self._loaded_at = None
            logger.error(f"Failed to load admin emails from {self.source}: {e}")
            raise AccessListError(f"Failed to load admin access list: {e}") from e

        self._emails = [e.strip().lower() for e in emails]
        self._loaded_at = self.clock()
        logger.info(f"Admin emails loaded from {self.source}. Total active admins: {len(self._emails)}")
        return list(self._emails)

    def emails(self) -> List[str]:
        expired = (
            self._loaded_at is None
            or self.clock() - self._loaded_at >= self.settings.ADMIN_CACHE_TTL
        )
        if expired:
            return self.refresh()
        return list(self._emails)

    def is_admin(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.emails()
