"""
Google Sheets client wrapper (values.get / values.update only).
"""

import logging
from typing import List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import settings as default_settings
from .errors import SheetsError

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class SheetsClient:
    """Reads and writes cell ranges of a single spreadsheet."""

    def __init__(self, spreadsheet_id: Optional[str] = None, service=None, settings=None):
        self.settings = settings or default_settings
        self.spreadsheet_id = spreadsheet_id or self.settings.SHEET_ID
        self._service = service

    @property
    def service(self):
        if self._service is None:
            credentials = service_account.Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "client_email": self.settings.CLIENT_EMAIL,
                    "private_key": self.settings.PRIVATE_KEY,
                    "token_uri": TOKEN_URI,
                },
                scopes=SHEETS_SCOPES,
            )
            self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return self._service

    def get_values(self, cell_range: str) -> List[List[str]]:
        """Return the rows of `cell_range`. Empty trailing cells are omitted by the API."""
        if not self.spreadsheet_id:
            raise SheetsError("SHEET_ID is not configured")
        try:
            resp = self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=cell_range,
            ).execute()
        except HttpError as e:
            raise SheetsError(f"Failed to read {cell_range}: {e}") from e
        return resp.get("values", [])

    def update_values(self, cell_range: str, values: List[List]) -> int:
        """Overwrite `cell_range` with `values`. Returns the number of updated cells."""
        if not self.spreadsheet_id:
            raise SheetsError("SHEET_ID is not configured")
        try:
            resp = self.service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=cell_range,
                valueInputOption="USER_ENTERED",
                body={"values": values},
            ).execute()
        except HttpError as e:
            raise SheetsError(f"Failed to write {cell_range}: {e}") from e
        logger.info(f"Sheets: updated {cell_range}")
        return resp.get("updatedCells", 0)
