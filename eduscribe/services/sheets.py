"""
Google Sheets access for the tracking, roster and homework ledgers.

Each method is one blocking API round trip; when it returns, the write is
durable. Callers rely on that ordering in place of transactions.
"""

import re
from typing import List, Any, Optional
import logging

import httplib2
from google.auth.exceptions import TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

API_ERRORS = (HttpError, TransportError, httplib2.HttpLib2Error, OSError)

VALUE_INPUT_OPTION = "USER_ENTERED"

_UPDATED_RANGE_ROW = re.compile(r"![A-Z]+(\d+)")


class SheetsError(Exception):
    """Raised when a spreadsheet call fails."""
    pass


def column_letter(index: int) -> str:
    """Convert a 1-based column index to A1 notation letters."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def quote_sheet_title(title: str) -> str:
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


class SheetsService:
    def __init__(self, spreadsheet_id: str, credentials=None, service=None):
        """
        Wrap one spreadsheet.

        Args:
            spreadsheet_id: ID of the Google Spreadsheet
            credentials: Scoped google-auth credentials
            service: Pre-built discovery resource, mainly for tests
        """
        self.spreadsheet_id = spreadsheet_id
        self._service = service or build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self._values = self._service.spreadsheets().values()

    def sheet_titles(self) -> List[str]:
        try:
            meta = self._service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="properties.title,sheets.properties.title"
            ).execute()
        except API_ERRORS as e:
            raise SheetsError(f"Failed to open spreadsheet {self.spreadsheet_id}: {e}") from e
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def ensure_sheet(self, title: str) -> bool:
        """Create the tab if it is missing. Returns True when a tab was created."""
        if title in self.sheet_titles():
            return False

        try:
            self._service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": title}}}]}
            ).execute()
        except API_ERRORS as e:
            raise SheetsError(f"Failed to create sheet '{title}': {e}") from e

        logger.info(f"Created sheet '{title}' in spreadsheet {self.spreadsheet_id}")
        return True

    def get_values(self, title: str, cell_range: Optional[str] = None) -> List[List[Any]]:
        a1 = quote_sheet_title(title) + (f"!{cell_range}" if cell_range else "")
        try:
            result = self._values.get(spreadsheetId=self.spreadsheet_id, range=a1).execute()
        except API_ERRORS as e:
            raise SheetsError(f"Failed to read {a1}: {e}") from e
        return result.get("values", [])

    def get_header(self, title: str) -> List[str]:
        rows = self.get_values(title, "1:1")
        return [str(v) for v in rows[0]] if rows else []

    def append_row(self, title: str, values: List[Any]) -> int:
        """
        Append one row after the last filled row.

        Returns:
            1-based row number of the written row
        """
        try:
            result = self._values.append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{quote_sheet_title(title)}!A1",
                valueInputOption=VALUE_INPUT_OPTION,
                insertDataOption="INSERT_ROWS",
                body={"values": [values]}
            ).execute()
        except API_ERRORS as e:
            raise SheetsError(f"Failed to append row to '{title}': {e}") from e

        updated_range = result.get("updates", {}).get("updatedRange", "")
        match = _UPDATED_RANGE_ROW.search(updated_range)
        if not match:
            raise SheetsError(f"Append to '{title}' returned no row reference: {result}")
        return int(match.group(1))

    def update_row(self, title: str, row: int, start_column: int, values: List[Any]) -> None:
        """Overwrite a contiguous run of cells in one row (columns are 1-based)."""
        end_column = start_column + len(values) - 1
        a1 = (
            f"{quote_sheet_title(title)}!{column_letter(start_column)}{row}:"
            f"{column_letter(end_column)}{row}"
        )
        try:
            self._values.update(
                spreadsheetId=self.spreadsheet_id,
                range=a1,
                valueInputOption=VALUE_INPUT_OPTION,
                body={"values": [values]}
            ).execute()
        except API_ERRORS as e:
            raise SheetsError(f"Failed to update {a1}: {e}") from e

    def update_cell(self, title: str, row: int, column: int, value: Any) -> None:
        self.update_row(title, row, column, [value])


def create_sheets_service(spreadsheet_id: str, credential_provider=None) -> SheetsService:
    from eduscribe.services.auth import SHEETS_SCOPES, create_credential_provider

    provider = credential_provider or create_credential_provider()
    return SheetsService(spreadsheet_id, credentials=provider.credentials(SHEETS_SCOPES))
