from typing import Set
import logging

from .sheets import SheetsService
from ..domain.models import HomeworkAssignment, HOMEWORK_HEADER

logger = logging.getLogger(__name__)

HW_ID_COLUMN = HOMEWORK_HEADER.index("HW_ID")


class HomeworkLedger:
    """The ``Homework_Push`` tab: one row per assignment, read by the portal."""

    def __init__(self, sheets: SheetsService, tab: str = "Homework_Push"):
        self.sheets = sheets
        self.tab = tab

    def ensure_header(self) -> None:
        self.sheets.ensure_sheet(self.tab)
        if not self.sheets.get_header(self.tab):
            self.sheets.update_row(self.tab, 1, 1, list(HOMEWORK_HEADER))
            logger.info(f"Wrote header row to '{self.tab}'")

    def existing_hw_ids(self) -> Set[str]:
        rows = self.sheets.get_values(self.tab)
        return {
            str(row[HW_ID_COLUMN]).strip()
            for row in rows[1:]
            if len(row) > HW_ID_COLUMN and str(row[HW_ID_COLUMN]).strip()
        }

    def append_assignment(self, assignment: HomeworkAssignment) -> int:
        row = self.sheets.append_row(self.tab, assignment.to_row())
        logger.info(
            f"Appended {assignment.hw_id} to '{self.tab}' row {row} for {assignment.student_name}. "
            f"Status: {assignment.token_status}, Turns_Used: {assignment.turns_used}"
        )
        return row


def create_homework_ledger(sheets=None, credential_provider=None) -> HomeworkLedger:
    from eduscribe.config import get_config, require
    from eduscribe.services.sheets import create_sheets_service

    sheets_config = get_config().sheets
    if sheets is None:
        sheets = create_sheets_service(
            require(sheets_config.roster_spreadsheet_id, "STUDENT_ROSTER_ID"),
            credential_provider
        )
    return HomeworkLedger(sheets, tab=sheets_config.homework_tab)
