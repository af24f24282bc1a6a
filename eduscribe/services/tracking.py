from datetime import datetime
from typing import List, Set, Callable, Optional
import logging

from .sheets import SheetsService
from ..domain.models import JobRecord, JobStatus, TRACKING_HEADER

logger = logging.getLogger(__name__)

# Earlier deployments wrote the header with spaces
LEGACY_HEADER_FIRST_CELLS = {"FileName", "File Name"}


class JobTracker:
    """
    The tracking ledger: one row per recording, keyed by canonical file name.

    Row numbers are 1-based sheet rows with the header on row 1. Every write
    is a synchronous Sheets call, so a returned method means a durable row.
    """

    def __init__(
        self,
        sheets: SheetsService,
        tab: str = "Jobs",
        clock: Callable[[], datetime] = datetime.now
    ):
        self.sheets = sheets
        self.tab = tab
        self.clock = clock

    def _timestamp(self) -> str:
        return self.clock().isoformat(timespec="seconds")

    def ensure_header(self) -> None:
        self.sheets.ensure_sheet(self.tab)
        header = self.sheets.get_header(self.tab)

        if not header:
            self.sheets.update_row(self.tab, 1, 1, list(TRACKING_HEADER))
            logger.info(f"Wrote header row to '{self.tab}'")
        elif header[0].strip() not in LEGACY_HEADER_FIRST_CELLS:
            logger.warning(f"Header row in '{self.tab}' looks wrong ({header[:4]}). Re-writing.")
            self.sheets.update_row(self.tab, 1, 1, list(TRACKING_HEADER))

    def load_records(self) -> List[JobRecord]:
        rows = self.sheets.get_values(self.tab)
        records = []
        for offset, values in enumerate(rows[1:], start=2):
            if not values or not str(values[0] or "").strip():
                continue
            records.append(JobRecord.from_row(values, row=offset))
        return records

    def existing_file_names(self) -> Set[str]:
        return {record.file_name for record in self.load_records()}

    def append_placeholder(self, file_name: str) -> JobRecord:
        """Write the pre-submission row (empty job ID, status ``processing``)."""
        record = JobRecord(
            file_name=file_name,
            job_id="",
            status=JobStatus.PROCESSING.value,
            timestamp=self._timestamp()
        )
        record.row = self.sheets.append_row(self.tab, record.to_row())
        logger.debug(f"Appended placeholder row {record.row} for {file_name}")
        return record

    def record_submission(self, record: JobRecord, job_id: Optional[str], status: str) -> None:
        record.job_id = job_id or ""
        record.status = status
        record.timestamp = self._timestamp()
        self.sheets.update_row(self.tab, record.row, 2, [record.job_id, record.status, record.timestamp])
        logger.info(
            f"Updated row {record.row} for '{record.file_name}'. "
            f"JobID: {record.job_id or 'N/A'}, Status: {record.status}"
        )

    def update_status(self, record: JobRecord, status: str) -> None:
        record.status = status
        record.timestamp = self._timestamp()
        self.sheets.update_row(self.tab, record.row, 3, [record.status, record.timestamp])
        logger.debug(f"Row {record.row} ({record.file_name}) -> {status}")


def create_job_tracker(credential_provider=None) -> JobTracker:
    from eduscribe.config import get_config, require
    from eduscribe.services.sheets import create_sheets_service

    sheets_config = get_config().sheets
    sheets = create_sheets_service(
        require(sheets_config.tracking_sheet_id, "TRACKING_SHEET_ID"),
        credential_provider
    )
    return JobTracker(sheets, tab=sheets_config.tracking_tab)
