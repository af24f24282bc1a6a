from typing import List, Dict, Any
import logging
from dataclasses import dataclass, field

from .complete import CompletionHandler, CompletionError
from ..services.sheets import SheetsError
from ..services.speechmatics import SpeechmaticsClient
from ..services.tracking import JobTracker
from ..domain.models import (
    JobRecord, JobStatus, ACTIVE_STATUSES, TRANSIENT_STATUSES,
    is_terminal, is_error_status
)

logger = logging.getLogger(__name__)


@dataclass
class MonitorResults:
    """Counters for one poll pass."""
    total_rows: int = 0
    skipped_terminal: int = 0
    skipped_inactive: int = 0
    checked: int = 0
    status_changes: int = 0
    completed: int = 0
    completion_errors: int = 0
    terminal_errors: int = 0
    missing_job_id: int = 0
    transient: int = 0
    ledger_errors: int = 0
    row_errors: int = 0
    completed_files: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return (
            self.completion_errors + self.terminal_errors + self.missing_job_id
            + self.ledger_errors + self.row_errors
        )

    @property
    def statistics(self) -> Dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "checked": self.checked,
            "status_changes": self.status_changes,
            "completed": self.completed,
            "completion_errors": self.completion_errors,
            "terminal_errors": self.terminal_errors,
            "missing_job_id": self.missing_job_id,
            "transient": self.transient,
            "ledger_errors": self.ledger_errors,
            "row_errors": self.row_errors,
            "skipped_terminal": self.skipped_terminal,
            "skipped_inactive": self.skipped_inactive
        }


class JobMonitor:
    """
    Polls every active tracking row and advances its status.

    Terminal rows are never touched again. When the provider reports ``done``
    the row is first written as ``processing_transcript`` and only then is the
    completion handler run, so the handoff is visible in the ledger before any
    side effect happens. Each status write completes before the next row is read.
    """

    def __init__(
        self,
        tracker: JobTracker,
        speechmatics: SpeechmaticsClient,
        completion_handler: CompletionHandler
    ):
        self.tracker = tracker
        self.speechmatics = speechmatics
        self.completion_handler = completion_handler

    def run(self) -> MonitorResults:
        results = MonitorResults()
        records = self.tracker.load_records()
        results.total_rows = len(records)
        logger.info(f"Checking {len(records)} tracking rows")

        for record in records:
            try:
                self._process_record(record, results)
            except SheetsError as e:
                logger.error(f"Row {record.row} ({record.file_name}): ledger write failed: {e}")
                results.ledger_errors += 1
            except Exception as e:
                logger.error(f"Row {record.row} ({record.file_name}): unexpected error: {e}", exc_info=True)
                results.row_errors += 1

        logger.info(
            f"Monitor finished. Checked {results.checked} active jobs. Completed {results.completed}. "
            f"Status changes: {results.status_changes}, Completion errors: {results.completion_errors}, "
            f"Terminal errors: {results.terminal_errors}, Missing job ID: {results.missing_job_id}, "
            f"Transient: {results.transient}, Ledger errors: {results.ledger_errors}, Row errors: {results.row_errors}"
        )
        return results

    def _process_record(self, record: JobRecord, results: MonitorResults) -> None:
        local_status = record.normalized_status

        if is_terminal(local_status):
            results.skipped_terminal += 1
            return

        if local_status not in ACTIVE_STATUSES:
            logger.debug(f"Row {record.row} ({record.file_name}): status '{record.status}' is not pollable")
            results.skipped_inactive += 1
            return

        if not record.job_id:
            logger.warning(
                f"Row {record.row}: '{record.file_name}' is '{local_status}' but has no job ID. Marking error."
            )
            self.tracker.update_status(record, JobStatus.ERROR_MISSING_JOBID.value)
            results.missing_job_id += 1
            return

        results.checked += 1
        new_status = self.speechmatics.get_job_status(record.job_id)
        new_status_lower = new_status.strip().lower()

        if new_status_lower == JobStatus.DONE.value:
            self._complete(record, results)
            return

        if new_status_lower in TRANSIENT_STATUSES:
            logger.info(f"Job {record.job_id} ({record.file_name}): {new_status_lower}, retrying next run")
            results.transient += 1
            return

        if not new_status_lower or new_status_lower == local_status:
            return

        logger.info(
            f"Updating '{record.file_name}' (job {record.job_id}) from '{local_status}' to '{new_status}'"
        )
        self.tracker.update_status(record, new_status)
        results.status_changes += 1

        if is_terminal(new_status_lower) and is_error_status(new_status_lower):
            results.terminal_errors += 1

    def _complete(self, record: JobRecord, results: MonitorResults) -> None:
        logger.info(f"Job {record.job_id} for '{record.file_name}' is done. Collecting transcript.")
        self.tracker.update_status(record, JobStatus.PROCESSING_TRANSCRIPT.value)

        final_status = JobStatus.DONE.value
        try:
            outcome = self.completion_handler.handle(record.file_name, record.job_id)
            logger.info(
                f"Stored {outcome.transcript_uri} ({outcome.transcript_chars} chars); "
                f"recording {'archived' if outcome.recording_moved else 'already archived'}"
            )
        except CompletionError as e:
            final_status = e.status
            logger.error(f"Post-processing failed for '{record.file_name}' (job {record.job_id}): {e}")
        except Exception as e:
            final_status = JobStatus.PROCESSING_ERROR.value
            logger.error(
                f"Unexpected post-processing failure for '{record.file_name}' (job {record.job_id}): {e}",
                exc_info=True
            )

        logger.info(f"Setting final status for '{record.file_name}' to '{final_status}'")
        self.tracker.update_status(record, final_status)

        if final_status == JobStatus.DONE.value:
            results.completed += 1
            results.completed_files.append(record.file_name)
        else:
            results.completion_errors += 1


def create_job_monitor(credential_provider=None) -> JobMonitor:
    from ..services.auth import create_credential_provider
    from ..services.speechmatics import create_speechmatics_client
    from ..services.storage import create_storage_service
    from ..services.tracking import create_job_tracker
    from .complete import create_completion_handler

    speechmatics = create_speechmatics_client()
    provider = credential_provider or create_credential_provider()

    return JobMonitor(
        tracker=create_job_tracker(provider),
        speechmatics=speechmatics,
        completion_handler=create_completion_handler(
            storage=create_storage_service(provider),
            speechmatics=speechmatics
        )
    )
