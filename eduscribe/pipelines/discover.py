from typing import List, Dict, Any, Optional
import logging
from dataclasses import dataclass, field

from ..services.drive import DriveService, DriveError
from ..services.sheets import SheetsError
from ..services.submission import CloudRunSubmitter
from ..services.tracking import JobTracker
from ..domain.models import JobRecord, JobStatus
from ..utils.filenames import parse_filename, build_recording_name

logger = logging.getLogger(__name__)

VIDEO_MIME_PREFIX = "video/"


@dataclass
class DiscoveryResults:
    """Counters for one discovery run."""
    total_files: int = 0
    new_rows: int = 0
    submitted: int = 0
    skipped_tracked: int = 0
    skipped_unparseable: int = 0
    rename_errors: int = 0
    submission_failures: int = 0
    ledger_errors: int = 0
    item_errors: int = 0
    records: List[JobRecord] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return self.rename_errors + self.submission_failures + self.ledger_errors + self.item_errors

    @property
    def statistics(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "new_rows": self.new_rows,
            "submitted": self.submitted,
            "skipped_tracked": self.skipped_tracked,
            "skipped_unparseable": self.skipped_unparseable,
            "rename_errors": self.rename_errors,
            "submission_failures": self.submission_failures,
            "ledger_errors": self.ledger_errors,
            "item_errors": self.item_errors
        }


class DiscoveryPipeline:
    """
    Finds new recordings in the Drive folder, renames them and submits each once.

    The tracking ledger is the dedup set. A file is new when neither its current
    name nor its canonical name is already in the ledger. For a new file the
    order is: rename, append a ``processing`` row, call the submission endpoint,
    then update that same row with the job ID and outcome status. A crash
    between steps leaves a visible row rather than a lost file.
    """

    def __init__(
        self,
        drive: DriveService,
        tracker: JobTracker,
        submitter: CloudRunSubmitter,
        recordings_folder_id: str
    ):
        self.drive = drive
        self.tracker = tracker
        self.submitter = submitter
        self.recordings_folder_id = recordings_folder_id

    def run(self) -> DiscoveryResults:
        """
        Scan the recordings folder once.

        Raises:
            DriveError: If the folder cannot be listed
            SheetsError: If the tracking ledger cannot be read
        """
        results = DiscoveryResults()

        self.tracker.ensure_header()
        existing = self.tracker.existing_file_names()
        logger.info(f"Tracking ledger holds {len(existing)} recordings")

        folder = self.drive.get_folder(self.recordings_folder_id)
        files = self.drive.list_files(self.recordings_folder_id, mime_prefix=VIDEO_MIME_PREFIX)
        results.total_files = len(files)
        logger.info(f"Checking Drive folder '{folder.get('name')}' ({self.recordings_folder_id}): {len(files)} videos")

        for drive_file in files:
            try:
                record = self._process_file(drive_file, existing, results)
            except Exception as e:
                logger.error(f"Unexpected error processing '{drive_file.get('name')}' ({drive_file.get('id')}): {e}", exc_info=True)
                results.item_errors += 1
                continue
            if record is not None:
                results.records.append(record)

        logger.info(
            f"Discovery finished. New rows: {results.new_rows}, Submitted: {results.submitted}, "
            f"Skipped (tracked): {results.skipped_tracked}, Skipped (unparseable): {results.skipped_unparseable}, "
            f"Rename errors: {results.rename_errors}, Submission failures: {results.submission_failures}, "
            f"Ledger errors: {results.ledger_errors}, Item errors: {results.item_errors}"
        )
        return results

    def _process_file(
        self,
        drive_file: Dict[str, Any],
        existing: set,
        results: DiscoveryResults
    ) -> Optional[JobRecord]:
        file_id = drive_file["id"]
        original_name = (drive_file.get("name") or "").strip()

        if original_name in existing:
            results.skipped_tracked += 1
            return None

        parsed = parse_filename(original_name)
        if parsed is None:
            logger.warning(f"Skipping '{original_name}': unable to extract a student name and date")
            results.skipped_unparseable += 1
            return None

        new_name = build_recording_name(parsed.student_name, parsed.class_date, file_id)
        if new_name in existing:
            logger.info(f"Skipping '{original_name}': '{new_name}' is already tracked")
            results.skipped_tracked += 1
            return None

        if new_name != original_name:
            try:
                self.drive.rename_file(file_id, new_name)
                logger.info(f"Renamed '{original_name}' to '{new_name}'")
            except DriveError as e:
                logger.error(f"Failed to rename {file_id} from '{original_name}' to '{new_name}': {e}. Skipping.")
                results.rename_errors += 1
                return None

        try:
            record = self.tracker.append_placeholder(new_name)
        except SheetsError as e:
            logger.error(f"Failed to record '{new_name}' in the tracking ledger: {e}")
            results.ledger_errors += 1
            return None

        existing.add(new_name)
        results.new_rows += 1

        status = self._submit(file_id, new_name, record)
        if status == JobStatus.SUBMITTED.value:
            results.submitted += 1
        else:
            results.submission_failures += 1

        try:
            self.tracker.record_submission(record, record.job_id, status)
        except SheetsError as e:
            logger.error(f"Failed to update row {record.row} for '{new_name}' after submission: {e}")
            results.ledger_errors += 1

        return record

    def _submit(self, file_id: str, file_name: str, record: JobRecord) -> str:
        logger.info(f"Sending '{file_name}' to the transcription pipeline")
        try:
            job_id = self.submitter.submit(file_id, file_name)
        except Exception as e:
            logger.error(f"Unexpected error submitting '{file_name}': {e}")
            record.job_id = ""
            return JobStatus.CLOUDRUN_ERROR.value

        if not job_id:
            logger.warning(f"Submission of '{file_name}' returned no job ID")
            record.job_id = ""
            return JobStatus.CLOUDRUN_NO_JOBID.value

        record.job_id = job_id
        return JobStatus.SUBMITTED.value


def create_discovery_pipeline(credential_provider=None) -> DiscoveryPipeline:
    """Build the pipeline from environment configuration."""
    from ..config import get_config, require
    from ..services.auth import create_credential_provider
    from ..services.drive import create_drive_service
    from ..services.submission import create_submitter
    from ..services.tracking import create_job_tracker

    config = get_config()
    folder_id = require(config.drive.recordings_folder_id, "RECORDINGS_FOLDER_ID")
    submitter = create_submitter()
    provider = credential_provider or create_credential_provider()

    return DiscoveryPipeline(
        drive=create_drive_service(provider),
        tracker=create_job_tracker(provider),
        submitter=submitter,
        recordings_folder_id=folder_id
    )
