from types import MappingProxyType
from typing import List, Dict, Any, Optional
import logging
from dataclasses import dataclass, field

from ..services.drive import DriveService
from ..services.roster import RosterService
from ..services.storage import GoogleCloudStorageService, TRANSCRIPTS_PREFIX
from ..domain.models import RosterEntry, TranscriptBatches
from ..utils.filenames import parse_filename, normalize_student_name, is_excluded_name

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPES = ["text/plain"]


@dataclass
class DistributionResults:
    """Counters and student batches for one import run."""
    total_transcripts: int = 0
    imported: int = 0
    skipped_exists: int = 0
    skipped_no_match: int = 0
    skipped_excluded: int = 0
    skipped_unrecognized: int = 0
    errors: int = 0
    batches: TranscriptBatches = field(default_factory=lambda: MappingProxyType({}))
    error_details: List[str] = field(default_factory=list)

    @property
    def statistics(self) -> Dict[str, Any]:
        return {
            "total_transcripts": self.total_transcripts,
            "imported": self.imported,
            "skipped_exists": self.skipped_exists,
            "skipped_no_match": self.skipped_no_match,
            "skipped_excluded": self.skipped_excluded,
            "skipped_unrecognized": self.skipped_unrecognized,
            "errors": self.errors,
            "students": len(self.batches)
        }


def _remediation_hint(error: Exception, folder_id: str) -> Optional[str]:
    message = str(error).lower()
    if "not found" in message and "folder" in message:
        return f"Verify Drive folder {folder_id} exists and the service account can see it."
    if "permission" in message or "forbidden" in message or "403" in message:
        return f"Check that the service account has Editor access on Drive folder {folder_id}."
    return None


class TranscriptDistributor:
    """
    Copies landed transcripts into each student's Drive folder.

    A transcript is delivered at most once: if the student's folder already
    holds a file of that name it is skipped. Names delivered in this run are
    returned per student email, in listing order, for homework consolidation.
    """

    def __init__(
        self,
        storage: GoogleCloudStorageService,
        drive: DriveService,
        roster: RosterService
    ):
        self.storage = storage
        self.drive = drive
        self.roster = roster

    def run(self) -> DistributionResults:
        """
        Distribute every transcript under ``transcripts/``.

        Raises:
            RosterError: If the roster cannot be read
            StorageError: If the transcripts cannot be listed
        """
        results = DistributionResults()

        name_map = self.roster.name_map()
        if not name_map:
            logger.warning("Roster map is empty; nothing to distribute")
            return results

        objects = self.storage.list_objects(TRANSCRIPTS_PREFIX, content_types=TEXT_CONTENT_TYPES)
        results.total_transcripts = len(objects)
        logger.info(f"Found {len(objects)} text files under '{TRANSCRIPTS_PREFIX}'")

        delivered: Dict[str, List[str]] = {}
        for item in objects:
            self._process_object(item, name_map, delivered, results)

        results.batches = MappingProxyType({email: tuple(names) for email, names in delivered.items()})

        logger.info(
            f"Import finished. Imported: {results.imported}, Skipped (exists): {results.skipped_exists}, "
            f"Skipped (no match): {results.skipped_no_match}, Skipped (*): {results.skipped_excluded}, "
            f"Skipped (unrecognized): {results.skipped_unrecognized}, Errors: {results.errors}, "
            f"Students with new transcripts: {len(results.batches)}"
        )
        return results

    def _process_object(
        self,
        item: Dict[str, Any],
        name_map: Dict[str, RosterEntry],
        delivered: Dict[str, List[str]],
        results: DistributionResults
    ) -> None:
        object_name = item.get("name") or ""
        relative = object_name[len(TRANSCRIPTS_PREFIX):] if object_name.startswith(TRANSCRIPTS_PREFIX) else ""
        if not relative or "/" in relative:
            logger.debug(f"Ignoring '{object_name}': not a top-level transcript")
            return

        parsed = parse_filename(relative)
        if parsed is None:
            logger.warning(f"Skipping unrecognized transcript name: '{relative}'")
            results.skipped_unrecognized += 1
            return

        if is_excluded_name(parsed.raw_name):
            logger.debug(f"Skipping '{relative}': name is marked with '*'")
            results.skipped_excluded += 1
            return

        key = normalize_student_name(parsed.student_name)
        student = name_map.get(key)
        if student is None:
            suggestion = self.roster.suggest(parsed.student_name)
            hint = f" Closest roster name: '{suggestion[0]}' ({suggestion[1]}%)." if suggestion else ""
            logger.warning(f"No roster match for '{parsed.student_name}' from '{relative}'.{hint}")
            results.skipped_no_match += 1
            return

        folder_id = student.drive_folder_id
        try:
            if self.drive.file_exists(folder_id, relative):
                logger.debug(f"'{relative}' already in folder {folder_id} for {student.name}")
                results.skipped_exists += 1
                return

            content = self.storage.read_text(object_name)
            self.drive.create_text_file(folder_id, relative, content)
        except Exception as e:
            results.errors += 1
            results.error_details.append(f"{relative}: {e}")
            logger.error(f"Failed to import '{object_name}' for {student.name}: {e}")
            hint = _remediation_hint(e, folder_id)
            if hint:
                logger.error(f"  Suggestion: {hint}")
            return

        logger.info(f"Uploaded '{relative}' to Drive for {student.name}")
        results.imported += 1
        delivered.setdefault(student.email, []).append(relative)


def create_transcript_distributor(credential_provider=None, roster: Optional[RosterService] = None) -> TranscriptDistributor:
    from ..services.auth import create_credential_provider
    from ..services.drive import create_drive_service
    from ..services.roster import create_roster_service
    from ..services.storage import create_storage_service

    provider = credential_provider or create_credential_provider()
    return TranscriptDistributor(
        storage=create_storage_service(provider),
        drive=create_drive_service(provider),
        roster=roster or create_roster_service(credential_provider=provider)
    )
