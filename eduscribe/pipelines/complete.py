from typing import Optional
import logging
from dataclasses import dataclass

from ..services.speechmatics import SpeechmaticsClient, SpeechmaticsError
from ..services.storage import (
    GoogleCloudStorageService, StorageError,
    INCOMING_PREFIX, PROCESSED_PREFIX, TRANSCRIPTS_PREFIX
)
from ..domain.models import JobStatus
from ..utils.filenames import is_canonical_recording_name, transcript_name_for

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """A completion sub-step failed. ``status`` is the terminal ledger status."""
    status = JobStatus.PROCESSING_ERROR.value


class TranscriptFetchError(CompletionError):
    status = JobStatus.TRANSCRIPT_FETCH_ERROR.value


class TranscriptUploadError(CompletionError):
    status = JobStatus.GCS_ERROR.value


class RecordingMoveError(CompletionError):
    status = JobStatus.GCS_MOVE_ERROR.value


@dataclass
class CompletionResult:
    transcript_name: str
    transcript_uri: str
    transcript_chars: int
    recording_moved: bool


class CompletionHandler:
    """
    Collects a finished transcript and archives its recording.

    Safe to repeat: the transcript upload overwrites the same object, and a
    recording already gone from ``incoming/`` counts as moved.
    """

    def __init__(self, storage: GoogleCloudStorageService, speechmatics: SpeechmaticsClient):
        self.storage = storage
        self.speechmatics = speechmatics

    def resolve_transcript_name(self, file_name: str, job_id: str) -> str:
        """Prefer the provider tracking title when it is a canonical recording name."""
        title = self.speechmatics.get_tracking_title(job_id)
        base = title.strip() if title and is_canonical_recording_name(title) else file_name
        return transcript_name_for(base)

    def handle(self, file_name: str, job_id: str) -> CompletionResult:
        """
        Fetch, store and archive one completed job.

        Raises:
            TranscriptFetchError: The provider did not return the transcript
            TranscriptUploadError: The transcript could not be written to storage
            RecordingMoveError: The recording could not be moved to ``processed/``
        """
        transcript_name = self.resolve_transcript_name(file_name, job_id)
        logger.info(f"Transcript name for job {job_id}: {transcript_name}")

        try:
            content = self.speechmatics.get_transcript(job_id, fmt="txt")
        except SpeechmaticsError as e:
            raise TranscriptFetchError(str(e)) from e

        if not (content or "").strip():
            logger.warning(f"Job {job_id}: transcript is empty")
        logger.info(f"Retrieved transcript ({len(content or '')} chars) for job {job_id}")

        object_name = f"{TRANSCRIPTS_PREFIX}{transcript_name}"
        try:
            uri = self.storage.upload_text(object_name, content or "")
        except StorageError as e:
            raise TranscriptUploadError(f"Upload of {object_name} failed: {e}") from e

        try:
            moved = self.storage.move_object(
                f"{INCOMING_PREFIX}{file_name}", f"{PROCESSED_PREFIX}{file_name}"
            )
        except StorageError as e:
            raise RecordingMoveError(f"Archiving {file_name} failed: {e}") from e

        return CompletionResult(
            transcript_name=transcript_name,
            transcript_uri=uri,
            transcript_chars=len(content or ""),
            recording_moved=moved
        )


def create_completion_handler(
    storage: Optional[GoogleCloudStorageService] = None,
    speechmatics: Optional[SpeechmaticsClient] = None
) -> CompletionHandler:
    from ..services.speechmatics import create_speechmatics_client
    from ..services.storage import create_storage_service

    return CompletionHandler(
        storage=storage or create_storage_service(),
        speechmatics=speechmatics or create_speechmatics_client()
    )
