from typing import List, Dict, Any, Optional, Mapping, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
    # Local lifecycle markers
    PROCESSING = "processing"
    PROCESSING_TRANSCRIPT = "processing_transcript"

    # Provider vocabulary
    SUBMITTED = "submitted"
    RUNNING = "running"
    DONE = "done"
    REJECTED = "rejected"
    DELETED = "deleted"
    EXPIRED = "expired"

    # Transient markers, never written to the ledger
    RATE_LIMITED = "rate_limited"
    EXCEPTION_FETCHING_STATUS = "exception_fetching_status"

    # Terminal error statuses
    PROCESSING_ERROR = "processing_error"
    GCS_ERROR = "gcs_error"
    GCS_MOVE_ERROR = "gcs_move_error"
    TRANSCRIPT_FETCH_ERROR = "transcript_fetch_error"
    SUBMISSION_ERROR = "submission_error"
    SUBMISSION_EXCEPTION = "submission_exception"
    CLOUDRUN_ERROR = "cloudrun_error"
    CLOUDRUN_NO_JOBID = "cloudrun_no_jobid"
    NOT_FOUND = "not_found"
    ERROR_FETCHING_STATUS = "error_fetching_status"
    ERROR_PARSING_RESPONSE = "error_parsing_response"
    ERROR_UNAUTHORIZED = "error_unauthorized"
    ERROR_MISSING_JOBID = "error_missing_jobid"


TERMINAL_STATUSES = frozenset(s.value for s in (
    JobStatus.DONE,
    JobStatus.REJECTED,
    JobStatus.DELETED,
    JobStatus.EXPIRED,
    JobStatus.PROCESSING_ERROR,
    JobStatus.GCS_ERROR,
    JobStatus.GCS_MOVE_ERROR,
    JobStatus.TRANSCRIPT_FETCH_ERROR,
    JobStatus.SUBMISSION_ERROR,
    JobStatus.SUBMISSION_EXCEPTION,
    JobStatus.CLOUDRUN_ERROR,
    JobStatus.CLOUDRUN_NO_JOBID,
    JobStatus.NOT_FOUND,
    JobStatus.ERROR_FETCHING_STATUS,
    JobStatus.ERROR_PARSING_RESPONSE,
    JobStatus.ERROR_UNAUTHORIZED,
    JobStatus.ERROR_MISSING_JOBID,
))

ACTIVE_STATUSES = frozenset(s.value for s in (
    JobStatus.PROCESSING,
    JobStatus.SUBMITTED,
    JobStatus.RUNNING,
    JobStatus.PROCESSING_TRANSCRIPT,
))

TRANSIENT_STATUSES = frozenset(s.value for s in (
    JobStatus.RATE_LIMITED,
    JobStatus.EXCEPTION_FETCHING_STATUS,
))


def is_terminal(status: str) -> bool:
    return (status or "").strip().lower() in TERMINAL_STATUSES


def is_error_status(status: str) -> bool:
    status = (status or "").strip().lower()
    return "error" in status or "reject" in status or status == JobStatus.NOT_FOUND.value


@dataclass
class JobRecord:
    """One row of the tracking ledger."""
    file_name: str
    job_id: str = ""
    status: str = JobStatus.PROCESSING.value
    timestamp: Optional[str] = None
    row: Optional[int] = None  # 1-based sheet row, None until written

    @property
    def normalized_status(self) -> str:
        return (self.status or "").strip().lower()

    def to_row(self) -> List[Any]:
        return [self.file_name, self.job_id or "", self.status, self.timestamp or ""]

    @classmethod
    def from_row(cls, values: List[Any], row: int) -> "JobRecord":
        padded = list(values) + [""] * (4 - len(values))
        return cls(
            file_name=str(padded[0] or "").strip(),
            job_id=str(padded[1] or "").strip(),
            status=str(padded[2] or "").strip(),
            timestamp=str(padded[3] or "").strip() or None,
            row=row
        )


@dataclass
class RosterEntry:
    name: str
    email: str
    drive_folder_id: str
    student_id: str = ""
    lifestyle_profile: str = ""
    row_index: int = 0  # 1-based sheet row, header is row 1

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else "Student"


@dataclass(frozen=True)
class ParsedFilename:
    student_name: str
    class_date: str  # YYYY-MM-DD
    raw_name: str  # name segment before punctuation stripping


@dataclass
class HomeworkAssignment:
    student_id: str
    student_name: str
    student_email: str
    hw_id: str
    prompt_file_ref: str
    token: str
    assigned_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    token_status: str = "Active"
    turns_used: int = 0
    prompt_file_name: Optional[str] = None
    transcript_names: Tuple[str, ...] = ()
    notification_sent: bool = False

    def to_row(self) -> List[Any]:
        return [
            self.student_id or "",
            self.student_name or "",
            self.student_email or "",
            self.hw_id,
            self.prompt_file_ref,
            self.token,
            self.assigned_at.isoformat(),
            self.completed_at.isoformat() if self.completed_at else "",
            self.token_status,
            self.turns_used
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "student_email": self.student_email,
            "hw_id": self.hw_id,
            "prompt_file_ref": self.prompt_file_ref,
            "prompt_file_name": self.prompt_file_name,
            "token": self.token,
            "assigned_at": self.assigned_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "token_status": self.token_status,
            "turns_used": self.turns_used,
            "transcript_names": list(self.transcript_names),
            "notification_sent": self.notification_sent
        }


# Student email -> transcript names delivered to that student in one run
TranscriptBatches = Mapping[str, Tuple[str, ...]]


TRACKING_HEADER = ["FileName", "JobID", "Status", "Timestamp"]

HOMEWORK_HEADER = [
    "Student_ID", "Student_Name", "Student_Email", "HW_ID", "PromptFileID",
    "Token", "AssignedAt", "CompletedAt", "Token_Status", "Turns_Used"
]
