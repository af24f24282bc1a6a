"""
Homework consolidation.

Each student with new transcripts in a run gets exactly one assignment: one
prompt file in their Drive folder, one ledger row, one email. The homework ID
is ``L<roster row>-<YYYYMMDD>``. A second assignment for the same student on
the same day gets a ``-2``, ``-3``, ... suffix so ledger IDs stay unique.
"""

import uuid
from datetime import datetime
from typing import List, Dict, Any, Optional, Sequence, Set, Callable
import logging
from dataclasses import dataclass, field

from ..services.drive import DriveService
from ..services.homework_ledger import HomeworkLedger
from ..services.notifications import (
    EmailNotification, HomeworkEmailRenderer, NotificationError, build_portal_link
)
from ..services.roster import RosterService
from ..domain.models import HomeworkAssignment, RosterEntry, TranscriptBatches
from ..utils.filenames import prompt_name_from_transcript
from ..utils.prompts import HOMEWORK_COACH_PROMPT, get_homework_prompt, build_prompt_document

logger = logging.getLogger(__name__)


class HomeworkAssignmentError(Exception):
    """Raised when an assignment could not be completed for one student."""
    pass


@dataclass
class HomeworkResults:
    """Outcome of consolidating one run's batches."""
    students: int = 0
    assigned: int = 0
    failed: int = 0
    notified: int = 0
    assignments: List[HomeworkAssignment] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def statistics(self) -> Dict[str, Any]:
        return {
            "students": self.students,
            "assigned": self.assigned,
            "failed": self.failed,
            "notified": self.notified
        }


def make_hw_id(roster_row: int, day: datetime, taken: Set[str]) -> str:
    """Deterministic daily ID, suffixed when the same ID is already in the ledger."""
    base = f"L{roster_row}-{day.strftime('%Y%m%d')}"
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


class HomeworkAssigner:
    def __init__(
        self,
        drive: DriveService,
        roster: RosterService,
        ledger: HomeworkLedger,
        email_sender,
        portal_base_url: Optional[str] = None,
        prompt_template: str = HOMEWORK_COACH_PROMPT,
        renderer: Optional[HomeworkEmailRenderer] = None,
        clock: Callable[[], datetime] = datetime.now,
        token_factory: Callable[[], str] = lambda: str(uuid.uuid4())
    ):
        """
        Args:
            drive: Folder store holding each student's folder
            roster: Student roster, looked up by email
            ledger: Homework ledger tab
            email_sender: Object with ``send(EmailNotification)``
            portal_base_url: Portal root; notifications are skipped when missing
            prompt_template: Coaching prompt with a ``{transcript_list}`` placeholder
            renderer: Email template renderer
            clock: Source of the assignment time and the homework ID date
            token_factory: Source of portal access tokens
        """
        self.drive = drive
        self.roster = roster
        self.ledger = ledger
        self.email_sender = email_sender
        self.portal_base_url = portal_base_url
        self.prompt_template = prompt_template
        self.renderer = renderer or HomeworkEmailRenderer()
        self.clock = clock
        self.token_factory = token_factory

    def assign_batches(self, batches: TranscriptBatches) -> HomeworkResults:
        """Consolidate each non-empty batch into a single assignment."""
        results = HomeworkResults()
        pending = {email: names for email, names in batches.items() if names}
        results.students = len(pending)

        if not pending:
            logger.info("No new transcripts delivered; no homework to assign")
            return results

        self.ledger.ensure_header()
        logger.info(f"Assigning homework for {len(pending)} students")

        for email, names in pending.items():
            logger.info(f"Assigning homework to {email} using {len(names)} transcript(s): {', '.join(names)}")
            try:
                assignment = self.assign(email, names)
            except HomeworkAssignmentError as e:
                logger.error(f"Homework assignment failed for {email}: {e}")
                results.failed += 1
                results.failures[email] = str(e)
                continue
            except Exception as e:
                logger.error(f"Unexpected error assigning homework to {email}: {e}", exc_info=True)
                results.failed += 1
                results.failures[email] = str(e)
                continue

            results.assigned += 1
            results.assignments.append(assignment)
            if assignment.notification_sent:
                results.notified += 1

        logger.info(
            f"Homework finished. Assigned: {results.assigned}, Failed: {results.failed}, "
            f"Notified: {results.notified}"
        )
        return results

    def assign(self, email: str, transcript_names: Sequence[str]) -> HomeworkAssignment:
        """
        Create one homework assignment for a student from their transcripts.

        The prompt file is written first, then the ledger row. If the ledger
        write fails the prompt file is trashed before the error is raised.
        A failed notification is logged and the assignment still stands.

        Raises:
            HomeworkAssignmentError: Missing student or folder, or a failed
                prompt or ledger write
        """
        names = tuple(transcript_names)
        if not names:
            raise HomeworkAssignmentError(f"No transcripts given for {email}")

        student = self.roster.find_by_email(email)
        if student is None:
            raise HomeworkAssignmentError(f"Student email {email} not found in roster")
        if not student.drive_folder_id:
            raise HomeworkAssignmentError(f"Drive folder ID missing for student {email}")

        now = self.clock()
        try:
            taken = self.ledger.existing_hw_ids()
        except Exception as e:
            raise HomeworkAssignmentError(f"Could not read homework ledger: {e}") from e

        hw_id = make_hw_id(student.row_index, now, taken)
        if hw_id != f"L{student.row_index}-{now.strftime('%Y%m%d')}":
            logger.warning(f"{student.name} already has homework today; using {hw_id}")

        prompt_file_name = self._prompt_file_name(names[0], hw_id)
        prompt_text = build_prompt_document(
            get_homework_prompt(names, self.prompt_template),
            student.lifestyle_profile
        )

        try:
            prompt_file_id = self.drive.create_text_file(student.drive_folder_id, prompt_file_name, prompt_text)
        except Exception as e:
            raise HomeworkAssignmentError(f"Failed to create prompt file '{prompt_file_name}': {e}") from e
        logger.info(
            f"Created prompt file '{prompt_file_name}' ({prompt_file_id}) in folder "
            f"{student.drive_folder_id} for {email}"
        )

        assignment = HomeworkAssignment(
            student_id=student.student_id,
            student_name=student.name,
            student_email=student.email,
            hw_id=hw_id,
            prompt_file_ref=prompt_file_id,
            token=self.token_factory(),
            assigned_at=now,
            prompt_file_name=prompt_file_name,
            transcript_names=names
        )

        try:
            self.ledger.append_assignment(assignment)
        except Exception as e:
            logger.error(f"Failed to append ledger row for {hw_id} ({email}): {e}")
            self._discard_prompt(prompt_file_id)
            raise HomeworkAssignmentError(f"Failed to append ledger row for {hw_id}: {e}") from e

        assignment.notification_sent = self._notify(student, assignment)
        logger.info(f"Homework {hw_id} assigned to {student.name}. Prompt file: '{prompt_file_name}'")
        return assignment

    def _prompt_file_name(self, first_transcript: str, hw_id: str) -> str:
        name = prompt_name_from_transcript(first_transcript)
        if name:
            return name
        logger.warning(f"Cannot parse '{first_transcript}' for prompt naming; using default name")
        return f"HW_{hw_id}_prompt.txt"

    def _discard_prompt(self, prompt_file_id: str) -> None:
        try:
            self.drive.trash_file(prompt_file_id)
            logger.info(f"Trashed prompt file {prompt_file_id} after ledger error")
        except Exception as e:
            logger.warning(f"Failed to trash prompt file {prompt_file_id} after ledger error: {e}")

    def _notify(self, student: RosterEntry, assignment: HomeworkAssignment) -> bool:
        if not self.portal_base_url:
            logger.warning("HOMEWORK_PORTAL_BASEURL is not set; skipping email")
            return False

        link = build_portal_link(self.portal_base_url, assignment.token)
        subject, text, html = self.renderer.render(student.first_name, assignment.hw_id, link)

        try:
            self.email_sender.send(EmailNotification(
                to_address=student.email,
                to_name=student.name or None,
                subject=subject,
                text=text,
                html=html
            ))
        except NotificationError as e:
            logger.error(f"Failed to email {student.email} for {assignment.hw_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error emailing {student.email} for {assignment.hw_id}: {e}", exc_info=True)
            return False

        logger.info(f"{assignment.hw_id} email sent to {student.email}")
        return True


def _clock_for(timezone: Optional[str]) -> Callable[[], datetime]:
    if not timezone:
        return datetime.now
    from zoneinfo import ZoneInfo

    zone = ZoneInfo(timezone)
    return lambda: datetime.now(zone)


def create_homework_assigner(
    credential_provider=None,
    roster: Optional[RosterService] = None,
    drive: Optional[DriveService] = None
) -> HomeworkAssigner:
    from ..config import get_config
    from ..services.auth import create_credential_provider
    from ..services.drive import create_drive_service
    from ..services.homework_ledger import create_homework_ledger
    from ..services.notifications import create_email_sender
    from ..services.roster import create_roster_service
    from ..utils.prompts import load_prompt_template

    config = get_config()
    provider = credential_provider or create_credential_provider()
    roster = roster or create_roster_service(credential_provider=provider)

    return HomeworkAssigner(
        drive=drive or create_drive_service(provider),
        roster=roster,
        ledger=create_homework_ledger(sheets=roster.sheets),
        email_sender=create_email_sender(),
        portal_base_url=config.homework.portal_base_url,
        prompt_template=load_prompt_template(config.homework.prompt_template_path),
        clock=_clock_for(config.timezone)
    )
