from typing import List, Dict, Optional, Tuple
import logging

from fuzzywuzzy import fuzz, process

from .sheets import SheetsService, SheetsError
from ..domain.models import RosterEntry
from ..utils.filenames import normalize_student_name

logger = logging.getLogger(__name__)

NAME_HEADER = "student_name"
ID_HEADER = "student_id"
EMAIL_HEADER = "student_email"
DRIVE_FOLDER_HEADER = "drive_folder_id"
LIFESTYLE_HEADERS = ("life_and_lifestyle", "life_and_liestyle", "lifestyle")

# Fixed positions used when a header cannot be found
NAME_COLUMN = 0
ID_COLUMN = 1


class RosterError(Exception):
    """Raised when the roster tab is missing or lacks required columns."""
    pass


def _cell(row: List[str], index: Optional[int]) -> str:
    if index is None or index < 0 or index >= len(row):
        return ""
    return str(row[index] or "").strip()


class RosterService:
    """
    Read-only view of the ``Current_Students`` tab.

    Columns are located by header name, with configured 0-based fallbacks for
    the drive folder and lifestyle columns.
    """

    def __init__(
        self,
        sheets: SheetsService,
        tab: str = "Current_Students",
        drive_folder_column: Optional[int] = None,
        lifestyle_column: Optional[int] = 16,
        suggestion_threshold: int = 70
    ):
        self.sheets = sheets
        self.tab = tab
        self.drive_folder_column = drive_folder_column
        self.lifestyle_column = lifestyle_column
        self.suggestion_threshold = suggestion_threshold
        self._entries: Optional[List[RosterEntry]] = None

    def _resolve_columns(self, header: List[str]) -> Dict[str, Optional[int]]:
        lowered = [str(h).strip().lower() for h in header]

        def find(names, fallback=None):
            for name in names:
                if name in lowered:
                    return lowered.index(name)
            return fallback

        columns = {
            "name": find([NAME_HEADER], NAME_COLUMN),
            "id": find([ID_HEADER], ID_COLUMN),
            "email": find([EMAIL_HEADER]),
            "drive_folder": find([DRIVE_FOLDER_HEADER], self.drive_folder_column),
            "lifestyle": find(LIFESTYLE_HEADERS, self.lifestyle_column)
        }

        missing = []
        if columns["email"] is None:
            missing.append(f'"{EMAIL_HEADER}"')
        if columns["drive_folder"] is None:
            missing.append(f'"{DRIVE_FOLDER_HEADER}" (or ROSTER_DRIVE_FOLDER_COLUMN)')
        if missing:
            raise RosterError(f"Roster tab '{self.tab}' is missing columns: {', '.join(missing)}")

        return columns

    def load(self, refresh: bool = False) -> List[RosterEntry]:
        """
        Read every student row.

        Raises:
            RosterError: If the tab cannot be read or required columns are missing
        """
        if self._entries is not None and not refresh:
            return self._entries

        try:
            rows = self.sheets.get_values(self.tab)
        except SheetsError as e:
            raise RosterError(f"Could not read roster tab '{self.tab}': {e}") from e

        if len(rows) < 2:
            logger.warning(f"Roster tab '{self.tab}' is empty or header only")
            self._entries = []
            return self._entries

        columns = self._resolve_columns(rows[0])

        entries = []
        for row_index, row in enumerate(rows[1:], start=2):
            row = [str(v) if v is not None else "" for v in row]
            entries.append(RosterEntry(
                name=_cell(row, columns["name"]),
                email=_cell(row, columns["email"]),
                drive_folder_id=_cell(row, columns["drive_folder"]),
                student_id=_cell(row, columns["id"]),
                lifestyle_profile=_cell(row, columns["lifestyle"]),
                row_index=row_index
            ))

        self._entries = entries
        logger.debug(f"Loaded {len(entries)} roster rows from '{self.tab}'")
        return entries

    def name_map(self) -> Dict[str, RosterEntry]:
        """
        Normalized name -> roster entry for rows with a name, folder and email.

        The first row wins when two rows normalize to the same name.
        """
        mapping: Dict[str, RosterEntry] = {}
        for entry in self.load():
            if not (entry.name and entry.drive_folder_id and entry.email):
                logger.debug(f"Skipping roster row {entry.row_index}: missing name, folder or email")
                continue

            key = normalize_student_name(entry.name)
            if key in mapping:
                logger.warning(
                    f"Duplicate roster name '{entry.name}' on row {entry.row_index}; "
                    f"keeping row {mapping[key].row_index}"
                )
                continue
            mapping[key] = entry

        logger.info(f"Roster map created with {len(mapping)} entries")
        return mapping

    def find_by_email(self, email: str) -> Optional[RosterEntry]:
        if not email:
            return None
        target = email.strip().lower()
        for entry in self.load():
            if entry.email and entry.email.strip().lower() == target:
                return entry
        logger.warning(f"Email '{email}' not found in roster")
        return None

    def suggest(self, name: str) -> Optional[Tuple[str, int]]:
        """Closest roster name for a no-match log line, or None below the threshold."""
        names = [e.name for e in self.load() if e.name]
        if not name or not names:
            return None

        result = process.extractOne(name, names, scorer=fuzz.token_sort_ratio)
        if not result:
            return None
        best, score = result[0], result[1]
        if score < self.suggestion_threshold:
            return None
        return best, score


def create_roster_service(sheets: Optional[SheetsService] = None, credential_provider=None) -> RosterService:
    from eduscribe.config import get_config, require
    from eduscribe.services.sheets import create_sheets_service

    sheets_config = get_config().sheets
    if sheets is None:
        sheets = create_sheets_service(
            require(sheets_config.roster_spreadsheet_id, "STUDENT_ROSTER_ID"),
            credential_provider
        )
    return RosterService(
        sheets,
        tab=sheets_config.roster_tab,
        drive_folder_column=sheets_config.roster_drive_folder_column,
        lifestyle_column=sheets_config.roster_lifestyle_column
    )
