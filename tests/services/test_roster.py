import pytest

from eduscribe.services.roster import RosterService, RosterError
from eduscribe.services.sheets import SheetsError


class TestRosterService:
    """Test suite for RosterService"""

    def test_load(self, roster_sheets):
        entries = RosterService(roster_sheets).load()

        assert [e.name for e in entries] == ["jane doe", "Bob Stone"]
        jane = entries[0]
        assert jane.email == "jane@x.com"
        assert jane.drive_folder_id == "folder-jane"
        assert jane.student_id == "S001"
        assert jane.lifestyle_profile == "Nurse, loves hiking"
        assert jane.row_index == 2

    def test_load_is_cached(self, roster_sheets):
        roster = RosterService(roster_sheets)
        first = roster.load()
        roster_sheets.tabs["Current_Students"].append(["New Kid", "S003", "new@x.com", "folder-new", ""])

        assert roster.load() is first
        assert len(roster.load(refresh=True)) == 3

    def test_missing_tab(self, make_sheets):
        with pytest.raises(RosterError, match="Could not read roster"):
            RosterService(make_sheets({})).load()

    def test_header_only(self, make_sheets):
        sheets = make_sheets({"Current_Students": [["Student_Name", "Student_Email"]]})
        assert RosterService(sheets).load() == []

    def test_missing_required_columns(self, make_sheets):
        sheets = make_sheets({"Current_Students": [["Name", "Id"], ["Jane", "1"]]})

        with pytest.raises(RosterError, match="student_email"):
            RosterService(sheets).load()

    def test_drive_folder_column_fallback(self, make_sheets):
        sheets = make_sheets({"Current_Students": [
            ["Student_Name", "Student_ID", "Student_Email", "Folder"],
            ["Jane Doe", "S001", "jane@x.com", "folder-jane"],
        ]})

        entries = RosterService(sheets, drive_folder_column=3).load()

        assert entries[0].drive_folder_id == "folder-jane"

    def test_lifestyle_column_fallback(self, make_sheets):
        header = ["Student_Name", "Student_ID", "Student_Email", "Drive_Folder_ID"] + [""] * 12 + ["Notes"]
        row = ["Jane Doe", "S001", "jane@x.com", "folder-jane"] + [""] * 12 + ["Chef"]
        sheets = make_sheets({"Current_Students": [header, row]})

        assert RosterService(sheets).load()[0].lifestyle_profile == "Chef"

    def test_name_map_normalizes_keys(self, roster_sheets):
        mapping = RosterService(roster_sheets).name_map()

        assert set(mapping) == {"jane doe", "bob stone"}
        assert mapping["bob stone"].email == "bob@x.com"

    def test_name_map_skips_incomplete_rows(self, roster_sheets):
        roster_sheets.tabs["Current_Students"].append(["No Folder", "S003", "nf@x.com", "", ""])

        assert "no folder" not in RosterService(roster_sheets).name_map()

    def test_name_map_first_row_wins(self, roster_sheets):
        roster_sheets.tabs["Current_Students"].append(["JANE  DOE", "S009", "other@x.com", "folder-other", ""])

        mapping = RosterService(roster_sheets).name_map()

        assert mapping["jane doe"].email == "jane@x.com"

    def test_find_by_email_is_case_insensitive(self, roster_sheets):
        roster = RosterService(roster_sheets)

        assert roster.find_by_email(" JANE@X.COM ").student_id == "S001"
        assert roster.find_by_email("nobody@x.com") is None
        assert roster.find_by_email("") is None

    def test_suggest(self, roster_sheets):
        roster = RosterService(roster_sheets)

        name, score = roster.suggest("Bob Stones")
        assert name == "Bob Stone"
        assert score >= 70
        assert roster.suggest("Zzyzx Qwerty") is None

    def test_sheets_error_becomes_roster_error(self, roster_sheets):
        def fail(*args, **kwargs):
            raise SheetsError("quota exceeded")

        roster_sheets.get_values = fail

        with pytest.raises(RosterError):
            RosterService(roster_sheets).load()
