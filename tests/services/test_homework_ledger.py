from datetime import datetime

from eduscribe.domain.models import HomeworkAssignment, HOMEWORK_HEADER
from eduscribe.services.homework_ledger import HomeworkLedger


def make_assignment(hw_id="L2-20240305"):
    return HomeworkAssignment(
        student_id="S001",
        student_name="jane doe",
        student_email="jane@x.com",
        hw_id=hw_id,
        prompt_file_ref="prompt-file-id",
        token="tok-1",
        assigned_at=datetime(2024, 3, 5, 9, 30, 0)
    )


class TestHomeworkLedger:
    def test_ensure_header(self, roster_sheets):
        ledger = HomeworkLedger(roster_sheets)

        ledger.ensure_header()
        ledger.ensure_header()

        assert roster_sheets.tabs["Homework_Push"] == [HOMEWORK_HEADER]

    def test_ensure_header_creates_missing_tab(self, make_sheets):
        sheets = make_sheets({})

        HomeworkLedger(sheets, tab="HW").ensure_header()

        assert sheets.tabs["HW"] == [HOMEWORK_HEADER]

    def test_append_assignment(self, roster_sheets):
        ledger = HomeworkLedger(roster_sheets)
        ledger.ensure_header()

        row = ledger.append_assignment(make_assignment())

        assert row == 2
        assert roster_sheets.tabs["Homework_Push"][1] == [
            "S001", "jane doe", "jane@x.com", "L2-20240305", "prompt-file-id",
            "tok-1", "2024-03-05T09:30:00", "", "Active", 0
        ]

    def test_existing_hw_ids(self, roster_sheets):
        ledger = HomeworkLedger(roster_sheets)
        ledger.ensure_header()
        ledger.append_assignment(make_assignment("L2-20240305"))
        ledger.append_assignment(make_assignment("L2-20240305-2"))
        roster_sheets.tabs["Homework_Push"].append(["S002", "Bob"])

        assert ledger.existing_hw_ids() == {"L2-20240305", "L2-20240305-2"}
