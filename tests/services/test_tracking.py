from datetime import datetime

import pytest

from eduscribe.domain.models import TRACKING_HEADER
from eduscribe.services.tracking import JobTracker


class TestJobTracker:
    """Test suite for the tracking ledger."""

    @pytest.fixture
    def tracker(self, sheets, fixed_now):
        return JobTracker(sheets, tab="Jobs", clock=lambda: fixed_now)

    def test_ensure_header_creates_tab(self, tracker, sheets):
        tracker.ensure_header()

        assert sheets.tabs["Jobs"][0] == TRACKING_HEADER

    def test_ensure_header_keeps_legacy_header(self, make_sheets, fixed_now):
        legacy = ["File Name", "Job ID", "Status", "Timestamp"]
        sheets = make_sheets({"Jobs": [legacy]})

        JobTracker(sheets, clock=lambda: fixed_now).ensure_header()

        assert sheets.tabs["Jobs"][0] == legacy
        assert sheets.writes == []

    def test_ensure_header_rewrites_wrong_header(self, make_sheets, fixed_now):
        sheets = make_sheets({"Jobs": [["a.mp4", "job-1", "done", ""]]})

        JobTracker(sheets, clock=lambda: fixed_now).ensure_header()

        assert sheets.tabs["Jobs"][0] == TRACKING_HEADER

    def test_load_records(self, make_sheets):
        sheets = make_sheets({"Jobs": [
            TRACKING_HEADER,
            ["a.mp4", "job-1", "running", "2024-03-01T10:00:00"],
            ["", "", "", ""],
            ["b.mp4"],
        ]})

        records = JobTracker(sheets).load_records()

        assert [(r.file_name, r.row) for r in records] == [("a.mp4", 2), ("b.mp4", 4)]
        assert records[0].job_id == "job-1"
        assert records[1].status == ""
        assert records[1].timestamp is None

    def test_existing_file_names(self, make_sheets):
        sheets = make_sheets({"Jobs": [TRACKING_HEADER, ["a.mp4"], ["b.mp4"]]})
        assert JobTracker(sheets).existing_file_names() == {"a.mp4", "b.mp4"}

    def test_placeholder_then_submission(self, tracker, sheets):
        tracker.ensure_header()

        record = tracker.append_placeholder("Jane_Doe_2024-03-01_AbCdEfGhIj.mp4")

        assert record.row == 2
        assert sheets.tabs["Jobs"][1] == ["Jane_Doe_2024-03-01_AbCdEfGhIj.mp4", "", "processing", "2024-03-05T09:30:00"]

        tracker.record_submission(record, "job-9", "submitted")

        assert sheets.tabs["Jobs"][1] == ["Jane_Doe_2024-03-01_AbCdEfGhIj.mp4", "job-9", "submitted", "2024-03-05T09:30:00"]

    def test_record_submission_without_job_id(self, tracker, sheets):
        tracker.ensure_header()
        record = tracker.append_placeholder("a.mp4")

        tracker.record_submission(record, None, "cloudrun_no_jobid")

        assert sheets.tabs["Jobs"][1][1:3] == ["", "cloudrun_no_jobid"]

    def test_update_status_touches_status_and_timestamp(self, make_sheets):
        sheets = make_sheets({"Jobs": [TRACKING_HEADER, ["a.mp4", "job-1", "running", "old"]]})
        tracker = JobTracker(sheets, clock=lambda: datetime(2024, 3, 6, 8, 0, 0))
        record = tracker.load_records()[0]

        tracker.update_status(record, "done")

        assert sheets.tabs["Jobs"][1] == ["a.mp4", "job-1", "done", "2024-03-06T08:00:00"]
        assert sheets.writes[-1] == ("update", "Jobs", 2, 3, ["done", "2024-03-06T08:00:00"])
