from types import MappingProxyType

import pytest

from eduscribe.pipelines.distribute import TranscriptDistributor
from eduscribe.services.roster import RosterService

JANE_FIRST = "Jane_Doe_2024-03-01_AbCdEfGhIj.txt"
JANE_SECOND = "jane_doe_2024-03-08_KlMnOpQrSt.txt"


class TestTranscriptDistributor:
    """Test suite for TranscriptDistributor"""

    @pytest.fixture
    def folders(self, drive):
        drive.add_folder("folder-jane")
        drive.add_folder("folder-bob")
        return drive

    @pytest.fixture
    def distributor(self, storage, folders, roster_sheets):
        return TranscriptDistributor(storage, folders, RosterService(roster_sheets))

    def test_batches_grouped_by_student_email(self, distributor, storage, folders):
        storage.put(f"transcripts/{JANE_FIRST}", "first class")
        storage.put(f"transcripts/{JANE_SECOND}", "second class")

        results = distributor.run()

        assert results.imported == 2
        assert dict(results.batches) == {"jane@x.com": (JANE_FIRST, JANE_SECOND)}
        delivered = {f["name"]: f["content"] for f in folders.live_files("folder-jane")}
        assert delivered == {JANE_FIRST: "first class", JANE_SECOND: "second class"}

    def test_batches_are_read_only(self, distributor, storage):
        storage.put(f"transcripts/{JANE_FIRST}", "first class")

        results = distributor.run()

        assert isinstance(results.batches, MappingProxyType)
        with pytest.raises(TypeError):
            results.batches["bob@x.com"] = ()

    def test_second_run_delivers_nothing(self, distributor, storage, folders):
        storage.put(f"transcripts/{JANE_FIRST}", "first class")

        distributor.run()
        second = distributor.run()

        assert second.imported == 0
        assert second.skipped_exists == 1
        assert dict(second.batches) == {}
        assert len(folders.live_files("folder-jane")) == 1

    def test_excluded_and_unmatched_transcripts(self, distributor, storage, folders):
        storage.put("transcripts/*Bob_Stone_2024-03-01_AbCdEfGhIj.txt", "skip me")
        storage.put("transcripts/Zed_Quill_2024-03-01_AbCdEfGhIj.txt", "who?")
        storage.put("transcripts/notes.txt", "scratch")

        results = distributor.run()

        assert results.skipped_excluded == 1
        assert results.skipped_no_match == 1
        assert results.skipped_unrecognized == 1
        assert results.imported == 0
        assert folders.live_files("folder-bob") == []

    def test_nested_and_non_text_objects_ignored(self, distributor, storage):
        storage.put(f"transcripts/archive/{JANE_FIRST}", "old")
        storage.put("transcripts/Jane_Doe_2024-03-01_AbCdEfGhIj.pdf", "pdf", "application/pdf")

        results = distributor.run()

        assert results.total_transcripts == 1
        assert results.imported == 0
        assert results.skipped_unrecognized == 0

    def test_upload_error_is_counted_and_run_continues(self, distributor, storage, folders):
        del folders.folders["folder-bob"]
        storage.put("transcripts/Bob_Stone_2024-03-01_AbCdEfGhIj.txt", "bob")
        storage.put(f"transcripts/{JANE_FIRST}", "jane")

        results = distributor.run()

        assert results.errors == 1
        assert results.error_details[0].startswith("Bob_Stone_2024-03-01_AbCdEfGhIj.txt:")
        assert results.imported == 1
        assert dict(results.batches) == {"jane@x.com": (JANE_FIRST,)}

    def test_read_error_is_counted(self, distributor, storage):
        storage.put(f"transcripts/{JANE_FIRST}", "jane")
        storage.read_errors.add(f"transcripts/{JANE_FIRST}")

        results = distributor.run()

        assert results.errors == 1
        assert dict(results.batches) == {}

    def test_empty_roster_stops_early(self, storage, folders, make_sheets):
        sheets = make_sheets({"Current_Students": []})
        storage.put(f"transcripts/{JANE_FIRST}", "jane")

        results = TranscriptDistributor(storage, folders, RosterService(sheets)).run()

        assert results.total_transcripts == 0
        assert results.statistics["students"] == 0
