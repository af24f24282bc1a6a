import itertools
from datetime import datetime
from typing import List, Dict, Any, Optional

import pytest

from eduscribe.services.drive import DriveError
from eduscribe.services.sheets import SheetsError
from eduscribe.services.speechmatics import SpeechmaticsError
from eduscribe.services.storage import StorageError


class FakeSheetsService:
    """In-memory spreadsheet with the SheetsService surface."""

    def __init__(self, tabs: Optional[Dict[str, List[List[Any]]]] = None):
        self.tabs = {title: [list(r) for r in rows] for title, rows in (tabs or {}).items()}
        self.append_error: Optional[Exception] = None
        self.update_error: Optional[Exception] = None
        self.writes: List[tuple] = []

    def sheet_titles(self):
        return list(self.tabs)

    def ensure_sheet(self, title):
        if title in self.tabs:
            return False
        self.tabs[title] = []
        return True

    def get_values(self, title, cell_range=None):
        if title not in self.tabs:
            raise SheetsError(f"Unable to parse range: {title}")
        rows = [list(r) for r in self.tabs[title]]
        if cell_range == "1:1":
            return rows[:1]
        return rows

    def get_header(self, title):
        rows = self.get_values(title, "1:1")
        return [str(v) for v in rows[0]] if rows else []

    def append_row(self, title, values):
        if self.append_error:
            raise self.append_error
        self.tabs.setdefault(title, []).append(list(values))
        self.writes.append(("append", title, list(values)))
        return len(self.tabs[title])

    def update_row(self, title, row, start_column, values):
        if self.update_error:
            raise self.update_error
        rows = self.tabs.setdefault(title, [])
        while len(rows) < row:
            rows.append([])
        target = rows[row - 1]
        end = start_column - 1 + len(values)
        while len(target) < end:
            target.append("")
        target[start_column - 1:end] = list(values)
        self.writes.append(("update", title, row, start_column, list(values)))

    def update_cell(self, title, row, column, value):
        self.update_row(title, row, column, [value])


class FakeDriveService:
    """In-memory folder tree with the DriveService surface."""

    def __init__(self):
        self.folders: Dict[str, Dict[str, Any]] = {}
        self.files: Dict[str, Dict[str, Any]] = {}
        self.rename_errors = set()
        self.create_error: Optional[Exception] = None
        self.trash_error: Optional[Exception] = None
        self._ids = itertools.count(1)

    def add_folder(self, folder_id, name=None):
        self.folders[folder_id] = {"id": folder_id, "name": name or folder_id, "mimeType": "application/vnd.google-apps.folder"}

    def add_file(self, folder_id, name, mime_type="video/mp4", file_id=None, content=""):
        file_id = file_id or f"file{next(self._ids):08d}"
        self.files[file_id] = {
            "id": file_id, "name": name, "mimeType": mime_type,
            "parent": folder_id, "content": content, "trashed": False
        }
        return file_id

    def get_folder(self, folder_id):
        if folder_id not in self.folders:
            raise DriveError(f"Folder {folder_id} not found or not accessible")
        return dict(self.folders[folder_id])

    def list_files(self, folder_id, name=None, mime_prefix=None):
        result = []
        for f in self.files.values():
            if f["parent"] != folder_id or f["trashed"]:
                continue
            if name is not None and f["name"] != name:
                continue
            if mime_prefix and not f["mimeType"].startswith(mime_prefix):
                continue
            result.append({"id": f["id"], "name": f["name"], "mimeType": f["mimeType"]})
        return result

    def file_exists(self, folder_id, name):
        return bool(self.list_files(folder_id, name=name))

    def create_text_file(self, folder_id, name, content):
        if self.create_error:
            raise self.create_error
        if folder_id not in self.folders:
            raise DriveError(f"Folder {folder_id} not found: insufficient permission")
        return self.add_file(folder_id, name, mime_type="text/plain", content=content)

    def rename_file(self, file_id, new_name):
        if file_id in self.rename_errors:
            raise DriveError(f"Failed to rename file {file_id}")
        self.files[file_id]["name"] = new_name

    def trash_file(self, file_id):
        if self.trash_error:
            raise self.trash_error
        self.files[file_id]["trashed"] = True

    def live_files(self, folder_id):
        return [f for f in self.files.values() if f["parent"] == folder_id and not f["trashed"]]


class FakeStorage:
    """In-memory bucket with the GoogleCloudStorageService surface."""

    def __init__(self, bucket_name="test-bucket"):
        self.bucket_name = bucket_name
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.uploads: List[str] = []
        self.moves: List[tuple] = []
        self.upload_error: Optional[Exception] = None
        self.move_error: Optional[Exception] = None
        self.read_errors = set()

    def put(self, name, content="", content_type="text/plain"):
        self.objects[name] = {"content": content, "content_type": content_type}

    def check_access(self):
        return True

    def list_objects(self, prefix, content_types=None):
        wanted = [t.lower() for t in content_types] if content_types else []
        result = []
        for name, obj in self.objects.items():
            if not name.startswith(prefix) or name.endswith("/"):
                continue
            if wanted and not any(obj["content_type"].lower().startswith(t) for t in wanted):
                continue
            result.append({"name": name, "content_type": obj["content_type"], "size": len(obj["content"])})
        return result

    def read_text(self, object_name):
        if object_name in self.read_errors or object_name not in self.objects:
            raise StorageError(f"Object not found: {object_name}")
        return self.objects[object_name]["content"]

    def upload_text(self, object_name, content, content_type="text/plain; charset=utf-8"):
        if self.upload_error:
            raise self.upload_error
        self.put(object_name, content, "text/plain")
        self.uploads.append(object_name)
        return f"gs://{self.bucket_name}/{object_name}"

    def object_exists(self, object_name):
        return object_name in self.objects

    def move_object(self, source_name, destination_name):
        if self.move_error:
            raise self.move_error
        if source_name not in self.objects:
            return False
        self.objects[destination_name] = self.objects.pop(source_name)
        self.moves.append((source_name, destination_name))
        return True


class FakeSpeechmatics:
    def __init__(self):
        self.statuses: Dict[str, str] = {}
        self.transcripts: Dict[str, str] = {}
        self.titles: Dict[str, str] = {}
        self.status_calls: List[str] = []
        self.transcript_calls: List[str] = []

    def get_job_status(self, job_id):
        self.status_calls.append(job_id)
        return self.statuses.get(job_id, "not_found")

    def get_tracking_title(self, job_id):
        return self.titles.get(job_id)

    def get_transcript(self, job_id, fmt="txt"):
        self.transcript_calls.append(job_id)
        if job_id not in self.transcripts:
            raise SpeechmaticsError(f"Transcript fetch failed for job {job_id} (404)")
        return self.transcripts[job_id]


class RecordingEmailSender:
    def __init__(self, error: Optional[Exception] = None):
        self.sent = []
        self.error = error

    def send(self, notification):
        if self.error:
            raise self.error
        self.sent.append(notification)
        return {"provider": "test", "message_id": str(len(self.sent)), "request_id": None}


ROSTER_HEADER = [
    "Student_Name", "Student_ID", "Student_Email", "Drive_Folder_ID", "Life_And_Lifestyle"
]


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 5, 9, 30, 0)


@pytest.fixture
def sheets():
    return FakeSheetsService()


@pytest.fixture
def drive():
    return FakeDriveService()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def speechmatics():
    return FakeSpeechmatics()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def roster_sheets():
    """Roster spreadsheet: Jane on row 2, Bob on row 3, and an empty homework tab."""
    return FakeSheetsService({
        "Current_Students": [
            ROSTER_HEADER,
            ["jane doe", "S001", "jane@x.com", "folder-jane", "Nurse, loves hiking"],
            ["Bob Stone", "S002", "bob@x.com", "folder-bob", ""],
        ],
        "Homework_Push": []
    })


@pytest.fixture
def make_sheets():
    return FakeSheetsService


@pytest.fixture
def make_email_sender():
    return RecordingEmailSender
