import io
from typing import List, Dict, Any, Optional
import logging

import httplib2
from google.auth.exceptions import TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

logger = logging.getLogger(__name__)

# HTTP status errors plus socket, auth-refresh and httplib2 transport failures
API_ERRORS = (HttpError, TransportError, httplib2.HttpLib2Error, OSError)

PLAIN_TEXT = "text/plain"


class DriveError(Exception):
    """Raised when a Drive call fails."""
    pass


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveService:
    """Folder-tree file store: recordings folder and per-student folders."""

    def __init__(self, credentials=None, service=None):
        self._service = service or build("drive", "v3", credentials=credentials, cache_discovery=False)
        self._files = self._service.files()

    def get_folder(self, folder_id: str) -> Dict[str, Any]:
        try:
            return self._files.get(
                fileId=folder_id,
                fields="id, name, mimeType",
                supportsAllDrives=True
            ).execute()
        except API_ERRORS as e:
            raise DriveError(f"Folder {folder_id} not found or not accessible: {e}") from e

    def list_files(
        self,
        folder_id: str,
        name: Optional[str] = None,
        mime_prefix: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        List non-trashed files directly under a folder.

        Args:
            folder_id: Parent folder ID
            name: Exact file name to match
            mime_prefix: Keep only files whose mimeType starts with this, e.g. "video/"

        Returns:
            List of dicts with 'id', 'name' and 'mimeType'
        """
        query = f"'{_escape_query_value(folder_id)}' in parents and trashed = false"
        if name is not None:
            query += f" and name = '{_escape_query_value(name)}'"

        files: List[Dict[str, Any]] = []
        page_token = None

        try:
            while True:
                response = self._files.list(
                    q=query,
                    fields="nextPageToken, files(id, name, mimeType)",
                    pageToken=page_token,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True
                ).execute()
                files.extend(response.get("files", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except API_ERRORS as e:
            raise DriveError(f"Failed to list folder {folder_id}: {e}") from e

        if mime_prefix:
            files = [f for f in files if (f.get("mimeType") or "").startswith(mime_prefix)]

        return files

    def file_exists(self, folder_id: str, name: str) -> bool:
        return bool(self.list_files(folder_id, name=name))

    def create_text_file(self, folder_id: str, name: str, content: str) -> str:
        """Create a plain-text file and return its ID."""
        media = MediaIoBaseUpload(
            io.BytesIO((content or "").encode("utf-8")),
            mimetype=PLAIN_TEXT,
            resumable=False
        )

        try:
            created = self._files.create(
                body={"name": name, "parents": [folder_id], "mimeType": PLAIN_TEXT},
                media_body=media,
                fields="id, name",
                supportsAllDrives=True
            ).execute()
        except API_ERRORS as e:
            raise DriveError(f"Failed to create '{name}' in folder {folder_id}: {e}") from e

        logger.debug(f"Created Drive file '{name}' ({created['id']}) in folder {folder_id}")
        return created["id"]

    def rename_file(self, file_id: str, new_name: str) -> None:
        try:
            self._files.update(
                fileId=file_id,
                body={"name": new_name},
                fields="id, name",
                supportsAllDrives=True
            ).execute()
        except API_ERRORS as e:
            raise DriveError(f"Failed to rename file {file_id} to '{new_name}': {e}") from e

    def trash_file(self, file_id: str) -> None:
        try:
            self._files.update(
                fileId=file_id,
                body={"trashed": True},
                fields="id, trashed",
                supportsAllDrives=True
            ).execute()
        except API_ERRORS as e:
            raise DriveError(f"Failed to trash file {file_id}: {e}") from e


def create_drive_service(credential_provider=None) -> DriveService:
    from eduscribe.services.auth import DRIVE_SCOPES, create_credential_provider

    provider = credential_provider or create_credential_provider()
    return DriveService(credentials=provider.credentials(DRIVE_SCOPES))
