from typing import Optional, List, Dict, Any, Sequence
import logging

from google.cloud import storage
from google.api_core import exceptions as gcs_exceptions

logger = logging.getLogger(__name__)

INCOMING_PREFIX = "incoming/"
PROCESSED_PREFIX = "processed/"
TRANSCRIPTS_PREFIX = "transcripts/"


class StorageError(Exception):
    """Raised when a storage operation fails."""
    pass


class StorageMoveError(StorageError):
    """Raised when relocating an object fails part-way."""
    pass


class GoogleCloudStorageService:
    """
    Google Cloud Storage service for EduScribe.

    Holds the shared bucket with three namespaces: ``incoming/`` recordings
    uploaded by the submission endpoint, ``processed/`` recordings whose
    transcript has been collected, and ``transcripts/`` plain-text transcripts.
    """

    def __init__(
        self,
        project_id: Optional[str],
        bucket_name: str,
        credentials=None,
        client: Optional[storage.Client] = None
    ):
        """
        Initialize the GCS service.

        Args:
            project_id: Google Cloud project ID
            bucket_name: Name of the GCS bucket
            credentials: Scoped google-auth credentials (default credentials if None)
            client: Pre-built storage client, mainly for tests
        """
        self.project_id = project_id
        self.bucket_name = bucket_name

        try:
            if client is not None:
                self.client = client
            elif credentials is not None:
                self.client = storage.Client(project=self.project_id, credentials=credentials)
            else:
                self.client = storage.Client(project=self.project_id)

            self.bucket = self.client.bucket(self.bucket_name)
            logger.debug(f"Using GCS bucket: {self.bucket_name}")

        except Exception as e:
            logger.error(f"Failed to initialize GCS client: {e}")
            raise

    def check_access(self) -> bool:
        """Test the GCS connection and bucket access."""
        try:
            exists = self.bucket.exists()
            logger.debug(f"GCS bucket {self.bucket_name} exists: {exists}")
            return bool(exists)
        except Exception as e:
            logger.error(f"GCS access check failed for {self.bucket_name}: {e}")
            return False

    def list_objects(
        self,
        prefix: str,
        content_types: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        List objects under a prefix, optionally filtered by content type.

        Args:
            prefix: Namespace prefix such as "transcripts/" ("/" lists the whole bucket)
            content_types: Content-type prefixes to keep, e.g. ["text/plain"]

        Returns:
            List of dicts with 'name', 'content_type' and 'size'

        Raises:
            StorageError: If the listing request fails
        """
        if prefix == "/":
            effective_prefix = ""
        elif prefix and not prefix.endswith("/"):
            effective_prefix = f"{prefix}/"
        else:
            effective_prefix = prefix or ""

        wanted = [t.lower() for t in content_types] if content_types else []

        try:
            # The iterator follows nextPageToken on its own
            blobs = self.client.list_blobs(self.bucket_name, prefix=effective_prefix)

            results = []
            for blob in blobs:
                if not blob.name or blob.name.endswith("/") or blob.name == effective_prefix:
                    continue

                content_type = (blob.content_type or "").lower()
                if wanted and not any(content_type.startswith(t) for t in wanted):
                    continue

                results.append({
                    "name": blob.name,
                    "content_type": blob.content_type,
                    "size": blob.size
                })

            logger.info(f"Listed {len(results)} objects with prefix: {effective_prefix or '/'}")
            return results

        except Exception as e:
            logger.error(f"Failed to list objects under '{effective_prefix}': {e}")
            raise StorageError(f"GCS list failed for '{effective_prefix}': {e}") from e

    def read_text(self, object_name: str) -> str:
        try:
            return self.bucket.blob(object_name).download_as_text(encoding="utf-8")
        except gcs_exceptions.NotFound as e:
            logger.error(f"Object not found in GCS: {object_name}")
            raise StorageError(f"Object not found: {object_name}") from e
        except gcs_exceptions.Forbidden as e:
            logger.error(f"Forbidden reading {object_name}. Check service account permissions.")
            raise StorageError(f"Access denied: {object_name}") from e
        except Exception as e:
            logger.error(f"Failed to read {object_name} from GCS: {e}")
            raise StorageError(f"GCS read failed for {object_name}: {e}") from e

    def upload_text(
        self,
        object_name: str,
        content: str,
        content_type: str = "text/plain; charset=utf-8"
    ) -> str:
        """Upload text content and return the gs:// URI."""
        try:
            blob = self.bucket.blob(object_name)
            blob.upload_from_string(content or "", content_type=content_type)
            logger.info(f"Uploaded {len(content or '')} chars to {object_name}")
            return f"gs://{self.bucket_name}/{object_name}"
        except Exception as e:
            logger.error(f"Failed to upload {object_name} to GCS: {e}")
            raise StorageError(f"GCS upload failed for {object_name}: {e}") from e

    def object_exists(self, object_name: str) -> bool:
        try:
            return bool(self.bucket.blob(object_name).exists())
        except Exception as e:
            logger.error(f"Error checking if {object_name} exists: {e}")
            raise StorageError(f"GCS existence check failed for {object_name}: {e}") from e

    def copy_object(self, source_name: str, destination_name: str) -> None:
        source_blob = self.bucket.blob(source_name)
        self.bucket.copy_blob(source_blob, self.bucket, destination_name)

    def delete_object(self, object_name: str) -> bool:
        """
        Delete an object from GCS.

        Returns:
            True if the object was deleted, False if it did not exist
        """
        try:
            self.bucket.blob(object_name).delete()
            logger.info(f"Deleted {object_name} from GCS")
            return True
        except gcs_exceptions.NotFound:
            logger.warning(f"Object not found in GCS: {object_name}")
            return False

    def move_object(self, source_name: str, destination_name: str) -> bool:
        """
        Move an object by copy-then-delete.

        A missing source is treated as already moved so the call can be repeated.

        Returns:
            True if the object was moved, False if the source was already gone

        Raises:
            StorageMoveError: If the check, copy or delete step fails
        """
        try:
            if not self.object_exists(source_name):
                logger.warning(f"Source not found: {source_name}. Skipping move.")
                return False
        except StorageError as e:
            raise StorageMoveError(f"Move check source error: {source_name}") from e

        try:
            self.copy_object(source_name, destination_name)
            logger.info(f"Copied {source_name} -> {destination_name}")
        except Exception as e:
            logger.error(f"Copy failed {source_name} -> {destination_name}: {e}")
            raise StorageMoveError(f"Move copy error: {source_name} to {destination_name}") from e

        try:
            self.delete_object(source_name)
        except Exception as e:
            logger.error(f"Delete of moved source {source_name} failed: {e}")
            raise StorageMoveError(f"Move delete source error: {source_name}") from e

        return True


def create_storage_service(
    credential_provider=None,
    project_id: Optional[str] = None,
    bucket_name: Optional[str] = None
) -> GoogleCloudStorageService:
    """
    Factory function to create a GCS service using environment configuration.

    Args:
        credential_provider: Optional ServiceAccountCredentialProvider
        project_id: Override project ID from config
        bucket_name: Override bucket name from config
    """
    from eduscribe.config import get_config, require
    from eduscribe.services.auth import STORAGE_SCOPES, create_credential_provider

    gcs_config = get_config().google_cloud
    provider = credential_provider or create_credential_provider()

    return GoogleCloudStorageService(
        project_id=project_id or gcs_config.project_id,
        bucket_name=bucket_name or require(gcs_config.bucket_name, "GOOGLE_CLOUD_STORAGE_BUCKET"),
        credentials=provider.credentials(STORAGE_SCOPES)
    )
