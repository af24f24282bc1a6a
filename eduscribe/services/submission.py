import requests
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class CloudRunSubmitter:
    """
    Hands a discovered recording to the Cloud Run transcription pipeline.

    The endpoint copies the Drive file into ``incoming/`` and starts a
    Speechmatics job, answering ``{"job_id": "..."}``. Every failure mode
    collapses to ``None`` with a logged reason.
    """

    def __init__(self, url: str, timeout: float = 120.0, session: Optional[requests.Session] = None):
        if not url:
            raise ValueError("Cloud Run URL is required. Set CLOUD_RUN_URL.")
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def submit(self, file_id: str, file_name: str) -> Optional[str]:
        """
        Submit one recording.

        Args:
            file_id: Drive file ID of the recording
            file_name: Canonical recording name

        Returns:
            Provider job ID, or None on network error, non-200, bad body or missing ID
        """
        payload = {"fileId": file_id, "fileName": file_name}
        logger.debug(f"Submitting {file_name} ({file_id}) to {self.url}")

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Cloud Run request failed for {file_name}: {e}")
            return None

        if response.status_code != 200:
            logger.error(
                f"Cloud Run returned HTTP {response.status_code} for {file_name}: {response.text[:500]}"
            )
            return None

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Cloud Run response for {file_name} is not JSON: {response.text[:500]}")
            return None

        job_id = body.get("job_id") if isinstance(body, dict) else None
        if isinstance(job_id, str):
            job_id = job_id.strip()
        if not job_id or not isinstance(job_id, str):
            logger.warning(f"Cloud Run accepted {file_name} but returned no job_id: {body}")
            return None

        logger.info(f"Cloud Run accepted {file_name}, job {job_id}")
        return job_id


def create_submitter() -> CloudRunSubmitter:
    from eduscribe.config import get_config, require

    submission = get_config().submission
    return CloudRunSubmitter(
        url=require(submission.cloud_run_url, "CLOUD_RUN_URL"),
        timeout=submission.timeout
    )
