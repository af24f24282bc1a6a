import requests
from typing import Dict, Any, Optional
import logging

from ..domain.models import JobStatus

logger = logging.getLogger(__name__)


class SpeechmaticsError(Exception):
    """Raised when a transcript cannot be retrieved."""
    pass


class SpeechmaticsClient:
    """Read-side client for the Speechmatics batch jobs API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://asr.api.speechmatics.com/v2",
        timeout: float = 30.0
    ):
        if not api_key:
            raise ValueError("Speechmatics API key is required. Set SPEECHMATICS_API_KEY.")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Authorization": f"Bearer {api_key}"}

    def get_job_status(self, job_id: str) -> str:
        """
        Look up a job and return its status, or a local marker describing the failure.

        Returns the provider status verbatim on success. Failures map to
        ``error_unauthorized`` (401), ``not_found`` (404), ``rate_limited`` (429),
        ``exception_fetching_status`` (5xx or network, retried next run),
        ``error_parsing_response`` (200 with an unexpected body) and
        ``error_fetching_status`` (any other response).
        """
        if not job_id:
            logger.error("get_job_status called without a job ID")
            return JobStatus.ERROR_MISSING_JOBID.value

        url = f"{self.base_url}/jobs/{job_id}"
        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Job {job_id}: status request failed: {e}")
            return JobStatus.EXCEPTION_FETCHING_STATUS.value

        code = response.status_code
        if code == 200:
            try:
                status = response.json()["job"]["status"]
            except (ValueError, KeyError, TypeError):
                logger.error(f"Job {job_id}: 200 response with unexpected body: {response.text[:500]}")
                return JobStatus.ERROR_PARSING_RESPONSE.value
            if not isinstance(status, str) or not status.strip():
                logger.error(f"Job {job_id}: 200 response without a usable status: {response.text[:500]}")
                return JobStatus.ERROR_PARSING_RESPONSE.value
            return status.strip()

        if code == 401:
            logger.error(f"Job {job_id}: unauthorized (401)")
            return JobStatus.ERROR_UNAUTHORIZED.value
        if code == 404:
            logger.warning(f"Job {job_id}: not found (404)")
            return JobStatus.NOT_FOUND.value
        if code == 429:
            logger.warning(f"Job {job_id}: rate limited (429)")
            return JobStatus.RATE_LIMITED.value
        if code >= 500:
            logger.warning(f"Job {job_id}: provider error HTTP {code}, will retry next run")
            return JobStatus.EXCEPTION_FETCHING_STATUS.value

        logger.error(f"Job {job_id}: HTTP {code}. {response.text[:500]}")
        return JobStatus.ERROR_FETCHING_STATUS.value

    def get_job_details(self, job_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = requests.get(
                f"{self.base_url}/jobs/{job_id}", headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning(f"Job {job_id}: details request failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Job {job_id}: details request returned HTTP {response.status_code}")
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Job {job_id}: details body is not JSON")
            return None

        job = body.get("job") if isinstance(body, dict) else None
        if not isinstance(job, dict):
            logger.warning(f"Job {job_id}: details body has no job object: {response.text[:500]}")
            return None
        return job

    def get_tracking_title(self, job_id: str) -> Optional[str]:
        job = self.get_job_details(job_id) or {}
        tracking = job.get("tracking") or {}
        title = tracking.get("title") if isinstance(tracking, dict) else None
        if not isinstance(title, str) or not title.strip():
            title = None
        logger.debug(f"Tracking title for job {job_id}: {title or 'not found'}")
        return title

    def get_transcript(self, job_id: str, fmt: str = "txt") -> str:
        """
        Fetch the transcript body.

        Raises:
            SpeechmaticsError: On network failure or any non-200 response
        """
        url = f"{self.base_url}/jobs/{job_id}/transcript"
        try:
            response = requests.get(
                url, headers=self.headers, params={"format": fmt}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise SpeechmaticsError(f"Transcript request failed for job {job_id}: {e}") from e

        if response.status_code != 200:
            detail = response.text
            try:
                detail = response.json().get("error") or detail
            except ValueError:
                pass
            raise SpeechmaticsError(
                f"Transcript fetch failed for job {job_id} ({response.status_code}): {detail}"
            )

        response.encoding = response.encoding or "utf-8"
        return response.text


def create_speechmatics_client() -> SpeechmaticsClient:
    from eduscribe.config import get_config, require

    sm = get_config().speechmatics
    return SpeechmaticsClient(
        api_key=require(sm.api_key, "SPEECHMATICS_API_KEY"),
        base_url=sm.base_url,
        timeout=sm.timeout
    )
