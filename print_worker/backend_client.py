"""
Backend API Client for Print Worker

Communicates with the PrintJob service to:
- Fetch print job details
- Report job outcomes
"""

import requests
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class BackendClient:
    """
    HTTP client for the PrintJob REST API.
    """

    def __init__(self, backend_url: str, api_key: str = "", timeout: int = 30):
        """
        Initialize backend client.

        Args:
            backend_url: Base URL of the service (e.g., http://localhost:8000)
            api_key: API key, sent as X-API-Key when set
            timeout: Request timeout in seconds
        """
        self.backend_url = backend_url.rstrip('/')
        self.headers = {'Content-Type': 'application/json'}
        if api_key:
            self.headers['X-API-Key'] = api_key
        self.timeout = timeout
        self.session = requests.Session()

    def test_connection(self) -> bool:
        """
        Test connection to backend.

        Returns:
            True if backend is reachable, False otherwise
        """
        try:
            response = self.session.get(f"{self.backend_url}/health", timeout=10)
            response.raise_for_status()
            health = response.json()
            logger.info(f"Backend health: {health}")
            return health.get('status') in ['healthy', 'degraded']

        except requests.RequestException as e:
            logger.error(f"Backend connection test failed: {e}")
            return False

    def get_job_details(self, job_id: int) -> Optional[dict]:
        """
        Fetch print job details from backend.

        Returns:
            Job dict or None if failed
        """
        try:
            response = self.session.get(
                f"{self.backend_url}/api/v1/printjobs/{job_id}",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                logger.error(f"Job {job_id} not found")
            else:
                logger.error(f"HTTP error fetching job {job_id}: {e}")
            return None

        except requests.RequestException as e:
            logger.error(f"Failed to fetch job {job_id}: {e}")
            return None

    def update_job_status(
        self,
        job_id: int,
        status: str,
        message: Optional[str] = None
    ) -> bool:
        """
        Report a job status to the backend.

        Args:
            job_id: Print job id
            status: New status (COMPLETED, FAILED)
            message: Optional outcome message

        Returns:
            True if the transition was applied, False otherwise
        """
        body = {'status': status}
        if message:
            body['message'] = message

        try:
            response = self.session.put(
                f"{self.backend_url}/api/v1/printjobs/{job_id}",
                headers=self.headers,
                json=body,
                timeout=self.timeout
            )
            response.raise_for_status()
            logger.info(f"Updated job {job_id} status to {status}")
            return True

        except requests.HTTPError as e:
            detail = e.response.text if e.response is not None else e
            logger.error(f"HTTP error updating job {job_id}: {detail}")
            return False

        except requests.RequestException as e:
            logger.error(f"Failed to update job {job_id} status: {e}")
            return False
