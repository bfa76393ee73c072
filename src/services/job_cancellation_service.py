"""
Job Cancellation Service.
Process-wide registry of cooperative cancellation tokens keyed by job id.
"""
import logging
import threading
from typing import Dict, List, Optional
from src.core.exceptions import JobCancelledException

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked between rows."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledException(self.job_id)


class JobCancellationRegistry:
    """Concurrent map from job id to cancellation token."""

    def __init__(self):
        self._tokens: Dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    def create(self, job_id: str) -> CancellationToken:
        """Register a job and return its token. An existing token for the id is replaced."""
        token = CancellationToken(job_id)
        with self._lock:
            self._tokens[job_id] = token
        logger.info("Registered cancellation token for job %s", job_id)
        return token

    def create_if_absent(self, job_id: str) -> Optional[CancellationToken]:
        """Register a job unless the id is already taken. Returns None on collision."""
        with self._lock:
            if job_id in self._tokens:
                logger.warning("Job id %s is already registered", job_id)
                return None
            token = CancellationToken(job_id)
            self._tokens[job_id] = token
        logger.info("Registered cancellation token for job %s", job_id)
        return token

    def cancel(self, job_id: str) -> bool:
        """
        Request cancellation of a job.

        Returns:
            True if a running job was signalled, False if the job is unknown or finished
        """
        with self._lock:
            token = self._tokens.get(job_id)
        if token is None:
            logger.info("Cancel requested for unknown job %s", job_id)
            return False
        token.cancel()
        logger.info("Cancellation requested for job %s", job_id)
        return True

    def get(self, job_id: str) -> Optional[CancellationToken]:
        with self._lock:
            return self._tokens.get(job_id)

    def is_cancelled(self, job_id: str) -> bool:
        token = self.get(job_id)
        return token is not None and token.is_cancelled

    def remove(self, job_id: str, token: Optional[CancellationToken] = None) -> None:
        """Drop a job's token. When a token is given, only that exact registration is dropped."""
        with self._lock:
            current = self._tokens.get(job_id)
            if current is None or (token is not None and current is not token):
                return
            del self._tokens[job_id]
        logger.info("Removed cancellation token for job %s", job_id)

    def active_jobs(self) -> List[str]:
        with self._lock:
            return list(self._tokens.keys())
