"""
Client-side progress subscriber.
Keeps active, completed and failed job maps driven by progress events and
leaves a job's group once it reaches a terminal event.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Set
from src.services.progress_service import CallbackSubscriber, ProgressPublisher

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict], None]


class SubscriberNotConnectedError(Exception):
    """Raised when joining a job group while the transport is down."""
    pass


class ProgressTransport(ABC):
    """Connection carrying group join/leave requests and inbound events."""

    @abstractmethod
    def connect(self, on_event: EventHandler) -> None:
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def join(self, job_id: str) -> None:
        pass

    @abstractmethod
    def leave(self, job_id: str) -> None:
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        pass


class InProcessTransport(ProgressTransport):
    """Transport bound directly to a ProgressPublisher in the same process."""

    def __init__(self, publisher: ProgressPublisher):
        self.publisher = publisher
        self._subscriber: Optional[CallbackSubscriber] = None

    def connect(self, on_event: EventHandler) -> None:
        self.disconnect()
        self._subscriber = CallbackSubscriber(on_event)
        self.publisher.connect(self._subscriber)

    def disconnect(self) -> None:
        if self._subscriber is not None:
            self.publisher.disconnect(self._subscriber)
            self._subscriber = None

    def join(self, job_id: str) -> None:
        if self._subscriber is None:
            raise SubscriberNotConnectedError("Transport is not connected")
        self.publisher.join(self._subscriber, job_id)

    def leave(self, job_id: str) -> None:
        if self._subscriber is not None:
            self.publisher.leave(self._subscriber, job_id)

    @property
    def is_connected(self) -> bool:
        return self._subscriber is not None


class JobCallbacks:
    """Optional per-job callbacks."""

    def __init__(
        self,
        on_progress: Optional[Callable[[dict], None]] = None,
        on_completed: Optional[Callable[[dict], None]] = None,
        on_error: Optional[Callable[[dict], None]] = None
    ):
        self.on_progress = on_progress
        self.on_completed = on_completed
        self.on_error = on_error


class ProgressSubscriber:
    """Tracks job state from JobStarted, ProgressUpdate, JobCompleted and JobError events."""

    def __init__(self, transport: ProgressTransport):
        self.transport = transport
        self.active_jobs: Dict[str, dict] = {}
        self.completed_jobs: Dict[str, dict] = {}
        self.failed_jobs: Dict[str, dict] = {}
        self.connection_error: Optional[str] = None
        self._subscriptions: Set[str] = set()
        self._callbacks: Dict[str, JobCallbacks] = {}

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    def connect(self) -> None:
        try:
            self.transport.connect(self.handle_event)
            self.connection_error = None
        except Exception as e:
            self.connection_error = str(e)
            logger.warning("Progress connection failed: %s", e)
            raise

    def reconnect(self) -> None:
        """Re-establish the transport, then rejoin every subscribed job."""
        self.transport.disconnect()
        self.connect()
        for job_id in sorted(self._subscriptions):
            self.transport.join(job_id)
        logger.info("Reconnected and rejoined %d job(s)", len(self._subscriptions))

    def disconnect(self) -> None:
        self.transport.disconnect()

    def subscribe(self, job_id: str, callbacks: Optional[JobCallbacks] = None) -> None:
        if not self.transport.is_connected:
            raise SubscriberNotConnectedError(f"Cannot subscribe to {job_id} while disconnected")
        self.transport.join(job_id)
        self._subscriptions.add(job_id)
        if callbacks is not None:
            self._callbacks[job_id] = callbacks

    def unsubscribe(self, job_id: str) -> None:
        self._subscriptions.discard(job_id)
        self._callbacks.pop(job_id, None)
        if self.transport.is_connected:
            self.transport.leave(job_id)

    def is_subscribed(self, job_id: str) -> bool:
        return job_id in self._subscriptions

    def handle_event(self, event_name: str, payload: dict) -> None:
        job_id = payload.get("jobId")
        if not job_id:
            return
        callbacks = self._callbacks.get(job_id)

        if event_name in ("JobStarted", "ProgressUpdate"):
            state = self.active_jobs.setdefault(job_id, {})
            state.update(payload)
            if callbacks and callbacks.on_progress:
                callbacks.on_progress(state)
        elif event_name == "JobCompleted":
            state = self.active_jobs.pop(job_id, {})
            state.update(payload)
            self.completed_jobs[job_id] = state
            if callbacks and callbacks.on_completed:
                callbacks.on_completed(state)
            self.unsubscribe(job_id)
        elif event_name == "JobError":
            state = self.active_jobs.pop(job_id, {})
            state.update(payload)
            self.failed_jobs[job_id] = state
            if callbacks and callbacks.on_error:
                callbacks.on_error(state)
            self.unsubscribe(job_id)
