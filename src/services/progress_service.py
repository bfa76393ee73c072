"""
Progress Service.
Group-scoped publish/subscribe channel for job progress events.
Each job id maps to a group; events are only delivered to that group's members.
"""
import asyncio
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set, Tuple
from fastapi import WebSocket
from src.core import config
from src.models.dto.progress_dto import (
    JobCompletedEvent,
    JobErrorEvent,
    JobStartedEvent,
    ProgressEvent,
    ProgressUpdateEvent
)

logger = logging.getLogger(__name__)


def group_name(job_id: str) -> str:
    return f"progress_{job_id}"


class Subscriber:
    """A connection with a bounded outbound buffer. Delivery never blocks the publisher."""

    def __init__(self, connection_id: Optional[str] = None, buffer_size: Optional[int] = None):
        self.connection_id = connection_id or uuid.uuid4().hex
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size or config.settings.subscriber_buffer_size)
        self.dropped = 0

    def deliver(self, event_name: str, payload: dict) -> bool:
        try:
            self.queue.put_nowait((event_name, payload))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Dropped %s for connection %s (buffer full)", event_name, self.connection_id)
            return False

    async def receive(self, timeout: Optional[float] = None) -> Tuple[str, dict]:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def pending(self) -> int:
        return self.queue.qsize()


class CallbackSubscriber(Subscriber):
    """In-process subscriber that hands each event straight to a callback."""

    def __init__(self, callback: Callable[[str, dict], None], connection_id: Optional[str] = None):
        super().__init__(connection_id=connection_id, buffer_size=1)
        self.callback = callback

    def deliver(self, event_name: str, payload: dict) -> bool:
        self.callback(event_name, payload)
        return True


class WebSocketSubscriber(Subscriber):
    """Subscriber whose buffer is pumped to a websocket connection."""

    def __init__(self, websocket: WebSocket):
        super().__init__()
        self.websocket = websocket

    async def pump(self) -> None:
        while True:
            event_name, payload = await self.queue.get()
            await self.websocket.send_json({"event": event_name, "data": payload})


class ProgressPublisher:
    """Publishes JobStarted, ProgressUpdate, JobCompleted and JobError events to job groups."""

    def __init__(self):
        self._groups: Dict[str, Set[Subscriber]] = {}
        self._connections: Dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    @staticmethod
    def generate_job_id() -> str:
        return f"job_{uuid.uuid4().hex}_{datetime.utcnow().strftime('%Y%m%d%H%M%S')}"

    def connect(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._connections[subscriber.connection_id] = subscriber
        logger.info("Connection %s opened", subscriber.connection_id)

    def disconnect(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._connections.pop(subscriber.connection_id, None)
            for name in list(self._groups):
                members = self._groups[name]
                members.discard(subscriber)
                if not members:
                    del self._groups[name]
        logger.info("Connection %s closed", subscriber.connection_id)

    def join(self, subscriber: Subscriber, job_id: str) -> None:
        with self._lock:
            self._groups.setdefault(group_name(job_id), set()).add(subscriber)
        logger.info("Connection %s joined %s", subscriber.connection_id, group_name(job_id))

    def leave(self, subscriber: Subscriber, job_id: str) -> None:
        name = group_name(job_id)
        with self._lock:
            members = self._groups.get(name)
            if members is not None:
                members.discard(subscriber)
                if not members:
                    del self._groups[name]
        logger.info("Connection %s left %s", subscriber.connection_id, name)

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._groups.get(group_name(job_id), ()))

    def publish(self, event: ProgressEvent) -> int:
        """Fan an event out to the job's group. Returns the number of deliveries."""
        with self._lock:
            members = list(self._groups.get(group_name(event.job_id), ()))
        if not members:
            return 0
        payload = event.to_payload()
        return sum(1 for subscriber in members if subscriber.deliver(event.event_name, payload))

    def publish_started(
        self,
        job_id: str,
        job_type: str = "Progress",
        total_files: int = 1,
        estimated_total_records: int = 0
    ) -> None:
        self.publish(JobStartedEvent(
            job_id=job_id,
            job_type=job_type,
            total_files=total_files,
            estimated_total_records=estimated_total_records
        ))

    def publish_update(self, event: ProgressUpdateEvent) -> None:
        self.publish(event)

    def publish_completed(
        self,
        job_id: str,
        success: bool,
        message: str,
        data: Any = None,
        started_at: Optional[datetime] = None
    ) -> None:
        duration = (datetime.utcnow() - started_at).total_seconds() if started_at else 0.0
        self.publish(JobCompletedEvent(
            job_id=job_id,
            success=success,
            message=message,
            data=data,
            total_duration=duration
        ))

    def publish_error(self, job_id: str, error: str) -> None:
        self.publish(JobErrorEvent(job_id=job_id, error=error))
