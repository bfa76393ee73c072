"""
Tests for the progress publisher and its subscribers.
"""
import asyncio
import re
import pytest
from src.models.dto.progress_dto import ProgressUpdateEvent
from src.services.progress_service import CallbackSubscriber, ProgressPublisher, Subscriber, group_name


class TestProgressPublisher:
    """Test suite for ProgressPublisher."""

    @pytest.fixture
    def publisher(self):
        return ProgressPublisher()

    def test_generate_job_id(self):
        job_id = ProgressPublisher.generate_job_id()

        assert re.fullmatch(r"job_[0-9a-f]{32}_\d{14}", job_id)
        assert ProgressPublisher.generate_job_id() != job_id

    def test_group_name(self):
        assert group_name("job_1") == "progress_job_1"

    def test_events_reach_only_their_group(self, publisher):
        first, second = Subscriber(), Subscriber()
        publisher.join(first, "job_1")
        publisher.join(second, "job_2")

        delivered = publisher.publish(ProgressUpdateEvent(job_id="job_1", processed_records=5))

        assert delivered == 1
        assert first.pending() == 1
        assert second.pending() == 0

    def test_no_replay_for_late_joiner(self, publisher):
        publisher.publish_started("job_1", total_files=2)
        late = Subscriber()
        publisher.join(late, "job_1")

        assert late.pending() == 0

        publisher.publish_error("job_1", "boom")
        assert late.pending() == 1

    def test_leave_and_disconnect(self, publisher):
        subscriber = Subscriber()
        publisher.connect(subscriber)
        publisher.join(subscriber, "job_1")
        publisher.join(subscriber, "job_2")
        assert publisher.subscriber_count("job_1") == 1

        publisher.leave(subscriber, "job_1")
        assert publisher.subscriber_count("job_1") == 0
        assert publisher.subscriber_count("job_2") == 1

        publisher.disconnect(subscriber)
        assert publisher.subscriber_count("job_2") == 0
        assert publisher.publish(ProgressUpdateEvent(job_id="job_2")) == 0

    def test_full_buffer_drops_events(self, publisher):
        slow = Subscriber(buffer_size=2)
        fast = Subscriber(buffer_size=10)
        publisher.join(slow, "job_1")
        publisher.join(fast, "job_1")

        for i in range(5):
            publisher.publish_update(ProgressUpdateEvent(job_id="job_1", processed_records=i))

        assert slow.pending() == 2
        assert slow.dropped == 3
        assert fast.pending() == 5

    def test_payload_shape(self, publisher):
        received = []
        publisher.join(CallbackSubscriber(lambda name, payload: received.append((name, payload))), "job_1")

        publisher.publish_started("job_1", job_type="Queued", total_files=3, estimated_total_records=30)
        publisher.publish_completed("job_1", success=True, message="done", data={"count": 3})

        started_name, started = received[0]
        assert started_name == "JobStarted"
        assert started["jobId"] == "job_1"
        assert started["jobType"] == "Queued"
        assert started["totalFiles"] == 3
        assert started["estimatedTotalRecords"] == 30
        assert "startTime" in started

        completed_name, completed = received[1]
        assert completed_name == "JobCompleted"
        assert completed["success"] is True
        assert completed["data"] == {"count": 3}
        assert completed["totalDuration"] == 0.0

    def test_receive_in_publish_order(self, publisher):
        subscriber = Subscriber()
        publisher.join(subscriber, "job_1")
        for i in range(3):
            publisher.publish_update(ProgressUpdateEvent(job_id="job_1", processed_records=i))

        async def drain():
            return [await subscriber.receive(timeout=1) for _ in range(3)]

        received = asyncio.run(drain())

        assert [payload["processedRecords"] for _, payload in received] == [0, 1, 2]
