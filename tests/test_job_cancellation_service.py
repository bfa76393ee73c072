"""
Tests for the cancellation registry.
"""
import threading
import pytest
from src.core.exceptions import JobCancelledException
from src.services.job_cancellation_service import CancellationToken, JobCancellationRegistry


class TestJobCancellationRegistry:
    """Test suite for JobCancellationRegistry."""

    @pytest.fixture
    def registry(self):
        return JobCancellationRegistry()

    def test_cancel_registered_job(self, registry):
        token = registry.create("job_a")

        assert registry.cancel("job_a") is True
        assert token.is_cancelled
        assert registry.is_cancelled("job_a")

    def test_cancel_unknown_job(self, registry):
        assert registry.cancel("missing") is False
        assert not registry.is_cancelled("missing")

    def test_cancel_removed_job(self, registry):
        registry.create("job_b")
        registry.remove("job_b")

        assert registry.cancel("job_b") is False
        assert registry.active_jobs() == []

    def test_tokens_are_independent(self, registry):
        first = registry.create("job_c")
        second = registry.create("job_d")

        registry.cancel("job_c")

        assert first.is_cancelled
        assert not second.is_cancelled
        assert sorted(registry.active_jobs()) == ["job_c", "job_d"]

    def test_create_replaces_token(self, registry):
        old = registry.create("job_e")
        new = registry.create("job_e")

        registry.cancel("job_e")

        assert registry.get("job_e") is new
        assert new.is_cancelled
        assert not old.is_cancelled

    def test_create_if_absent_rejects_taken_id(self, registry):
        first = registry.create_if_absent("job_f")

        assert first is not None
        assert registry.create_if_absent("job_f") is None
        assert registry.get("job_f") is first

    def test_remove_with_stale_token_keeps_current(self, registry):
        stale = registry.create("job_g")
        current = registry.create("job_g")

        registry.remove("job_g", stale)

        assert registry.get("job_g") is current
        assert registry.cancel("job_g") is True

        registry.remove("job_g", current)
        assert registry.active_jobs() == []

    def test_concurrent_cancel(self, registry):
        tokens = [registry.create(f"job_{i}") for i in range(50)]
        threads = [threading.Thread(target=registry.cancel, args=(f"job_{i}",)) for i in range(50)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(token.is_cancelled for token in tokens)


class TestCancellationToken:
    def test_raise_if_cancelled(self):
        token = CancellationToken("job_x")
        token.raise_if_cancelled()

        token.cancel()

        with pytest.raises(JobCancelledException) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.job_id == "job_x"
        assert exc_info.value.result is None
