"""Tests for transient store retry (F1)."""

import pytest

from ecertify.core import retry as retry_module
from ecertify.core.retry import NO_RETRY, RetryPolicy, retry_call
from ecertify.errors import TransientStoreError, ValidationError


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    recorded = []
    monkeypatch.setattr(retry_module.time, "sleep", recorded.append)
    return recorded


class TestRetryPolicy:
    """Tests for backoff computation."""

    def test_exponential_backoff(self):
        policy = RetryPolicy(max_attempts=5, base_delay=0.1, max_delay=10.0)
        assert policy.delay_for(1) == pytest.approx(0.1)
        assert policy.delay_for(2) == pytest.approx(0.2)
        assert policy.delay_for(3) == pytest.approx(0.4)

    def test_delay_capped(self):
        policy = RetryPolicy(max_attempts=10, base_delay=0.5, max_delay=1.0)
        assert policy.delay_for(6) == 1.0


class TestRetryCall:
    """Tests for retry_call."""

    def test_succeeds_after_transient_failures(self, sleeps):
        """Transient failures are retried until the call succeeds."""
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransientStoreError("flaky", "database is locked")
            return "ok"

        policy = RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=1.0)
        assert retry_call(policy, flaky) == "ok"
        assert len(calls) == 3
        assert sleeps == [pytest.approx(0.01), pytest.approx(0.02)]

    def test_exhaustion_raises_transient_error(self, sleeps):
        """After max_attempts the last TransientStoreError surfaces."""
        calls = []

        def always_locked():
            calls.append(1)
            raise TransientStoreError("insert", "database is locked")

        with pytest.raises(TransientStoreError) as exc_info:
            retry_call(RetryPolicy(max_attempts=2, base_delay=0.0), always_locked)

        assert len(calls) == 2
        assert exc_info.value.operation == "insert"
        assert exc_info.value.status == 503

    def test_other_errors_not_retried(self, sleeps):
        """Domain errors propagate on the first attempt."""
        calls = []

        def invalid():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            retry_call(RetryPolicy(max_attempts=3), invalid)
        assert len(calls) == 1
        assert sleeps == []

    def test_no_retry_policy(self, sleeps):
        def locked():
            raise TransientStoreError("get", "locked")

        with pytest.raises(TransientStoreError):
            retry_call(NO_RETRY, locked)
        assert sleeps == []

    def test_passes_arguments(self):
        assert retry_call(NO_RETRY, lambda a, b=0: a + b, 2, b=3) == 5
