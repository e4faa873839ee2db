"""RetryPolicy: capped exponential backoff around transient store failures."""

import pytest

from royalty_batch.domain.retry import RetryPolicy
from royalty_batch.domain.types import BatchConfig
from royalty_kernel.exceptions import PermanentStoreError, TransientStoreError


class Flaky:
    """Raises TransientStoreError `failures` times, then returns `result`."""

    def __init__(self, failures: int, result=42):
        self.failures = failures
        self.calls = 0
        self.result = result

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientStoreError("upsert_royalties", f"timeout #{self.calls}")
        return self.result


class TestDelays:
    def test_exponential_then_capped(self):
        policy = RetryPolicy(max_retries=6, base_delay=1.0, max_delay=10.0)
        assert [policy.delay_for(a) for a in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_from_config(self):
        config = BatchConfig(retry_attempts=2, backoff_base=0.5, backoff_cap=4.0)
        policy = RetryPolicy.from_config(config)
        assert policy.max_retries == 2
        assert policy.max_attempts == 3
        assert policy.delay_for(0) == 0.5

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestRun:
    def test_success_first_try_never_sleeps(self):
        sleeps = []
        policy = RetryPolicy(sleep=sleeps.append)
        assert policy.run(Flaky(0)) == 42
        assert sleeps == []

    def test_recovers_after_transient_failures(self):
        sleeps = []
        fn = Flaky(2)
        policy = RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0, sleep=sleeps.append)

        assert policy.run(fn) == 42
        assert fn.calls == 3
        assert sleeps == [1.0, 2.0]

    def test_exhaustion_reraises_last_error(self):
        sleeps = []
        fn = Flaky(10)
        policy = RetryPolicy(max_retries=3, sleep=sleeps.append)

        with pytest.raises(TransientStoreError, match="timeout #4"):
            policy.run(fn)
        assert fn.calls == 4
        assert len(sleeps) == 3

    def test_permanent_error_not_retried(self):
        calls = []

        def reject():
            calls.append(1)
            raise PermanentStoreError("upsert_royalties", "constraint")

        with pytest.raises(PermanentStoreError):
            RetryPolicy(sleep=lambda _s: None).run(reject)
        assert len(calls) == 1

    def test_logs_retry_events(self, captured_logs):
        policy = RetryPolicy(max_retries=1, sleep=lambda _s: None)
        with pytest.raises(TransientStoreError):
            policy.run(Flaky(5), operation="batch 7")

        messages = [(r["message"], r.get("operation")) for r in captured_logs()]
        assert ("retry_scheduled", "batch 7") in messages
        assert ("retry_exhausted", "batch 7") in messages
