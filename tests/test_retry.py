"""Unit tests for RetryPolicy."""

import pytest

from pitch_tracker.resolver import Attempt, Outcome, RetryPolicy


class _Recorder:
    """Sleep stand-in recording requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _sequence(*attempts: Attempt):
    remaining = list(attempts)
    calls = []

    async def operation() -> Attempt:
        calls.append(1)
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return operation, calls


class TestRetryPolicy:
    """Tests for RetryPolicy.run."""

    @pytest.mark.asyncio
    async def test_bounded_attempts(self) -> None:
        """A lookup that never finds anything is called exactly max_attempts times."""
        sleep = _Recorder()
        operation, calls = _sequence(Attempt.not_found())
        result = await RetryPolicy(max_attempts=5, delay=0.3, sleep=sleep).run(operation)
        assert result.outcome is Outcome.NOT_FOUND
        assert len(calls) == 5
        assert sleep.delays == [0.3] * 4

    @pytest.mark.asyncio
    async def test_stops_when_found(self, seller_profile) -> None:
        """Success on the third attempt stops the loop."""
        sleep = _Recorder()
        operation, calls = _sequence(Attempt.not_found(), Attempt.transient("503"), Attempt.found(seller_profile))
        result = await RetryPolicy(sleep=sleep).run(operation)
        assert result.profile == seller_profile
        assert len(calls) == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_structural_not_retried(self) -> None:
        """A structural outcome ends the loop immediately."""
        sleep = _Recorder()
        operation, calls = _sequence(Attempt.structural("no such table"))
        result = await RetryPolicy(sleep=sleep).run(operation)
        assert result.outcome is Outcome.STRUCTURAL
        assert len(calls) == 1
        assert sleep.delays == []

    def test_invalid_settings(self) -> None:
        """Zero attempts or negative delay are rejected."""
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(delay=-1)
