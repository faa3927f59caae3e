"""Deadline tokens threaded from orchestration code into provider calls.

A :class:`Deadline` is created once per logical operation (an ingestion
run, a chat turn) and passed down to every embedding / completion call.
Providers wrap their SDK call in :meth:`Deadline.run`, which applies
``asyncio.wait_for`` with whichever is smaller: the time left on the
deadline or the provider's own per-call timeout.

    deadline = Deadline.after(600)              # whole ingestion run
    vectors = await embedder.embed(texts, deadline=deadline)

Once a deadline has expired, further calls fail immediately with
:class:`~rag_feeder.utils.errors.ProviderTimeoutError` instead of reaching
the provider at all.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

from rag_feeder.utils.errors import ProviderTimeoutError

_T = TypeVar("_T")


class Deadline:
    """An absolute point in monotonic time after which work is abandoned."""

    def __init__(self, expires_at: float | None) -> None:
        # None means "no orchestration-level limit"; the per-call timeout
        # given to run() still applies.
        self._expires_at = expires_at

    @classmethod
    def after(cls, seconds: float | None) -> Deadline:
        """Return a deadline *seconds* from now (``None`` for unbounded)."""
        if seconds is None:
            return cls(None)
        return cls(time.monotonic() + seconds)

    @classmethod
    def unbounded(cls) -> Deadline:
        return cls(None)

    def remaining(self) -> float | None:
        """Seconds left, clamped at zero, or ``None`` when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def budget(self, call_timeout: float | None = None) -> float | None:
        """Return the timeout to apply to a single call."""
        remaining = self.remaining()
        if remaining is None:
            return call_timeout
        if call_timeout is None:
            return remaining
        return min(remaining, call_timeout)

    async def run(
        self,
        awaitable: Awaitable[_T],
        call_timeout: float | None = None,
        provider_name: str | None = None,
    ) -> _T:
        """Await *awaitable* within the deadline.

        Raises
        ------
        ProviderTimeoutError
            If the deadline had already expired, or the call did not finish
            within :meth:`budget`.
        """
        if self.expired():
            # Close the coroutine so Python does not warn it was never awaited.
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ProviderTimeoutError(
                message="Deadline expired before the provider call started",
                provider_name=provider_name,
            )

        timeout = self.budget(call_timeout)
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(
                message=f"Provider call exceeded its deadline ({timeout:.1f}s)",
                provider_name=provider_name,
            ) from exc
