"""Two-level cancellation for tool calls.

A turn owns one ``CancellationToken``. Every tool call in that turn gets its
own token, tracked in an ``ExecutionRegistry``. Cancelling the turn token
synchronously cancels every registered call token and empties the registry,
so callers can assert that nothing is left running.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

_log = logging.getLogger("toolrelay.tools.cancellation")

T = TypeVar("T")


@dataclass
class ExecutionCancelled(Exception):
    """A tool call observed a cancelled turn or call token.

    Kept distinct from tool failures so hosts can hide it from users.
    """

    reason: str = "Tool execution cancelled"
    tool_name: str | None = None

    def __str__(self) -> str:
        if self.tool_name:
            return f"{self.reason}: {self.tool_name}"
        return self.reason


class CancellationToken:
    """A cancel-once signal with synchronous callbacks.

    ``cancel()`` runs registered callbacks immediately, in registration
    order, before returning. Coroutines can ``await token.wait()`` or wrap
    work in ``token.guard(...)``.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._cancelled = False
        self._reason: str | None = None
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Tool execution cancelled") -> None:
        """Trigger the token. Repeated calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                _log.exception("Cancellation callback failed for %s", self.name or "token")

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation; returns a function that removes it.

        If the token is already cancelled the callback runs right away.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def raise_if_cancelled(self, tool_name: str | None = None) -> None:
        if self._cancelled:
            raise ExecutionCancelled(tool_name=tool_name)

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T], tool_name: str | None = None) -> T:
        """Await ``awaitable`` unless the token fires first.

        On cancellation the underlying task is cancelled and reaped before
        ``ExecutionCancelled`` is raised. A result that arrives after the
        token fired is discarded.
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ExecutionCancelled(tool_name=tool_name)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if self._cancelled:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise ExecutionCancelled(tool_name=tool_name)

        return task.result()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken {self.name or ''} {state}>"


@dataclass
class PendingExecution:
    """One in-flight tool call."""

    execution_id: str
    tool_name: str
    token: CancellationToken
    started_at: float = field(default_factory=time.monotonic)


class ExecutionRegistry:
    """Per-turn table of in-flight tool calls, keyed by execution id."""

    def __init__(self) -> None:
        self._active: dict[str, PendingExecution] = {}
        self._sequence = itertools.count(1)

    def register(self, tool_name: str) -> PendingExecution:
        # Sequence suffix keeps ids distinct for calls started in the same millisecond
        execution_id = f"{tool_name}-{int(time.time() * 1000)}-{next(self._sequence)}"
        pending = PendingExecution(
            execution_id=execution_id,
            tool_name=tool_name,
            token=CancellationToken(name=execution_id),
        )
        self._active[execution_id] = pending
        return pending

    def unregister(self, execution_id: str) -> None:
        self._active.pop(execution_id, None)

    def cancel_all(self, reason: str = "Tool execution cancelled") -> int:
        """Cancel every registered call token and clear the table."""
        pending = list(self._active.values())
        self._active.clear()
        for execution in pending:
            _log.debug("Aborting tool execution %s", execution.execution_id)
            execution.token.cancel(reason)
        return len(pending)

    def active_ids(self) -> list[str]:
        return list(self._active)

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, execution_id: object) -> bool:
        return execution_id in self._active
