"""Trailing-edge coalescing of reorder payloads."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from coauthor_observability import record_coalesced_flush

from .models import ReorderPayload

logger = logging.getLogger(__name__)

SendCallback = Callable[[ReorderPayload], Awaitable[None]]


class ReorderCoalescer:
    """Keep only the latest reorder payload and send it after a quiet period.

    ``submit`` replaces whatever is pending and restarts the timer. When the
    timer expires the payload is handed to ``send``. Sends never overlap and an
    in-flight send is never cancelled; only a timer that has not fired yet is.
    """

    def __init__(self, send: SendCallback, *, delay_seconds: float = 0.5) -> None:
        self._send = send
        self._delay = max(delay_seconds, 0.0)
        self._pending: Optional[ReorderPayload] = None
        self._superseded = 0
        self._timer: Optional[asyncio.Task[None]] = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self._send_lock = asyncio.Lock()

    @property
    def pending(self) -> Optional[ReorderPayload]:
        return self._pending

    @property
    def idle(self) -> bool:
        return self._pending is None and self._timer is None and not self._in_flight

    def submit(self, payload: ReorderPayload) -> None:
        """Record ``payload`` as the state to persist. Must be called from the event loop."""

        if self._pending is not None:
            self._superseded += 1
        self._pending = payload
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._fire_after_delay())

    async def flush(self) -> None:
        """Send the pending payload now instead of waiting for the timer."""

        self._cancel_timer()
        await self._send_pending()

    async def drain(self) -> None:
        """Wait until the timer has fired and every send it started has finished."""

        while self._timer is not None or self._in_flight:
            tasks = [task for task in (self._timer, *self._in_flight) if task is not None]
            await asyncio.gather(*tasks, return_exceptions=True)

    def discard(self) -> Optional[ReorderPayload]:
        """Drop the pending payload and its timer without sending; returns what was dropped."""

        self._cancel_timer()
        payload, self._pending = self._pending, None
        self._superseded = 0
        return payload

    async def aclose(self) -> None:
        """Drop the pending payload and wait for in-flight sends."""

        self.discard()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self._delay)
        # Past this point the send belongs to its own task so a later submit
        # cannot cancel it.
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._send_pending())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _send_pending(self) -> None:
        async with self._send_lock:
            payload, self._pending = self._pending, None
            superseded, self._superseded = self._superseded, 0
            if payload is None:
                return
            record_coalesced_flush(superseded=superseded)
            logger.debug(
                "Flushing coalesced reorder",
                extra={"update_count": len(payload.updates), "superseded": superseded},
            )
            try:
                await self._send(payload)
            except Exception:
                logger.exception("Reorder send failed")
