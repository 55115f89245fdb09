"""
Owned subscriptions to Supabase row-change notifications.

A ChangeSubscription wraps one realtime channel. Change payloads pushed by the
realtime client are turned into ChangeEvent objects and queued; the owner
consumes them with ``async for`` and tears the channel down with ``close()``
(or by leaving an ``async with`` block).
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()
_channel_ids = itertools.count(1)


@dataclass
class ChangeEvent:
    event_type: str  # INSERT | UPDATE | DELETE
    table: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], table: str) -> "ChangeEvent":
        # realtime-py nests the change under "data"; older payloads are flat
        data = payload.get("data", payload) if isinstance(payload, dict) else {}
        return cls(
            event_type=(data.get("type") or data.get("eventType") or "").upper(),
            table=data.get("table") or table,
            new=data.get("record") or data.get("new") or {},
            old=data.get("old_record") or data.get("old") or {},
        )


class ChangeSubscription:
    def __init__(
        self,
        client: Any,
        table: str,
        event: str = "*",
        filter: Optional[str] = None,
        schema: str = "public",
        name: Optional[str] = None,
    ):
        self.client = client
        self.table = table
        self.event = event
        self.filter = filter
        self.schema = schema
        self.name = name or f"{table}-changes-{next(_channel_ids)}"
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._channel = None
        self._closed = False
        self._drained = False

    @property
    def is_open(self) -> bool:
        return self._channel is not None and not self._closed

    async def open(self) -> "ChangeSubscription":
        if self._channel is not None:
            return self
        self._loop = asyncio.get_running_loop()
        channel = self.client.channel(self.name)
        kwargs = {"table": self.table, "schema": self.schema}
        if self.filter:
            kwargs["filter"] = self.filter
        channel.on_postgres_changes(self.event, self._on_change, **kwargs)
        await channel.subscribe(self._on_status)
        self._channel = channel
        logger.info(f"Subscribed to {self.event} on {self.table} ({self.filter or 'all rows'}) via {self.name}")
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._channel is not None:
            try:
                await self.client.remove_channel(self._channel)
                logger.info(f"Removed realtime channel {self.name}")
            except Exception as e:
                logger.error(f"Error removing realtime channel {self.name}: {e}")
        self._enqueue(_CLOSED)

    def _on_status(self, status, err=None) -> None:
        if err:
            logger.error(f"Realtime channel {self.name} error: {err}")
        else:
            logger.debug(f"Realtime channel {self.name} status: {status}")

    def _on_change(self, payload: Dict[str, Any]) -> None:
        if self._closed:
            return
        self._enqueue(ChangeEvent.from_payload(payload, self.table))

    def _enqueue(self, item: Any) -> None:
        # Same path for events and the close marker so they stay in order
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        else:
            self._queue.put_nowait(item)

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None once the subscription is closed"""
        if self._drained:
            return None
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            self._drained = True
            return None
        return item

    async def __aenter__(self) -> "ChangeSubscription":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event
