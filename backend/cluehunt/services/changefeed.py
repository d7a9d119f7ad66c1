from __future__ import annotations
import asyncio
import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol
import structlog

log = structlog.get_logger()

OPS = ("added", "modified", "removed")


@dataclass(frozen=True)
class Change:
    """One document diff. Consumers re-apply by id, so redelivery is harmless."""
    collection: str
    op: str  # added|modified|removed
    id: str
    doc: dict[str, Any] = field(default_factory=dict)


class Subscription:
    """
    Listener for one collection, optionally narrowed by equality filters on
    document fields. When the consumer falls behind, the oldest diff is
    dropped and `overflowed` is set so the client knows to resync.
    """

    def __init__(self, collection: str, filters: dict[str, Any], maxsize: int):
        self.collection = collection
        self.filters = {k: str(v) for k, v in filters.items() if v is not None}
        self.overflowed = False
        self._queue: asyncio.Queue[Change] = asyncio.Queue(maxsize=maxsize)

    def matches(self, change: Change) -> bool:
        if change.collection != self.collection:
            return False
        return all(str(change.doc.get(k)) == v for k, v in self.filters.items())

    def offer(self, change: Change) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.overflowed = True
        self._queue.put_nowait(change)

    async def get(self) -> Change:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> AsyncIterator[Change]:
        return self

    async def __anext__(self) -> Change:
        return await self.get()


class ChangeRelay(Protocol):
    def send(self, payload: str) -> None: ...


class ChangeFeed:
    """
    Push channel; writers publish after their commit succeeds.

    Subscribers are local to the process. With a `relay` attached every diff is
    also sent out so feeds in other processes (API workers, the RQ worker) can
    `receive` it; a feed ignores the echo of its own diffs.
    """

    def __init__(self, queue_size: int = 256, relay: ChangeRelay | None = None):
        self.queue_size = queue_size
        self.relay = relay
        self.origin = uuid.uuid4().hex
        self._subs: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def publish(self, collection: str, op: str, doc: dict[str, Any]) -> int:
        if op not in OPS:
            raise ValueError(f"unknown change op: {op}")
        change = Change(collection=collection, op=op, id=str(doc.get("id")), doc=doc)
        delivered = self._deliver(change)
        if self.relay is not None:
            self.relay.send(self.encode(change))
        return delivered

    def encode(self, change: Change) -> str:
        return json.dumps({"origin": self.origin, "collection": change.collection,
                           "op": change.op, "id": change.id, "doc": change.doc})

    def receive(self, payload: str | bytes) -> int:
        """Deliver a diff relayed from another process."""
        data = json.loads(payload)
        if data.get("origin") == self.origin:
            return 0
        if data.get("op") not in OPS:
            raise ValueError(f"unknown change op: {data.get('op')}")
        change = Change(collection=data["collection"], op=data["op"], id=str(data["id"]),
                        doc=data.get("doc") or {})
        return self._deliver(change)

    def _deliver(self, change: Change) -> int:
        delivered = 0
        for sub in list(self._subs):
            if sub.matches(change):
                sub.offer(change)
                delivered += 1
        return delivered

    @asynccontextmanager
    async def subscribe(self, collection: str, **filters: Any) -> AsyncIterator[Subscription]:
        sub = Subscription(collection, filters, self.queue_size)
        self._subs.add(sub)
        log.info("feed_subscribed", collection=collection, filters=sub.filters)
        try:
            yield sub
        finally:
            self._subs.discard(sub)
            log.info("feed_unsubscribed", collection=collection, filters=sub.filters)
