"""
Snapshot delivery as messages.

Store listeners do nothing but publish ``SnapshotEvent`` objects; the session's
single reconciliation loop consumes them in order.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from scheduler.core.store import DocumentStore, Subscription
from scheduler.services.refs import (
    availability_collection,
    campaign_path,
    members_collection,
    settings_path,
)

logger = logging.getLogger(__name__)


class SnapshotKind(str, Enum):
    CAMPAIGN = "campaign"
    MEMBERS = "members"
    SETTINGS = "settings"
    AVAILABILITY = "availability"


class SnapshotEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: SnapshotKind
    campaign_id: str
    # Document data, or ``{doc_id: data}`` for collection snapshots
    data: Any = None


_CLOSED = object()


class SnapshotChannel:
    """Queue of snapshot events; safe to publish from store worker threads."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def publish(self, event: Any) -> None:
        if self._closed:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is None or running is self._loop or self._loop.is_closed():
            self._queue.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def close(self) -> None:
        self.publish(_CLOSED)
        self._closed = True

    def drain_nowait(self) -> List[SnapshotEvent]:
        events = []
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return events
            if event is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                return events
            events.append(event)

    def __aiter__(self) -> "SnapshotChannel":
        return self

    async def __anext__(self) -> SnapshotEvent:
        event = await self._queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event


class CampaignFeed:
    """The four store subscriptions that make up one campaign's server state."""

    def __init__(self, campaign_id: str, subscriptions: List[Subscription]):
        self.campaign_id = campaign_id
        self._subscriptions = subscriptions

    @classmethod
    def open(cls, store: DocumentStore, campaign_id: str, channel: SnapshotChannel) -> "CampaignFeed":
        def forward(kind: SnapshotKind):
            def callback(_path: str, data: Any) -> None:
                channel.publish(SnapshotEvent(kind=kind, campaign_id=campaign_id, data=data))

            return callback

        subscriptions = [
            store.subscribe_document(campaign_path(campaign_id), forward(SnapshotKind.CAMPAIGN)),
            store.subscribe_collection(members_collection(campaign_id), forward(SnapshotKind.MEMBERS)),
            store.subscribe_document(settings_path(campaign_id), forward(SnapshotKind.SETTINGS)),
            store.subscribe_collection(availability_collection(campaign_id), forward(SnapshotKind.AVAILABILITY)),
        ]
        logger.debug(f"Subscribed to campaign {campaign_id}")
        return cls(campaign_id, subscriptions)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        logger.debug(f"Unsubscribed from campaign {self.campaign_id}")
