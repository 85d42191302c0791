"""
In-process pub/sub for procurement domain events.

The engine only emits; delivery (email, push, webhooks) belongs to whoever
subscribes. Events are published after the emitting transaction commits.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class POEventType(str, Enum):
    SUBMITTED = "po.submitted"
    APPROVED = "po.approved"
    REJECTED = "po.rejected"
    RETURNED_TO_DRAFT = "po.returned_to_draft"
    SENT_TO_VENDOR = "po.sent_to_vendor"
    ACKNOWLEDGED = "po.acknowledged"
    DISPATCHED = "po.dispatched"
    PARTIALLY_RECEIVED = "po.partially_received"
    FULLY_RECEIVED = "po.fully_received"
    CLOSED = "po.closed"
    CANCELLED = "po.cancelled"
    GOODS_RECEIVED = "grn.created"
    PAYMENT_RECORDED = "po.payment_recorded"


@dataclass
class PODomainEvent:
    type: POEventType
    tenant_id: int
    po_id: int
    actor_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class EventBus:
    _instance: Optional["EventBus"] = None

    def __init__(self, max_history: int = 1000):
        self._subscribers: Dict[POEventType, List[Callable]] = {}
        self._history: List[PODomainEvent] = []
        self._max_history = max_history

    @classmethod
    def get_instance(cls) -> "EventBus":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def subscribe(self, event_type: POEventType, handler: Callable):
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed {handler.__name__} to {event_type.value}")

    async def publish(self, event: PODomainEvent):
        """Notify subscribers. A failing handler is logged and never reaches the publisher."""
        logger.info(
            f"Event: {event.type.value} | tenant={event.tenant_id} po={event.po_id}"
        )

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = list(self._subscribers.get(event.type, []))
        if not handlers:
            return

        tasks = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                tasks.append(asyncio.create_task(handler(event)))
            else:
                tasks.append(asyncio.create_task(asyncio.to_thread(handler, event)))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(f"Handler {handler.__name__} failed for {event.type.value}: {result}")

    async def publish_all(self, events: List[PODomainEvent]):
        for event in events:
            await self.publish(event)

    def get_history(
        self,
        tenant_id: Optional[int] = None,
        event_type: Optional[POEventType] = None,
        limit: int = 100,
    ) -> List[PODomainEvent]:
        events = self._history

        if tenant_id is not None:
            events = [e for e in events if e.tenant_id == tenant_id]

        if event_type:
            events = [e for e in events if e.type == event_type]

        return events[-limit:]


def get_event_bus() -> EventBus:
    return EventBus.get_instance()
