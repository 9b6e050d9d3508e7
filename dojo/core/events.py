"""In-process domain events. The notification collaborator subscribes here; delivery is not our concern."""

import inspect
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dojo.core.enums import FeeEventType

logger = logging.getLogger(__name__)


class FeeEvent(BaseModel):
    event_type: FeeEventType
    student_id: UUID
    fee_id: Optional[UUID] = None
    fee_type: Optional[str] = None
    amount: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    occurred_at: datetime
    data: Dict[str, Any] = Field(default_factory=dict)


Handler = Callable[[FeeEvent], Any]


class EventDispatcher:
    """Maps event types to handlers. Handler failures are logged, never raised to the publisher."""

    def __init__(self) -> None:
        self._handlers: Dict[FeeEventType, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: FeeEventType, handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: FeeEventType, handler: Handler) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    async def publish(self, event: FeeEvent) -> None:
        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler failed for %s (student_id=%s, fee_id=%s)",
                    event.event_type.value,
                    event.student_id,
                    event.fee_id,
                )


fee_events = EventDispatcher()
