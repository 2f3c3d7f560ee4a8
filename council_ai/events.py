"""Progress event emission for presentation layers."""

import logging
from collections.abc import Callable
from typing import Any

from council_ai.models import CouncilEvent, EventType

logger = logging.getLogger(__name__)

EventSink = Callable[[CouncilEvent], None]


class EventEmitter:
    """Fan events out to an optional sink. A failing sink is logged, never propagated."""

    def __init__(self, sink: EventSink | None = None) -> None:
        self._sink = sink

    def emit(self, event_type: EventType, message: str = "", **payload: Any) -> None:
        if self._sink is None:
            return
        try:
            self._sink(CouncilEvent(type=event_type, message=message, payload=payload))
        except Exception:
            logger.exception("Event sink failed on %s event", event_type.value)
