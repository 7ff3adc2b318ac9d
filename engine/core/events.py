"""
Operation outcome notifications.

EngineState emits OPERATION_APPLIED(op, result) after a committed operation and
OPERATION_FAILED(op, error) after a rejected one. Listeners run synchronously
inside the engine lock.
"""
from collections import defaultdict
from typing import Callable, DefaultDict, List
import logging

logger = logging.getLogger(__name__)

OPERATION_APPLIED = "operation_applied"
OPERATION_FAILED = "operation_failed"


class EventBus:
    def __init__(self):
        self.listeners: DefaultDict[str, List[Callable]] = defaultdict(list)

    def subscribe(self, event_type: str, callback: Callable) -> None:
        self.listeners[event_type].append(callback)

    def emit(self, event_type: str, **data) -> None:
        # A broken listener is logged; the operation outcome stands
        for callback in list(self.listeners.get(event_type, ())):
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"{event_type} listener {getattr(callback, '__name__', callback)} failed: {e}",
                             exc_info=True)


# Process-wide bus used by the node
event_bus = EventBus()
