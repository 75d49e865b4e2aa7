# messenger/infrastructure/event_dispatcher.py
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from messenger.domain.events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventDispatcher:
    """Routes committed domain events to their handlers by event class name.

    Handler failures are logged and swallowed: live fan-out is best effort and
    must never fail the request that produced the event.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self.logger = logger or logging.getLogger("MessengerAPI")

    def register(self, event_type: str, handler: EventHandler) -> None:
        self.handlers[event_type].append(handler)

    async def dispatch(self, event: Event) -> None:
        event_type = event.__class__.__name__
        for handler in self.handlers[event_type]:
            try:
                await handler(event)
            except Exception:
                self.logger.exception(
                    f"Handler {getattr(handler, '__name__', handler)!s} failed for {event_type}"
                )
