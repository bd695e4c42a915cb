"""
Event channel - synchronous publish/subscribe between jobs and observers
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional

from .logging import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    """Kinds of transfer events"""
    PROGRESS = "progress"
    SUCCESS = "success"
    FAILURE = "failure"
    BATCH_COMPLETE = "batch_complete"


FORM_EVENT_KINDS = frozenset({EventKind.PROGRESS, EventKind.SUCCESS, EventKind.FAILURE})


@dataclass(frozen=True)
class TransferEvent:
    """
    A status event, tagged by its kind.

    Form events (progress, success, failure) always carry the id of the form
    they are about; batch completion carries none.
    """
    kind: EventKind
    form_id: Optional[str] = None
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    fraction: Optional[float] = None

    @classmethod
    def progress(
        cls,
        form_id: str,
        message: str = "",
        fraction: Optional[float] = None,
    ) -> "TransferEvent":
        """Progress of one form. A fraction without message renders as a percentage."""
        if not message and fraction is not None:
            message = f"Pulled {round(fraction * 100)}% of the submissions"
        return cls(EventKind.PROGRESS, form_id, message, fraction=fraction)

    @classmethod
    def success(
        cls,
        form_id: str,
        message: str = "Success",
        timestamp: Optional[datetime] = None,
    ) -> "TransferEvent":
        return cls(EventKind.SUCCESS, form_id, message, timestamp or datetime.now())

    @classmethod
    def failure(cls, form_id: str, message: str) -> "TransferEvent":
        return cls(EventKind.FAILURE, form_id, message)

    @classmethod
    def batch_complete(cls) -> "TransferEvent":
        return cls(EventKind.BATCH_COMPLETE, message="Batch complete")

    @property
    def is_success(self) -> bool:
        return self.kind is EventKind.SUCCESS

    def format(self) -> str:
        """Render as a status history line"""
        if self.kind is EventKind.FAILURE:
            return f"Error: {self.message}"
        return self.message


Handler = Callable[[TransferEvent], None]


class Subscription:
    """Handle returned by EventChannel.subscribe"""

    def __init__(self, channel: "EventChannel", kinds: frozenset, handler: Handler):
        self._channel = channel
        self.kinds = kinds
        self.handler = handler

    def matches(self, event: TransferEvent) -> bool:
        return event.kind in self.kinds

    def cancel(self) -> None:
        """Stop receiving events"""
        self._channel._remove(self)


class EventChannel:
    """
    Publish/subscribe bus with synchronous dispatch.

    ``publish`` delivers the event to every matching subscriber, in
    registration order, on the publishing thread, and only returns once all
    of them ran. Subscribing or cancelling while another thread publishes is
    safe: a publish call works on a snapshot of the subscriber list.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, kinds: Iterable[EventKind], handler: Handler) -> Subscription:
        """
        Register a handler for the given event kinds.

        Args:
            kinds: Event kinds the handler is interested in
            handler: Called with each matching event

        Returns:
            Subscription handle
        """
        subscription = Subscription(self, frozenset(kinds), handler)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: TransferEvent) -> None:
        """Deliver an event to every matching subscriber"""
        with self._lock:
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            if not subscription.matches(event):
                continue
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(
                    "Event handler %r failed on %s event for %s",
                    subscription.handler,
                    event.kind.value,
                    event.form_id,
                )

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
