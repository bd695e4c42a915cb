"""
Job domain models
"""
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ...core.events import EventChannel, TransferEvent
from ...core.exceptions import BatchCancelled


class BatchState(str, Enum):
    """Batch lifecycle"""
    RUNNING = "running"
    CANCELLING = "cancelling"
    COMPLETED = "completed"


class UnitState(str, Enum):
    """Unit of work lifecycle"""
    PENDING = "pending"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"  # stopped at a checkpoint
    SKIPPED = "skipped"      # never started

    @property
    def is_terminal(self) -> bool:
        return self not in (UnitState.PENDING, UnitState.RUNNING)


class JobContext:
    """
    What a running unit of work sees of its batch.

    Units report through publish/progress/success/failure and call
    checkpoint() between steps so a cancelled batch can stop them.
    """

    def __init__(self, form_id: str, channel: EventChannel, cancel_event: threading.Event):
        self.form_id = form_id
        self._channel = channel
        self._cancel_event = cancel_event

    def publish(self, event: TransferEvent) -> None:
        self._channel.publish(event)

    def progress(self, message: str = "", fraction: Optional[float] = None) -> None:
        self.publish(TransferEvent.progress(self.form_id, message, fraction))

    def success(self, message: str = "Success") -> None:
        self.publish(TransferEvent.success(self.form_id, message))

    def failure(self, message: str) -> None:
        self.publish(TransferEvent.failure(self.form_id, message))

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def checkpoint(self) -> None:
        """
        Raises:
            BatchCancelled: If the batch has been cancelled
        """
        if self._cancel_event.is_set():
            raise BatchCancelled(f"Pull of {self.form_id} cancelled")


@dataclass(frozen=True)
class UnitOfWork:
    """One form's pull operation"""
    form_id: str
    description: str
    action: Callable[[JobContext], None]

    def run(self, context: JobContext) -> None:
        self.action(context)
