"""
Job orchestrator - runs a batch of pull operations concurrently
"""
import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

from ...core.events import EventChannel, TransferEvent
from ...core.exceptions import BatchCancelled, OrchestratorMisuseError, UnitFailure
from ...core.logging import get_logger
from .models import BatchState, JobContext, UnitOfWork, UnitState

logger = get_logger(__name__)

ErrorHandler = Callable[[UnitFailure], None]

_batch_ids = itertools.count(1)


class BatchHandle:
    """
    One in-flight launch.

    Every unit ends up FINISHED, FAILED, CANCELLED or SKIPPED. Once all of
    them did, the batch is COMPLETED, the completion callbacks run exactly
    once and wait_for_completion() returns.
    """

    def __init__(
        self,
        units: List[UnitOfWork],
        channel: EventChannel,
        on_error: Optional[ErrorHandler] = None,
        max_workers: Optional[int] = None,
        on_finished: Optional[Callable[["BatchHandle"], None]] = None,
    ):
        self.batch_id = next(_batch_ids)
        self._units = units
        self._channel = channel
        self._on_error = on_error
        self._max_workers = max_workers
        self._on_finished = on_finished

        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._state = BatchState.RUNNING
        self._unit_states: List[UnitState] = [UnitState.PENDING] * len(units)
        self._remaining = len(units)
        self._completed = False
        self._callbacks: List[Callable[[], None]] = []

    # ------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------

    @property
    def state(self) -> BatchState:
        with self._lock:
            return self._state

    @property
    def units(self) -> List[UnitOfWork]:
        return list(self._units)

    def cancel(self) -> None:
        """
        Request cooperative cancellation.

        Units not started yet are skipped; running units stop at their next
        checkpoint. Calling it again, or on a completed batch, does nothing.
        """
        with self._lock:
            if self._state is not BatchState.RUNNING:
                return
            self._state = BatchState.CANCELLING
            self._cancel_event.set()
        logger.info("Cancelling batch %d", self.batch_id)

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def wait_for_completion(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every unit reached a terminal state.

        Args:
            timeout: Seconds to wait, None waits forever

        Returns:
            True if the batch completed
        """
        return self._done_event.wait(timeout)

    def is_done(self) -> bool:
        return self._done_event.is_set()

    def on_complete(self, callback: Callable[[], None]) -> "BatchHandle":
        """Run callback once the batch completes, right away if it already did"""
        with self._lock:
            if not self._completed:
                self._callbacks.append(callback)
                return self
        self._run_callback(callback)
        return self

    def unit_states(self) -> Dict[str, UnitState]:
        """State of each unit, keyed by form id"""
        with self._lock:
            return {unit.form_id: state for unit, state in zip(self._units, self._unit_states)}

    def summary(self) -> Dict[UnitState, int]:
        with self._lock:
            counts: Dict[UnitState, int] = {}
            for state in self._unit_states:
                counts[state] = counts.get(state, 0) + 1
            return counts

    # ------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------

    def _start(self) -> None:
        if not self._units:
            self._complete()
            return

        workers = self._max_workers or len(self._units)
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(workers, len(self._units))),
            thread_name_prefix=f"batch-{self.batch_id}",
        )
        for index, unit in enumerate(self._units):
            executor.submit(self._run_unit, index, unit)
        # Queued units still run (and skip themselves if cancelled)
        executor.shutdown(wait=False)

    def _run_unit(self, index: int, unit: UnitOfWork) -> None:
        with self._lock:
            if self._cancel_event.is_set():
                skip = True
            else:
                skip = False
                self._unit_states[index] = UnitState.RUNNING

        if skip:
            logger.debug("Skipping %s, batch %d was cancelled", unit.form_id, self.batch_id)
            self._unit_done(index, UnitState.SKIPPED)
            return

        state = UnitState.FAILED
        try:
            unit.run(JobContext(unit.form_id, self._channel, self._cancel_event))
            state = UnitState.FINISHED
        except BatchCancelled:
            logger.info("%s stopped at a checkpoint", unit.description)
            state = UnitState.CANCELLED
        except Exception as e:
            self._report_failure(UnitFailure(unit.form_id, unit.description, e))
        finally:
            self._unit_done(index, state)

    def _report_failure(self, failure: UnitFailure) -> None:
        logger.error("%s", failure, exc_info=failure.cause)
        self._channel.publish(TransferEvent.failure(failure.form_id, str(failure.cause)))
        if self._on_error is not None:
            try:
                self._on_error(failure)
            except Exception:
                logger.exception("Error handler failed for %s", failure.form_id)

    def _unit_done(self, index: int, state: UnitState) -> None:
        with self._lock:
            self._unit_states[index] = state
            self._remaining -= 1
            last = self._remaining == 0
        if last:
            self._complete()

    def _complete(self) -> None:
        with self._lock:
            self._state = BatchState.COMPLETED
            self._completed = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        logger.info("Batch %d completed: %s", self.batch_id, {
            state.value: count for state, count in self.summary().items()
        })

        try:
            if self._on_finished is not None:
                self._on_finished(self)
            self._channel.publish(TransferEvent.batch_complete())
            for callback in callbacks:
                self._run_callback(callback)
        finally:
            self._done_event.set()

    def _run_callback(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Completion callback failed for batch %d", self.batch_id)


class JobOrchestrator:
    """
    Launches batches of units of work on a managed thread pool.

    At most one batch is active at a time; launching another one while it
    runs is rejected with OrchestratorMisuseError.
    """

    def __init__(self, channel: EventChannel, max_workers: Optional[int] = None):
        """
        Initialize orchestrator.

        Args:
            channel: Channel units publish their events on
            max_workers: Thread pool size per batch (None: one thread per unit)
        """
        self.channel = channel
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._active: Optional[BatchHandle] = None

    @property
    def active_batch(self) -> Optional[BatchHandle]:
        with self._lock:
            return self._active

    def is_busy(self) -> bool:
        return self.active_batch is not None

    def launch_async(
        self,
        units: Iterable[UnitOfWork],
        on_error: Optional[ErrorHandler] = None,
    ) -> BatchHandle:
        """
        Run units concurrently.

        Args:
            units: Independent units of work
            on_error: Called with a UnitFailure for each unit that raised

        Returns:
            Handle of the running batch

        Raises:
            OrchestratorMisuseError: If a batch is already active
        """
        units = list(units)
        with self._lock:
            if self._active is not None:
                raise OrchestratorMisuseError(
                    f"Batch {self._active.batch_id} is still running, "
                    "wait for it or cancel it before launching another one"
                )
            handle = BatchHandle(
                units,
                self.channel,
                on_error=on_error,
                max_workers=self.max_workers,
                on_finished=self._release,
            )
            self._active = handle

        logger.info("Launching batch %d with %d units", handle.batch_id, len(units))
        handle._start()
        return handle

    def _release(self, handle: BatchHandle) -> None:
        with self._lock:
            if self._active is handle:
                self._active = None
