"""
Action dispatcher: the only place side effects happen.

Every action runs behind this boundary. Whatever the action does (return a
value, return a Failure, raise, hang) is folded into an Outcome and
recorded on the event. Nothing propagates to the replay builder.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.clock import SystemClock
from ..core.context import ReplayContext
from ..core.errors import ActionExecutionError, ActionTimeoutError
from ..core.events import Event
from ..core.outcome import ActionStatus, Failure, Outcome
from ..core.process import ProcessSnapshot
from ..core.registry import Registration, Subscription
from ..logging_config import get_logger
from ..metrics import track_action


@dataclass(frozen=True)
class ExecutedAction:
    """One action execution performed during a replay pass."""

    event_id: str
    event_type: str
    action: str
    outcome: Outcome


def stable_error(err: BaseException) -> Dict[str, Any]:
    """
    Error payload recorded on the event for a failed action.

    Code is taken from ActionExecutionError subclasses, otherwise "EXCEPTION".
    """
    code = getattr(err, "code", None) if isinstance(err, ActionExecutionError) else None
    return {
        "type": err.__class__.__name__,
        "code": code or "EXCEPTION",
        "message": str(err),
    }


class ActionDispatcher:
    """
    Executes actions with per-action failure isolation.

    Usage:
        dispatcher = ActionDispatcher(timeout=30.0)
        outcome = dispatcher.execute(subscription, snapshot, event, context)

    With a timeout, actions run on a worker pool and an action that does not
    finish in time is recorded as failed (code TIMEOUT). The worker thread
    cannot be interrupted and keeps running until the action returns.

    An action is only handed to the pool while a worker is free, so it starts
    running at once and its timeout covers its own run time. When hung
    actions occupy every worker, further actions run on overflow daemon
    threads instead of queueing behind them.
    """

    def __init__(self, timeout: Optional[float] = None, clock=None, max_workers: int = 4) -> None:
        self.timeout = timeout if timeout and timeout > 0 else None
        self.clock = clock or SystemClock()
        self.max_workers = max_workers
        self._busy = 0
        self._busy_lock = threading.Lock()
        self._pool: Optional[ThreadPoolExecutor] = None
        if self.timeout is not None:
            self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="procflow-action")

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False)
            self._pool = None

    @property
    def busy(self) -> int:
        """Pool workers currently running an action."""
        return self._busy

    def _release(self) -> None:
        with self._busy_lock:
            self._busy -= 1

    def _on_worker(self, subscription: Subscription, snapshot: ProcessSnapshot, event: Event, context: ReplayContext) -> Any:
        try:
            return subscription.action(snapshot, event, context)
        finally:
            self._release()

    def _on_overflow(self, subscription: Subscription, snapshot: ProcessSnapshot, event: Event, context: ReplayContext) -> Future:
        future: Future = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(subscription.action(snapshot, event, context))
            except BaseException as ex:
                future.set_exception(ex)

        threading.Thread(target=run, name=f"procflow-action-{subscription.name}", daemon=True).start()
        return future

    def _start(self, subscription: Subscription, snapshot: ProcessSnapshot, event: Event, context: ReplayContext) -> Future:
        with self._busy_lock:
            free = self._busy < self.max_workers
            if free:
                self._busy += 1
        if free:
            try:
                return self._pool.submit(self._on_worker, subscription, snapshot, event, context)
            except RuntimeError:
                self._release()
                raise
        get_logger(__name__, process_id=event.process_id).warning(
            f"All {self.max_workers} action workers busy; running {subscription.name} on an overflow thread"
        )
        return self._on_overflow(subscription, snapshot, event, context)

    def _invoke(self, subscription: Subscription, snapshot: ProcessSnapshot, event: Event, context: ReplayContext) -> Any:
        if self._pool is None:
            return subscription.action(snapshot, event, context)
        future = self._start(subscription, snapshot, event, context)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            raise ActionTimeoutError(f"action {subscription.name} timed out after {self.timeout}s")

    def execute(
        self,
        subscription: Subscription,
        snapshot: ProcessSnapshot,
        event: Event,
        context: ReplayContext,
    ) -> Outcome:
        """
        Execute one action and return its outcome. Never raises.

        The replay context is read-only while the action runs.
        """
        logger = get_logger(__name__, process_id=event.process_id)
        try:
            with context.frozen():
                result = self._invoke(subscription, snapshot, event, context)
        except Exception as ex:
            outcome = Outcome.failure(stable_error(ex))
            logger.warning(
                f"Action {subscription.name} failed on {event.type} ({event.id}): {ex}",
                exc_info=not isinstance(ex, ActionExecutionError),
            )
        else:
            if isinstance(result, Failure):
                outcome = Outcome.failure(
                    {"type": "Failure", "code": result.code, "message": result.message}
                )
                logger.warning(
                    f"Action {subscription.name} reported failure on {event.type} ({event.id}): {result.message}"
                )
            elif isinstance(result, Outcome):
                outcome = result
            else:
                outcome = Outcome.success(result)
                logger.info(f"Action {subscription.name} succeeded on {event.type} ({event.id})")

        track_action(subscription.name, outcome.status.value)
        return outcome

    def dispatch(
        self,
        registration: Registration,
        snapshot: ProcessSnapshot,
        event: Event,
        context: ReplayContext,
    ) -> List[ExecutedAction]:
        """
        Run every pending action of one event, in subscription order.

        Outcomes are written onto the event's action records in place.
        Records already succeeded are skipped.
        """
        executed = []
        for sub in registration.subscriptions:
            rec = event.actions.get(sub.name)
            if rec is None or not rec.is_pending:
                continue
            outcome = self.execute(sub, snapshot, event, context)
            if outcome.status is ActionStatus.PENDING:
                # an action may not leave itself pending
                outcome = Outcome.failure(
                    {"type": "Outcome", "code": "INVALID_OUTCOME", "message": "action returned a pending outcome"}
                )
            rec.record(outcome, at=self.clock.now())
            executed.append(
                ExecutedAction(event_id=event.id, event_type=event.type, action=sub.name, outcome=outcome)
            )
        return executed
