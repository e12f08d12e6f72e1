"""
Mode Scheduler: chooses how and when the Fetch Cycle runs.

States:
    IDLE                   no polling of any kind
    BACKGROUND_REGISTERED  OS background callback registered, app not visible
    FOREGROUND_POLLING     background callback registered and foreground timer running

The transition table is the pure function `transition()`; ModeScheduler
executes the actions it returns against the timer collaborators. Two
independent triggers (foreground timer, OS background callback) funnel into
run_cycle(), which holds a non-blocking guard so at most one Fetch Cycle is
ever in flight. A trigger that finds the guard held is dropped, not queued.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ..core.models import FetchResult, PollingMode
from .fetch_cycle import FetchCycle
from .timers import BackgroundTaskScheduler, ForegroundTimer

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    BACKGROUND_REGISTERED = "background_registered"
    FOREGROUND_POLLING = "foreground_polling"

    def __str__(self) -> str:
        return self.value


class LifecycleEvent(Enum):
    CREDENTIAL_VALID = "credential_valid"
    ENTERED_FOREGROUND = "entered_foreground"
    ENTERED_BACKGROUND = "entered_background"
    CREDENTIAL_INVALID = "credential_invalid"

    def __str__(self) -> str:
        return self.value


class Action(Enum):
    REGISTER_BACKGROUND = "register_background"
    UNREGISTER_BACKGROUND = "unregister_background"
    START_FOREGROUND_TIMER = "start_foreground_timer"
    STOP_FOREGROUND_TIMER = "stop_foreground_timer"
    FETCH_NOW = "fetch_now"
    CLEAR_CREDENTIALS = "clear_credentials"


@dataclass(frozen=True)
class Transition:
    state: SchedulerState
    actions: tuple[Action, ...] = ()


def transition(state: SchedulerState, event: LifecycleEvent, foregrounded: bool) -> Transition:
    """
    Compute the next state and the side effects to perform.

    Args:
        state: Current state
        event: Lifecycle event being delivered
        foregrounded: Whether the application is visible after this event

    Returns:
        Transition with the new state and ordered actions. Events that do not
        apply to the current state leave it unchanged with no actions.
    """
    if event is LifecycleEvent.CREDENTIAL_INVALID:
        actions = []
        if state is SchedulerState.FOREGROUND_POLLING:
            actions.append(Action.STOP_FOREGROUND_TIMER)
        if state is not SchedulerState.IDLE:
            actions.append(Action.UNREGISTER_BACKGROUND)
        actions.append(Action.CLEAR_CREDENTIALS)
        return Transition(SchedulerState.IDLE, tuple(actions))

    if state is SchedulerState.IDLE:
        if event is LifecycleEvent.CREDENTIAL_VALID:
            if foregrounded:
                return Transition(
                    SchedulerState.FOREGROUND_POLLING,
                    (Action.REGISTER_BACKGROUND, Action.START_FOREGROUND_TIMER, Action.FETCH_NOW),
                )
            return Transition(SchedulerState.BACKGROUND_REGISTERED, (Action.REGISTER_BACKGROUND,))
        return Transition(state)

    if state is SchedulerState.BACKGROUND_REGISTERED:
        if event is LifecycleEvent.ENTERED_FOREGROUND:
            return Transition(
                SchedulerState.FOREGROUND_POLLING,
                (Action.START_FOREGROUND_TIMER, Action.FETCH_NOW),
            )
        return Transition(state)

    if event is LifecycleEvent.ENTERED_BACKGROUND:
        return Transition(SchedulerState.BACKGROUND_REGISTERED, (Action.STOP_FOREGROUND_TIMER,))
    return Transition(state)


def _run_in_thread(fn: Callable[[], Any]) -> None:
    threading.Thread(target=fn, name="FetchNow", daemon=True).start()


class ModeScheduler:
    """
    Drives the Fetch Cycle from lifecycle events.

    Usage:
        scheduler = ModeScheduler(cycle, foreground_timer, background_scheduler, config['polling'])
        scheduler.add_listener(on_result)
        scheduler.entered_foreground()
        scheduler.credential_valid(token, imei)
    """

    def __init__(
        self,
        fetch_cycle: FetchCycle,
        foreground_timer: ForegroundTimer,
        background_scheduler: BackgroundTaskScheduler,
        config: dict[str, Any] | None = None,
        dispatch: Callable[[Callable[[], Any]], None] = _run_in_thread,
    ):
        """
        Initialize the scheduler.

        Args:
            fetch_cycle: The Fetch Cycle to run
            foreground_timer: Repeating timer used while the app is visible
            background_scheduler: OS background task facility
            config: Polling settings with keys:
                - foreground_interval: Seconds between foreground polls (default 30)
                - background_interval: Minimum seconds between background callbacks (default 900)
                - task_name: Name of the background task
            dispatch: Runs the immediate fetch off the caller's thread
        """
        config = config or {}
        self.fetch_cycle = fetch_cycle
        self.foreground_timer = foreground_timer
        self.background_scheduler = background_scheduler
        self.foreground_interval = config.get("foreground_interval", 30)
        self.background_interval = config.get("background_interval", 900)
        self.task_name = config.get("task_name", "tripwatch-background-fetch")
        self._dispatch = dispatch

        self._state = SchedulerState.IDLE
        self._foregrounded = False
        self._state_lock = threading.RLock()

        # Held for the whole of a Fetch Cycle
        self._fetch_guard = threading.Lock()
        self._cycle_thread: int | None = None

        # Credentials used by the timer and background paths
        self._credential_lock = threading.Lock()
        self._credential: str | None = None
        self._device_id: str | None = None
        self._generation = 0

        self._listeners: list[Callable[[FetchResult], None]] = []
        self.last_result: FetchResult | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def polling_mode(self) -> PollingMode | None:
        """Active polling mode, or None when idle."""
        if self._state is SchedulerState.FOREGROUND_POLLING:
            return PollingMode.FOREGROUND
        if self._state is SchedulerState.BACKGROUND_REGISTERED:
            return PollingMode.BACKGROUND
        return None

    @property
    def is_foregrounded(self) -> bool:
        return self._foregrounded

    @property
    def is_fetching(self) -> bool:
        return self._fetch_guard.locked()

    def add_listener(self, listener: Callable[[FetchResult], None]) -> None:
        """Register a callback that receives every FetchResult."""
        self._listeners.append(listener)

    # Lifecycle events

    def credential_valid(self, credential: str, device_id: str) -> None:
        with self._credential_lock:
            self._credential = credential
            self._device_id = device_id
            self._generation += 1
        self.handle(LifecycleEvent.CREDENTIAL_VALID)

    def entered_foreground(self) -> None:
        self.handle(LifecycleEvent.ENTERED_FOREGROUND)

    def entered_background(self) -> None:
        self.handle(LifecycleEvent.ENTERED_BACKGROUND)

    def credential_invalid(self) -> None:
        self.handle(LifecycleEvent.CREDENTIAL_INVALID)

    def shutdown(self) -> None:
        """Stop all polling; the engine ends quiescent in IDLE."""
        logger.info("Shutting down mode scheduler")
        self.handle(LifecycleEvent.CREDENTIAL_INVALID)

    def handle(self, event: LifecycleEvent) -> SchedulerState:
        """
        Deliver a lifecycle event.

        Timer actions run under the state lock. Waiting for an in-flight cycle
        before dropping credentials, and the immediate fetch, happen after it
        is released so a cycle that itself triggers sign-out cannot deadlock.
        """
        with self._state_lock:
            if event is LifecycleEvent.ENTERED_FOREGROUND:
                self._foregrounded = True
            elif event is LifecycleEvent.ENTERED_BACKGROUND:
                self._foregrounded = False

            previous = self._state
            step = transition(previous, event, self._foregrounded)
            self._state = step.state
            if step.state is not previous:
                logger.info(f"Mode scheduler: {previous} -> {step.state} on {event}")

            with self._credential_lock:
                generation = self._generation

            deferred = []
            for action in step.actions:
                if action is Action.REGISTER_BACKGROUND:
                    self.background_scheduler.register(
                        self.task_name, self._on_background_callback, self.background_interval
                    )
                elif action is Action.UNREGISTER_BACKGROUND:
                    self.background_scheduler.unregister(self.task_name)
                elif action is Action.START_FOREGROUND_TIMER:
                    self.foreground_timer.start(self.foreground_interval, self._on_foreground_tick)
                elif action is Action.STOP_FOREGROUND_TIMER:
                    self.foreground_timer.stop()
                else:
                    deferred.append(action)

        for action in deferred:
            if action is Action.CLEAR_CREDENTIALS:
                self._clear_credentials(generation)
            elif action is Action.FETCH_NOW:
                self._dispatch(lambda: self.run_cycle(is_background_refresh=False))

        return step.state

    # Triggers

    def refresh(self) -> FetchResult | None:
        """Manual refresh requested by the user; shows the loading indicator."""
        return self.run_cycle(is_background_refresh=False)

    def _on_foreground_tick(self) -> None:
        logger.debug("Foreground poll")
        self.run_cycle(is_background_refresh=True)

    def _on_background_callback(self) -> None:
        logger.debug("Background callback")
        self.run_cycle(is_background_refresh=True)

    def run_cycle(self, is_background_refresh: bool = True) -> FetchResult | None:
        """
        Run one Fetch Cycle unless one is already in flight.

        Returns:
            The FetchResult, or None if the trigger was dropped (cycle already
            running, no credential) or the cycle failed unexpectedly.
        """
        if not self._fetch_guard.acquire(blocking=False):
            logger.debug("Fetch already in flight, skipping trigger")
            return None

        self._cycle_thread = threading.get_ident()
        try:
            with self._credential_lock:
                credential, device_id = self._credential, self._device_id
            if credential is None or device_id is None:
                logger.debug("No credential, skipping fetch")
                return None

            try:
                result = self.fetch_cycle.run(credential, device_id, is_background_refresh)
            except Exception as e:
                logger.error(f"Fetch cycle error: {e}", exc_info=True)
                return None
        finally:
            self._cycle_thread = None
            self._fetch_guard.release()

        self._publish(result)
        return result

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the fetch guard, waiting for any in-flight cycle; for cache readers."""
        with self._fetch_guard:
            yield

    def _publish(self, result: FetchResult) -> None:
        self.last_result = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception as e:
                logger.error(f"Result listener error: {e}", exc_info=True)

    def _clear_credentials(self, generation: int) -> None:
        """Drop the stored credential once any in-flight cycle has finished."""
        own_cycle = self._cycle_thread == threading.get_ident()
        if not own_cycle:
            self._fetch_guard.acquire()
        try:
            with self._credential_lock:
                if self._generation != generation:
                    # A newer sign-in arrived while waiting
                    return
                self._credential = None
                self._device_id = None
            logger.info("Background credentials discarded")
        finally:
            if not own_cycle:
                self._fetch_guard.release()
