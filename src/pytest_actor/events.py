"""Step lifecycle events.

The event bus is the only channel through which the execution core
reports progress. Reporters and plugins subscribe to the five step
events and are called synchronously, in registration order.

Ordering contract for a single step:
    - success: `step.started`, `step.after`, `step.passed`, `step.finished`;
    - failure: `step.started`, `step.failed`, `step.finished`.
"""

from collections import defaultdict
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pytest_actor.step import Step


class StepEvent(StrEnum):
    """Closed set of step lifecycle events."""

    STARTED = 'step.started'
    PASSED = 'step.passed'
    FAILED = 'step.failed'
    FINISHED = 'step.finished'
    AFTER = 'step.after'


class StepListener(Protocol):
    """Listener signature for step events."""

    def __call__(self, step: 'Step', error: BaseException | None = None) -> None:
        ...  # pragma: no cover


class EventBus:
    """Synchronous publish/subscribe channel for step events.

    Listener exceptions are not caught: they propagate to the code
    that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[StepEvent, list[StepListener]] = defaultdict(list)

    def on(self, event: StepEvent | str, listener: StepListener) -> StepListener:
        """Subscribe a listener to an event.

        Args:
            event: Event or its wire name (for example `step.started`).
            listener: Callable receiving the step and an optional error.

        Returns:
            The registered listener.

        Raises:
            ValueError: If the event name is unknown.
        """
        self._listeners[StepEvent(event)].append(listener)

        return listener

    def off(self, event: StepEvent | str, listener: StepListener) -> None:
        """Unsubscribe a listener; unknown listeners are ignored."""
        listeners = self._listeners[StepEvent(event)]
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: StepEvent | str) -> tuple[StepListener, ...]:
        """Return listeners registered for an event in order."""
        return tuple(self._listeners[StepEvent(event)])

    def clear(self) -> None:
        """Remove all listeners."""
        self._listeners.clear()

    def emit(self, event: StepEvent, step: 'Step',
             error: BaseException | None = None) -> None:
        """Deliver an event to every listener.

        `step.failed` listeners receive the error; every other event is
        delivered with the step only.

        Args:
            event: Event to emit.
            step: Step the event refers to.
            error: Failure for `step.failed`.
        """
        for listener in tuple(self._listeners[event]):
            if event is StepEvent.FAILED:
                listener(step, error)
            else:
                listener(step)
