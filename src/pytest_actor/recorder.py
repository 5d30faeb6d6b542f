"""Sequential task queue for DSL actions.

The recorder turns any number of independently awaited DSL calls into one
linear, replayable stream. Submitted tasks run one at a time, strictly in
submission order, on a single asyncio worker. A task may await other
asynchronous work, but the worker does not pull the next task until the
current one has settled.

A failing task does not stop the queue. Its error is recorded as the
queue-wide failure and set on the task's own future; later tasks still
run. `Recorder.settle` waits for the queue to drain and raises the
recorded failure exactly once.

Typical usage::

    async with Recorder() as recorder:
        recorder.add('open page', open_page)
        recorder.add('click button', click_button)
        await recorder.settle()

Tasks may submit more tasks; those run after the current one. A task must
not await the future of a task it submitted itself, nor call `settle`,
since both wait for the task to finish first.
"""

import asyncio
from contextlib import suppress
from inspect import iscoroutinefunction
from itertools import count
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pytest_actor.errors import ConfigurationError, StepTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType
    from typing import Self

logger = getLogger(__name__)

#: Asynchronous unit of work accepted by the recorder.
type TaskAction = Callable[[], Awaitable[Any]]


def _retrieve(future: 'asyncio.Future[Any]') -> None:
    if not future.cancelled():
        future.exception()


class Task:
    """Unit of work submitted to the recorder."""

    __slots__ = ('action', 'future', 'name', 'number')

    def __init__(self, name: str, action: TaskAction, number: int,
                 future: 'asyncio.Future[Any]') -> None:
        self.name = name
        self.action = action
        self.number = number
        self.future = future

    def __repr__(self) -> str:
        return f'<Task #{self.number} {self.name!r}>'


class Recorder:
    """Single-flight queue running asynchronous tasks in submission order.

    One recorder coordinates all DSL calls of a test run. It is created at
    the start of the run and injected into every component that submits
    work.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Task] | None = None
        self._worker: asyncio.Task[None] | None = None

        self._tasks: dict[int, Task] = {}
        self._counter = count(1)

        self._current: Task | None = None
        self._inflight: asyncio.Future[Any] | None = None
        self._abort_error: BaseException | None = None

        self._failure: BaseException | None = None

    @property
    def running(self) -> bool:
        """Whether the worker is alive."""
        return self._worker is not None and not self._worker.done()

    @property
    def failure(self) -> BaseException | None:
        """Recorded queue-wide failure, if any."""
        return self._failure

    @property
    def current(self) -> str | None:
        """Name of the task being executed."""
        return self._current.name if self._current else None

    def scheduled(self) -> list[str]:
        """Names of tasks waiting to run, in execution order."""
        return [
            task.name
            for task in self._tasks.values()
            if task is not self._current
        ]

    def start(self) -> None:
        """Clear the recorded failure and start the worker.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        self._failure = None
        self._ensure_worker()

    def reset(self) -> None:
        """Clear the recorded failure without touching queued tasks."""
        self._failure = None

    async def stop(self) -> None:
        """Stop the worker and cancel the futures of unfinished tasks."""
        worker, self._worker = self._worker, None

        if worker is not None and not worker.done():
            worker.cancel()
            with suppress(asyncio.CancelledError):
                await worker

        for task in self._tasks.values():
            if not task.future.done():
                task.future.cancel()

        self._tasks.clear()
        self._queue = None

    def add(self, name: str, action: TaskAction) -> 'asyncio.Future[Any]':
        """Submit a task.

        Args:
            name: Diagnostic label.
            action: Coroutine function taking no arguments.

        Returns:
            Future resolved with the action result, or failed with its
            error, once the task and all tasks before it have settled.

        Raises:
            ConfigurationError: If the action is not a coroutine function.
            RuntimeError: If called without a running event loop.
        """
        if not iscoroutinefunction(action):
            raise ConfigurationError(
                f'Task {name!r} must be a coroutine function, got {action!r}',
            )

        queue = self._ensure_worker()

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        task = Task(name, action, next(self._counter), future)
        future.add_done_callback(lambda _: self._on_future_done(task))

        self._tasks[task.number] = task
        queue.put_nowait(task)

        logger.debug('Scheduled task #%d %r', task.number, task.name)

        return future

    def throw(self, error: BaseException) -> None:
        """Record a queue-wide failure.

        May be called from inside a running task. The first failure is kept
        until `settle` consumes it; later ones are only logged.

        Args:
            error: Failure to record.
        """
        if self._failure is None:
            self._failure = error
            logger.error('Recorder failure: %s', error)
        elif self._failure is not error:
            logger.error('Recorder failure (already failed): %s', error)

    def abort(self, error: BaseException | None = None) -> bool:
        """Cancel the in-flight task and treat it as failed.

        Meant for an external timing supervisor. The task fails even if
        its action suppresses the cancellation. The queue continues with
        the next task.

        Args:
            error: Failure to record, `StepTimeoutError` by default.

        Returns:
            True if a task was in flight.
        """
        if self._inflight is None or self._inflight.done() or self._current is None:
            return False

        if error is None:
            error = StepTimeoutError(f'Task {self._current.name!r} was aborted')

        self._abort_error = error
        self._inflight.cancel()

        return True

    async def settle(self) -> None:
        """Wait until the queue is empty and idle.

        Raises:
            BaseException: The recorded failure, once; it is cleared
                before raising.
        """
        if self._queue is not None and self.running:
            await self._queue.join()

        if (failure := self._failure) is not None:
            self._failure = None
            raise failure

    def _ensure_worker(self) -> 'asyncio.Queue[Task]':
        loop = asyncio.get_running_loop()

        if self._queue is None:
            self._queue = asyncio.Queue()

        if not self.running:
            self._worker = loop.create_task(self._work(), name='recorder')

        return self._queue

    def _on_future_done(self, task: Task) -> None:
        if task.future.cancelled() and task is self._current:
            self.abort(StepTimeoutError(f'Task {task.name!r} was cancelled'))

    async def _work(self) -> None:
        queue = self._queue
        if queue is None:
            return

        while True:
            task = await queue.get()
            try:
                await self._run(task)
            finally:
                self._tasks.pop(task.number, None)
                queue.task_done()

    async def _run(self, task: Task) -> None:
        self._current = task
        self._abort_error = None
        self._inflight = asyncio.ensure_future(task.action())

        logger.debug('Running task #%d %r', task.number, task.name)

        try:
            result = await self._inflight

        except asyncio.CancelledError:
            if self._abort_error is None:
                task.future.cancel()
                raise
            self._fail(task, self._abort_error)

        except Exception as error:
            self._fail(task, error)

        except BaseException as error:
            self._fail(task, error)
            if isinstance(error, (KeyboardInterrupt, SystemExit)):
                raise

        else:
            if self._abort_error is not None:
                self._fail(task, self._abort_error)
                return

            if not task.future.done():
                task.future.set_result(result)
            logger.debug('Finished task #%d %r', task.number, task.name)

        finally:
            self._current = None
            self._inflight = None
            self._abort_error = None

    def _fail(self, task: Task, error: BaseException) -> None:
        logger.debug('Failed task #%d %r', task.number, task.name)

        self.throw(error)
        if not task.future.done():
            task.future.set_exception(error)
            # Reported by `settle`; awaiting the handle is optional.
            task.future.add_done_callback(_retrieve)

    async def __aenter__(self) -> 'Self':
        self.start()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None,
                        exc_value: BaseException | None,
                        traceback: 'TracebackType | None') -> None:
        await self.stop()

    def __str__(self) -> str:
        state = 'running' if self.running else 'stopped'
        return f'Recorder({state}, {len(self._tasks)} unfinished)'
