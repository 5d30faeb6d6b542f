"""Element-action DSL.

Each operation locates a collection of elements through the registered
driver, wraps the call in a `Step` and submits exactly one task to the
recorder. The task runs the user-supplied coroutine function against the
located elements and reports progress through the event bus.

Example::

    elements = Elements(recorder, drivers, bus)

    async def click(el):
        await el.click()

    async def is_visible(el):
        return await el.is_visible()

    elements.element('.submit', click)
    elements.expect_all_elements('.item', is_visible)
    await recorder.settle()

Operations return the recorder future of their task, or `None` in dry-run
mode. Misconfiguration (no capable driver, a non-coroutine operation) is
raised immediately and never reaches the recorder.
"""

from inspect import iscoroutinefunction
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pytest_actor.errors import (
    ConfigurationError,
    ElementAssertionError,
    ElementOperationError,
    ErrorContext,
)
from pytest_actor.events import StepEvent
from pytest_actor.names import humanize_function
from pytest_actor.settings import ActorSettings
from pytest_actor.step import Status, Step, TimeoutOrder
from pytest_actor.values import mask

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Awaitable, Callable, Sequence

    from pytest_actor.drivers import DriverRegistry
    from pytest_actor.events import EventBus
    from pytest_actor.recorder import Recorder
    from pytest_actor.values import ElementOperation, RuntimeValue

logger = getLogger(__name__)

ELEMENT_ACTOR = 'EL'
LOCATE_METHOD = 'locate'


def render_locator(locator: 'RuntimeValue') -> str:
    """Render a locator for step text and errors, masking secrets."""
    return f'{mask(locator)}'


class Elements:
    """Element actions bound to one test run.

    Attributes:
        recorder: Queue serializing all submitted tasks.
        drivers: Registry resolving the element-locating driver.
        bus: Event bus receiving step lifecycle events.
        settings: Runtime settings (dry run, step timeout).
        suite: Optional suite object whose `timeout` applies to every step.
    """

    def __init__(self, recorder: 'Recorder', drivers: 'DriverRegistry',
                 bus: 'EventBus', settings: ActorSettings | None = None,
                 suite: Any = None) -> None:  # noqa: ANN401
        self.recorder = recorder
        self.drivers = drivers
        self.bus = bus
        self.settings = settings or ActorSettings()
        self.suite = suite

    def element(self, purpose: str, locator: 'RuntimeValue',
                fn: 'ElementOperation | None' = None) -> 'asyncio.Future[Any] | None':
        """Apply an operation to the first located element.

        May be called as `element(locator, fn)`; the purpose then defaults
        to `first element`.

        Args:
            purpose: Human-readable purpose of the call.
            locator: Locator passed to the driver.
            fn: Coroutine function receiving the element.

        Returns:
            Future resolved with the operation result.
        """
        if fn is None:
            purpose, locator, fn = 'first element', purpose, locator

        step = self.prepare_step(purpose, locator, fn)
        if step is None:
            return None

        async def action() -> 'RuntimeValue':
            found = await self._locate(step, locator)
            logger.debug('Found %d elements, using first element', len(found))

            return await self._call(step, locator, fn, self._first(step, locator, found))

        return self.execute_step(step, action)

    def each_element(self, purpose: str, locator: 'RuntimeValue',
                     fn: 'ElementOperation | None' = None) -> 'asyncio.Future[Any] | None':
        """Apply an operation to every located element.

        A failure on one element is logged and does not stop the iteration.
        After the full pass the first failure, by location order, is raised.

        May be called as `each_element(locator, fn)`; the purpose then
        defaults to `for each element`.

        Args:
            purpose: Human-readable purpose of the call.
            locator: Locator passed to the driver.
            fn: Coroutine function receiving the element and its 0-based index.

        Returns:
            Future resolved with `None`.
        """
        if fn is None:
            purpose, locator, fn = 'for each element', purpose, locator

        step = self.prepare_step(purpose, locator, fn)
        if step is None:
            return None

        async def action() -> None:
            found = await self._locate(step, locator)
            logger.debug('Found %d elements for each elements to iterate', len(found))

            errors: list[Exception] = []
            for index, item in enumerate(found):
                try:
                    await self._call(step, locator, fn, item, index, position=index + 1)
                except Exception as error:
                    logger.error('each_element: failed operation on element #%d %r: %s',
                                 index, item, error)
                    errors.append(error)

            if errors:
                raise errors[0]

        return self.execute_step(step, action)

    def expect_element(self, locator: 'RuntimeValue',
                       fn: 'ElementOperation') -> 'asyncio.Future[Any] | None':
        """Assert that a predicate holds for the first located element.

        Args:
            locator: Locator passed to the driver.
            fn: Coroutine function returning a truthy value on success.

        Returns:
            Future resolved with `None`.
        """
        step = self.prepare_step('expect element to be', locator, fn)
        if step is None:
            return None

        async def action() -> None:
            found = await self._locate(step, locator)
            logger.debug('Found %d elements, first will be used for assertion', len(found))

            first = self._first(step, locator, found)
            if not await self._call(step, locator, fn, first):
                raise self._fail(
                    step,
                    f'element ({render_locator(locator)})',
                    locator,
                    fn,
                    element=first,
                )

        return self.execute_step(step, action)

    def expect_any_element(self, locator: 'RuntimeValue',
                           fn: 'ElementOperation') -> 'asyncio.Future[Any] | None':
        """Assert that a predicate holds for at least one located element.

        Elements are checked in location order; checking stops at the
        first element satisfying the predicate.

        Args:
            locator: Locator passed to the driver.
            fn: Coroutine function returning a truthy value on success.

        Returns:
            Future resolved with `None`.
        """
        step = self.prepare_step('expect any element to be', locator, fn)
        if step is None:
            return None

        async def action() -> None:
            found = await self._locate(step, locator)
            logger.debug('Found %d elements, at least one should pass the assertion', len(found))

            for position, item in enumerate(found, start=1):
                if await self._call(step, locator, fn, item, position=position):
                    return

            raise self._fail(step, f'any element of ({render_locator(locator)})', locator, fn)

        return self.execute_step(step, action)

    def expect_all_elements(self, locator: 'RuntimeValue',
                            fn: 'ElementOperation') -> 'asyncio.Future[Any] | None':
        """Assert that a predicate holds for every located element.

        Checking stops at the first element failing the predicate; the
        error names its 1-based position.

        Args:
            locator: Locator passed to the driver.
            fn: Coroutine function returning a truthy value on success.

        Returns:
            Future resolved with `None`.
        """
        step = self.prepare_step('expect all elements', locator, fn)
        if step is None:
            return None

        async def action() -> None:
            found = await self._locate(step, locator)
            logger.debug('Found %d elements, all should pass the assertion', len(found))

            for position, item in enumerate(found, start=1):
                logger.debug('checking element #%d: %r', position, item)
                if not await self._call(step, locator, fn, item, position=position):
                    raise self._fail(
                        step,
                        f'element #{position} of ({render_locator(locator)})',
                        locator,
                        fn,
                        position=position,
                        element=item,
                    )

        return self.execute_step(step, action)

    def prepare_step(self, purpose: str, locator: 'RuntimeValue',
                     fn: 'ElementOperation') -> Step | None:
        """Validate the call and build its step.

        Args:
            purpose: Human-readable purpose of the call.
            locator: Locator passed to the driver.
            fn: User-supplied operation.

        Returns:
            A pending step, or `None` in dry-run mode.

        Raises:
            ConfigurationError: If no driver can locate elements or the
                operation is not a coroutine function.
        """
        if self.settings.dry_run:
            return None

        driver = self.drivers.resolve_locator()

        if not iscoroutinefunction(fn):
            raise ConfigurationError('Async function should be passed into each element')

        suffix = 'to be' if purpose.startswith('expect') else 'to'

        step = Step(f'{purpose} within "{render_locator(locator)}" {suffix}', helper=driver)
        step.set_actor(ELEMENT_ACTOR)
        step.set_arguments([humanize_function(fn)])
        step.helper_method = LOCATE_METHOD

        if self.settings.step_timeout is not None:
            step.set_timeout(self.settings.step_timeout, TimeoutOrder.STEP_HARD)

        if (suite_timeout := getattr(self.suite, 'timeout', None)) is not None:
            step.set_timeout(suite_timeout, TimeoutOrder.SUITE)

        return step

    def execute_step(self, step: Step,
                     action: 'Callable[[], Awaitable[RuntimeValue]]') -> 'asyncio.Future[Any]':
        """Submit a step as one recorder task.

        The task emits `step.started`, runs the action and then emits
        `step.after`, `step.passed` and `step.finished` on success, or
        `step.failed` and `step.finished` on failure. Failures are recorded
        on the recorder and re-raised into the task's future.

        Args:
            step: Step describing the call.
            action: Coroutine function performing the element work.

        Returns:
            Future of the submitted task.
        """
        async def task() -> 'RuntimeValue':
            step.set_status(Status.RUNNING)
            self.bus.emit(StepEvent.STARTED, step)

            try:
                result = await action()

            except Exception as error:
                self.recorder.throw(error)
                step.set_status(Status.FAILED)
                self.bus.emit(StepEvent.FAILED, step, error)
                self.bus.emit(StepEvent.FINISHED, step)
                raise

            step.set_status(Status.PASSED)
            self.bus.emit(StepEvent.AFTER, step)
            self.bus.emit(StepEvent.PASSED, step)
            self.bus.emit(StepEvent.FINISHED, step)

            return result

        return self.recorder.add(f'{step}', task)

    @staticmethod
    async def _locate(step: Step, locator: 'RuntimeValue') -> 'Sequence[RuntimeValue]':
        return list(await step.helper.locate(locator))

    @staticmethod
    def _first(step: Step, locator: 'RuntimeValue',
               found: 'Sequence[RuntimeValue]') -> 'RuntimeValue':
        if not found:
            raise ElementOperationError('No elements found', context=ErrorContext(
                step=f'{step}',
                locator=render_locator(locator),
            ))

        return found[0]

    @staticmethod
    async def _call(step: Step, locator: 'RuntimeValue', fn: 'ElementOperation',
                    *args: 'RuntimeValue', position: int = 1) -> 'RuntimeValue':
        """Run the user operation, wrapping unexpected errors.

        Assertion errors and element operation errors pass through
        unchanged; anything else is wrapped into `ElementOperationError`.
        """
        try:
            return await fn(*args)

        except (AssertionError, ElementOperationError):
            raise

        except Exception as base:
            raise ElementOperationError.from_exception(
                base,
                step=f'{step}',
                locator=render_locator(locator),
                element_num=position,
                element=args[0] if args else None,
            ) from base

    @staticmethod
    def _fail(step: Step, subject: str, locator: 'RuntimeValue',
              fn: 'ElementOperation', position: int | None = None,
              element: 'RuntimeValue' = None) -> ElementAssertionError:
        return ElementAssertionError(
            subject,
            humanize_function(fn),
            locator=render_locator(locator),
            position=position,
            context=ErrorContext(
                step=f'{step}',
                locator=render_locator(locator),
                element_num=position,
                element=element,
            ),
        )
