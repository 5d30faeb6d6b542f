"""Tests configurations and fixtures."""

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from pytest_actor.drivers import DriverRegistry
from pytest_actor.elements import Elements
from pytest_actor.events import EventBus, StepEvent
from pytest_actor.recorder import Recorder

from .examples.drivers import FakeElement, MemoryDriver

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from pytest_mock import MockerFixture, MockType

    from pytest_actor.step import Step


@pytest.fixture
def items() -> list[FakeElement]:
    """Provide five visible elements named `item-1` ... `item-5`."""
    return [FakeElement(f'item-{num}') for num in range(1, 6)]


@pytest.fixture
def driver(items: list[FakeElement]) -> MemoryDriver:
    """Provide an in-memory driver.

    Locators:
        `.item`: five elements;
        `.button`: a single element;
        `.missing`: nothing.
    """
    return MemoryDriver({
        '.item': items,
        '.button': [FakeElement('button')],
    })


@pytest.fixture
def registry(driver: MemoryDriver) -> DriverRegistry:
    """Provide a registry with the in-memory driver."""
    drivers = DriverRegistry()
    drivers.register('memory', driver)

    return drivers


@pytest.fixture
def bus() -> EventBus:
    """Provide an isolated event bus."""
    return EventBus()


@pytest.fixture
def events(bus: EventBus) -> list[tuple[str, str]]:
    """Record every emitted event as `(event, step text)`."""
    recorded: list[tuple[str, str]] = []

    def subscribe(event: StepEvent) -> None:
        def listener(step: 'Step', error: BaseException | None = None) -> None:  # noqa: ARG001
            recorded.append((event.value, f'{step}'))
        bus.on(event, listener)

    for event in StepEvent:
        subscribe(event)

    return recorded


@pytest_asyncio.fixture
async def recorder() -> 'AsyncIterator[Recorder]':
    """Provide a started recorder stopped after the test."""
    async with Recorder() as instance:
        yield instance


@pytest.fixture
def elements(recorder: Recorder, registry: DriverRegistry, bus: EventBus) -> Elements:
    """Provide the element DSL over the in-memory driver."""
    return Elements(recorder, registry, bus)


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate discovery
    of drivers in the `actor_drivers` entry point group.
    """
    def patch(**drivers: object) -> 'MockType':
        """Patch `entry_points` with a controlled driver configuration.

        Args:
            drivers: Objects returned by `EntryPoint.load()` by entry point
                name. An exception instance is raised on load instead.

        Returns:
            A mock patch object replacing `importlib.metadata.entry_points`.
        """
        entrypoints = []
        for name, driver in drivers.items():
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'actor_drivers'
            ep.name = name
            ep.value = f'tests.drivers:{name}'
            if isinstance(driver, Exception):
                ep.load.side_effect = driver
            else:
                ep.load.return_value = driver
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
