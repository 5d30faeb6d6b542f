"""Fixtures exposing the step runtime to tests.

Each test gets its own recorder, event bus, driver registry and element
DSL. The driver registry is a copy of the session registry, so drivers
registered by one test do not leak into another.
"""

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from pytest_actor.drivers import DriverRegistry
from pytest_actor.elements import Elements
from pytest_actor.events import EventBus
from pytest_actor.recorder import Recorder
from pytest_actor.settings import ActorSettings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@pytest.fixture
def actor_settings(request: pytest.FixtureRequest) -> ActorSettings:
    """Provide the settings resolved for the session."""
    return getattr(request.config, 'actor_settings', None) or ActorSettings()


@pytest.fixture
def actor_drivers(request: pytest.FixtureRequest,
                  actor_settings: ActorSettings) -> DriverRegistry:
    """Provide a per-test copy of the session driver registry."""
    registry = DriverRegistry(strict=actor_settings.strict)

    session: DriverRegistry | None = getattr(request.config, 'actor_drivers', None)
    if session is not None:
        for name, driver in session.drivers().items():
            registry.register(name, driver)

    return registry


@pytest.fixture
def event_bus() -> EventBus:
    """Provide an event bus without listeners."""
    return EventBus()


@pytest_asyncio.fixture
async def recorder() -> 'AsyncIterator[Recorder]':
    """Provide a started recorder, stopped after the test."""
    async with Recorder() as instance:
        yield instance


@pytest.fixture
def elements(recorder: Recorder, actor_drivers: DriverRegistry,
             event_bus: EventBus, actor_settings: ActorSettings) -> Elements:
    """Provide the element DSL bound to the test fixtures."""
    return Elements(recorder, actor_drivers, event_bus, actor_settings)
