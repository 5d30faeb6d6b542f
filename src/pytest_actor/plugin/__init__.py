"""Pytest plugin wiring the step runtime into a test run.

This module integrates `pytest-actor` with pytest by:
- registering custom command-line options;
- resolving runtime settings and loading drivers once per session;
- providing fixtures for the recorder, event bus, drivers and element DSL.
"""

from typing import TYPE_CHECKING

from pytest_actor.drivers import DriverRegistry
from pytest_actor.settings import ActorSettings

from .fixtures import actor_drivers, actor_settings, elements, event_bus, recorder

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser

__all__ = (
    'actor_drivers',
    'actor_settings',
    'elements',
    'event_bus',
    'pytest_addoption',
    'pytest_configure',
    'recorder',
)


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for pytest-actor.

    Args:
        parser: Pytest argument parser.
    """
    parser.addoption(
        '--actor-dry-run',
        action='store_true',
        dest='actor_dry_run',
        default=False,
        help=(
            'Skip element actions. '
            'Calls return immediately and nothing is executed by drivers.'
        ),
    )
    parser.addoption(
        '--actor-strict',
        action='store_true',
        dest='actor_strict',
        default=False,
        help=(
            'Enable strict driver loading. '
            'Driver loading errors and name shadowing fail the run.'
        ),
    )


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-actor integration.

    Resolves `ActorSettings` from the environment, applies command-line
    overrides and loads drivers from entry points. Results are attached
    to the pytest configuration as `config.actor_settings` and
    `config.actor_drivers`.

    Args:
        config: Pytest configuration object.
    """
    overrides = {}
    if config.getoption('--actor-dry-run', default=False):
        overrides['dry_run'] = True
    if config.getoption('--actor-strict', default=False):
        overrides['strict'] = True

    settings = ActorSettings(**overrides)

    drivers = DriverRegistry(strict=settings.strict)
    drivers.load_drivers()

    config.actor_settings = settings  # type: ignore[attr-defined]
    config.actor_drivers = drivers  # type: ignore[attr-defined]
