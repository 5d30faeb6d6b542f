"""Driver registry and the element-locating capability.

Drivers are external objects supplying concrete automation operations
(a browser session, a device connection, ...). The execution core only
cares whether a driver can locate elements, which is expressed by the
`ElementLocator` protocol.

Drivers are registered explicitly or discovered from the `actor_drivers`
entry point group. Registration issues do not interrupt loading unless
strict mode is enabled.
"""

from logging import getLogger
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from warnings import warn

from pytest_actor.errors import AmbiguousDriverWarning, ConfigurationError, DriverError, DriverWarning

if TYPE_CHECKING:
    from collections.abc import Sequence
    from importlib.metadata import EntryPoint

logger = getLogger(__name__)

#: Entry point group scanned by `DriverRegistry.load_drivers`.
ENTRYPOINT_GROUP = 'actor_drivers'


@runtime_checkable
class ElementLocator(Protocol):
    """Capability of drivers able to find elements.

    `locate` receives an opaque locator and returns the matching element
    handles in document (location) order.
    """

    async def locate(self, locator: Any) -> 'Sequence[Any]':  # noqa: ANN401
        ...  # pragma: no cover


class DriverRegistry:
    """Ordered collection of enabled drivers.

    Attributes:
        strict_mode: If True, any registration issue raises an error.
            If False, issues are emitted as warnings and loading continues.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self.strict_mode = strict
        self._drivers: dict[str, Any] = {}

    def register(self, name: str, driver: Any,  # noqa: ANN401
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Register a driver under a name.

        Re-registering a name replaces the driver but keeps its original
        position in the registration order.

        Args:
            name: Driver name.
            driver: Driver object.
            entrypoint: Entry point the driver was loaded from, if any.

        Raises:
            DriverError: If the name is already taken on strict mode.
        """
        if name in self._drivers and (error := self.emit_driver_issue(
            f'Driver {name!r} is shadowing an existing',
            entrypoint,
        )):
            raise error

        self._drivers[name] = driver

    def get(self, name: str) -> Any:  # noqa: ANN401
        """Return a registered driver.

        Raises:
            KeyError: If no driver is registered under the name.
        """
        return self._drivers[name]

    def drivers(self) -> dict[str, Any]:
        """Return registered drivers in registration order."""
        return dict(self._drivers)

    def locators(self) -> list[ElementLocator]:
        """Return drivers able to locate elements, in registration order."""
        return [
            driver
            for driver in self._drivers.values()
            if isinstance(driver, ElementLocator)
        ]

    def resolve_locator(self) -> ElementLocator:
        """Resolve the driver used by element actions.

        The first registered capable driver wins. When several drivers are
        capable an `AmbiguousDriverWarning` is emitted.

        Returns:
            Driver implementing `ElementLocator`.

        Raises:
            ConfigurationError: If no registered driver can locate elements.
        """
        candidates = self.locators()
        if not candidates:
            raise ConfigurationError(
                'No driver enabled with a `locate` method which returns a list of elements',
            )

        driver, *others = candidates
        if others:
            warn(
                f'Several drivers can locate elements, using {type(driver).__name__!r} '
                f'and ignoring {", ".join(repr(type(item).__name__) for item in others)}',
                category=AmbiguousDriverWarning,
                stacklevel=3,
            )

        return driver

    def clear(self) -> None:
        """Remove all registered drivers."""
        self._drivers = {}

    def emit_driver_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a driver warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point the driver was loaded from, if applicable.

        Returns:
            DriverError on strict mode, otherwise `None`
                with producing a DriverWarning.
        """
        if self.strict_mode:
            return DriverError(message, entrypoint=entrypoint)

        warn(message, category=DriverWarning, stacklevel=3)

        return None

    def _load_driver(self, entrypoint: 'EntryPoint') -> None:
        """Load and register a single driver entry point.

        The entry point may reference a driver object or a driver class,
        which is instantiated without arguments.

        Args:
            entrypoint: Entry point describing the driver to load.

        Raises:
            DriverError: If any loading issues occur on strict mode.
        """
        try:
            driver = entrypoint.load()
            if isinstance(driver, type):
                driver = driver()

        except Exception as base:
            if error := self.emit_driver_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return

        logger.debug('Loaded driver %r from %s', entrypoint.name, entrypoint.value)

        self.register(entrypoint.name, driver, entrypoint)

    def load_drivers(self) -> None:
        """Load drivers via entry points and register them.

        Discovers drivers from the `actor_drivers` entry point group.

        Raises:
            DriverError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=ENTRYPOINT_GROUP):
            self._load_driver(entrypoint)
