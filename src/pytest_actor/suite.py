"""Fluent configuration of a test suite.

`SuiteConfig` writes retry count, timeout, tags and per-driver settings
onto a suite object. The execution core reads only the resulting
`timeout` attribute, which element steps apply with `TimeoutOrder.SUITE`.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing import Self

TAG_PREFIX = '@'


class SuiteConfig:
    """Configuration writer for a suite.

    Every method returns the configuration itself so calls can be chained::

        SuiteConfig(suite).retry(2).timeout(5000).tag('smoke')

    Attributes:
        suite: Object receiving `retries`, `timeout`, `tags`, `title`
            and `config` attributes.
    """

    def __init__(self, suite: Any) -> None:  # noqa: ANN401
        self.suite = suite

    def retry(self, retries: int) -> 'Self':
        """Retry tests of the suite the given number of times."""
        self.suite.retries = retries
        return self

    def timeout(self, timeout: int) -> 'Self':
        """Set the suite timeout in milliseconds."""
        self.suite.timeout = timeout
        return self

    def config(self, driver: str | int | Any, obj: Any = None) -> 'Self':  # noqa: ANN401
        """Configure a driver for this suite.

        The driver name may be omitted; values then apply to the first
        driver (key `0`). A callable value is called with the suite and
        its result is stored.

        Args:
            driver: Driver name, or the configuration when `obj` is omitted.
            obj: Configuration mapping or a callable producing it.
        """
        if obj is None:
            driver, obj = 0, driver

        if callable(obj):
            obj = obj(self.suite)

        if getattr(self.suite, 'config', None) is None:
            self.suite.config = {}

        self.suite.config[driver] = obj
        return self

    def tag(self, name: str) -> 'Self':
        """Append a tag to the suite tags and title."""
        if not name.startswith(TAG_PREFIX):
            name = f'{TAG_PREFIX}{name}'

        if getattr(self.suite, 'tags', None) is None:
            self.suite.tags = []

        self.suite.tags.append(name)
        self.suite.title = f'{getattr(self.suite, "title", "").strip()} {name}'.strip()
        return self
