"""Step entity describing one DSL action.

Every call made through the element-action DSL is wrapped in a `Step`.
A step carries its actor, action name, arguments, timeout policy and
status, and knows how to render itself for logs and reports.

Steps may be nested under meta-steps for hierarchical reporting. The
child holds only a weak reference to its meta-step: status changes bubble
up the chain while the parent is alive and stop once it is gone.
"""

import json
from enum import IntEnum, StrEnum
from os import getcwd, sep
from pathlib import Path
from traceback import extract_stack
from typing import TYPE_CHECKING, Any
from weakref import ref

from click import style

from pytest_actor.names import humanize_function, humanize_string, is_bdd_actor, ucfirst
from pytest_actor.values import MAPPINGS, SECRET_MASK, SEQUENCES, is_secret, mask

if TYPE_CHECKING:
    from collections.abc import Iterable
    from traceback import FrameSummary
    from weakref import ReferenceType

PACKAGE_DIR = f'{Path(__file__).parent}{sep}'

CONTAINERS = (*SEQUENCES, *MAPPINGS)


class Status(StrEnum):
    """Lifecycle status of a step."""

    PENDING = 'pending'
    RUNNING = 'running'
    PASSED = 'passed'
    FAILED = 'failed'


class TimeoutOrder(IntEnum):
    """Priorities of timeout sources.

    Timeouts set with a lower order override those set with a higher
    order. Negative orders only lower the effective value.
    """

    GLOBAL = -5
    STEP_HARD = 0
    CODE_LIMIT = 5
    SUITE = 10
    STEP_SOFT = 15


def get_current_timeout(timeouts: dict[int, int | None]) -> int | None:
    """Resolve the effective timeout from prioritized entries.

    Entries are visited from the highest order to the lowest. A
    non-negative order always overrides the value resolved so far. A
    negative order overrides only when nothing is resolved yet, when
    the resolved value is `0` (no timeout), or when its own positive
    value is smaller.

    Args:
        timeouts: Mapping of order to timeout in milliseconds.

    Returns:
        Effective timeout in milliseconds, or `None` if nothing is set.
    """
    total: int | None = None

    for order in sorted(timeouts, reverse=True):
        timeout = timeouts[order]
        if timeout is None:
            continue

        if (
            order >= 0
            or total is None
            or (timeout > 0 and (total == 0 or timeout < total))
        ):
            total = timeout

    return total


class Step:
    """Renderable record of one DSL action.

    Attributes:
        name: Action name.
        actor: Prefix label (the DSL subject), `I` by default.
        helper: Driver object backing the step, if any.
        helper_method: Driver capability used by the step.
        args: Ordered step arguments.
        status: Current lifecycle status.
        timeouts: Mapping of priority order to timeout in milliseconds.
        stack: Call-site trace captured at construction.
    """

    def __init__(self, name: str, *, actor: str = 'I',
                 helper: Any = None) -> None:  # noqa: ANN401
        """Initialize a pending step and capture the call site.

        Args:
            name: Action name.
            actor: Prefix label.
            helper: Driver object backing the step.
        """
        self.name = name
        self.actor = actor
        self.helper = helper
        self.helper_method = name

        self.args: list[Any] = []
        self.status = Status.PENDING
        self.timeouts: dict[int, int | None] = {}

        self.prefix = ''
        self.suffix = ''
        self.comment = ''

        self._meta_step: ReferenceType[Step] | None = None

        self.stack: list[FrameSummary] = []
        self.set_trace()

    def set_trace(self) -> None:
        """Capture the current call stack."""
        self.stack = extract_stack()[:-1]

    def set_arguments(self, args: 'Iterable[Any]') -> None:
        """Replace step arguments."""
        self.args = list(args)

    def set_actor(self, actor: str | None) -> None:
        """Replace the actor label."""
        self.actor = actor or ''

    @property
    def meta_step(self) -> 'Step | None':
        """Owning meta-step, if set and still alive."""
        if self._meta_step is None:
            return None

        return self._meta_step()

    def set_meta_step(self, meta_step: 'Step | None') -> None:
        """Attach the step to a meta-step without owning it."""
        self._meta_step = ref(meta_step) if meta_step is not None else None

    @property
    def is_meta_step(self) -> bool:
        return False

    def set_timeout(self, timeout: int | None, order: int) -> None:
        """Set a timeout source.

        Args:
            timeout: Timeout in milliseconds, or `0` for no timeout.
            order: Priority of the source. Lower orders override higher
                ones; below zero the value only overrides if it is lower.
        """
        self.timeouts[order] = timeout

    @property
    def timeout(self) -> int | None:
        """Effective timeout in milliseconds."""
        return get_current_timeout(self.timeouts)

    def set_status(self, status: Status | str) -> None:
        """Set status and propagate it up the meta-step chain."""
        self.status = Status(status)

        if meta_step := self.meta_step:
            meta_step.set_status(status)

    def has_bdd_ancestor(self) -> bool:
        """Check whether any meta-step ancestor is a BDD step."""
        current = self.meta_step

        while current is not None:
            if is_bdd_actor(current.actor):
                return True
            current = current.meta_step

        return False

    def humanize(self) -> str:
        return humanize_string(self.name)

    def humanize_args(self) -> str:
        """Render arguments as a comma separated list.

        Secret values, including those nested in containers, are
        rendered as the mask token.
        """
        return ', '.join(
            self._humanize_arg(arg)
            for arg in self.args
        )

    @staticmethod
    def _humanize_arg(arg: Any) -> str:  # noqa: ANN401, PLR0911
        if is_secret(arg):
            return SECRET_MASK

        if not arg and not isinstance(arg, CONTAINERS):
            return ''

        if isinstance(arg, str):
            return f'"{arg}"'

        if isinstance(arg, CONTAINERS):
            try:
                return json.dumps(mask(arg), ensure_ascii=False)
            except (TypeError, ValueError):
                return f'{mask(arg)}'

        if callable(arg):
            return humanize_function(arg)

        return f'{arg}'

    def line(self) -> str:
        """Return the call site outside of this package.

        Returns:
            `path:line` relative to the working directory, or an empty
            string if the trace holds no external frame.
        """
        cwd = f'{getcwd()}{sep}'

        for frame in reversed(self.stack):
            if frame.filename.startswith(PACKAGE_DIR):
                continue
            filename = frame.filename
            if filename.startswith(cwd):
                filename = f'.{sep}{filename[len(cwd):]}'
            return f'{filename}:{frame.lineno}'

        return ''

    def __str__(self) -> str:
        return ucfirst(
            f'{self.prefix}{self.actor} {self.humanize()} '
            f'{self.humanize_args()}{self.suffix}',
        ).strip()

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.to_code()} [{self.status}]>'

    def to_cli_styled(self) -> str:
        """Render the step with terminal styling."""
        return (
            f'{self.prefix}{self.actor} {style(self.humanize(), italic=True)} '
            f'{style(self.humanize_args(), fg="yellow")}{self.suffix}'
        )

    def to_code(self) -> str:
        """Render the step as a method call."""
        return f'{self.prefix}{self.actor}.{self.name}({self.humanize_args()}){self.suffix}'


class MetaStep(Step):
    """Step grouping other steps, such as a BDD `Given` or a page object call."""

    @property
    def is_meta_step(self) -> bool:
        return True
