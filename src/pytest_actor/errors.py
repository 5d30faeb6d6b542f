"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report driver configuration issues, failed element expectations, and
runtime failures of queued element operations in a structured way.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump

from pytest_actor.values import MAPPINGS, SCALARS, SEQUENCES, SECRET_MASK, is_secret

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_INDENT = 4


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Rendered (masked) text of the step being executed.
    step: str | None
    #: Locator used to find elements.
    locator: str | None

    #: 1-based position of the element the error refers to.
    element_num: int | None
    #: Runtime element associated with the error.
    element: Any

    #: Underlying exception that triggered formatting.
    error: Exception | None


class ErrorFormatter:
    """Utility class for formatting step-related errors.

    This formatter produces human-readable error messages with optional
    step location and a YAML snippet describing the failing element.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        location = cls.get_location_string(context, indent=FORMAT_INDENT)
        snippet = cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)
        if not location and not snippet:
            return message

        return f'{message}{linesep}{location}{snippet}'.rstrip()

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format step and element location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string, or an empty string.
        """
        indent = cls._ensure_indent(indent)
        message = ''

        if step := context.get('step'):
            message += f'{indent}in step "{step}"{linesep}'

        if (locator := context.get('locator')) is not None:
            message += f'{indent}within ({locator})'
            if (element_num := context.get('element_num')) is not None:
                message += f', element #{element_num}'
            message += linesep

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the failing element.

        Args:
            context: Error context containing the element.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no element is available.
        """
        indent = cls._ensure_indent(indent)

        if (element := context.get('element')) is None:
            return ''

        snippet = f'{indent}{SNIPPET_ELLIPSIS}'
        snippet += cls._make_yaml({'element': element}, indent)
        snippet += linesep

        return snippet

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Secrets are replaced with the mask token; non-scalar and
        non-container objects are replaced with a placeholder to prevent
        leaking opaque driver data.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if is_secret(value):
            return SECRET_MASK

        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                str(key): cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a sanitized value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class DriverWarning(UserWarning):
    """Warning emitted for non-fatal driver-related issues.

    This warning is used when a driver cannot be loaded or registered,
    but the issue does not prevent further execution (for example,
    when running in non-strict mode).
    """


class AmbiguousDriverWarning(DriverWarning):
    """Warning emitted when several drivers can locate elements.

    The first registered driver is used; the others are ignored for
    element actions.
    """


class ActorError(Exception, ErrorFormatter):
    """Base exception for all pytest-actor errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional runtime values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String represenatation."""
        return self.format(self.message, self.context)


class ConfigurationError(ActorError):
    """Error raised for fatal misconfiguration detected at call time.

    Raised synchronously by element actions when no driver can locate
    elements or when the supplied operation is not a coroutine function.
    It is never routed through the recorder.
    """


class DriverError(ActorError):
    """Error raised for fatal driver registration failures.

    This exception is raised when a driver entry point is invalid or
    fails to load, or when a driver name is shadowed in strict mode.
    """

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a driver error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional driver entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class ElementAssertionError(ActorError, AssertionError):
    """Failed expectation on located elements.

    Carries the locator, the rendered predicate and, for checks over all
    elements, the 1-based position of the failing element.
    """

    def __init__(self, subject: str, predicate: str, *,
                 locator: str | None = None,
                 position: int | None = None,
                 context: ErrorContext | None = None) -> None:
        """Initialize an assertion error.

        Args:
            subject: Description of the checked elements.
            predicate: Rendered predicate callable.
            locator: Locator used to find elements.
            position: 1-based position of the failing element.
            context: Error context containing optional runtime values.
        """
        self.subject = subject
        self.predicate = predicate
        self.locator = locator
        self.position = position

        super().__init__(
            f'expected {subject} to be truthy for {predicate}',
            context=context,
        )


class ElementOperationError(ActorError):
    """Failure raised by user logic while operating on an element.

    The original exception is chained as `__cause__`.
    """

    @classmethod
    def from_exception(cls, error: Exception, *,
                       step: str | None = None,
                       locator: str | None = None,
                       element_num: int | None = None,
                       element: Any = None) -> 'ElementOperationError':  # noqa: ANN401
        """Wrap an arbitrary exception raised by an element operation.

        Args:
            error: Exception raised by the operation.
            step: Rendered step text.
            locator: Locator used to find elements.
            element_num: 1-based position of the element.
            element: Element the operation was applied to.

        Returns:
            ElementOperationError describing the failure.
        """
        error_context = ErrorContext(
            step=step,
            locator=locator,
            element_num=element_num,
            element=element,
            error=error,
        )

        return cls(f'Element operation failed: {error!r}', context=error_context)


class StepTimeoutError(ActorError):
    """Error recorded when an in-flight task is aborted by a supervisor."""
