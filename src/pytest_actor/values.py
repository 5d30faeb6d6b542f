"""Value types shared by steps, errors and renderers.

Secrets are represented by `pydantic.SecretStr`. Every renderer in the
package routes arguments through `mask` before turning them into text,
so a secret value never leaves the process in clear form.
"""

from collections.abc import Callable, Mapping
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import SecretBytes, SecretStr

#: Fixed token printed in place of any secret value.
SECRET_MASK = '*****'

#: Any object passed into a step or produced by a driver.
type RuntimeValue = Any

#: Asynchronous callable applied to located elements.
type ElementOperation = Callable[..., Any]

MAPPINGS = (dict,)
SCALARS = (date, datetime, timedelta, str, bytes, int, float, bool)
SECRETS = (SecretStr, SecretBytes)
SEQUENCES = (list, tuple, set, frozenset)


def secret(value: str) -> SecretStr:
    """Wrap a plain string into a secret value.

    Args:
        value: Sensitive text, for example a password.

    Returns:
        A `SecretStr` that renders as the mask token.
    """
    return SecretStr(value)


def is_secret(value: RuntimeValue) -> bool:
    """Check whether a value is a wrapped secret."""
    return isinstance(value, SECRETS)


def mask(value: RuntimeValue) -> RuntimeValue:
    """Recursively replace secret values with the mask token.

    Mappings are rebuilt as dicts, tuples stay tuples and other
    sequences (sets included) become lists. Any other value is
    returned as is.

    Args:
        value: Value to sanitize.

    Returns:
        A copy of the value safe for display.
    """
    if is_secret(value):
        return SECRET_MASK

    if isinstance(value, Mapping):
        return {
            key: mask(item)
            for key, item in value.items()
        }

    if isinstance(value, tuple):
        return tuple(mask(item) for item in value)

    if isinstance(value, SEQUENCES):
        return [mask(item) for item in value]

    return value
