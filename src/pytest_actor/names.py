"""Naming rules and humanization helpers for step rendering.

This module defines the patterns used to recognise BDD actors and to turn
method names and callables into the human-readable text printed by steps
and assertion errors.
"""

from functools import partial
from inspect import getsource
from re import ASCII
from re import compile as regexp
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

#: Actors of BDD steps (`Given`, `When`, `Then`, `And`).
BDD_ACTOR_PATTERN = regexp(r'^(Given|When|Then|And)')

#: Word boundaries inside camelCase and snake_case identifiers.
_WORD_BOUNDARY_PATTERN = regexp(r'(?<=[a-z0-9])(?=[A-Z])|_+', flags=ASCII)

#: Body of an inline lambda inside a source line.
_LAMBDA_PATTERN = regexp(r'(lambda\b[^:]*:)(.*)')

LAMBDA_NAME = '<lambda>'


def is_bdd_actor(actor: str) -> bool:
    """Check whether an actor label belongs to a BDD step."""
    return BDD_ACTOR_PATTERN.match(actor) is not None


def ucfirst(value: str) -> str:
    """Uppercase the first character of a string."""
    return value[:1].upper() + value[1:]


def humanize_string(value: str) -> str:
    """Split an identifier into lowercase words.

    Both styles are supported: `seeElement` and `see_element` are
    rendered as `see element`. Free text (anything containing
    whitespace) is returned unchanged.

    Args:
        value: Identifier or free text.

    Returns:
        Human-readable text.
    """
    if not value or any(char.isspace() for char in value):
        return value

    return ' '.join(
        word.lower()
        for word in _WORD_BOUNDARY_PATTERN.split(value)
        if word
    )


def _cut_expression(text: str) -> str:
    """Cut an expression at an unbalanced `)`, a top-level `,` or a comment."""
    depth = 0
    quote = None

    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in '\'"':
            quote = char
        elif char in '([{':
            depth += 1
        elif char in ')]}':
            if depth == 0:
                return text[:index]
            depth -= 1
        elif char == ',' and depth == 0:
            return text[:index]
        elif char == '#':
            return text[:index]

    return text


def humanize_function(fn: 'Callable[..., object]') -> str:
    """Render a callable as short human-readable text.

    Named functions are rendered by their qualified name. Lambdas are
    rendered by their source text when it is available.

    Args:
        fn: Callable to render.

    Returns:
        Text describing the callable.
    """
    if isinstance(fn, partial):
        return humanize_function(fn.func)

    name = getattr(fn, '__qualname__', None) or getattr(fn, '__name__', None)
    if name is None:
        return repr(fn)

    if not name.endswith(LAMBDA_NAME):
        return name.rsplit('.<locals>.', 1)[-1]

    try:
        source = getsource(fn)
    except (OSError, TypeError):
        return LAMBDA_NAME

    for line in source.splitlines():
        if match := _LAMBDA_PATTERN.search(line):
            head, body = match.groups()
            return f'{head} {_cut_expression(body).strip()}'

    return LAMBDA_NAME
