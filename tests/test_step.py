"""Tests for steps, meta-steps and timeout resolution."""

import gc

import pytest
from click import unstyle

from pytest_actor.step import MetaStep, Status, Step, TimeoutOrder, get_current_timeout
from pytest_actor.values import SECRET_MASK, secret


def test_step_defaults() -> None:
    """A new step is pending, without arguments and timeouts."""
    step = Step('seeElement')

    assert step.status is Status.PENDING
    assert step.actor == 'I'
    assert step.helper_method == 'seeElement'
    assert step.args == []
    assert step.timeouts == {}
    assert step.timeout is None
    assert step.meta_step is None
    assert step.stack
    assert not step.is_meta_step


def test_step_trace_points_to_call_site() -> None:
    """The captured trace resolves to the calling test module."""
    step = Step('click')

    assert 'test_step.py:' in step.line()


@pytest.mark.parametrize('name, expected', (
    pytest.param('seeElement', 'see element', id='camel'),
    pytest.param('see_element', 'see element', id='snake'),
    pytest.param('click', 'click', id='single'),
    pytest.param('first element within ".A_b" to', 'first element within ".A_b" to', id='text'),
))
def test_step_humanize(name: str, expected: str) -> None:
    """Step names are rendered as lowercase words."""
    assert Step(name).humanize() == expected


def test_step_renderings() -> None:
    """Steps render as text, code and styled text."""
    step = Step('fillField')
    step.set_arguments(['#login', 42, None, ['a', 1], {'key': 'value'}])

    assert f'{step}' == 'I fill field "#login", 42, , ["a", 1], {"key": "value"}'
    assert step.to_code() == 'I.fillField("#login", 42, , ["a", 1], {"key": "value"})'
    assert unstyle(step.to_cli_styled()) == 'I fill field "#login", 42, , ["a", 1], {"key": "value"}'


@pytest.mark.parametrize('arg, expected', (
    pytest.param(0, '', id='zero'),
    pytest.param(False, '', id='false'),
    pytest.param('', '', id='empty string'),
    pytest.param(None, '', id='none'),
    pytest.param([], '[]', id='empty list'),
    pytest.param({}, '{}', id='empty mapping'),
    pytest.param(True, 'True', id='true'),
))
def test_step_renders_falsy_arguments(arg: object, expected: str) -> None:
    """Falsy scalars render as empty text, empty containers as JSON."""
    step = Step('wait')
    step.set_arguments([arg, 1])

    assert step.humanize_args() == f'{expected}, 1'


def test_step_renders_callables() -> None:
    """Callable arguments render by name."""
    async def is_visible(el: object) -> bool:
        return True

    step = Step('check')
    step.set_arguments([is_visible])

    assert step.humanize_args() == 'is_visible'


def test_step_empty_actor() -> None:
    """An empty actor is normalized to an empty string."""
    step = Step('wait')
    step.set_actor(None)
    step.set_arguments([1])

    assert step.actor == ''
    assert f'{step}' == 'wait 1'


@pytest.mark.parametrize('args', (
    pytest.param([secret('p@ss')], id='plain'),
    pytest.param(['user', secret('p@ss')], id='mixed'),
    pytest.param([[secret('p@ss')]], id='list'),
    pytest.param([{'password': secret('p@ss')}], id='mapping'),
    pytest.param([({'nested': [secret('p@ss')]},)], id='nested'),
))
def test_step_masks_secrets(args: list) -> None:
    """Secret values never appear in any rendering."""
    step = Step('fillField')
    step.set_arguments(args)

    for rendered in (f'{step}', step.to_code(), step.to_cli_styled(), repr(step)):
        assert 'p@ss' not in rendered
        assert SECRET_MASK in rendered


@pytest.mark.parametrize('depth', (0, 1, 3))
def test_status_propagation(depth: int) -> None:
    """Status bubbles up the whole meta-step chain."""
    chain = [MetaStep(f'parent{num}') for num in range(depth)]
    step = Step('child')

    current = step
    for parent in chain:
        current.set_meta_step(parent)
        current = parent

    step.set_status(Status.RUNNING)
    assert all(item.status is Status.RUNNING for item in (step, *chain))

    step.set_status('failed')
    assert all(item.status is Status.FAILED for item in (step, *chain))


def test_status_does_not_propagate_down() -> None:
    """Setting status on a meta-step leaves children untouched."""
    parent = MetaStep('parent')
    step = Step('child')
    step.set_meta_step(parent)

    parent.set_status(Status.PASSED)

    assert parent.status is Status.PASSED
    assert step.status is Status.PENDING


def test_meta_step_is_not_owned() -> None:
    """A collected meta-step stops status propagation."""
    step = Step('child')
    parent = MetaStep('parent')
    step.set_meta_step(parent)

    assert step.meta_step is parent
    assert parent.is_meta_step

    del parent
    gc.collect()

    assert step.meta_step is None

    step.set_status(Status.PASSED)
    assert step.status is Status.PASSED


@pytest.mark.parametrize('actors, expected', (
    pytest.param([], False, id='no ancestors'),
    pytest.param(['I'], False, id='plain ancestor'),
    pytest.param(['Given I am logged in'], True, id='given'),
    pytest.param(['I', 'When I open page'], True, id='distant when'),
    pytest.param(['Then', 'I'], True, id='direct then'),
    pytest.param(['And'], True, id='and'),
    pytest.param(['I', 'Scenario'], False, id='no keywords'),
))
def test_has_bdd_ancestor(actors: list[str], expected: bool) -> None:
    """BDD ancestors are detected along the meta-step chain."""
    chain = []
    for actor in actors:
        parent = MetaStep('meta')
        parent.set_actor(actor)
        chain.append(parent)

    step = Step('child')
    step.set_actor('Given it is ignored for self')

    current = step
    for parent in chain:
        current.set_meta_step(parent)
        current = parent

    assert step.has_bdd_ancestor() is expected


def test_timeout_priority() -> None:
    """Non-negative orders override higher ones; negative orders only lower."""
    step = Step('click')

    step.set_timeout(5000, 2)
    step.set_timeout(3000, 1)
    assert step.timeout == 3000

    step.set_timeout(1000, -1)
    assert step.timeout == 1000

    step.set_timeout(500, -1)
    assert step.timeout == 500


@pytest.mark.parametrize('timeouts, expected', (
    pytest.param({}, None, id='empty'),
    pytest.param({TimeoutOrder.SUITE: 2000}, 2000, id='single'),
    pytest.param({TimeoutOrder.SUITE: 2000, TimeoutOrder.STEP_HARD: 4000}, 4000, id='lower order wins'),
    pytest.param({TimeoutOrder.GLOBAL: 1000}, 1000, id='negative only'),
    pytest.param({TimeoutOrder.SUITE: 2000, TimeoutOrder.GLOBAL: 4000}, 2000, id='negative larger'),
    pytest.param({TimeoutOrder.SUITE: 0, TimeoutOrder.GLOBAL: 4000}, 4000, id='negative over no timeout'),
    pytest.param({TimeoutOrder.SUITE: 2000, TimeoutOrder.GLOBAL: 0}, 2000, id='negative no timeout'),
    pytest.param({TimeoutOrder.SUITE: 2000, TimeoutOrder.STEP_HARD: None}, 2000, id='unset'),
))
def test_get_current_timeout(timeouts: dict[int, int | None], expected: int | None) -> None:
    """Resolve effective timeouts from prioritized entries."""
    assert get_current_timeout(timeouts) == expected


def test_timeout_same_order_overwrites() -> None:
    """The most recently set value wins at equal order."""
    step = Step('click')

    step.set_timeout(1000, TimeoutOrder.SUITE)
    step.set_timeout(7000, TimeoutOrder.SUITE)

    assert step.timeouts == {TimeoutOrder.SUITE: 7000}
    assert step.timeout == 7000
