"""Runtime settings for element actions.

Settings are resolved from the environment (variables prefixed with
`ACTOR_`) and may be overridden by pytest command-line options.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
          This guarantees consistent behavior during a test run.
        - Tolerant schema handling: unknown or extra fields are ignored.
          This allows the surrounding environment to contain unrelated
          variables without breaking configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )


class ActorSettings(SettingsModel):
    """Settings consumed by the element-action DSL and driver registry."""

    model_config = SettingsConfigDict(
        env_prefix='ACTOR_',
        frozen=True,
        extra='ignore',
    )

    dry_run: bool = Field(
        default=False,
        title='Dry run',
        description=(
            'Skip element actions entirely. '
            'Calls return `None` and nothing is submitted to the recorder.'
        ),
    )

    strict: bool = Field(
        default=False,
        title='Strict drivers',
        description=(
            'Raise on driver loading issues and name shadowing '
            'instead of emitting warnings.'
        ),
    )

    step_timeout: int | None = Field(
        default=None,
        ge=0,
        title='Step timeout',
        description=(
            'Hard timeout in milliseconds attached to every element step. '
            '`0` means no timeout.'
        ),
    )
