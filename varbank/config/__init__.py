"""Configuration system: turning JSON/YAML into validated Python objects.

Initializers and resolver setups can be written down declaratively and
validated into Pydantic models. This keeps file paths, dtypes and devices
out of code while still giving clear error messages when something is wrong.
"""
from __future__ import annotations

import enum
from typing import Annotated, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict


T = TypeVar("T")


class ValidationType(enum.Enum):
    """Types of value validation we support."""

    SHOULD_BE_POSITIVE = "should_be_positive"
    SHOULD_BE_NON_NEGATIVE = "should_be_non_negative"
    SHOULD_BE_NON_EMPTY = "should_be_non_empty"


class Config(BaseModel):
    """Base class for all configuration objects.

    Configs are immutable once validated, so a policy or a resolver setup can
    be shared between threads without copying.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    @staticmethod
    def check(left: T, validation_type: ValidationType) -> T:
        """Validate a value against a constraint, raising ValueError on failure."""
        match validation_type:
            case ValidationType.SHOULD_BE_POSITIVE:
                if left <= 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} <= 0"
                    )
                return left
            case ValidationType.SHOULD_BE_NON_NEGATIVE:
                if left < 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} < 0"
                    )
                return left
            case ValidationType.SHOULD_BE_NON_EMPTY:
                if not left:
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} is empty"
                    )
                return left
            case _:
                raise ValueError(
                    f"Validation failed: unknown validation type {validation_type}"
                )


# Validated primitives for config models
PositiveFloat = Annotated[
    float,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_POSITIVE)),
]
NonNegativeFloat = Annotated[
    float,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_NON_NEGATIVE)),
]
NonEmptyStr = Annotated[
    str,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_NON_EMPTY)),
]
