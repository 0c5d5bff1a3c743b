"""Validation of raw input outside the HTTP layer.

FastAPI validates request bodies itself; callers such as the CLI use
``validate_payload`` to turn a raw mapping into a schema instance or a list
of field-level errors without raising.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class FieldError:
    """A single rejected input field."""

    field: str
    message: str


def validate_payload(model: type[ModelT], raw: Mapping[str, Any]) -> ModelT | list[FieldError]:
    """Validate ``raw`` against ``model``.

    Args:
        model: The Pydantic schema class.
        raw: Untrusted input values.

    Returns:
        The validated model instance, or the list of field errors.
    """
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        return [
            FieldError(
                field=".".join(str(part) for part in error["loc"]) or "__root__",
                message=error["msg"],
            )
            for error in exc.errors()
        ]
