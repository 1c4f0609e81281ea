"""Payload validation for catalog and save models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Callable, ClassVar, Mapping, Sequence


class ModelValidationError(ValueError):
    """Raised when a payload does not satisfy a model's requirements."""

    def __init__(self, model: type[Any], errors: Sequence[str]) -> None:
        self.model = model
        self.errors = list(errors)
        message = "; ".join(self.errors) if self.errors else "invalid payload"
        super().__init__(f"{model.__name__} validation failed: {message}")


@dataclass(frozen=True)
class FieldSpec:
    expected: Any
    description: str
    required: bool = True
    allow_none: bool = False


@dataclass(frozen=True)
class SequenceSpec:
    item: Any
    allow_empty: bool = True


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_positive_int(value: Any) -> bool:
    return is_non_negative_int(value) and value > 0


def is_non_negative_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and value >= 0


def one_of(enum_type: type[Enum]) -> Callable[[Any], bool]:
    """Return a predicate accepting members or raw values of ``enum_type``."""

    allowed = {member.value for member in enum_type}

    def _check(value: Any) -> bool:
        if isinstance(value, enum_type):
            return True
        return str(value).strip().lower() in allowed

    _check.__name__ = f"one of {', '.join(sorted(str(item) for item in allowed))}"
    return _check


def _describe(expected: Any) -> str:
    if isinstance(expected, FieldSpec):
        return expected.description
    if isinstance(expected, SequenceSpec):
        return f"list of {_describe(expected.item)}"
    if isinstance(expected, tuple):
        return " or ".join(_describe(part) for part in expected)
    if isinstance(expected, type):
        return expected.__name__
    if callable(expected):
        return getattr(expected, "__name__", "valid value").replace("_", " ")
    return str(expected)


def _matches(value: Any, expected: Any) -> bool:
    if expected is Any:
        return True
    if isinstance(expected, SequenceSpec):
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            return False
        if not expected.allow_empty and not value:
            return False
        return all(_matches(item, expected.item) for item in value)
    if isinstance(expected, tuple):
        return any(_matches(value, part) for part in expected)
    if isinstance(expected, type):
        if expected is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected is float:
            return isinstance(value, Real) and not isinstance(value, bool)
        return isinstance(value, expected)
    if callable(expected):
        try:
            return bool(expected(value))
        except (TypeError, ValueError):
            return False
    return True


class ModelValidator:
    """Base class for model payload validators.

    Subclasses declare ``model`` and a ``fields`` mapping of field names to
    :class:`FieldSpec`. Unknown keys are passed through untouched so payloads
    written by newer releases still load.
    """

    model: ClassVar[type[Any]]
    fields: ClassVar[Mapping[str, FieldSpec]]

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(data, Mapping):
            raise ModelValidationError(cls.model, ["payload must be a table of fields"])

        errors: list[str] = []
        for name, spec in cls.fields.items():
            if name not in data:
                if spec.required:
                    errors.append(f"missing '{name}' ({spec.description})")
                continue
            value = data[name]
            if value is None:
                if not spec.allow_none:
                    errors.append(f"'{name}' cannot be empty")
                continue
            if not _matches(value, spec.expected):
                errors.append(
                    f"'{name}' expected {spec.description or _describe(spec.expected)}, "
                    f"got {value!r}"
                )

        if errors:
            raise ModelValidationError(cls.model, errors)
        return dict(data)


def validate_payload(cls: type[Any], data: Mapping[str, Any]) -> dict[str, Any]:
    """Validate ``data`` against the validator registered on ``cls``, if any."""

    validator: type[ModelValidator] | None = getattr(cls, "validator", None)
    if validator is None:
        return dict(data)
    return validator.validate(data)


__all__ = [
    "FieldSpec",
    "ModelValidationError",
    "ModelValidator",
    "SequenceSpec",
    "is_non_empty_str",
    "is_non_negative_int",
    "is_non_negative_number",
    "is_positive_int",
    "one_of",
    "validate_payload",
]
