"""Tag value variant shared by shadow and live runtimes."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ValueKind(str, Enum):
    """Closed set of tag value kinds."""

    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"


@dataclass(frozen=True, eq=False)
class TagValue:
    """A typed tag value: Bool, Number or Text.

    Equality is defined per kind and always on the raw value. Values of
    different kinds never compare equal, so ``True`` is not ``1`` and
    ``"1"`` is not ``1``. Two NaN numbers are considered equal.
    """

    kind: ValueKind
    raw: bool | int | float | str

    @classmethod
    def of(cls, value: Any) -> "TagValue":
        """Wrap a decoded JSON scalar. Raises TypeError for anything else."""
        if isinstance(value, TagValue):
            return value
        # bool first: bool is a subclass of int
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, (int, float)):
            return cls(ValueKind.NUMBER, value)
        if isinstance(value, str):
            return cls(ValueKind.TEXT, value)
        raise TypeError(f"Unsupported tag value type: {type(value).__name__}")

    @classmethod
    def maybe(cls, value: Any) -> "TagValue | None":
        """Like of(), but None and unsupported values yield None."""
        if value is None:
            return None
        try:
            return cls.of(value)
        except TypeError:
            return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagValue):
            return NotImplemented
        if self.kind != other.kind:
            return False
        if self.kind is ValueKind.NUMBER and _is_nan(self.raw) and _is_nan(other.raw):
            return True
        return self.raw == other.raw

    def __hash__(self) -> int:
        if self.kind is ValueKind.NUMBER and _is_nan(self.raw):
            return hash((self.kind, "nan"))
        return hash((self.kind, self.raw))

    def display(self) -> str:
        """Presentation form: numbers rounded to two decimals."""
        if self.kind is ValueKind.BOOL:
            return "TRUE" if self.raw else "FALSE"
        if self.kind is ValueKind.NUMBER:
            return f"{self.raw:.2f}"
        return str(self.raw)

    def to_json(self) -> bool | int | float | str:
        """Raw value for JSON payloads."""
        return self.raw


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)
