from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction
from typing import Any, Dict, List, Mapping, Optional

from .errors import DecodeError, InvalidIdentifierError, InvalidPageError
from .keys import LIST_ATTRIBUTES

_MICROSECONDS_PER_UNIT = {
    "ns": Fraction(1, 1000),
    "us": Fraction(1),
    "µs": Fraction(1),  # U+00B5 micro sign
    "μs": Fraction(1),  # U+03BC greek mu
    "ms": Fraction(1000),
    "s": Fraction(1_000_000),
    "m": Fraction(60_000_000),
    "h": Fraction(3_600_000_000),
}
_DURATION_PART = re.compile(r"(\d*(?:\.\d*)?)(ns|us|µs|μs|ms|s|m|h)")
# Longest representable duration: 2**63 - 1 nanoseconds, about 2562047h.
_MAX_DURATION = Fraction(2**63 - 1, 1000)

MAX_ID = 2**63 - 1


def parse_duration(text: str) -> timedelta:
    """Parse a duration written like ``"10m"``, ``"1h30m"`` or ``"1.5s"``.

    A duration is an optional sign followed by one or more decimal numbers,
    each with a unit suffix: ``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m``
    or ``h``. Sub-microsecond precision is rounded away.
    """

    original = text
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = Fraction(0)
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if match is None or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {original!r}")
        total += Fraction(match.group(1)) * _MICROSECONDS_PER_UNIT[match.group(2)]
        position = match.end()

    if total > _MAX_DURATION:
        raise ValueError(f"invalid duration {original!r}")

    return timedelta(microseconds=sign * round(total))


def _with_fraction(value: int, unit: int) -> str:
    whole, remainder = divmod(value, unit)
    if not remainder:
        return str(whole)
    digits = str(remainder).rjust(len(str(unit)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(duration: timedelta) -> str:
    """Render ``duration`` as ``"1h2m3.5s"``, ``"10m0s"``, ``"250ms"`` or ``"0s"``."""

    micros = duration // timedelta(microseconds=1)
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_with_fraction(micros, 1000)}ms"

    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    seconds = f"{_with_fraction(micros, 1_000_000)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 0 < value <= MAX_ID else None


def validate_recipe_id(value: Any) -> int:
    recipe_id = _positive_int(value)
    if recipe_id is None:
        raise InvalidIdentifierError()
    return recipe_id


def validate_page(value: Any) -> int:
    page = _positive_int(value)
    if page is None:
        raise InvalidPageError()
    return page


@dataclass
class Recipe:
    """Domain object representing a stored recipe.

    ``id`` is ``0`` until the recipe has been saved once. The list attributes
    use ``None`` for "not provided", which leaves any stored list untouched.
    """

    id: int = 0
    title: str = ""
    difficulty: str = ""
    prep_period: Optional[timedelta] = None
    method: str = ""
    categories: Optional[List[str]] = None
    ingredients: Optional[List[str]] = None
    images: Optional[List[str]] = None

    @property
    def is_new(self) -> bool:
        return self.id == 0

    @classmethod
    def from_dict(cls, payload: Any) -> "Recipe":
        """Build a recipe from a decoded JSON request body."""

        if not isinstance(payload, Mapping):
            raise DecodeError("request body must be a JSON object")

        recipe_id = payload.get("id") or 0
        valid = isinstance(recipe_id, int) and not isinstance(recipe_id, bool)
        if not valid or not 0 <= recipe_id <= MAX_ID:
            raise DecodeError("id must be a non-negative 64-bit integer")

        values: Dict[str, Any] = {"id": recipe_id}
        for name in ("title", "difficulty", "method"):
            values[name] = _decode_string(payload, name)

        prep_period = _decode_string(payload, "prep_period")
        if prep_period:
            try:
                values["prep_period"] = parse_duration(prep_period)
            except ValueError as exc:
                raise DecodeError(str(exc)) from exc

        for name in LIST_ATTRIBUTES:
            values[name] = _decode_string_list(payload, name)

        return cls(**values)

    @classmethod
    def from_hash(cls, recipe_id: int, fields: Mapping[str, str]) -> "Recipe":
        """Build a recipe from the scalar hash stored at ``recipe:<id>``."""

        prep_period = fields.get("prep_period") or ""
        return cls(
            id=recipe_id,
            title=fields.get("title", ""),
            difficulty=fields.get("difficulty", ""),
            prep_period=parse_duration(prep_period) if prep_period else None,
            method=fields.get("method", ""),
        )

    def to_hash(self) -> Dict[str, str]:
        return {
            "id": str(self.id),
            "title": self.title,
            "difficulty": self.difficulty,
            "prep_period": self.prep_period_text,
            "method": self.method,
        }

    @property
    def prep_period_text(self) -> str:
        if self.prep_period is None:
            return ""
        return format_duration(self.prep_period)

    def list_attributes(self) -> Dict[str, Optional[List[str]]]:
        return {name: getattr(self, name) for name in LIST_ATTRIBUTES}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "title": self.title}
        optional = {
            "difficulty": self.difficulty,
            "prep_period": self.prep_period_text,
            "method": self.method,
            **self.list_attributes(),
        }
        # Empty values are left out of the payload entirely.
        data.update({name: value for name, value in optional.items() if value})
        return data

    def to_summary(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title}


def _decode_string(payload: Mapping[str, Any], name: str) -> str:
    value = payload.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"{name} must be a string")
    return value


def _decode_string_list(payload: Mapping[str, Any], name: str) -> Optional[List[str]]:
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise DecodeError(f"{name} must be a list of strings")
    return list(value)


__all__ = [
    "MAX_ID",
    "Recipe",
    "format_duration",
    "parse_duration",
    "validate_page",
    "validate_recipe_id",
]
