"""Token-to-value conversion driven by type annotations.

The resolution order is fixed and the first matching rule wins:

1. optional wrapper (an empty token is ``None``), other unions member by member
2. text types pass through unchanged
3. sequences, written as ``[a,b]``, ``["a","b"]`` or ``['a','b']``
4. enums, by case-insensitive member name (flags comma-joined)
5. custom converters registered for the exact type
6. fixed scalar formats: ``yyyy-MM-dd`` dates, time spans, UUIDs
7. registered record types, looked up by identity value
8. ``true``/``false`` for bool, numeric parsing for int, float, complex and
   Decimal; any other type fails
"""

from __future__ import annotations

import collections.abc
import datetime as dt
import decimal
import enum
import json
import re
import types
import typing
import uuid
from typing import Any, Callable

from record_commander.errors import (
    ConversionError,
    ConversionFailedError,
    InvalidArrayFormatError,
    InvalidEnumValueError,
    InvalidFormatError,
)

_NONE_TYPE = type(None)

_SEQUENCE_CONTAINERS: dict[Any, type] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIMESPAN_RE = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)
_INTEGER_RE = re.compile(r"^-?\d+$")

_NUMERIC_TYPES = (int, float, complex, decimal.Decimal)


def type_name(target: Any) -> str:
    return getattr(target, "__name__", None) or str(target)


def union_members(target: Any) -> tuple[Any, ...] | None:
    """Members of ``Union[...]`` / ``X | Y``, or None for other types."""
    origin = typing.get_origin(target)
    if origin is typing.Union or origin is types.UnionType:
        return typing.get_args(target)
    return None


def unwrap_optional(target: Any) -> Any:
    """Return ``X`` for ``X | None``; any other type unchanged."""
    members = union_members(target)
    if members is None:
        return target
    others = [m for m in members if m is not _NONE_TYPE]
    return others[0] if len(others) == 1 else target


def sequence_info(target: Any) -> tuple[type, tuple[Any, ...], bool] | None:
    """Describe a sequence annotation as ``(container, element_types, variadic)``.

    Returns None when *target* is not a sequence type. Bare containers hold
    strings; ``tuple[int, str]`` is fixed-length, ``tuple[int, ...]`` is not.
    """
    origin = typing.get_origin(target) or target
    if isinstance(origin, type) and issubclass(origin, (str, bytes)):
        return None
    try:
        container = _SEQUENCE_CONTAINERS.get(origin)
    except TypeError:
        return None
    if container is None:
        return None

    args = typing.get_args(target)
    if not args:
        return container, (str,), True
    if container is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return container, (args[0],), True
        return container, tuple(args), False
    return container, (args[0],), True


def _accepts_none(target: Any) -> bool:
    members = union_members(target)
    return target is _NONE_TYPE or bool(members and _NONE_TYPE in members)


def parse_array(token: str) -> list[Any]:
    """Parse an array literal into a list of raw items.

    Without any quotes every trimmed, non-empty comma-separated segment is a
    bare string. A literal using only single quotes is normalized to double
    quotes; quoted literals are parsed as JSON.
    """
    if len(token) < 2 or not (token.startswith("[") and token.endswith("]")):
        raise InvalidArrayFormatError(
            f"Value '{token}' is not a valid array representation, expected JSON array syntax"
        )

    text = token
    has_double = '"' in text
    has_single = "'" in text
    if not has_double and not has_single:
        return [part.strip() for part in text[1:-1].split(",") if part.strip()]
    if has_single and not has_double:
        text = text.replace("'", '"')

    try:
        items = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidArrayFormatError(f"Failed to parse array value: {token}") from exc
    if not isinstance(items, list):
        raise InvalidArrayFormatError(f"Failed to parse array value: {token}")
    return items


def _enum_member(text: str, target: type[enum.Enum], token: str) -> enum.Enum:
    folded = text.strip().casefold()
    for name, member in target.__members__.items():
        if name.casefold() == folded:
            return member
    if _INTEGER_RE.match(text.strip()):
        try:
            return target(int(text))
        except ValueError:
            pass
    raise InvalidEnumValueError(
        f"Failed to parse enum value '{token}' for type {target.__name__}"
    )


def parse_enum(token: str, target: type[enum.Enum]) -> enum.Enum:
    """Parse an enum member by name, ignoring case.

    :class:`enum.Flag` types also accept comma-joined names (``read,write``).
    """
    if issubclass(target, enum.Flag) and "," in token:
        result = target(0)
        for part in token.split(","):
            result |= _enum_member(part, target, token)
        return result
    return _enum_member(token, target, token)


def parse_date(token: str) -> dt.date:
    return parse_datetime(token).date()


def parse_datetime(token: str) -> dt.datetime:
    if _DATE_RE.match(token):
        try:
            return dt.datetime.strptime(token, "%Y-%m-%d")
        except ValueError as exc:
            raise InvalidFormatError(
                f"Failed to parse date value '{token}', expected format yyyy-MM-dd"
            ) from exc
    raise InvalidFormatError(
        f"Failed to parse date value '{token}', expected format yyyy-MM-dd"
    )


def parse_timespan(token: str) -> dt.timedelta:
    """Parse ``[-][d.]hh:mm[:ss[.fffffff]]`` or a whole number of days."""
    if _INTEGER_RE.match(token):
        return dt.timedelta(days=int(token))

    match = _TIMESPAN_RE.match(token)
    if match is None:
        raise InvalidFormatError(f"Failed to parse time value '{token}'")

    hours = int(match["hours"])
    minutes = int(match["minutes"])
    seconds = int(match["seconds"] or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise InvalidFormatError(f"Failed to parse time value '{token}'")

    fraction = match["fraction"] or ""
    # seven digits of fraction are 100ns ticks
    microseconds = int(fraction.ljust(7, "0")) // 10 if fraction else 0
    value = dt.timedelta(
        days=int(match["days"] or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=microseconds,
    )
    return -value if match["sign"] else value


def parse_uuid(token: str) -> uuid.UUID:
    try:
        return uuid.UUID(token)
    except ValueError as exc:
        raise InvalidFormatError(f"Failed to parse GUID value '{token}'") from exc


def parse_bool(token: str) -> bool:
    folded = token.strip().casefold()
    if folded == "true":
        return True
    if folded == "false":
        return False
    raise ConversionFailedError(f"Failed to convert value '{token}' to type bool")


_SCALAR_PARSERS: dict[Any, Callable[[str], Any]] = {
    dt.date: parse_date,
    dt.datetime: parse_datetime,
    dt.timedelta: parse_timespan,
    uuid.UUID: parse_uuid,
}

_SCALAR_DESCRIPTIONS: dict[Any, str] = {
    str: "string",
    bool: "true|false",
    int: "int",
    float: "number",
    decimal.Decimal: "decimal",
    dt.date: "yyyy-MM-dd",
    dt.datetime: "yyyy-MM-dd",
    dt.timedelta: "[d.]hh:mm:ss",
    uuid.UUID: "uuid",
}

Converter = Callable[[Any, str], Any]


class TypeConverter:
    """Converts tokens into typed values.

    *resolve_registration* maps a type to its record registration (or None);
    it is how cross-references between record types are looked up.
    """

    def __init__(self, resolve_registration: Callable[[Any], Any]) -> None:
        self._resolve_registration = resolve_registration
        self._converters: dict[Any, Converter] = {}
        self._descriptions: dict[Any, str] = {}

    def register(
        self,
        target: Any,
        converter: Converter,
        description: str | None = None,
    ) -> None:
        """Register *converter* as ``converter(context, token)`` for *target*."""
        self._converters[target] = converter
        if description:
            self._descriptions[target] = description

    def set_description(self, target: Any, description: str) -> None:
        self._descriptions[target] = description

    def has_converter(self, target: Any) -> bool:
        return target in self._converters

    @property
    def converters(self) -> list[Any]:
        """Types with a custom converter (registration order)."""
        return list(self._converters)

    def convert(self, context: Any, token: str, target: Any) -> Any:
        """Convert *token* into a value of type *target*."""
        members = union_members(target)
        if members is not None:
            others = [m for m in members if m is not _NONE_TYPE]
            if token == "" and len(others) < len(members):
                return None
            if len(others) != 1:
                return self._convert_union(context, token, others)
            target = others[0]

        if target is str or target is Any or target is object:
            return token

        info = sequence_info(target)
        if info is not None:
            container, element_types, variadic = info
            return self._convert_sequence(context, token, container, element_types, variadic)

        if isinstance(target, type) and issubclass(target, enum.Enum):
            return parse_enum(token, target)

        converter = self._converters.get(target)
        if converter is not None:
            return converter(context, token)

        parser = _SCALAR_PARSERS.get(target)
        if parser is not None:
            return parser(token)

        registration = self._resolve_registration(target)
        if registration is not None:
            return registration.find(context, token)

        if target is bool:
            return parse_bool(token)
        if target not in _NUMERIC_TYPES:
            raise ConversionFailedError(
                f"Failed to convert value '{token}' to type {type_name(target)}"
            )
        try:
            return target(token)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise ConversionFailedError(
                f"Failed to convert value '{token}' to type {type_name(target)}"
            ) from exc

    def describe(self, target: Any) -> str:
        """Human-readable description of the tokens *target* accepts."""
        target = unwrap_optional(target)
        if target in self._descriptions:
            return self._descriptions[target]
        members = union_members(target)
        if members is not None:
            return "|".join(self.describe(m) for m in members if m is not _NONE_TYPE)
        info = sequence_info(target)
        if info is not None:
            _, element_types, variadic = info
            inner = ",".join(self.describe(t) for t in element_types)
            return f"[{inner},...]" if variadic else f"[{inner}]"
        if isinstance(target, type) and issubclass(target, enum.Enum):
            return "|".join(target.__members__)
        if target in _SCALAR_DESCRIPTIONS:
            return _SCALAR_DESCRIPTIONS[target]
        return type_name(target).lower()

    def _convert_union(self, context: Any, token: str, members: list[Any]) -> Any:
        for member in members:
            try:
                return self.convert(context, token, member)
            except ConversionError:
                continue
        names = " | ".join(type_name(m) for m in members)
        raise ConversionFailedError(f"Failed to convert value '{token}' to type {names}")

    def _convert_sequence(
        self,
        context: Any,
        token: str,
        container: type,
        element_types: tuple[Any, ...],
        variadic: bool,
    ) -> Any:
        items = parse_array(token)
        if not variadic and len(items) != len(element_types):
            raise InvalidArrayFormatError(
                f"Value '{token}' must have exactly {len(element_types)} element(s)"
            )
        values = [
            self._convert_element(context, item, element_types[0] if variadic else element_types[i])
            for i, item in enumerate(items)
        ]
        return container(values)

    def _convert_element(self, context: Any, item: Any, element: Any) -> Any:
        if item is None:
            if _accepts_none(element):
                return None
            raise ConversionFailedError(
                f"Array element null is not valid for type {type_name(element)}"
            )
        if isinstance(item, str):
            text = item
        elif isinstance(item, bool):
            text = "true" if item else "false"
        elif isinstance(item, (list, dict)):
            text = json.dumps(item)
        else:
            text = str(item)
        return self.convert(context, text, element)
