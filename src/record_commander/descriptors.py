"""Descriptor tables for record types.

A :class:`RecordSpec` lists, once and up front, everything the interpreter
needs to know about a record class: its settable fields (with aliases,
accessors and a default-value predicate), the two-argument members that
``--method:arg=value`` may call, the type's own aliases and a factory for new
instances.

:func:`describe` builds a spec from a dataclass or an annotated class at
registration time. Specs can also be written by hand for classes that do not
expose their fields through annotations.
"""

from __future__ import annotations

import dataclasses
import enum
import inspect
import operator
import typing
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

ALIASES_ATTRIBUTE = "__command_aliases__"


def aliases(*names: str) -> Callable[[type], type]:
    """Class decorator declaring alternate command names for a record type.

    Subclasses do not inherit the aliases; each registered class declares its own.

    >>> @aliases("lang")
    ... @dataclass
    ... class Language:
    ...     key: str = ""
    """

    def decorate(cls: type) -> type:
        setattr(cls, ALIASES_ATTRIBUTE, tuple(names))
        return cls

    return decorate


def aliased(*names: str, **kwargs: Any) -> Any:
    """A :func:`dataclasses.field` carrying alternate argument names."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata["aliases"] = tuple(names)
    return field(metadata=metadata, **kwargs)


def is_zero_value(value: Any) -> bool:
    """Return True if *value* is the zero value of its type.

    ``None``, empty strings and collections, zero numbers, ``False``, a zero
    ``timedelta``, the nil UUID, an empty :class:`enum.Flag` and enum members
    whose value is ``0`` all count as zero values.
    """
    if value is None:
        return True
    if isinstance(value, enum.Flag):
        return not value
    if isinstance(value, enum.Enum):
        return value.value == 0
    if isinstance(value, uuid.UUID):
        return value.int == 0
    try:
        return not value
    except (TypeError, ValueError):
        # objects with an ambiguous truth value (arrays and the like)
        return False


@dataclass
class FieldSpec:
    """A settable field of a record type."""

    name: str
    type: Any = str
    aliases: tuple[str, ...] = ()
    getter: Callable[[Any], Any] | None = None
    setter: Callable[[Any, Any], None] | None = None
    is_default: Callable[[Any], bool] = is_zero_value
    description: str = ""

    def __post_init__(self) -> None:
        self.aliases = tuple(self.aliases)
        if self.getter is None:
            self.getter = operator.attrgetter(self.name)
        if self.setter is None:
            name = self.name

            def setter(record: Any, value: Any) -> None:
                setattr(record, name, value)

            self.setter = setter

    @property
    def names(self) -> tuple[str, ...]:
        """The field name followed by its aliases."""
        return (self.name, *self.aliases)

    def get(self, record: Any) -> Any:
        return self.getter(record)  # type: ignore[misc]

    def set(self, record: Any, value: Any) -> None:
        self.setter(record, value)  # type: ignore[misc]


@dataclass
class MethodSpec:
    """A record member invoked as ``--name:arg=value``.

    *function* is called as ``function(record, *args)``; *parameter_types*
    lists the types of ``args`` (the record itself excluded).
    """

    name: str
    function: Callable[..., Any]
    parameter_types: tuple[Any, ...] = (str, str)

    @property
    def arity(self) -> int:
        return len(self.parameter_types)

    def invoke(self, record: Any, *args: Any) -> Any:
        return self.function(record, *args)


@dataclass
class RecordSpec:
    """Descriptor table for one record type."""

    record_type: type
    fields: list[FieldSpec] = field(default_factory=list)
    methods: list[MethodSpec] = field(default_factory=list)
    aliases: tuple[str, ...] = ()
    factory: Callable[[], Any] | None = None

    def __post_init__(self) -> None:
        self.aliases = tuple(self.aliases)
        if self.factory is None:
            self.factory = self.record_type

    def get_field(self, name: str) -> FieldSpec | None:
        """Return the field declared as *name* (not its aliases), or None."""
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def create(self) -> Any:
        return self.factory()  # type: ignore[misc]


def _member_types(function: Callable[..., Any], skip: int) -> tuple[Any, ...] | None:
    """Parameter annotations of *function* after the first *skip* parameters.

    Unannotated parameters are typed ``str``. Returns None for signatures with
    ``*args``/``**kwargs``, which cannot be bound from a fixed token count.
    """
    try:
        signature = inspect.signature(function, eval_str=True)
    except (TypeError, ValueError):
        return None
    types: list[Any] = []
    for parameter in list(signature.parameters.values())[skip:]:
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            return None
        if parameter.kind is parameter.KEYWORD_ONLY:
            continue
        annotation = parameter.annotation
        types.append(str if annotation is parameter.empty else annotation)
    return tuple(types)


def _class_fields(
    record_type: type,
    hints: dict[str, Any],
    field_aliases: dict[str, tuple[str, ...]],
) -> list[FieldSpec]:
    specs: list[FieldSpec] = []
    if dataclasses.is_dataclass(record_type):
        for dc_field in dataclasses.fields(record_type):
            if dc_field.name.startswith("_"):
                continue
            names = tuple(dc_field.metadata.get("aliases", ()))
            names += field_aliases.get(dc_field.name, ())
            specs.append(
                FieldSpec(
                    name=dc_field.name,
                    type=hints.get(dc_field.name, str),
                    aliases=names,
                    description=dc_field.metadata.get("description", ""),
                )
            )
    else:
        for name, annotation in hints.items():
            if name.startswith("_") or typing.get_origin(annotation) is typing.ClassVar:
                continue
            specs.append(
                FieldSpec(name=name, type=annotation, aliases=field_aliases.get(name, ()))
            )

    # Properties with a setter are settable members as well.
    known = {spec.name for spec in specs}
    for klass in reversed(record_type.__mro__[:-1]):
        for name, member in vars(klass).items():
            if name.startswith("_") or name in known:
                continue
            if isinstance(member, property) and member.fset is not None:
                returns = typing.get_type_hints(member.fget).get("return", str) if member.fget else str
                specs.append(
                    FieldSpec(name=name, type=returns, aliases=field_aliases.get(name, ()))
                )
                known.add(name)
    return specs


def _class_methods(record_type: type, field_names: set[str]) -> list[MethodSpec]:
    methods: list[MethodSpec] = []
    seen: set[str] = set()
    for klass in record_type.__mro__[:-1]:
        for name, member in vars(klass).items():
            if name.startswith("_") or name in field_names or name in seen:
                continue
            if not inspect.isfunction(member):
                continue
            seen.add(name)
            types = _member_types(member, skip=1)
            if types is None:
                continue
            methods.append(MethodSpec(name=name, function=member, parameter_types=types))
    return methods


def describe(
    record_type: type,
    *,
    aliases: tuple[str, ...] | list[str] | None = None,
    field_aliases: dict[str, tuple[str, ...] | list[str] | str] | None = None,
    methods: dict[str, Callable[..., Any]] | None = None,
    factory: Callable[[], Any] | None = None,
) -> RecordSpec:
    """Build a :class:`RecordSpec` for *record_type*.

    Fields come from dataclass fields (aliases from :func:`aliased`) or, for
    plain classes, from class annotations; properties with a setter are added
    too. Public functions defined on the class become callable members.

    Parameters
    ----------
    aliases : sequence of str, optional
        Type aliases, in addition to those set with :func:`aliases`.
    field_aliases : dict, optional
        Extra field aliases keyed by field name.
    methods : dict, optional
        Extra members keyed by token, each called as ``fn(record, a, b)``.
    factory : callable, optional
        Builds new instances; defaults to calling *record_type*.
    """
    extra_aliases: dict[str, tuple[str, ...]] = {}
    for name, value in (field_aliases or {}).items():
        extra_aliases[name] = (value,) if isinstance(value, str) else tuple(value)

    hints = typing.get_type_hints(record_type)
    fields = _class_fields(record_type, hints, extra_aliases)
    members = _class_methods(record_type, {spec.name for spec in fields})
    for name, function in (methods or {}).items():
        types = _member_types(function, skip=1)
        members.append(
            MethodSpec(name=name, function=function, parameter_types=types or (str, str))
        )

    type_aliases = tuple(vars(record_type).get(ALIASES_ATTRIBUTE, ())) + tuple(aliases or ())
    return RecordSpec(
        record_type=record_type,
        fields=fields,
        methods=members,
        aliases=type_aliases,
        factory=factory,
    )
