"""Reverse path: records back to command lines, and usage strings.

:func:`generate_command` renders a live record as the ``add`` command that
recreates it. The usage helpers build one-line and annotated help text from
the same field, alias and positional metadata the interpreter binds with.
"""

from __future__ import annotations

import datetime as dt
import enum
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from record_commander.converter import type_name
from record_commander.errors import GenerationError, UnknownRecordTypeError
from record_commander.tokenizer import is_named, tokenize

if TYPE_CHECKING:
    from record_commander.descriptors import FieldSpec, MethodSpec
    from record_commander.registration import RecordRegistration
    from record_commander.registry import CommandRegistry

_ARRAY_SPECIALS = frozenset(",[]\"'")


@dataclass(frozen=True)
class GenerationOptions:
    """Options controlling how commands are generated from a record.

    prefer_aliases
        Use the first declared alias of the type and of each field.
    use_positional
        Emit positional fields as bare tokens, in registration order.
    skip_defaults
        Leave out fields whose value is their type's default. ``None`` values
        are always left out.
    """

    prefer_aliases: bool = False
    use_positional: bool = True
    skip_defaults: bool = True


def quote(text: str) -> str:
    """Double-quote *text* when the tokenizer would otherwise split or drop it."""
    if text and not any(ch.isspace() or ch in "\"'" for ch in text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_timespan(value: dt.timedelta) -> str:
    """Render a timedelta as ``[-][d.]hh:mm:ss[.ffffff]``."""
    sign = "-" if value < dt.timedelta(0) else ""
    value = abs(value)
    hours, remainder = divmod(value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.microseconds:
        text += f".{value.microseconds:06d}"
    if value.days:
        text = f"{value.days}.{text}"
    return sign + text


def _format_scalar(registry: CommandRegistry, value: Any) -> str:
    """Unquoted text for a single value."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Flag):
        return ",".join(m.name for m in type(value) if m in value and m.name)
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, dt.datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return format_timespan(value)
    registration = registry.registration_for(type(value))
    if registration is not None:
        key = registration.key_field.get(value)
        return "" if key is None else _format_scalar(registry, key)
    return str(value)


def _format_sequence(registry: CommandRegistry, values: Any) -> str:
    items = ["" if v is None else _format_scalar(registry, v) for v in values]
    if isinstance(values, (set, frozenset)):
        items.sort()
    if any(not item or item != item.strip() or _ARRAY_SPECIALS & set(item) for item in items):
        return quote(json.dumps(items, ensure_ascii=False, separators=(",", ":")))
    return quote("[" + ",".join(items) + "]")


def format_value(registry: CommandRegistry, value: Any) -> str:
    """Render *value* as a single command token."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return _format_sequence(registry, value)
    return quote(_format_scalar(registry, value))


def generate_command(
    registry: CommandRegistry,
    record: Any,
    options: GenerationOptions,
) -> str:
    """Render *record* as an ``add`` command.

    The identity value always comes first. In positional mode the positional
    fields are emitted as bare tokens in registration order, stopping at the
    first one that is left out or whose text starts with ``--``; every other
    field becomes ``--name=value``.
    """
    registration = registry.registration_for(type(record))
    if registration is None:
        raise UnknownRecordTypeError(f"No registration found for type {type_name(type(record))}")

    spec = registration.spec
    name = spec.aliases[0] if options.prefer_aliases and spec.aliases else registration.name

    key_value = registration.key_field.get(record)
    if key_value is None:
        raise GenerationError(
            f"Identity field '{registration.key_field.name}' of {registration.type_name} is None"
        )

    parts = ["add", name, format_value(registry, key_value)]

    pending: list[tuple[FieldSpec, Any]] = []
    for field_spec in spec.fields:
        if field_spec is registration.key_field:
            continue
        value = field_spec.get(record)
        if value is None:
            continue
        if options.skip_defaults and field_spec.is_default(value):
            continue
        pending.append((field_spec, value))

    if options.use_positional:
        for positional in registration.positional_fields:
            index = next((i for i, (f, _) in enumerate(pending) if f is positional), None)
            if index is None:
                # later positionals would shift into this one's slot
                break
            text = format_value(registry, pending[index][1])
            if is_named(tokenize(text)[0]):
                # a bare token starting with -- reads back as a named argument
                break
            pending.pop(index)
            parts.append(text)

    for field_spec, value in pending:
        field_name = field_spec.name
        if options.prefer_aliases and field_spec.aliases:
            field_name = field_spec.aliases[0]
        parts.append(f"--{field_name}={format_value(registry, value)}")

    return " ".join(parts)


# -- usage strings --------------------------------------------------------


def member_token(method: MethodSpec) -> str:
    """The ``--token:`` spelling of a member (``set_label`` -> ``label``)."""
    name = method.name
    if name.startswith("set_") and len(name) > 4:
        return name[4:]
    if name[:3].lower() == "set" and len(name) > 3 and name[3].isupper():
        return name[3:]
    return name


def _named_fields(registration: RecordRegistration) -> list[FieldSpec]:
    bound = [registration.key_field, *registration.positional_fields]
    return [f for f in registration.spec.fields if all(f is not b for b in bound)]


def _two_argument_members(registration: RecordRegistration) -> list[MethodSpec]:
    return [m for m in registration.spec.methods if m.arity == 2]


def usage_example(registry: CommandRegistry, name: str) -> str:
    """One-line usage for the record registered as *name*.

    >>> registry.usage_example("language")
    'add language <key> <name> [--native_name=<string>] [--label:<string>=<string>]'
    """
    registration = registry.registration(name)
    describe = registry.converter.describe

    parts = ["add", registration.name, f"<{registration.key_field.name}>"]
    parts.extend(f"<{f.name}>" for f in registration.positional_fields)
    parts.extend(f"[--{f.name}=<{describe(f.type)}>]" for f in _named_fields(registration))
    for method in _two_argument_members(registration):
        first, second = method.parameter_types
        parts.append(f"[--{member_token(method)}:<{describe(first)}>=<{describe(second)}>]")
    return " ".join(parts)


def detailed_usage_example(registry: CommandRegistry, name: str) -> str:
    """Usage line followed by one annotated line per field and member."""
    registration = registry.registration(name)
    describe = registry.converter.describe

    rows: list[tuple[str, str, str]] = []

    def note(field_spec: FieldSpec, text: str = "") -> str:
        notes = [text] if text else []
        if field_spec.aliases:
            notes.append("aliases: " + ", ".join(field_spec.aliases))
        if field_spec.description:
            notes.append(field_spec.description)
        return "; ".join(notes)

    key = registration.key_field
    rows.append((f"<{key.name}>", describe(key.type), note(key, "identity")))
    for position, field_spec in enumerate(registration.positional_fields, start=1):
        rows.append(
            (f"<{field_spec.name}>", describe(field_spec.type), note(field_spec, f"position {position}"))
        )
    for field_spec in _named_fields(registration):
        rows.append((f"--{field_spec.name}", describe(field_spec.type), note(field_spec)))
    for method in _two_argument_members(registration):
        first, second = method.parameter_types
        rows.append(
            (
                f"--{member_token(method)}:<{describe(first)}>",
                describe(second),
                f"calls {method.name}",
            )
        )

    left_width = max(len(r[0]) for r in rows)
    type_width = max(len(r[1]) for r in rows)
    lines = [usage_example(registry, name)]
    if registration.aliases:
        lines.append("aliases: " + ", ".join(registration.aliases))
    for left, type_text, note_text in rows:
        line = f"  {left.ljust(left_width)}  {type_text.ljust(type_width)}  {note_text}"
        lines.append(line.rstrip())
    return "\n".join(lines)


def command_prompt(registry: CommandRegistry, name: str) -> str:
    """One-line usage for a custom command, optional tail in brackets.

    >>> registry.command_prompt("update-language")
    'update-language <key> <name> [<native>]'
    """
    command = registry.command(name)
    describe = registry.converter.describe

    def placeholder(parameter: Any) -> str:
        text = describe(parameter.type)
        return f"<{parameter.name}>" if text == "string" else f"<{parameter.name}:{text}>"

    required = [placeholder(p) for p in command.arguments if not p.optional]
    optional = [placeholder(p) for p in command.arguments if p.optional]
    parts = [command.name, *required]
    if optional:
        parts.append("[" + " ".join(optional) + "]")
    return " ".join(parts)


def reference_card(registry: CommandRegistry) -> str:
    """Reference card listing every record and command usage line."""
    lines: list[str] = []

    if registry.registrations:
        lines.append("### Records")
        for registration in registry.registrations:
            line = f"  {usage_example(registry, registration.name)}"
            if registration.aliases:
                line += f"  (aliases: {', '.join(registration.aliases)})"
            lines.append(line)
        lines.append("")

    if registry.commands:
        lines.append("### Commands")
        for name in registry.commands:
            lines.append(f"  {command_prompt(registry, name)}")
        lines.append("")

    return "\n".join(lines)
