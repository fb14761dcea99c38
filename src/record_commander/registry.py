"""Command registry and interpreter.

A :class:`CommandRegistry` owns the record registrations, the custom command
table and the custom converters for one kind of context. It is populated once
at startup and then used to run command lines against context objects::

    registry = CommandRegistry(MyData)
    registry.register(
        "language", Language,
        collection=lambda ctx: ctx.languages,
        key="key",
        positional=["name"],
    )
    registry.run(data, "add language en English")
    registry.generate_command(data.languages[0])  # 'add language en English'
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any

from record_commander import generation
from record_commander.commands import CustomCommand
from record_commander.converter import TypeConverter, type_name
from record_commander.descriptors import FieldSpec, RecordSpec, describe
from record_commander.errors import (
    InvalidCommandError,
    RegistrationError,
    UnknownFieldError,
    UnknownRecordTypeError,
    UnsupportedActionError,
)
from record_commander.formatter import did_you_mean
from record_commander.generation import GenerationOptions
from record_commander.registration import (
    Access,
    CollectionAccess,
    FindOrCreateAccess,
    LookupAccess,
    RecordRegistration,
)
from record_commander.tokenizer import is_comment, is_named, parse_named, tokenize

logger = logging.getLogger(__name__)

ADD = "add"


def _fold(name: str) -> str:
    return name.casefold()


def _select_access(
    collection: Callable[[Any], list[Any]] | None,
    find: Callable[[Any, str], Any] | None,
    create: Callable[[Any, str], Any] | None,
    find_or_create: Callable[[Any, str], Any] | None,
) -> Access:
    if (find is None) != (create is None):
        raise RegistrationError("find and create must be provided together")

    chosen: list[Access] = []
    if collection is not None:
        chosen.append(CollectionAccess(collection))
    if find is not None and create is not None:
        chosen.append(LookupAccess(find, create))
    if find_or_create is not None:
        chosen.append(FindOrCreateAccess(find_or_create))

    if not chosen:
        raise RegistrationError(
            "Either collection, find and create, or find_or_create must be provided"
        )
    if len(chosen) > 1:
        raise RegistrationError("Only one way to acquire records may be provided")
    return chosen[0]


def _require_field(spec: RecordSpec, name: str) -> FieldSpec:
    field_spec = spec.get_field(name)
    if field_spec is not None:
        return field_spec
    folded = _fold(name)
    for candidate in spec.fields:
        if any(_fold(n) == folded for n in candidate.names):
            return candidate
    raise RegistrationError(
        f"Type '{type_name(spec.record_type)}' has no field '{name}'."
        + did_you_mean(name, [f.name for f in spec.fields])
    )


class CommandRegistry:
    """Registry of record types and custom commands, and their interpreter.

    Parameters
    ----------
    context_type : type, optional
        When given, contexts passed to :meth:`run` must be instances of it and
        custom command procedures must accept it as first parameter.
    generation_options : GenerationOptions, optional
        Defaults used by :meth:`generate_command`.
    """

    def __init__(
        self,
        context_type: type | None = None,
        *,
        generation_options: GenerationOptions | None = None,
    ) -> None:
        self.context_type = context_type
        self.generation_options = generation_options or GenerationOptions()
        self._registrations: dict[str, RecordRegistration] = {}
        self._ordered: list[RecordRegistration] = []
        self._commands: dict[str, CustomCommand] = {}
        self._converter = TypeConverter(self._registration_for_exact_type)
        self._lock = threading.RLock()

    # -- registration ----------------------------------------------------

    def register(
        self,
        name: str | None,
        record: type | RecordSpec,
        *,
        key: str,
        positional: Sequence[str] = (),
        collection: Callable[[Any], list[Any]] | None = None,
        find: Callable[[Any, str], Any] | None = None,
        create: Callable[[Any, str], Any] | None = None,
        find_or_create: Callable[[Any, str], Any] | None = None,
    ) -> RecordRegistration:
        """Register a record type under *name* and the aliases declared on it.

        Parameters
        ----------
        name : str or None
            Command token (case-insensitive); None uses the class name.
        record : type or RecordSpec
            The record class, or a hand-written descriptor table.
        key : str
            Name of the identity field.
        positional : sequence of str
            Fields bound, in order, by the tokens after the identity.
        collection, find, create, find_or_create : callable
            Exactly one way to acquire records: a ``context -> list``
            accessor, a ``(context, key)`` find/create pair, or a single
            ``(context, key)`` find-or-create function.
        """
        access = _select_access(collection, find, create, find_or_create)
        spec = record if isinstance(record, RecordSpec) else describe(record)
        if name is None:
            name = type_name(spec.record_type)

        key_field = _require_field(spec, key)
        positional_fields = [_require_field(spec, p) for p in positional]

        with self._lock:
            registration = RecordRegistration(
                self,
                name,
                spec,
                key_field,
                positional_fields,
                access,
                self._converter,
            )
            tokens = [name]
            for alias in spec.aliases:
                if _fold(alias) not in {_fold(t) for t in tokens}:
                    tokens.append(alias)
            for token in tokens:
                self._check_free(token)

            for token in tokens:
                self._registrations[_fold(token)] = registration
            registration.aliases.extend(tokens[1:])
            self._ordered.append(registration)

            self._converter.set_description(
                spec.record_type,
                f"string <{name.lower()}-{key_field.name.lower()}>",
            )

        logger.debug(
            "Registered %s as %r (aliases: %s)",
            registration.type_name,
            name,
            ", ".join(registration.aliases) or "none",
        )
        return registration

    def add_alias(self, name: str, alias: str) -> RecordRegistration:
        """Route *alias* to the record registered as *name*."""
        with self._lock:
            registration = self._registrations.get(_fold(name))
            if registration is None:
                raise RegistrationError(f"Record '{name}' is not registered")
            self._check_free(alias)
            self._registrations[_fold(alias)] = registration
            registration.aliases.append(alias)
        logger.debug("Added alias %r for %r", alias, registration.name)
        return registration

    def register_command(self, name: str, procedure: Callable[..., Any]) -> CustomCommand:
        """Register *procedure* as the command *name*.

        The procedure's first parameter receives the context; the remaining
        ones are bound from the command's tokens.
        """
        if _fold(name) == ADD:
            raise RegistrationError(f"Command name '{ADD}' is reserved")
        command = CustomCommand(name, procedure, self.context_type)
        with self._lock:
            if _fold(name) in self._commands:
                raise RegistrationError(f"Command '{name}' is already registered")
            self._commands[_fold(name)] = command
        logger.debug(
            "Registered command %r (%d-%d parameters)",
            name,
            command.required_count - 1,
            command.total_count - 1,
        )
        return command

    def register_converter(
        self,
        target: Any,
        converter: Callable[[Any, str], Any],
        description: str | None = None,
    ) -> None:
        """Convert tokens for *target* with ``converter(context, token)``.

        *description* is shown for the type in usage strings.
        """
        with self._lock:
            self._converter.register(target, converter, description)
        logger.debug("Registered converter for %s", type_name(target))

    def _check_free(self, token: str) -> None:
        existing = self._registrations.get(_fold(token))
        if existing is not None:
            raise RegistrationError(
                f"'{token}' is already registered for type '{existing.type_name}'"
            )

    # -- introspection ---------------------------------------------------

    def is_registered(self, name: str) -> bool:
        return _fold(name) in self._registrations

    def has_command(self, name: str) -> bool:
        return _fold(name) in self._commands

    def has_converter(self, target: Any) -> bool:
        return self._converter.has_converter(target)

    @property
    def registrations(self) -> list[RecordRegistration]:
        """Registrations in registration order."""
        return list(self._ordered)

    @property
    def record_types(self) -> list[type]:
        return [r.record_type for r in self._ordered]

    @property
    def commands(self) -> list[str]:
        """Custom command names in registration order."""
        return [c.name for c in self._commands.values()]

    @property
    def converters(self) -> list[Any]:
        return self._converter.converters

    @property
    def converter(self) -> TypeConverter:
        return self._converter

    def registration(self, name: str) -> RecordRegistration:
        """Return the registration routed from *name* (or one of its aliases)."""
        registration = self._registrations.get(_fold(name))
        if registration is None:
            raise UnknownRecordTypeError(
                f"Type '{name}' is not registered." + did_you_mean(name, self._record_tokens())
            )
        return registration

    def registration_for(self, record_type: type) -> RecordRegistration | None:
        """The registration for *record_type*, else the first one it derives from."""
        registration = self._registration_for_exact_type(record_type)
        if registration is not None:
            return registration
        if isinstance(record_type, type):
            for candidate in self._ordered:
                if issubclass(record_type, candidate.record_type):
                    return candidate
        return None

    def command(self, name: str) -> CustomCommand:
        command = self._commands.get(_fold(name))
        if command is None:
            raise UnsupportedActionError(
                f"Action '{name}' not supported." + did_you_mean(name, [ADD, *self.commands])
            )
        return command

    def _registration_for_exact_type(self, record_type: Any) -> RecordRegistration | None:
        for registration in self._ordered:
            if registration.record_type is record_type:
                return registration
        return None

    def _record_tokens(self) -> list[str]:
        return [token for r in self._ordered for token in r.names]

    # -- interpreter -----------------------------------------------------

    def convert(self, context: Any, token: str, target: Any) -> Any:
        """Convert *token* to *target* the way command arguments are converted."""
        return self._converter.convert(context, token, target)

    def run(self, context: Any, line: str) -> Any:
        """Parse and run one command line (e.g. ``add language nl Dutch``).

        Returns the created or updated record for ``add``, and the
        procedure's return value for custom commands.
        """
        self._check_context(context)

        tokens = tokenize(line)
        if not tokens:
            raise InvalidCommandError("Command is empty")

        action = _fold(tokens[0])
        if action != ADD:
            command = self.command(tokens[0])
            logger.debug("Running command %r with %d argument(s)", command.name, len(tokens) - 1)
            return command.invoke(context, tokens[1:], self._converter)

        return self._run_add(context, tokens)

    def run_many(self, context: Any, text: str) -> list[Any]:
        """Run every command line in *text*, in order.

        Blank lines and lines starting with ``#`` are skipped. The first
        failing line raises and the remaining lines are not run.
        """
        self._check_context(context)
        results: list[Any] = []
        for line in text.splitlines():
            line = line.strip()
            if is_comment(line):
                continue
            results.append(self.run(context, line))
        return results

    def _check_context(self, context: Any) -> None:
        if context is None:
            raise TypeError("context must not be None")
        if self.context_type is not None and not isinstance(context, self.context_type):
            raise TypeError(
                f"context must be a {self.context_type.__name__}, got {type(context).__name__}"
            )

    def _run_add(self, context: Any, tokens: list[str]) -> Any:
        if len(tokens) < 3:
            raise InvalidCommandError("Command must have at least 3 tokens: 'add', type, key")

        registration = self.registration(tokens[1])
        key = tokens[2]

        positionals: list[str] = []
        named: dict[str, tuple[str, str]] = {}
        for token in tokens[3:]:
            if not is_named(token):
                positionals.append(token)
                continue
            parsed = parse_named(token)
            if parsed is None:
                raise InvalidCommandError(
                    f"Named argument '{token}' must be in the format --Property=value"
                )
            named[_fold(parsed[0])] = parsed

        record = registration.find_or_create(context, key)

        for field_spec, token in zip(registration.positional_fields, positionals):
            field_spec.set(record, self._converter.convert(context, token, field_spec.type))
        if len(positionals) > len(registration.positional_fields):
            logger.debug(
                "Ignoring %d extra positional token(s) for %r",
                len(positionals) - len(registration.positional_fields),
                registration.name,
            )

        for name, value in named.values():
            self._bind_named(context, registration, record, name, value)

        return record

    def _bind_named(
        self,
        context: Any,
        registration: RecordRegistration,
        record: Any,
        name: str,
        value: str,
    ) -> None:
        field_spec = registration.lookup_field(name)
        if field_spec is not None:
            field_spec.set(record, self._converter.convert(context, value, field_spec.type))
            return

        # --label:en=English calls label(en, English) or set_label(en, English)
        method_name, sep, argument = name.partition(":")
        if sep and method_name:
            method = registration.resolve_method(method_name)
            first_type, second_type = method.parameter_types
            method.invoke(
                record,
                self._converter.convert(context, argument, first_type),
                self._converter.convert(context, value, second_type),
            )
            return

        raise UnknownFieldError(
            f"Property '{name}' does not exist on type '{registration.type_name}'."
            + did_you_mean(name, [n for f in registration.spec.fields for n in f.names])
        )

    # -- generation ------------------------------------------------------

    def generate_command(self, record: Any, options: GenerationOptions | None = None) -> str:
        """Render *record* as the ``add`` command that recreates it."""
        return generation.generate_command(self, record, options or self.generation_options)

    def usage_example(self, name: str) -> str:
        return generation.usage_example(self, name)

    def detailed_usage_example(self, name: str) -> str:
        return generation.detailed_usage_example(self, name)

    def command_prompt(self, name: str) -> str:
        return generation.command_prompt(self, name)

    def reference_card(self) -> str:
        return generation.reference_card(self)
