"""Record registrations: one per registered record type.

A registration ties a command name to a :class:`RecordSpec`, names the
identity field and the positional fields, indexes every field name and alias
case-insensitively, and knows how to find or create records in a context
through exactly one acquisition strategy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from record_commander.converter import type_name
from record_commander.descriptors import FieldSpec, MethodSpec, RecordSpec
from record_commander.errors import ArityError, RegistrationError, UnknownMemberError
from record_commander.formatter import did_you_mean

if TYPE_CHECKING:
    from record_commander.converter import TypeConverter
    from record_commander.registry import CommandRegistry


def same_key(value: Any, key: str) -> bool:
    """Case-insensitive comparison of an identity value with a key token."""
    return value is not None and str(value).casefold() == key.casefold()


class CollectionAccess:
    """Records live in a mutable list returned by ``accessor(context)``.

    Lookup is a linear scan on the identity field; creation builds a record
    with the RecordSpec factory, sets its key and appends it.
    """

    def __init__(self, accessor: Callable[[Any], list[Any]]) -> None:
        self._accessor = accessor

    def find(self, registration: RecordRegistration, context: Any, key: str) -> Any:
        for item in self._accessor(context):
            if same_key(registration.key_field.get(item), key):
                return item
        return None

    def find_or_create(self, registration: RecordRegistration, context: Any, key: str) -> Any:
        record = self.find(registration, context, key)
        if record is None:
            record = registration.spec.create()
            registration.key_field.set(record, registration.convert_key(context, key))
            self._accessor(context).append(record)
        return record


class LookupAccess:
    """Records are found with ``find(context, key)`` and made with ``create(context, key)``."""

    def __init__(
        self,
        find: Callable[[Any, str], Any],
        create: Callable[[Any, str], Any],
    ) -> None:
        self._find = find
        self._create = create

    def find(self, registration: RecordRegistration, context: Any, key: str) -> Any:
        return self._find(context, key)

    def find_or_create(self, registration: RecordRegistration, context: Any, key: str) -> Any:
        record = self._find(context, key)
        if record is None:
            record = self._create(context, key)
        return record


class FindOrCreateAccess:
    """A single ``find_or_create(context, key)`` serves lookups and creation."""

    def __init__(self, find_or_create: Callable[[Any, str], Any]) -> None:
        self._find_or_create = find_or_create

    def find(self, registration: RecordRegistration, context: Any, key: str) -> Any:
        return self._find_or_create(context, key)

    def find_or_create(self, registration: RecordRegistration, context: Any, key: str) -> Any:
        return self._find_or_create(context, key)


Access = CollectionAccess | LookupAccess | FindOrCreateAccess


def _index_fields(spec: RecordSpec) -> dict[str, FieldSpec]:
    index: dict[str, FieldSpec] = {}
    for field_spec in spec.fields:
        for name in field_spec.names:
            folded = name.casefold()
            claimed = index.get(folded)
            if claimed is not None and claimed is not field_spec:
                raise RegistrationError(
                    f"Name '{name}' on type '{type_name(spec.record_type)}' is claimed "
                    f"by both '{claimed.name}' and '{field_spec.name}'"
                )
            index[folded] = field_spec
    return index


class RecordRegistration:
    """Registration details for one record type."""

    def __init__(
        self,
        registry: CommandRegistry,
        name: str,
        spec: RecordSpec,
        key_field: FieldSpec,
        positional_fields: list[FieldSpec],
        access: Access,
        converter: TypeConverter,
    ) -> None:
        self._registry = registry
        self._access = access
        self._converter = converter
        self.name = name
        self.spec = spec
        self.key_field = key_field
        self.positional_fields = positional_fields
        self.fields = _index_fields(spec)
        self.aliases: list[str] = []

    def __repr__(self) -> str:
        return f"RecordRegistration(name={self.name!r}, record_type={self.type_name})"

    @property
    def record_type(self) -> type:
        return self.spec.record_type

    @property
    def type_name(self) -> str:
        return type_name(self.spec.record_type)

    @property
    def names(self) -> list[str]:
        """Every command token routed to this registration."""
        return [self.name, *self.aliases]

    def lookup_field(self, name: str) -> FieldSpec | None:
        """Find a field by name or alias, ignoring case."""
        return self.fields.get(name.casefold())

    def resolve_method(self, name: str) -> MethodSpec:
        """Resolve ``--name:arg=value`` to a two-argument member.

        Members named exactly *name* win over ``set``/``set_`` prefixed ones.
        """
        folded = name.casefold()
        accepted = (folded, "set" + folded, "set_" + folded)
        candidates = [m for m in self.spec.methods if m.name.casefold() in accepted]
        if not candidates:
            raise UnknownMemberError(
                f"Method '{name}' does not exist on type '{self.type_name}'."
                + did_you_mean(name, [m.name for m in self.spec.methods])
            )

        matching = [m for m in candidates if m.arity == 2]
        if not matching:
            invalid = candidates[0]
            raise ArityError(
                f"Method '{invalid.name}' must have exactly 2 parameters, "
                f"got {invalid.arity} instead"
            )

        for method in matching:
            if method.name.casefold() == folded:
                return method
        return matching[0]

    def convert_key(self, context: Any, key: str) -> Any:
        return self._converter.convert(context, key, self.key_field.type)

    def find(self, context: Any, key: str) -> Any:
        """Return the record whose identity matches *key*, or None."""
        return self._access.find(self, context, key)

    def find_or_create(self, context: Any, key: str) -> Any:
        """Return the record whose identity matches *key*, creating it if absent."""
        return self._access.find_or_create(self, context, key)

    def add_alias(self, alias: str) -> RecordRegistration:
        return self._registry.add_alias(self.name, alias)
