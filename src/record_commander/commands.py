"""Custom commands: procedures invoked by a leading token other than ``add``.

A procedure takes the context as its first parameter, followed by zero or
more parameters bound from the remaining tokens. Trailing parameters with a
default are optional.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from record_commander.errors import ArityError, RegistrationError

if TYPE_CHECKING:
    from record_commander.converter import TypeConverter

_EMPTY = inspect.Parameter.empty


@dataclass
class ParameterSpec:
    """One bindable parameter of a custom command."""

    name: str
    type: Any = str
    default: Any = _EMPTY

    @property
    def optional(self) -> bool:
        return self.default is not _EMPTY


def _accepts_context(annotation: Any, context_type: type | None) -> bool:
    if context_type is None or annotation is _EMPTY or not isinstance(annotation, type):
        return True
    return issubclass(context_type, annotation)


class CustomCommand:
    """A registered procedure and its parameter descriptors."""

    def __init__(
        self,
        name: str,
        procedure: Callable[..., Any],
        context_type: type | None = None,
    ) -> None:
        try:
            signature = inspect.signature(procedure, eval_str=True)
        except (TypeError, ValueError) as exc:
            raise RegistrationError(f"Cannot inspect procedure for command '{name}'") from exc

        parameters: list[ParameterSpec] = []
        for parameter in signature.parameters.values():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
                raise RegistrationError(
                    f"Command '{name}' cannot take *args or **kwargs"
                )
            if parameter.kind is parameter.KEYWORD_ONLY:
                if parameter.default is _EMPTY:
                    raise RegistrationError(
                        f"Keyword-only parameter '{parameter.name}' of command '{name}' needs a default"
                    )
                continue
            annotation = parameter.annotation
            parameters.append(
                ParameterSpec(
                    name=parameter.name,
                    type=str if annotation is _EMPTY else annotation,
                    default=parameter.default,
                )
            )

        if not parameters:
            raise RegistrationError(
                f"The first parameter of command '{name}' must be the context"
            )
        context_annotation = signature.parameters[parameters[0].name].annotation
        if not _accepts_context(context_annotation, context_type):
            raise RegistrationError(
                f"The first parameter of command '{name}' must be of type {context_type.__name__}"
            )

        self.name = name
        self.procedure = procedure
        self.parameters = parameters
        # the context parameter counts as required
        self.required_count = 1
        for parameter_spec in parameters[1:]:
            if parameter_spec.optional:
                break
            self.required_count += 1

    def __repr__(self) -> str:
        return f"CustomCommand(name={self.name!r}, parameters={len(self.parameters) - 1})"

    @property
    def total_count(self) -> int:
        return len(self.parameters)

    @property
    def arguments(self) -> list[ParameterSpec]:
        """Parameters bound from tokens (the context excluded)."""
        return self.parameters[1:]

    def check_arity(self, count: int) -> None:
        """Validate that *count* trailing tokens fit this command."""
        required = self.required_count - 1
        total = self.total_count - 1
        if required <= count <= total:
            return
        if required == total:
            raise ArityError(
                f"Command '{self.name}' must have exactly {total} parameter(s), got {count}"
            )
        if count < required:
            raise ArityError(
                f"Command '{self.name}' must have at least {required} parameter(s), got {count}"
            )
        raise ArityError(
            f"Command '{self.name}' must have at most {total} parameter(s), got {count}"
        )

    def invoke(self, context: Any, tokens: list[str], converter: TypeConverter) -> Any:
        """Convert *tokens* and call the procedure.

        Omitted optional parameters receive their declared defaults.
        """
        self.check_arity(len(tokens))
        args: list[Any] = [context]
        for parameter_spec, token in zip(self.arguments, tokens):
            args.append(converter.convert(context, token, parameter_spec.type))
        for parameter_spec in self.arguments[len(tokens):]:
            args.append(parameter_spec.default)
        return self.procedure(*args)
