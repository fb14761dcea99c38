"""Exception hierarchy for registration, interpretation and conversion.

Every failure surfaced by the interpreter derives from :class:`CommandError`,
itself a :class:`ValueError`, so callers can catch broadly or precisely.
"""

from __future__ import annotations


class CommandError(ValueError):
    """Base class for every interpreter failure."""


class InvalidCommandError(CommandError):
    """Empty input, missing tokens or malformed named-argument syntax."""


class UnsupportedActionError(CommandError):
    """The leading token is neither ``add`` nor a registered command."""


class UnknownRecordTypeError(CommandError):
    """No registration matches a type name or record instance."""


class UnknownFieldError(CommandError):
    """A named argument does not match any field or field alias."""


class UnknownMemberError(CommandError):
    """A ``--method:arg=value`` argument matches no member of the record."""


class ArityError(CommandError):
    """A command or member received the wrong number of arguments."""


class GenerationError(CommandError):
    """A record cannot be rendered back into a command."""


class ConversionError(CommandError):
    """Base class for token-to-value conversion failures."""


class InvalidArrayFormatError(ConversionError):
    """An array token is not a ``[...]`` literal or cannot be parsed."""


class InvalidEnumValueError(ConversionError):
    """A token names no member of the target enum."""


class InvalidFormatError(ConversionError):
    """A token does not match a fixed scalar format (date, time span, UUID)."""


class ConversionFailedError(ConversionError):
    """The generic scalar fallback could not convert a token."""


class RegistrationError(ValueError):
    """A record, command or converter registration is invalid or conflicts."""
