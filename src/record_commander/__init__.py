"""Record Commander: text commands that create, update and describe typed records."""

from record_commander.commands import CustomCommand, ParameterSpec
from record_commander.converter import TypeConverter
from record_commander.descriptors import (
    FieldSpec,
    MethodSpec,
    RecordSpec,
    aliased,
    aliases,
    describe,
    is_zero_value,
)
from record_commander.errors import (
    ArityError,
    CommandError,
    ConversionError,
    ConversionFailedError,
    GenerationError,
    InvalidArrayFormatError,
    InvalidCommandError,
    InvalidEnumValueError,
    InvalidFormatError,
    RegistrationError,
    UnknownFieldError,
    UnknownMemberError,
    UnknownRecordTypeError,
    UnsupportedActionError,
)
from record_commander.formatter import format_result, suggest
from record_commander.generation import GenerationOptions
from record_commander.registration import RecordRegistration
from record_commander.registry import CommandRegistry
from record_commander.server import create_command_server, execute_batch
from record_commander.tokenizer import tokenize

__all__ = [
    # Tokenizer
    "tokenize",
    # Descriptors
    "FieldSpec",
    "MethodSpec",
    "RecordSpec",
    "aliased",
    "aliases",
    "describe",
    "is_zero_value",
    # Registry
    "CommandRegistry",
    "RecordRegistration",
    "CustomCommand",
    "ParameterSpec",
    "TypeConverter",
    # Generation
    "GenerationOptions",
    # Errors
    "CommandError",
    "InvalidCommandError",
    "UnsupportedActionError",
    "UnknownRecordTypeError",
    "UnknownFieldError",
    "UnknownMemberError",
    "ArityError",
    "GenerationError",
    "ConversionError",
    "InvalidArrayFormatError",
    "InvalidEnumValueError",
    "InvalidFormatError",
    "ConversionFailedError",
    "RegistrationError",
    # Formatter
    "format_result",
    "suggest",
    # Server
    "create_command_server",
    "execute_batch",
]
