"""Tests for record_commander.generation."""

import datetime as dt
import enum
from dataclasses import dataclass, field

import pytest

from record_commander.descriptors import MethodSpec, aliased, aliases
from record_commander.errors import GenerationError, UnknownRecordTypeError
from record_commander.generation import GenerationOptions, format_timespan, member_token, quote
from record_commander.registry import CommandRegistry


class Level(enum.Enum):
    NONE = 0
    HIGH = 2


class Perm(enum.Flag):
    READ = 1
    WRITE = 2
    EXECUTE = 4


@aliases("lang")
@dataclass
class Language:
    key: str = ""
    name: str = ""
    native_name: str = ""
    _labels: dict = field(default_factory=dict, repr=False)

    def set_label(self, culture: str, label: str) -> None:
        self._labels[culture] = label

    def get_label(self, culture: str) -> str | None:
        return self._labels.get(culture)


@aliases("ctr")
@dataclass
class Country:
    code: str = ""
    name: str = ""
    spoken_languages: list[str] = aliased("langs", default_factory=list)
    main_language: Language | None = None
    founded: dt.date | None = None
    population: int = 0


@dataclass
class Book:
    isbn: str = ""
    title: str = ""
    author: str = ""
    year: int = 0
    tags: set[str] = field(default_factory=set)


@dataclass
class Setting:
    key: str = ""
    level: Level = Level.NONE
    perms: Perm = Perm(0)
    enabled: bool = False
    timeout: dt.timedelta = dt.timedelta(0)
    ratio: float = 0.0


@dataclass
class Data:
    languages: list = field(default_factory=list)
    countries: list = field(default_factory=list)
    books: list = field(default_factory=list)
    settings: list = field(default_factory=list)


def update_language(ctx: Data, key: str, name: str, native: str | None = None) -> None:
    pass


def repeat(ctx: Data, text: str, times: int) -> str:
    return text * times


def _make_registry(**kwargs):
    registry = CommandRegistry(Data, **kwargs)
    registry.register(
        "language",
        Language,
        collection=lambda ctx: ctx.languages,
        key="key",
        positional=["name"],
    )
    registry.register(
        "country",
        Country,
        collection=lambda ctx: ctx.countries,
        key="code",
        positional=["name", "spoken_languages"],
    )
    registry.register(
        "book",
        Book,
        collection=lambda ctx: ctx.books,
        key="isbn",
        positional=["title", "author", "year"],
    )
    registry.register("setting", Setting, collection=lambda ctx: ctx.settings, key="key")
    return registry


BOOKS = """\
add book 978-0261103344 "The Hobbit" "J. R. R. Tolkien" 1937
add book 978-0441172719 Dune "Frank Herbert" 1965
add book 978-0060850524 "Brave New World" "Aldous Huxley" 1932 --tags=[classic,dystopia]"""


class TestGenerateCommand:
    def test_books_round_trip_byte_identical(self):
        registry = _make_registry()
        data = Data()
        registry.run_many(data, BOOKS)
        generated = "\n".join(registry.generate_command(book) for book in data.books)
        assert generated == BOOKS

    def test_positional(self):
        registry = _make_registry()
        language = Language(key="en", name="English")
        assert registry.generate_command(language) == "add language en English"

    def test_named_only(self):
        registry = _make_registry()
        options = GenerationOptions(use_positional=False)
        language = Language(key="en", name="English", native_name="English")
        assert (
            registry.generate_command(language, options)
            == "add language en --name=English --native_name=English"
        )

    def test_registry_default_options(self):
        registry = _make_registry(generation_options=GenerationOptions(use_positional=False))
        assert registry.generate_command(Language(key="en", name="English")) == (
            "add language en --name=English"
        )

    def test_prefer_aliases(self):
        registry = _make_registry()
        options = GenerationOptions(prefer_aliases=True, use_positional=False)
        country = Country(code="be", name="Belgium", spoken_languages=["nl", "fr"])
        assert (
            registry.generate_command(country, options)
            == "add ctr be --name=Belgium --langs=[nl,fr]"
        )

    def test_keep_defaults(self):
        registry = _make_registry()
        options = GenerationOptions(skip_defaults=False)
        language = Language(key="en", name="English")
        assert registry.generate_command(language, options) == 'add language en English --native_name=""'

    def test_none_always_skipped(self):
        registry = _make_registry()
        options = GenerationOptions(skip_defaults=False)
        country = Country(code="be", name="Belgium", spoken_languages=["nl"])
        assert (
            registry.generate_command(country, options)
            == "add country be Belgium [nl] --population=0"
        )

    def test_positional_run_stops_at_missing_field(self):
        registry = _make_registry()
        country = Country(code="be", spoken_languages=["nl", "fr"])
        assert registry.generate_command(country) == "add country be --spoken_languages=[nl,fr]"

    def test_positional_run_stops_before_later_fields(self):
        registry = _make_registry()
        book = Book(isbn="1", title="Untitled", year=2001)
        assert registry.generate_command(book) == "add book 1 Untitled --year=2001"

    def test_dash_dash_value_leaves_positional_run(self):
        registry = _make_registry()
        command = registry.generate_command(Language(key="h", name="--x"))
        assert command == "add language h --name=--x"
        data = Data()
        registry.run(data, command)
        assert data.languages == [Language(key="h", name="--x")]

    def test_dash_dash_value_moves_later_positionals(self):
        registry = _make_registry()
        book = Book(isbn="1", title="--draft notes", author="Me", year=2020)
        command = registry.generate_command(book)
        assert command == 'add book 1 --title="--draft notes" --author=Me --year=2020'
        data = Data()
        registry.run(data, command)
        assert data.books == [book]

    def test_quotes_whitespace_and_quotes(self):
        registry = _make_registry()
        assert registry.generate_command(Language(key="en us", name="It's")) == (
            'add language "en us" "It\'s"'
        )

    def test_escapes_double_quotes(self):
        registry = _make_registry()
        record = Language(key="q", name='say "hi"')
        command = registry.generate_command(record)
        assert command == 'add language q "say \\"hi\\""'
        data = Data()
        registry.run(data, command)
        assert data.languages[0].name == 'say "hi"'

    def test_array_with_special_elements(self):
        registry = _make_registry()
        country = Country(code="x", name="X", spoken_languages=["a,b", "c"])
        command = registry.generate_command(country)
        assert command == 'add country x X "[\\"a,b\\",\\"c\\"]"'
        data = Data()
        registry.run(data, command)
        assert data.countries[0].spoken_languages == ["a,b", "c"]

    def test_array_with_spaces(self):
        registry = _make_registry()
        country = Country(code="x", name="X", spoken_languages=["New Norwegian", "Sami"])
        assert registry.generate_command(country) == 'add country x X "[New Norwegian,Sami]"'

    def test_reference_rendered_as_key(self):
        registry = _make_registry()
        dutch = Language(key="nl", name="Dutch")
        country = Country(code="be", name="Belgium", main_language=dutch, founded=dt.date(1830, 10, 4))
        assert (
            registry.generate_command(country)
            == "add country be Belgium --main_language=nl --founded=1830-10-04"
        )

    def test_scalar_formats(self):
        registry = _make_registry()
        setting = Setting(
            key="s1",
            level=Level.HIGH,
            perms=Perm.READ | Perm.WRITE,
            enabled=True,
            timeout=dt.timedelta(hours=1, minutes=30),
            ratio=0.5,
        )
        command = registry.generate_command(setting)
        assert command == (
            "add setting s1 --level=HIGH --perms=READ,WRITE --enabled=true "
            "--timeout=01:30:00 --ratio=0.5"
        )
        data = Data()
        registry.run(data, command)
        assert data.settings == [setting]

    def test_default_scalars_skipped(self):
        registry = _make_registry()
        assert registry.generate_command(Setting(key="s0")) == "add setting s0"

    def test_context_round_trip(self):
        registry = _make_registry()
        source = Data()
        registry.run_many(
            source,
            """
            add language nl Dutch --native_name=Nederlands
            add language fr French
            add country be Belgium [nl,fr] --main_language=nl --population=11500000
            add setting s1 --perms=execute --timeout=1.00:00:00
            """,
        )
        records = source.languages + source.countries + source.settings
        commands = [registry.generate_command(record) for record in records]

        copy = Data()
        registry.run_many(copy, "\n".join(commands))
        assert copy.languages == source.languages
        assert copy.settings == source.settings
        assert copy.countries[0].main_language is copy.languages[0]
        assert copy.countries[0].population == 11500000

    def test_subclass_uses_base_registration(self):
        @dataclass
        class Dialect(Language):
            pass

        registry = _make_registry()
        assert registry.generate_command(Dialect(key="vls", name="West Flemish")) == (
            'add language vls "West Flemish"'
        )

    def test_unregistered_type(self):
        with pytest.raises(UnknownRecordTypeError, match="No registration found for type Data"):
            _make_registry().generate_command(Data())

    def test_missing_key(self):
        with pytest.raises(GenerationError, match="'key'"):
            _make_registry().generate_command(Language(key=None))


class TestFormatting:
    def test_quote(self):
        assert quote("plain") == "plain"
        assert quote("") == '""'
        assert quote("two words") == '"two words"'
        assert quote("back\\slash x") == '"back\\\\slash x"'

    def test_quote_keeps_bare_backslash(self):
        assert quote("C:\\temp") == "C:\\temp"

    def test_format_timespan(self):
        assert format_timespan(dt.timedelta(minutes=5)) == "00:05:00"
        assert format_timespan(dt.timedelta(days=1, hours=2)) == "1.02:00:00"
        assert format_timespan(dt.timedelta(seconds=1, microseconds=500)) == "00:00:01.000500"
        assert format_timespan(-dt.timedelta(hours=1)) == "-01:00:00"

    def test_member_token(self):
        def noop(record, a, b):
            pass

        assert member_token(MethodSpec(name="set_label", function=noop)) == "label"
        assert member_token(MethodSpec(name="setLabel", function=noop)) == "Label"
        assert member_token(MethodSpec(name="settle", function=noop)) == "settle"
        assert member_token(MethodSpec(name="label", function=noop)) == "label"


class TestUsage:
    def test_usage_example(self):
        assert _make_registry().usage_example("language") == (
            "add language <key> <name> [--native_name=<string>] [--label:<string>=<string>]"
        )

    def test_usage_example_by_alias(self):
        registry = _make_registry()
        assert registry.usage_example("lang") == registry.usage_example("language")

    def test_usage_example_types(self):
        assert _make_registry().usage_example("country") == (
            "add country <code> <name> <spoken_languages> "
            "[--main_language=<string <language-key>>] "
            "[--founded=<yyyy-MM-dd>] [--population=<int>]"
        )

    def test_custom_converter_description(self):
        registry = _make_registry()
        registry.register_converter(int, lambda ctx, token: int(token, 0), "integer literal")
        assert "[--population=<integer literal>]" in registry.usage_example("country")

    def test_detailed_usage_example(self):
        lines = _make_registry().detailed_usage_example("language").splitlines()
        assert lines == [
            "add language <key> <name> [--native_name=<string>] [--label:<string>=<string>]",
            "aliases: lang",
            "  <key>" + " " * 13 + "string  identity",
            "  <name>" + " " * 12 + "string  position 1",
            "  --native_name" + " " * 5 + "string",
            "  --label:<string>  string  calls set_label",
        ]

    def test_detailed_usage_lists_field_aliases(self):
        text = _make_registry().detailed_usage_example("country")
        assert "position 2; aliases: langs" in text
        assert "aliases: ctr" in text.splitlines()[1]

    def test_detailed_usage_without_aliases(self):
        lines = _make_registry().detailed_usage_example("setting").splitlines()
        assert lines[0] == (
            "add setting <key> [--level=<NONE|HIGH>] [--perms=<READ|WRITE|EXECUTE>] "
            "[--enabled=<true|false>] [--timeout=<[d.]hh:mm:ss>] [--ratio=<number>]"
        )
        assert lines[1].startswith("  <key>")

    def test_usage_unknown_type(self):
        with pytest.raises(UnknownRecordTypeError):
            _make_registry().usage_example("planet")


class TestCommandPrompt:
    def test_optional_tail_bracketed(self):
        registry = _make_registry()
        registry.register_command("update-language", update_language)
        assert registry.command_prompt("update-language") == "update-language <key> <name> [<native>]"

    def test_typed_parameters(self):
        registry = _make_registry()
        registry.register_command("repeat", repeat)
        assert registry.command_prompt("REPEAT") == "repeat <text> <times:int>"


class TestReferenceCard:
    def test_lists_records_and_commands(self):
        registry = _make_registry()
        registry.register_command("repeat", repeat)
        card = registry.reference_card()
        lines = card.splitlines()
        assert lines[0] == "### Records"
        assert lines[1] == (
            "  add language <key> <name> [--native_name=<string>] "
            "[--label:<string>=<string>]  (aliases: lang)"
        )
        assert "### Commands" in lines
        assert "  repeat <text> <times:int>" in lines

    def test_empty_registry(self):
        assert CommandRegistry().reference_card() == ""
