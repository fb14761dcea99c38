"""MCP server factory exposing a command registry and a context as tools.

Registers 3 tools: {domain}, {domain}_usage, {domain}_help.
Embeds the reference card in the main tool description.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent

from record_commander.formatter import did_you_mean, format_result
from record_commander.registry import CommandRegistry
from record_commander.tokenizer import is_comment

logger = logging.getLogger(__name__)


def _describe_result(registry: CommandRegistry, line: str, result: Any) -> str:
    if result is not None and registry.registration_for(type(result)) is not None:
        return registry.generate_command(result)
    return line


def execute_batch(
    registry: CommandRegistry,
    context: Any,
    commands: list[str],
    *,
    snapshot: Callable[[Any], Any] | None = None,
    restore: Callable[[Any, Any], None] | None = None,
) -> str:
    """Run *commands* against *context* and format one result line each.

    Records created or updated by ``add`` are echoed as their regenerated
    command. Without snapshot/restore a failing command is reported and the
    batch goes on; with them, the first failure restores the snapshot and
    ends the batch.
    """
    state = snapshot(context) if snapshot is not None else None

    results: list[str] = []
    for i, raw in enumerate(commands):
        line = raw.strip()
        if is_comment(line):
            continue
        try:
            result = registry.run(context, line)
            message = _describe_result(registry, line, result)
        except Exception as exc:
            logger.debug("Command %d failed: %s", i + 1, exc)
            if restore is not None:
                restore(context, state)
                return (
                    f"! Batch failed at command {i + 1}: {line}. "
                    f"Error: {exc}. "
                    f"State rolled back ({i} commands reverted)."
                )
            results.append(format_result(False, str(exc)))
            continue
        results.append(format_result(True, message))

    return "\n".join(results)


def usage_text(registry: CommandRegistry, name: str) -> str:
    """Detailed usage for a record type or a custom command."""
    if registry.is_registered(name):
        return registry.detailed_usage_example(name)
    if registry.has_command(name):
        return registry.command_prompt(name)
    candidates = [t for r in registry.registrations for t in r.names] + registry.commands
    return format_result(False, f"Unknown record or command {name!r}." + did_you_mean(name, candidates))


def _build_tool_description(domain: str, registry: CommandRegistry) -> str:
    """Build the inline tool description embedding the reference card."""
    lines: list[str] = []
    lines.append(
        f"Execute {domain} commands. Each command follows: "
        f"add TYPE KEY [VALUE ...] [--field=value ...] or COMMAND [ARG ...]\n"
        f"Call {domain}_help for the full reference card.\n"
    )

    if registry.registrations:
        lines.append("RECORDS:")
        for registration in registry.registrations:
            lines.append(f"  {registry.usage_example(registration.name)}")
        lines.append("")

    if registry.commands:
        lines.append("COMMANDS:")
        for name in registry.commands:
            lines.append(f"  {registry.command_prompt(name)}")
        lines.append("")

    return "\n".join(lines)


def create_command_server(
    domain: str,
    registry: CommandRegistry,
    context: Any,
    *,
    snapshot: Callable[[Any], Any] | None = None,
    restore: Callable[[Any, Any], None] | None = None,
    **kwargs,
) -> FastMCP:
    """Create an MCP server running commands against *context*.

    Registers 3 tools:
    - ``{domain}``: run a batch of command lines
    - ``{domain}_usage``: detailed usage for one record type or command
    - ``{domain}_help``: reference card

    Parameters
    ----------
    domain : str
        Domain name (e.g. "catalog"). Used as tool name prefix.
    registry : CommandRegistry
        Populated registry.
    context : object
        The context every command runs against.
    snapshot, restore : callable, optional
        ``snapshot(context) -> state`` and ``restore(context, state)``; when
        given, a failing batch is rolled back.
    **kwargs
        Additional arguments passed to FastMCP constructor.
    """
    if (snapshot is None) != (restore is None):
        raise ValueError("snapshot and restore must be provided together")

    mcp = FastMCP(**kwargs)

    tool_description = _build_tool_description(domain, registry)
    reference_card = registry.reference_card()

    @mcp.tool(name=domain, description=tool_description, structured_output=False)
    def execute_commands(commands: list[str]) -> TextContent:
        text = execute_batch(registry, context, commands, snapshot=snapshot, restore=restore)
        return TextContent(type="text", text=text)

    @mcp.tool(
        name=f"{domain}_usage",
        description=f"Usage of one {domain} record type or command.",
        structured_output=False,
    )
    def get_usage(name: str) -> TextContent:
        return TextContent(type="text", text=usage_text(registry, name))

    @mcp.tool(
        name=f"{domain}_help",
        description=f"Returns the {domain} reference card with all syntax.",
        structured_output=False,
    )
    def get_help() -> str:
        return reference_card

    return mcp
