"""Text-based tool-call protocol.

The assistant model is told to request tools by writing a three-line block
into its reply::

    TOOL: search_products
    ARGS: {"query": "pork"}
    REASON: customer asked what pork we stock

``decode`` finds those blocks, ``apply`` runs them through the tool provider
and splices each outcome back into the reply in place of its block, leaving
the surrounding prose untouched.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

from loguru import logger

from orderbot.constants import TOOLS_UNAVAILABLE_NOTICE
from orderbot.providers.llm.base import ToolDefinition

if TYPE_CHECKING:
    from orderbot.agents.tools import ToolRegistry


# ARGS is a single line; anything on it that is not a JSON object decodes
# as malformed. REASON runs to the first blank line, the next block, or the
# end of text.
TOOL_CALL_PATTERN = re.compile(
    r"TOOL:[ \t]*([A-Za-z0-9_\-]+)[ \t]*\n"
    r"ARGS:[ \t]*([^\n]*?)[ \t]*\n"
    r"REASON:[ \t]*(.*?)(?=\n[ \t]*\n|\nTOOL:|\Z)",
    re.DOTALL,
)

TOOL_FORMAT_INSTRUCTIONS = """\
To use a tool, write the call on three consecutive lines exactly like this:
TOOL: <tool_name>
ARGS: <json_object>
REASON: <why you are calling it>

ARGS must be a single-line JSON object. You may write regular conversational
text before or after a tool call."""


# ---------------------------------------------------------------------------
# Payload types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolCallRequest:
    """A well-formed tool-call block."""

    name: str
    arguments: dict[str, Any]
    reason: str = ""
    span: tuple[int, int] = field(default=(0, 0), compare=False)


@dataclass(frozen=True)
class MalformedToolCall:
    """A tool-call block whose ARGS did not decode to a JSON object."""

    name: str
    raw_arguments: str
    error: str
    span: tuple[int, int] = field(default=(0, 0), compare=False)


DecodedToolCall = Union[ToolCallRequest, MalformedToolCall]


class ResultKind(str, Enum):
    TEXT = "text"
    JSON = "json"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool invocation.

    ``kind`` tells how ``value`` is rendered back into the reply: text as
    is, JSON serialized, and anything else through ``str()``.
    """

    kind: ResultKind
    value: Any

    @classmethod
    def from_value(cls, value: Any) -> ToolResult:
        if isinstance(value, str):
            return cls(ResultKind.TEXT, value)
        if isinstance(value, (dict, list)):
            return cls(ResultKind.JSON, value)
        return cls(ResultKind.OPAQUE, value)

    def render(self) -> str:
        if self.kind is ResultKind.TEXT:
            return self.value
        if self.kind is ResultKind.JSON:
            return json.dumps(self.value, ensure_ascii=False, default=str)
        return str(self.value)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def build_system_prompt(base_prompt: str, tools: list[ToolDefinition]) -> str:
    """Append the tool list and the call format to ``base_prompt``.

    With no tools the base prompt is returned unchanged.
    """
    if not tools:
        return base_prompt

    listing = "\n".join(f"- {tool.name}: {tool.description}" for tool in tools)
    return (
        f"{base_prompt.rstrip()}\n\n"
        f"You have access to the following tools:\n{listing}\n\n"
        f"{TOOL_FORMAT_INSTRUCTIONS}"
    )


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode(text: str) -> list[DecodedToolCall]:
    """Return every tool-call block in ``text``, in order of appearance."""
    calls: list[DecodedToolCall] = []
    for match in TOOL_CALL_PATTERN.finditer(text):
        name, raw_args, reason = match.group(1), match.group(2), match.group(3).strip()
        try:
            arguments = json.loads(raw_args)
        except json.JSONDecodeError as exc:
            logger.warning("Malformed ARGS for tool {}: {}", name, exc)
            calls.append(MalformedToolCall(name, raw_args, str(exc), match.span()))
            continue

        if not isinstance(arguments, dict):
            logger.warning("ARGS for tool {} is not a JSON object", name)
            calls.append(
                MalformedToolCall(name, raw_args, "ARGS must be a JSON object", match.span())
            )
            continue

        calls.append(ToolCallRequest(name, arguments, reason, match.span()))
    return calls


def result_notice(name: str, content: str) -> str:
    return f"[Tool {name} result: {content}]"


def strip_result_wrappers(text: str, results: list[tuple[str, str]]) -> str:
    """Replace each ``[Tool x result: content]`` notice with its content."""
    for name, content in results:
        text = text.replace(result_notice(name, content), content, 1)
    return text


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def _not_found_notice(name: str) -> str:
    return f"[Tool {name} not found. Please use one of the available tools.]"


async def _run(
    call: ToolCallRequest, tools: ToolRegistry, known: set[str]
) -> tuple[str, str | None]:
    """Return the inline notice for ``call`` and the rendered result, if any."""
    # Local import keeps the registry free to import this module's types.
    from orderbot.agents.tools import ToolExecutionError, ToolNotFoundError

    if call.name not in known:
        logger.warning("LLM requested unknown tool {}", call.name)
        return _not_found_notice(call.name), None

    logger.info("Calling tool {} ({})", call.name, call.reason or "no reason given")
    try:
        result = await tools.call_tool(call.name, call.arguments)
    except ToolNotFoundError:
        return _not_found_notice(call.name), None
    except ToolExecutionError as exc:
        logger.error("Tool {} failed: {}", call.name, exc)
        return f"[Error executing tool {call.name}: {exc}]", None

    rendered = result.render()
    logger.debug("Tool {} result: {:.200}", call.name, rendered)
    return result_notice(call.name, rendered), rendered


async def apply(text: str, tools: ToolRegistry | None) -> str:
    """Execute the tool calls in ``text`` and substitute their outcomes.

    Blocks are replaced in place, so prose around them keeps its order.
    Malformed blocks are left as written. Text without tool calls is
    returned unchanged, which makes a second pass a no-op.
    """
    calls = decode(text)
    if not calls:
        return text

    if tools is None or not tools.is_connected():
        if text.endswith(TOOLS_UNAVAILABLE_NOTICE):
            return text
        logger.warning("Reply requested {} tool call(s) but no tools are connected", len(calls))
        return f"{text}\n\n{TOOLS_UNAVAILABLE_NOTICE}"

    known = {tool.name for tool in tools.list_tools()}

    pieces: list[str] = []
    results: list[tuple[str, str]] = []
    cursor = 0
    for call in calls:
        if isinstance(call, MalformedToolCall):
            continue
        start, end = call.span
        notice, rendered = await _run(call, tools, known)
        pieces.append(text[cursor:start])
        pieces.append(notice)
        if rendered is not None:
            results.append((call.name, rendered))
        cursor = end
    pieces.append(text[cursor:])

    return strip_result_wrappers("".join(pieces), results)
