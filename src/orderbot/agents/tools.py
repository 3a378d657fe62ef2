"""Local tool provider: a name → BaseTool registry."""

from typing import Any

from loguru import logger

from orderbot.agents.tool_protocol import ToolResult
from orderbot.providers.llm.base import ToolDefinition
from orderbot.tools.base import BaseTool


class ToolNotFoundError(LookupError):
    """No tool is registered under the requested name."""


class ToolExecutionError(RuntimeError):
    """A tool rejected its arguments or failed while running."""


class ToolRegistry:
    def __init__(self, tools: list[BaseTool] | None = None):
        self._tools: dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    @property
    def tool_names(self) -> list[str]:
        """List of registered tool names."""
        return list(self._tools.keys())

    def register(self, tool: BaseTool):
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered.")
        self._tools[tool.name] = tool

    def unregister(self, name: str):
        if name in self._tools:
            del self._tools[name]

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def is_connected(self) -> bool:
        """In-process tools are available as soon as one is registered."""
        return bool(self._tools)

    def list_tools(self) -> list[ToolDefinition]:
        return [tool.to_definition() for tool in self._tools.values()]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Validate ``arguments`` and run the tool.

        Raises:
            ToolNotFoundError:  ``name`` is not registered.
            ToolExecutionError: invalid arguments, or the tool raised.
        """
        tool = self.get_tool(name)
        if tool is None:
            raise ToolNotFoundError(f"Tool '{name}' not found")

        errors = tool.validate_params(arguments)
        if errors:
            raise ToolExecutionError(f"Invalid arguments: {'; '.join(errors)}")

        try:
            value = await tool.execute(**arguments)
        except Exception as e:
            logger.exception("Tool {} raised", name)
            raise ToolExecutionError(str(e) or type(e).__name__) from e
        return ToolResult.from_value(value)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
