"""Tool registry — global name-based lookup for LangChain tools.

Tools are Python functions decorated with ``@register`` and ``@tool``.
The agent loop resolves a parsed tool call's name to a ``BaseTool`` and
invokes it through ``ToolRegistry``, which supplies the workspace root via
the ``RunnableConfig`` (``configurable.root``).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, get_args

from aiengine.errors import ToolExecutionError
from aiengine.schemas import ToolName

if TYPE_CHECKING:
    from langchain_core.tools import BaseTool

    from aiengine.schemas import ToolCall

logger = logging.getLogger(__name__)

TOOL_NAMES: tuple[str, ...] = get_args(ToolName)

_registry: dict[str, BaseTool] = {}


def register(tool: BaseTool) -> BaseTool:
    """Add a BaseTool to the registry by its ``.name``.

    Can be used as a decorator (applied *outside* ``@tool``)::

        @register
        @tool
        async def my_tool(file: str, config: RunnableConfig) -> str:
            ...
    """
    if tool.name not in TOOL_NAMES:
        raise ValueError(f"Tool '{tool.name}' is not one of {list(TOOL_NAMES)}")
    _registry[tool.name] = tool
    return tool


def resolve_tool(name: str) -> BaseTool:
    """Look up a tool by name. Raises ``ValueError`` if it is not registered."""
    if name not in _registry:
        raise ValueError(f"Unknown tool '{name}'. Available: {list(_registry.keys())}")
    return _registry[name]


def list_tools() -> list[str]:
    """Return all registered tool names."""
    return list(_registry.keys())


def serialize_result(result) -> str:
    """Strings pass through unchanged; structured results become JSON."""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class ToolRegistry:
    """Invokes registered tools against one fixed workspace root."""

    def __init__(self, root: str | Path):
        self.root = str(Path(root).resolve())

    def names(self) -> list[str]:
        return list_tools()

    async def invoke(self, call: ToolCall) -> str:
        """Run the tool named by ``call`` and return its serialized result.

        Raises ``ToolExecutionError`` (or a subclass) on any failure.
        """
        try:
            tool = resolve_tool(call.tool)
        except ValueError as e:
            raise ToolExecutionError(str(e)) from e

        logger.info(f"Executing tool '{call.tool}' (params={sorted(call.params)})")
        try:
            result = await tool.ainvoke(
                call.params, config={"configurable": {"root": self.root}}
            )
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(f"{call.tool} failed: {e}") from e
        return serialize_result(result)


# Auto-import tool modules so the registry is populated on first access.
import aiengine.tools.files as _files  # noqa: E402, F401
