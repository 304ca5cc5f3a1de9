"""
Closed tool table.

The set of tools is fixed at construction from a tuple of tool classes.
There is no runtime registration; the restricted subset is derived from
tool kinds and checked against the fixed restricted-tool names.
"""

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from conductor.config.schema import Configuration
from conductor.constants import RESTRICTED_TOOLS
from conductor.exceptions import ValidationError
from conductor.tools.base import Tool
from conductor.tools.builtin.bash import BashTool
from conductor.tools.builtin.delete_file import DeleteTool
from conductor.tools.builtin.edit_file import EditTool
from conductor.tools.builtin.multi_edit import MultiEditTool
from conductor.tools.builtin.read_file import ReadTool
from conductor.tools.builtin.write_file import WriteTool

logger = logging.getLogger(__name__)

BUILTIN_TOOLS: tuple[type[Tool], ...] = (
    ReadTool,
    WriteTool,
    EditTool,
    MultiEditTool,
    DeleteTool,
    BashTool,
)


class ToolRegistry:
    """
    Immutable mapping of tool names to tool instances.

    Parameters
    ----------
    config : Configuration
        Passed to every tool.
    tool_classes : Iterable[type[Tool]], optional
        Tools to build. Defaults to the builtin set.

    Raises
    ------
    ValidationError
        If two tools share a name, or a tool's kind disagrees with the
        restricted-tool names.

    Examples
    --------
    >>> registry = ToolRegistry(config)
    >>> registry.get("Write").restricted
    True
    >>> sorted(registry.restricted_names)
    ['Bash', 'Delete', 'Edit', 'MultiEdit', 'Write']
    """

    def __init__(
        self,
        config: Configuration,
        tool_classes: Iterable[type[Tool]] = BUILTIN_TOOLS,
    ) -> None:
        tools: dict[str, Tool] = {}
        for tool_class in tool_classes:
            if tool_class.name in tools:
                raise ValidationError(f"Duplicate tool name: {tool_class.name}", field="name")
            tool: Tool = tool_class(config)
            if tool.restricted != (tool.name in RESTRICTED_TOOLS):
                raise ValidationError(
                    f"Tool {tool.name} has kind {tool.kind.value} but is "
                    f"{'not ' if tool.name not in RESTRICTED_TOOLS else ''}a restricted tool",
                    field="kind",
                )
            tools[tool.name] = tool

        self._tools: Mapping[str, Tool] = MappingProxyType(tools)
        logger.debug(f"Tool table built: {', '.join(self._tools)}")

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def restricted_names(self) -> frozenset[str]:
        return frozenset(name for name, tool in self._tools.items() if tool.restricted)

    def get_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_schemas(self) -> list[dict[str, Any]]:
        """Function-calling schemas for every tool, in table order."""
        return [tool.to_openai_schema() for tool in self._tools.values()]
