"""
Base tool class and abstract interface.

Every tool declares a name, a kind and a Pydantic parameter schema. Tools
of a mutating kind also compute a preview, which the invoker shows to the
permission gate before calling ``execute``.
"""

import abc
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError
from pydantic.json_schema import model_json_schema

from conductor.config.schema import Configuration
from conductor.tools.models import ToolInvocation, ToolKind, ToolPreview, ToolResult

__all__ = ["Tool", "ToolKind"]


class Tool(abc.ABC):
    """
    Abstract base class for all tools.

    Parameters
    ----------
    config : Configuration
        Configuration object with settings and context.

    Attributes
    ----------
    name : str
        Tool name as exposed to the model.
    description : str
        Human-readable description.
    kind : ToolKind
        Category of operation; anything but READ is restricted.
    schema : type[BaseModel]
        Parameter model.

    Examples
    --------
    >>> class EchoTool(Tool):
    ...     name = "Echo"
    ...     description = "Echo text back"
    ...     kind = ToolKind.READ
    ...     schema = EchoParams
    ...
    ...     async def execute(self, invocation: ToolInvocation) -> ToolResult:
    ...         return ToolResult.success_result(invocation.params["text"])
    """

    name: ClassVar[str] = "base_tool"
    description: ClassVar[str] = "Base tool"
    kind: ClassVar[ToolKind] = ToolKind.READ
    schema: ClassVar[type[BaseModel]]

    def __init__(self, config: Configuration) -> None:
        self.config: Configuration = config

    @property
    def restricted(self) -> bool:
        """Whether calls must pass the permission gate."""
        return self.kind != ToolKind.READ

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """
        Validate tool parameters against the schema.

        Parameters
        ----------
        params : dict[str, Any]
            Parameters to validate.

        Returns
        -------
        list[str]
            List of validation error messages. Empty list if valid.

        Examples
        --------
        >>> tool.validate_params({})
        ["Parameter 'file_path': Field required"]
        """
        try:
            self.schema(**params)
        except ValidationError as e:
            errors: list[str] = []
            for error in e.errors():
                field = ".".join(str(x) for x in error.get("loc", []))
                msg = error.get("msg", "Validation error")
                errors.append(f"Parameter '{field}': {msg}")
            return errors
        except Exception as e:
            return [str(e)]

        return []

    async def preview(self, invocation: ToolInvocation) -> ToolPreview:
        """
        Describe the effect of a call without performing it.

        Subclasses that mutate state override this to attach diffs or
        commands, and to report calls that cannot succeed.
        """
        return ToolPreview(description=f"Run {self.name}")

    @abc.abstractmethod
    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        """
        Perform the tool's effect.

        Parameters
        ----------
        invocation : ToolInvocation
            Invocation context with validated parameters and working directory.

        Returns
        -------
        ToolResult
            Result of the tool execution.
        """

    def to_openai_schema(self) -> dict[str, Any]:
        """
        Convert tool to function-calling schema format.

        Returns
        -------
        dict[str, Any]
            ``{"name", "description", "parameters"}`` mapping.
        """
        json_schema = model_json_schema(self.schema, mode="serialization")
        parameters: dict[str, Any] = {
            "type": "object",
            "properties": json_schema.get("properties", {}),
            "required": json_schema.get("required", []),
        }
        if "$defs" in json_schema:
            parameters["$defs"] = json_schema["$defs"]

        return {
            "name": self.name,
            "description": self.description,
            "parameters": parameters,
        }
