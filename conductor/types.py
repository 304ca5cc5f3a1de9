"""
Type aliases shared across Conductor.
"""

from pathlib import Path
from typing import Any, Dict, List, Union

# Chat-completion message as sent to the model backend
MessageDict = Dict[str, Any]

# Tool definitions in function-calling format
ToolDefinition = Dict[str, Any]
ToolDefinitions = List[ToolDefinition]

PathLike = Union[str, Path]

# Environment passed to hook processes
EnvDict = Dict[str, str]
