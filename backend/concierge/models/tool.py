"""
Tool Models - Result of executing one tool invocation.
"""

from typing import Any, Optional
from pydantic import BaseModel


class ToolResult(BaseModel):
    """
    Outcome of one tool execution.

    ``message`` is always present and is what the model sees as the tool's
    observation. ``data`` carries the structured payload on success.
    """
    success: bool
    message: str
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ToolResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str) -> "ToolResult":
        return cls(success=False, message=message)
