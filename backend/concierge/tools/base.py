"""
Base Tool - Interface every agent tool implements.

A tool pairs a name and description with a pydantic argument model. The same
model produces the JSON schema handed to the language model and validates
the arguments the model sends back.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Type

from pydantic import BaseModel

from ..models.tool import ToolResult


class NoArguments(BaseModel):
    """Argument model for tools that take no parameters."""


def _inline_refs(node: Any, defs: Dict[str, Any]) -> Any:
    """Resolve local $ref pointers and drop pydantic's cosmetic titles."""
    if isinstance(node, dict):
        if "$ref" in node:
            target = defs[node["$ref"].split("/")[-1]]
            return _inline_refs(target, defs)
        return {
            key: _inline_refs(value, defs)
            for key, value in node.items()
            if key != "$defs" and not (key == "title" and isinstance(value, str))
        }
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


class BaseTool(ABC):
    """Abstract base for all agent tools."""

    name: ClassVar[str]
    description: ClassVar[str]
    args_model: ClassVar[Type[BaseModel]] = NoArguments
    side_effecting: ClassVar[bool] = False

    @abstractmethod
    async def run(self, args: BaseModel) -> ToolResult:
        """Execute the tool with already-validated arguments."""
        ...

    def parameters_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool's parameters, with nested models inlined."""
        schema = self.args_model.model_json_schema()
        parameters = _inline_refs(schema, schema.get("$defs", {}))
        parameters.setdefault("properties", {})
        parameters.setdefault("required", [])
        parameters["type"] = "object"
        return parameters

    def definition(self) -> Dict[str, Any]:
        """Function-tool definition in the chat-completions wire format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }
