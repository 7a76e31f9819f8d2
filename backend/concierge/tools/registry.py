"""
Tool Dispatcher - Tool registration, schema catalogue, and execution.

Maps a tool name to a typed handler and its argument model. Untyped JSON
arguments from the model are validated into the handler's pydantic model
before anything runs; bad arguments come back as a failed ToolResult so the
model can correct itself.
"""

import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..core.errors import InvalidToolArguments, UnknownTool
from ..models.session import ToolInvocation
from ..models.tool import ToolResult
from .base import BaseTool

logger = logging.getLogger(__name__)

TOOL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")
INVALID_JSON_KEY = "__invalid_json__"


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


class ToolDispatcher:
    """Registry of tools plus the execution entry point used by the agent loop."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._tools: Dict[str, BaseTool] = {}
        self.timeout_seconds = timeout_seconds

    def register(self, tool: BaseTool) -> None:
        """Register a tool by its name. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> BaseTool:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownTool(name)
        return tool

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def catalogue(self) -> List[Dict[str, Any]]:
        """Function-tool definitions for every registered tool."""
        return [tool.definition() for tool in self._tools.values()]

    def validate_catalogue(self) -> List[Dict[str, Any]]:
        """
        Check that every registered tool produces a usable definition whose
        name matches the registration key. Called once at startup.
        """
        catalogue = self.catalogue()
        for key, definition in zip(self._tools.keys(), catalogue):
            function = definition["function"]
            if function["name"] != key:
                raise ValueError(f"Tool registered as '{key}' describes itself as '{function['name']}'")
            if not TOOL_NAME_PATTERN.match(key):
                raise ValueError(f"Tool name '{key}' is not a valid function name")
            if not function["description"].strip():
                raise ValueError(f"Tool '{key}' has no description")
            parameters = function["parameters"]
            missing = set(parameters["required"]) - set(parameters["properties"])
            if missing:
                raise ValueError(f"Tool '{key}' requires undeclared parameters: {sorted(missing)}")
        logger.info(f"Tool catalogue validated: {len(catalogue)} tools")
        return catalogue

    def parse_arguments(self, tool: BaseTool, arguments: Optional[Dict[str, Any]]):
        """Validate raw arguments into the tool's argument model."""
        arguments = arguments or {}
        if INVALID_JSON_KEY in arguments:
            raise InvalidToolArguments(tool.name, "arguments were not valid JSON")
        try:
            return tool.args_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidToolArguments(tool.name, _describe_validation_error(e)) from e

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Execute a registered tool.

        Raises:
            UnknownTool: if ``name`` is not registered

        Every other failure (bad arguments, timeout, handler error) is
        reported as a ToolResult with success=False.
        """
        tool = self.get(name)
        start_time = time.time()

        try:
            args = self.parse_arguments(tool, arguments)
        except InvalidToolArguments as e:
            logger.warning(f"Tool {name} rejected arguments: {e.detail}")
            return ToolResult.fail(f"Invalid arguments for {name}: {e.detail}")

        try:
            if self.timeout_seconds:
                result = await asyncio.wait_for(tool.run(args), timeout=self.timeout_seconds)
            else:
                result = await tool.run(args)
        except asyncio.TimeoutError:
            logger.error(f"Tool {name} timed out after {self.timeout_seconds}s")
            return ToolResult.fail(f"{name} took too long to respond. Please try again later.")
        except Exception as e:
            logger.error(
                f"Tool {name} failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"tool": name, "error": str(e)}}
            )
            return ToolResult.fail(f"{name} could not be completed right now.")

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Tool executed: {name}",
            extra={"extra_fields": {
                "tool": name,
                "success": result.success,
                "side_effecting": tool.side_effecting,
                "duration_ms": round(duration_ms, 2),
            }}
        )
        return result

    async def invoke(self, invocation: ToolInvocation) -> ToolResult:
        """Run one model-issued invocation, turning UnknownTool into a failed result."""
        try:
            return await self.execute(invocation.name, invocation.arguments)
        except UnknownTool:
            logger.warning(f"Model requested unknown tool: {invocation.name}")
            return ToolResult.fail(
                f"Unknown tool '{invocation.name}'. Available tools: {', '.join(self.names())}"
            )
