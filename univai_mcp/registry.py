"""
Closed registries of tools, prompts, and resources.

The set of entries is fixed when the application starts. Dispatch validates the
input before a handler runs and the output before it reaches the caller.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from univai_mcp.context import ExecutionContext
from univai_mcp.errors import PromptNotFoundError, ResourceNotFoundError, ToolNotFoundError
from univai_mcp.schema import assert_schema

ToolHandler = Callable[[ExecutionContext, Dict[str, Any]], Awaitable[Dict[str, Any]]]
PromptRenderer = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]
    output_schema: Dict[str, Any]
    idempotent: bool
    handler: ToolHandler

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
        }


@dataclass(frozen=True, slots=True)
class PromptDefinition:
    name: str
    description: str
    parameters_schema: Dict[str, Any]
    render: PromptRenderer


@dataclass(frozen=True, slots=True)
class ResourceDefinition:
    protocol: str
    list_items: Callable[[ExecutionContext, Dict[str, Any]], Awaitable[Dict[str, Any]]]
    get_item: Callable[[ExecutionContext, str], Awaitable[Dict[str, Any]]]


def _freeze(entries: Iterable[Any], key: str) -> Mapping[str, Any]:
    mapping: Dict[str, Any] = {}
    for entry in entries:
        name = getattr(entry, key)
        if name in mapping:
            raise ValueError(f"Duplicate registration: {name}")
        mapping[name] = entry
    return MappingProxyType(mapping)


class ToolRegistry:
    """Tools, prompts, and resources resolved once at process start."""

    def __init__(
        self,
        tools: Iterable[ToolDefinition],
        prompts: Iterable[PromptDefinition] = (),
        resources: Iterable[ResourceDefinition] = (),
    ) -> None:
        self.tools = _freeze(tools, "name")
        self.prompts = _freeze(prompts, "name")
        self.resources = _freeze(resources, "protocol")

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.describe() for tool in self.tools.values()]

    def get_tool(self, name: Any) -> ToolDefinition:
        tool = self.tools.get(name) if isinstance(name, str) else None
        if tool is None:
            raise ToolNotFoundError(f"Tool not found: {name}")
        return tool

    async def dispatch(self, name: Any, raw_input: Any, context: ExecutionContext) -> Dict[str, Any]:
        """Look up, validate input, run the handler, validate output."""
        tool = self.get_tool(name)
        assert_schema(tool.input_schema, raw_input, f"{tool.name}.input")
        output = await tool.handler(context, raw_input)
        assert_schema(tool.output_schema, output, f"{tool.name}.output")
        return output

    async def render_prompt(self, name: Any, params: Any) -> Any:
        prompt = self.prompts.get(name) if isinstance(name, str) else None
        if prompt is None:
            raise PromptNotFoundError(f"Prompt not found: {name}")
        assert_schema(prompt.parameters_schema, params, f"{prompt.name}.params")
        rendered = prompt.render(params)
        if inspect.isawaitable(rendered):
            rendered = await rendered
        return rendered

    def get_resource(self, protocol: Optional[str]) -> ResourceDefinition:
        resource = self.resources.get(protocol) if protocol else None
        if resource is None:
            raise ResourceNotFoundError(f"Resource protocol not found: {protocol}")
        return resource
