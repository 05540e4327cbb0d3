"""Tool registry: the fixed capability surface of the server.

Each tool is a ``ToolDefinition`` pairing an argument model (the narrowing
step) with a handler (the execution step). Tool modules register themselves
with ``@register_tool`` at import time.
"""
import importlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from salesforce_mcp.config import SalesforceConfig
from salesforce_mcp.mcp.arguments import ToolArgs, ToolArguments, input_schema, narrow
from salesforce_mcp.mcp.tools.utils import ToolResult
from salesforce_mcp.utils.errors import ValidationError

logger = logging.getLogger(__name__)

TOOL_MODULES = (
    "salesforce_mcp.mcp.tools.schema",
    "salesforce_mcp.mcp.tools.queries",
    "salesforce_mcp.mcp.tools.dml",
    "salesforce_mcp.mcp.tools.metadata",
    "salesforce_mcp.mcp.tools.apex",
    "salesforce_mcp.mcp.tools.debug_logs",
)


@dataclass
class ToolContext:
    """Per-invocation handles; discarded when the call completes"""

    sf: Any
    metadata: Any
    config: SalesforceConfig
    user_id: Optional[str] = None


Handler = Callable[[ToolContext, ToolArgs], ToolResult]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    arguments: Type[ToolArguments]
    handler: Handler

    @property
    def input_schema(self) -> Dict[str, Any]:
        return input_schema(self.arguments)

    def validate(self, raw_arguments: Optional[Dict[str, Any]]) -> ToolArgs:
        return narrow(self.name, self.arguments, raw_arguments)


tool_registry: Dict[str, ToolDefinition] = {}


def register_tool(name: str, arguments: Type[ToolArguments], description: str):
    """Decorator registering ``handler(ctx, args) -> ToolResult`` under ``name``"""

    def decorator(handler: Handler) -> Handler:
        if name in tool_registry:
            raise ValueError(f"Tool already registered: {name}")
        tool_registry[name] = ToolDefinition(
            name=name,
            description=description.strip(),
            arguments=arguments,
            handler=handler,
        )
        return handler

    return decorator


def load_tool_modules() -> None:
    """Import every tool module so their ``@register_tool`` decorators run"""
    for module_name in TOOL_MODULES:
        importlib.import_module(module_name)


def list_tools() -> List[ToolDefinition]:
    load_tool_modules()
    return list(tool_registry.values())


def get_tool(name: str) -> ToolDefinition:
    load_tool_modules()
    try:
        return tool_registry[name]
    except KeyError:
        raise ValidationError(f"Unknown tool: {name}") from None
