"""FastMCP server exposing the registered Salesforce tools"""
import logging
from typing import Any, Dict, List

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import TextContent, Tool as MCPTool

from salesforce_mcp.config import SalesforceConfig
from salesforce_mcp.mcp.dispatch import dispatch
from salesforce_mcp.mcp.registry import list_tools

logger = logging.getLogger(__name__)


class SalesforceMCP(FastMCP):
    """FastMCP whose tool surface is the tool registry.

    Arguments are narrowed by the registry's own models, so the schema
    advertised in ``list_tools`` is the one ``dispatch`` validates against.
    """

    def __init__(self, config: SalesforceConfig):
        self.salesforce_config = config
        super().__init__(name=config.server_name, host=config.http_host, port=config.http_port)

    async def list_tools(self) -> List[MCPTool]:
        return [
            MCPTool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in list_tools()
        ]

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        result = await dispatch(name, arguments, self.salesforce_config)
        if result.is_error:
            # The low-level server turns this into a result with isError=true
            raise ToolError(result.text)
        return [TextContent(type="text", text=result.text)]


def create_server(config: SalesforceConfig) -> SalesforceMCP:
    server = SalesforceMCP(config)
    logger.debug("Registered tools: %s", ", ".join(tool.name for tool in list_tools()))
    return server
