"""Dispatch boundary for tool calls.

validate -> acquire session -> execute (under a deadline) -> render.
Every exception raised on the way is caught here exactly once and rendered
as an ``isError`` result; nothing propagates further.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

import requests
from simple_salesforce.exceptions import SalesforceError

from salesforce_mcp.config import SalesforceConfig
from salesforce_mcp.mcp.arguments import ToolArgs
from salesforce_mcp.mcp.registry import ToolContext, ToolDefinition, get_tool
from salesforce_mcp.mcp.tools.utils import ToolResult, error_result
from salesforce_mcp.services.metadata import MetadataClient
from salesforce_mcp.services.salesforce import Session, acquire_session, open_connection
from salesforce_mcp.utils.errors import OperationTimeoutError, PlatformError, SalesforceMCPError
from salesforce_mcp.utils.logging import log_tool_execution, start_tool_call

logger = logging.getLogger(__name__)


def build_context(session: Session, config: SalesforceConfig) -> ToolContext:
    return ToolContext(
        sf=open_connection(session, config.timeout_seconds),
        metadata=MetadataClient(
            session.instance_url,
            session.access_token,
            session.api_version,
            timeout=config.timeout_seconds,
        ),
        config=config,
        user_id=session.user_id,
    )


def execute(tool: ToolDefinition, args: ToolArgs, session: Session, config: SalesforceConfig) -> ToolResult:
    """Run the handler synchronously; platform exceptions become PlatformError"""
    ctx = build_context(session, config)
    try:
        return tool.handler(ctx, args)
    except SalesforceError as e:
        raise PlatformError.from_salesforce_error(e) from e
    except requests.Timeout as e:
        raise OperationTimeoutError(f"Operation timeout after {config.timeout}ms") from e


async def execute_with_timeout(
    tool: ToolDefinition, args: ToolArgs, session: Session, config: SalesforceConfig
) -> ToolResult:
    """Race the handler against ``config.timeout``.

    Losing the race does not stop the worker thread: a mutation may still
    complete on the platform after the caller has seen the timeout.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(execute, tool, args, session, config),
            timeout=config.timeout_seconds,
        )
    except OperationTimeoutError:
        raise
    except asyncio.TimeoutError:
        raise OperationTimeoutError(f"Operation timeout after {config.timeout}ms") from None


async def dispatch(name: str, arguments: Optional[Dict[str, Any]], config: SalesforceConfig) -> ToolResult:
    """Handle one tool call end to end"""
    start_tool_call(name)
    logger.debug("Executing tool: %s", name)
    start = time.perf_counter()

    try:
        tool = get_tool(name)
        args = tool.validate(arguments)
        session = await acquire_session(config)
        result = await execute_with_timeout(tool, args, session, config)
    except SalesforceMCPError as e:
        logger.error("Tool execution failed: %s: %s", name, e)
        result = error_result(e)
    except Exception as e:
        logger.exception("Tool execution failed: %s", name)
        result = error_result(e)

    log_tool_execution(
        logger,
        name,
        (time.perf_counter() - start) * 1000,
        success=not result.is_error,
        error=result.text if result.is_error else None,
    )
    return result
