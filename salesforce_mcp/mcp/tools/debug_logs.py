"""Debug log lifecycle: trace flags on a user and retrieval of their logs"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from salesforce_mcp.mcp.arguments import ManageDebugLogsArgs
from salesforce_mcp.mcp.registry import ToolContext, register_tool
from salesforce_mcp.mcp.tools.apex import tooling_query
from salesforce_mcp.mcp.tools.utils import ToolResult, escape_soql, format_errors, text_result
from salesforce_mcp.utils.errors import NotFoundError, PlatformError

logger = logging.getLogger(__name__)

SOQL_DATETIME = "%Y-%m-%dT%H:%M:%SZ"
DEBUG_CATEGORIES = ("ApexCode", "System", "Database", "Workflow")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000+0000")


def resolve_user(sf, username: str) -> Dict[str, Any]:
    """Exact username first, else a fuzzy match on the name; the first row wins"""
    escaped = escape_soql(username)
    records = sf.query(
        "SELECT Id, Username, Name FROM User "
        f"WHERE Username = '{escaped}' OR Name LIKE '%{escaped}%' "
        "LIMIT 1"
    ).get("records", [])
    if not records:
        raise NotFoundError(f"User not found: {username}")
    return records[0]


def _created_id(result: Any, what: str) -> str:
    if not isinstance(result, dict) or not result.get("id"):
        errors = result.get("errors") if isinstance(result, dict) else None
        raise PlatformError(f"Failed to create {what}: {format_errors(errors) if errors else 'Unknown error'}")
    return result["id"]


def _delete_debug_level(sf, level_id: str) -> None:
    """Remove a DebugLevel whose TraceFlag could not be created"""
    try:
        sf.toolingexecute(f"sobjects/DebugLevel/{level_id}", method="DELETE")
    except Exception as e:
        logger.warning("Could not remove debug level %s: %s", level_id, e)


def enable_debug_logs(sf, user: Dict[str, Any], log_level: str, minutes: int) -> str:
    now = _utcnow()
    expires = now + timedelta(minutes=minutes)
    stamp = int(now.timestamp() * 1000)

    debug_level = {
        "DeveloperName": f"UserDebug_{stamp}",
        "MasterLabel": f"Debug {user['Username']}",
        **{category: log_level for category in DEBUG_CATEGORIES},
    }
    level_id = _created_id(
        sf.toolingexecute("sobjects/DebugLevel", method="POST", data=debug_level), "debug level"
    )

    trace_flag = {
        "TracedEntityId": user["Id"],
        "DebugLevelId": level_id,
        "LogType": "USER_DEBUG",
        "StartDate": _iso(now),
        "ExpirationDate": _iso(expires),
    }
    try:
        flag_id = _created_id(
            sf.toolingexecute("sobjects/TraceFlag", method="POST", data=trace_flag), "trace flag"
        )
    except Exception:
        _delete_debug_level(sf, level_id)
        raise

    logger.info("Enabled %s debug logs for %s until %s", log_level, user["Username"], expires)
    return (
        f"Debug logs enabled for {user['Name']} ({user['Username']})\n"
        f"Log Level: {log_level}\n"
        f"Expires: {_iso(expires)} ({minutes} minutes)\n"
        f"Trace Flag ID: {flag_id}\n"
        f"Debug Level ID: {level_id}"
    )


def disable_debug_logs(sf, user: Dict[str, Any]) -> str:
    flags = tooling_query(
        sf,
        "SELECT Id FROM TraceFlag "
        f"WHERE TracedEntityId = '{user['Id']}' "
        f"AND ExpirationDate > {_utcnow().strftime(SOQL_DATETIME)}",
    )
    for flag in flags:
        sf.toolingexecute(f"sobjects/TraceFlag/{flag['Id']}", method="DELETE")

    if not flags:
        return f"No active debug logs found for {user['Name']} ({user['Username']})"
    return f"Debug logs disabled for {user['Name']} ({user['Username']}): removed {len(flags)} trace flag(s)"


def _log_body(sf, log_id: str) -> str:
    return sf.toolingexecute(f"sobjects/ApexLog/{log_id}/Body") or ""


def _render_log(log: Dict[str, Any], idx: int) -> str:
    return (
        f"Log {idx}:\n"
        f"    ID: {log.get('Id')}\n"
        f"    Operation: {log.get('Operation')}\n"
        f"    Status: {log.get('Status')}\n"
        f"    Size: {log.get('LogLength')} bytes\n"
        f"    Start Time: {log.get('StartTime')}\n"
        f"    Duration: {log.get('DurationMilliseconds')} ms"
    )


def retrieve_debug_logs(sf, user: Dict[str, Any], limit: int, log_id: str = None, include_body: bool = False) -> str:
    if log_id:
        return f"Debug log {log_id}:\n\n{_log_body(sf, log_id)}"

    logs: List[Dict[str, Any]] = tooling_query(
        sf,
        "SELECT Id, Operation, Status, LogLength, StartTime, DurationMilliseconds, LastModifiedDate "
        f"FROM ApexLog WHERE LogUserId = '{user['Id']}' "
        f"ORDER BY LastModifiedDate DESC LIMIT {limit}",
    )
    if not logs:
        return f"No debug logs found for {user['Name']} ({user['Username']})"

    blocks = []
    for idx, log in enumerate(logs, start=1):
        block = _render_log(log, idx)
        if include_body:
            block += f"\n    Body:\n{_log_body(sf, log['Id'])}"
        blocks.append(block)
    return f"Found {len(logs)} debug logs for {user['Name']} ({user['Username']}):\n\n" + "\n\n".join(blocks)


@register_tool(
    "salesforce_manage_debug_logs",
    ManageDebugLogsArgs,
    "Manage debug logs for a user: enable (creates a debug level and a trace flag that "
    "expires after expirationTime minutes), disable (removes the user's active trace flags) "
    "or retrieve recent logs, optionally with bodies or one log by logId.",
)
def manage_debug_logs(ctx: ToolContext, args: ManageDebugLogsArgs) -> ToolResult:
    user = resolve_user(ctx.sf, args.username)

    if args.operation == "enable":
        return text_result(enable_debug_logs(ctx.sf, user, args.log_level or "DEBUG", args.expiration_time))
    if args.operation == "disable":
        return text_result(disable_debug_logs(ctx.sf, user))
    return text_result(retrieve_debug_logs(ctx.sf, user, args.limit, args.log_id, args.include_body))
