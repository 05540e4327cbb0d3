"""Apex class/trigger source management and anonymous execution

Reads go through the regular query endpoint; writes and anonymous execution
go through the Tooling API.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from salesforce_mcp.config import ConnectionType
from salesforce_mcp.mcp.arguments import (
    ExecuteAnonymousArgs,
    ReadApexArgs,
    ReadApexTriggerArgs,
    WriteApexArgs,
    WriteApexTriggerArgs,
)
from salesforce_mcp.mcp.registry import ToolContext, register_tool
from salesforce_mcp.mcp.tools.utils import (
    ToolResult,
    escape_soql,
    format_errors,
    render_anonymous_result,
    text_result,
)
from salesforce_mcp.utils.errors import NotFoundError, PlatformError

logger = logging.getLogger(__name__)

METADATA_FIELDS = ["ApiVersion", "Status", "LengthWithoutComments", "LastModifiedDate"]
SOQL_DATETIME = "%Y-%m-%dT%H:%M:%SZ"


def tooling_query(sf, soql: str) -> List[Dict[str, Any]]:
    logger.debug("Tooling SOQL: %s", soql)
    return (sf.toolingexecute("query/", params={"q": soql}) or {}).get("records", [])


# =============================================================================
# READ
# =============================================================================

def _metadata_lines(record: Dict[str, Any], indent: str = "") -> List[str]:
    return [
        f"{indent}API Version: {record.get('ApiVersion')}",
        f"{indent}Status: {record.get('Status')}",
        f"{indent}Length: {record.get('LengthWithoutComments')}",
        f"{indent}Last Modified: {record.get('LastModifiedDate')}",
    ]


def read_source(
    sf,
    sobject: str,
    kind: str,
    name: Optional[str],
    name_pattern: Optional[str],
    include_metadata: bool,
    extra_fields: Optional[List[str]] = None,
) -> str:
    """One body by exact name, or a name listing filtered by ``name_pattern``"""
    fields = ["Id", "Name"] + (extra_fields or [])
    if include_metadata:
        fields += METADATA_FIELDS

    if name:
        result = sf.query(
            f"SELECT {', '.join(fields + ['Body'])} FROM {sobject} WHERE Name = '{escape_soql(name)}'"
        )
        records = result.get("records", [])
        if not records:
            raise NotFoundError(f"No Apex {kind} found with name: {name}")
        record = records[0]

        lines = [f"Apex {kind.title()}: {record['Name']}"]
        if extra_fields and record.get("TableEnumOrId"):
            lines.append(f"Object: {record['TableEnumOrId']}")
        if include_metadata:
            lines.extend(_metadata_lines(record))
        lines.append("")
        lines.append(f"```apex\n{record.get('Body') or ''}\n```")
        return "\n".join(lines)

    soql = f"SELECT {', '.join(fields)} FROM {sobject}"
    if name_pattern:
        soql += f" WHERE Name LIKE '%{escape_soql(name_pattern)}%'"
    soql += " ORDER BY Name"
    records = sf.query(soql).get("records", [])

    blocks = []
    for record in records:
        block = [f"- {record['Name']}"]
        if extra_fields and record.get("TableEnumOrId"):
            block.append(f"  Object: {record['TableEnumOrId']}")
        if include_metadata:
            block.extend(_metadata_lines(record, indent="  "))
        blocks.append("\n".join(block))

    plural = "classes" if kind == "class" else f"{kind}s"
    return f"Found {len(records)} Apex {plural}:\n\n" + "\n".join(blocks)


@register_tool(
    "salesforce_read_apex",
    ReadApexArgs,
    "Read Apex classes. With className returns that class's source; otherwise lists "
    "classes, optionally filtered by namePattern.",
)
def read_apex(ctx: ToolContext, args: ReadApexArgs) -> ToolResult:
    return text_result(
        read_source(ctx.sf, "ApexClass", "class", args.class_name, args.name_pattern, args.include_metadata)
    )


@register_tool(
    "salesforce_read_apex_trigger",
    ReadApexTriggerArgs,
    "Read Apex triggers. With triggerName returns that trigger's source; otherwise lists "
    "triggers, optionally filtered by namePattern.",
)
def read_apex_trigger(ctx: ToolContext, args: ReadApexTriggerArgs) -> ToolResult:
    return text_result(
        read_source(
            ctx.sf, "ApexTrigger", "trigger", args.trigger_name, args.name_pattern,
            args.include_metadata, extra_fields=["TableEnumOrId"],
        )
    )


# =============================================================================
# WRITE
# =============================================================================

def _resolve_id(sf, sobject: str, kind: str, name: str) -> str:
    records = sf.query(f"SELECT Id FROM {sobject} WHERE Name = '{escape_soql(name)}'").get("records", [])
    if not records:
        raise NotFoundError(f"No Apex {kind} found with name: {name}")
    return records[0]["Id"]


def _check_created(result: Any, what: str) -> str:
    if not isinstance(result, dict) or not result.get("success", True) or not result.get("id"):
        errors = result.get("errors") if isinstance(result, dict) else result
        raise PlatformError(f"Failed to create {what}: {format_errors(errors) if errors else 'Unknown error'}")
    return result["id"]


def write_source(
    ctx: ToolContext,
    sobject: str,
    kind: str,
    operation: str,
    name: str,
    body: str,
    api_version: Optional[str],
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    if operation == "create":
        descriptor = {
            "Name": name,
            "Body": body,
            "ApiVersion": api_version or ctx.config.api_version,
            "Status": "Active",
            **(extra or {}),
        }
        result = ctx.sf.toolingexecute(f"sobjects/{sobject}", method="POST", data=descriptor)
        record_id = _check_created(result, f"Apex {kind} {name}")
        logger.info("Created Apex %s %s (%s)", kind, name, record_id)
        return f"Successfully created Apex {kind}: {name}\nID: {record_id}"

    record_id = _resolve_id(ctx.sf, sobject, kind, name)
    ctx.sf.toolingexecute(f"sobjects/{sobject}/{record_id}", method="PATCH", data={"Body": body})
    logger.info("Updated Apex %s %s (%s)", kind, name, record_id)
    return f"Successfully updated Apex {kind}: {name}\nID: {record_id}"


@register_tool(
    "salesforce_write_apex",
    WriteApexArgs,
    "Create or update Apex classes. Update replaces the body of the existing class.",
)
def write_apex(ctx: ToolContext, args: WriteApexArgs) -> ToolResult:
    return text_result(
        write_source(ctx, "ApexClass", "class", args.operation, args.class_name, args.body, args.api_version)
    )


@register_tool(
    "salesforce_write_apex_trigger",
    WriteApexTriggerArgs,
    "Create or update Apex triggers. Create requires objectName; update replaces the "
    "body of the existing trigger.",
)
def write_apex_trigger(ctx: ToolContext, args: WriteApexTriggerArgs) -> ToolResult:
    extra = {"TableEnumOrId": args.object_name} if args.operation == "create" else None
    return text_result(
        write_source(
            ctx, "ApexTrigger", "trigger", args.operation, args.trigger_name,
            args.body, args.api_version, extra=extra,
        )
    )


# =============================================================================
# ANONYMOUS EXECUTION
# =============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def running_user_id(ctx: ToolContext) -> Optional[str]:
    """Id of the user the session runs as; looked up by username when login did not report it"""
    if ctx.user_id:
        return ctx.user_id
    if ctx.config.connection_type != ConnectionType.USER_PASSWORD or not ctx.config.username:
        return None
    records = ctx.sf.query(
        f"SELECT Id FROM User WHERE Username = '{escape_soql(ctx.config.username)}' LIMIT 1"
    ).get("records", [])
    return records[0]["Id"] if records else None


def latest_anonymous_log(sf, user_id: str, since: datetime) -> Optional[str]:
    """Body of the newest anonymous-execution log ``user_id`` produced since ``since``"""
    records = tooling_query(
        sf,
        "SELECT Id FROM ApexLog WHERE Operation LIKE '%executeAnonymous%' "
        f"AND LogUserId = '{escape_soql(user_id)}' "
        f"AND StartTime >= {since.strftime(SOQL_DATETIME)} "
        "ORDER BY StartTime DESC LIMIT 1",
    )
    if not records:
        return None
    return sf.toolingexecute(f"sobjects/ApexLog/{records[0]['Id']}/Body")


@register_tool(
    "salesforce_execute_anonymous",
    ExecuteAnonymousArgs,
    "Execute anonymous Apex. The result reports compile failure (line/column/problem), "
    "runtime failure (exception and stack trace) or success. With logLevel, the latest "
    "anonymous execution debug log is appended.",
)
def execute_anonymous(ctx: ToolContext, args: ExecuteAnonymousArgs) -> ToolResult:
    started = _utcnow()
    result = ctx.sf.toolingexecute("executeAnonymous/", params={"anonymousBody": args.apex_code})
    text = render_anonymous_result(result or {})

    if args.log_level and (result or {}).get("compiled"):
        user_id = running_user_id(ctx)
        log_body = latest_anonymous_log(ctx.sf, user_id, started) if user_id else None
        text += f"\n\nDebug Log:\n{log_body}" if log_body else "\n\nDebug Log: not available"

    # A failed compile or run is still a completed call
    return text_result(text)
