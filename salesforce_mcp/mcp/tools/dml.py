"""Record DML through the sObject Collections REST API

Each operation submits the whole batch in one request with ``allOrNone``
off, so the platform applies per-record semantics and answers with one
result per submitted record, in submission order.
"""
import json
import logging
from typing import Any, Dict, List

from salesforce_mcp.mcp.arguments import DmlRecordsArgs
from salesforce_mcp.mcp.registry import ToolContext, register_tool
from salesforce_mcp.mcp.tools.utils import ToolResult, render_bulk_result, text_result

logger = logging.getLogger(__name__)

COLLECTIONS_PATH = "composite/sobjects"


def _typed_records(object_name: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach the sObject type the collections API requires on every record"""
    typed = []
    for record in records:
        body = {k: v for k, v in record.items() if k != "attributes"}
        typed.append({"attributes": {"type": object_name}, **body})
    return typed


def submit_dml(sf, args: DmlRecordsArgs) -> List[Dict[str, Any]]:
    """Issue the single collections call for ``args.operation``"""
    if args.operation == "delete":
        # Delete carries identifiers only
        ids = [record["Id"] for record in args.records]
        return sf.restful(
            COLLECTIONS_PATH,
            params={"ids": ",".join(ids), "allOrNone": "false"},
            method="DELETE",
        )

    payload = json.dumps({"allOrNone": False, "records": _typed_records(args.object_name, args.records)})

    if args.operation == "insert":
        return sf.restful(COLLECTIONS_PATH, method="POST", data=payload)
    if args.operation == "update":
        return sf.restful(COLLECTIONS_PATH, method="PATCH", data=payload)
    # upsert
    return sf.restful(
        f"{COLLECTIONS_PATH}/{args.object_name}/{args.external_id_field}",
        method="PATCH",
        data=payload,
    )


@register_tool(
    "salesforce_dml_records",
    DmlRecordsArgs,
    "Perform data manipulation operations (insert, update, delete, upsert) on a batch of records. "
    "Update and delete need each record's Id; upsert needs externalIdField. "
    "Failing records are reported individually and never abort the batch.",
)
def dml_records(ctx: ToolContext, args: DmlRecordsArgs) -> ToolResult:
    result = submit_dml(ctx.sf, args)
    results = result if isinstance(result, list) else [result] if result else []

    if len(results) != len(args.records):
        logger.warning(
            "%s on %s returned %d results for %d records",
            args.operation, args.object_name, len(results), len(args.records),
        )

    return text_result(render_bulk_result(args.operation, results))
