"""SOQL and SOSL query tools

Statements are composed by direct interpolation of the caller's values
(object names, clauses, search terms). The org's own object and field level
security is what limits what a statement can reach.
"""
import logging
from typing import Any, Dict, List, Optional

from salesforce_mcp.mcp.arguments import AggregateQueryArgs, QueryRecordsArgs, SearchAllArgs, SearchObjectSpec
from salesforce_mcp.mcp.registry import ToolContext, register_tool
from salesforce_mcp.mcp.tools.utils import ToolResult, render_fields, render_records, text_result

logger = logging.getLogger(__name__)


# =============================================================================
# STATEMENT BUILDERS
# =============================================================================

def build_soql_query(
    object_name: str,
    fields: List[str],
    where_clause: Optional[str] = None,
    order_by: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    query = f"SELECT {', '.join(fields)} FROM {object_name}"
    if where_clause:
        query += f" WHERE {where_clause}"
    if order_by:
        query += f" ORDER BY {order_by}"
    if limit:
        query += f" LIMIT {limit}"
    return query


def build_aggregate_query(args: AggregateQueryArgs) -> str:
    query = f"SELECT {', '.join(args.select_fields)} FROM {args.object_name}"
    if args.where_clause:
        query += f" WHERE {args.where_clause}"
    query += f" GROUP BY {', '.join(args.group_by_fields)}"
    if args.having_clause:
        query += f" HAVING {args.having_clause}"
    if args.order_by:
        query += f" ORDER BY {args.order_by}"
    if args.limit:
        query += f" LIMIT {args.limit}"
    return query


def _returning_clause(spec: SearchObjectSpec) -> str:
    clause = f"{spec.name}({','.join(spec.fields)}"
    if spec.where:
        clause += f" WHERE {spec.where}"
    if spec.order_by:
        clause += f" ORDER BY {spec.order_by}"
    if spec.limit:
        clause += f" LIMIT {spec.limit}"
    return clause + ")"


def build_sosl_query(args: SearchAllArgs) -> str:
    returning = ", ".join(_returning_clause(spec) for spec in args.objects)
    query = f"FIND {{{args.search_term}}} IN {args.search_in or 'ALL FIELDS'} RETURNING {returning}"
    for clause in args.with_clauses or []:
        query += f" WITH {clause}"
    return query


# =============================================================================
# AGGREGATE KEY RESOLUTION
# =============================================================================

def split_select_field(field: str) -> tuple:
    """``'COUNT(Id) total'`` -> ``('COUNT(Id)', 'total')``; unaliased -> ``(field, None)``

    The alias is the last whitespace-separated token.
    """
    tokens = field.split()
    if len(tokens) > 1 and not tokens[-1].endswith(")"):
        return " ".join(tokens[:-1]), tokens[-1]
    return field.strip(), None


def aggregate_value(record: Dict[str, Any], field: str, expr_index: Optional[int] = None) -> Any:
    """Look up a grouped value by alias first, then by the bare expression.

    The platform keys a group's values sometimes by alias, sometimes by the
    original expression, and unaliased aggregates by position (``expr0``...).
    """
    expression, alias = split_select_field(field)
    if alias and record.get(alias) is not None:
        return record[alias]
    if record.get(expression) is not None:
        return record[expression]
    if expr_index is not None:
        return record.get(f"expr{expr_index}")
    return None


def render_groups(records: List[Dict[str, Any]], select_fields: List[str]) -> str:
    blocks = []
    for idx, record in enumerate(records, start=1):
        values = []
        expr_index = 0
        for field in select_fields:
            expression, alias = split_select_field(field)
            position = None
            if alias is None and "(" in expression:
                position = expr_index
                expr_index += 1
            values.append((alias or expression, aggregate_value(record, field, position)))
        blocks.append(f"Group {idx}:\n{render_fields(values)}")
    return "\n\n".join(blocks)


# =============================================================================
# TOOLS
# =============================================================================

@register_tool(
    "salesforce_query_records",
    QueryRecordsArgs,
    "Query records using SOQL with relationship support. Dotted field paths "
    "(e.g. 'Account.Owner.Name') resolve through related records.",
)
def query_records(ctx: ToolContext, args: QueryRecordsArgs) -> ToolResult:
    soql = build_soql_query(args.object_name, args.fields, args.where_clause, args.order_by, args.limit)
    logger.debug("SOQL: %s", soql)
    records = ctx.sf.query(soql).get("records", [])

    return text_result(
        f"Query returned {len(records)} records:\n\n{render_records(records, args.fields)}"
    )


@register_tool(
    "salesforce_aggregate_query",
    AggregateQueryArgs,
    "Execute SOQL queries with GROUP BY and aggregate functions "
    "(COUNT, SUM, AVG, MIN, MAX). Aliases are given as a trailing word, "
    "e.g. 'COUNT(Id) total'.",
)
def aggregate_query(ctx: ToolContext, args: AggregateQueryArgs) -> ToolResult:
    soql = build_aggregate_query(args)
    logger.debug("SOQL: %s", soql)
    records = ctx.sf.query(soql).get("records", [])

    return text_result(
        f"Aggregate query returned {len(records)} groups:\n\n{render_groups(records, args.select_fields)}"
    )


def partition_search_records(records: List[Dict[str, Any]], object_names: List[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Split the interleaved SOSL result set back into per-object groups by type tag"""
    groups: Dict[str, List[Dict[str, Any]]] = {name: [] for name in object_names}
    by_lower = {name.lower(): name for name in object_names}
    for record in records:
        record_type = (record.get("attributes") or {}).get("type", "")
        name = by_lower.get(record_type.lower())
        if name is not None:
            groups[name].append(record)
    return groups


@register_tool(
    "salesforce_search_all",
    SearchAllArgs,
    "Search across multiple objects using SOSL. Results are grouped per object.",
)
def search_all(ctx: ToolContext, args: SearchAllArgs) -> ToolResult:
    sosl = build_sosl_query(args)
    logger.debug("SOSL: %s", sosl)
    result = ctx.sf.search(sosl) or {}

    groups = partition_search_records(result.get("searchRecords", []), [spec.name for spec in args.objects])

    sections = []
    for spec in args.objects:
        records = groups[spec.name]
        section = f"{spec.name} ({len(records)} records):"
        if records:
            section += "\n" + render_records(records, spec.fields)
        sections.append(section)
    return text_result("Search Results:\n\n" + "\n\n".join(sections))
