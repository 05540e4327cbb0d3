"""Schema discovery tools: object search and describe"""
import logging

from salesforce_mcp.mcp.arguments import DescribeObjectArgs, SearchObjectsArgs
from salesforce_mcp.mcp.registry import ToolContext, register_tool
from salesforce_mcp.mcp.tools.utils import ToolResult, text_result

logger = logging.getLogger(__name__)


@register_tool(
    "salesforce_search_objects",
    SearchObjectsArgs,
    "Search for Salesforce standard and custom objects by name pattern. "
    "Every word of the pattern must appear in the object's API name or label.",
)
def search_objects(ctx: ToolContext, args: SearchObjectsArgs) -> ToolResult:
    describe_global = ctx.sf.describe()
    terms = [t for t in args.search_pattern.lower().split() if t]

    matching = [
        obj for obj in describe_global.get("sobjects", [])
        if all(term in obj["name"].lower() or term in obj.get("label", "").lower() for term in terms)
    ]

    formatted = "\n\n".join(
        f"{obj['name']}{' (Custom)' if obj.get('custom') else ''}\n  Label: {obj.get('label')}"
        for obj in matching
    )
    return text_result(f"Found {len(matching)} objects:\n\n{formatted}")


def _describe_field(field: dict) -> str:
    lines = [f"  - {field['name']} ({field.get('label')})"]
    type_line = f"    Type: {field.get('type')}"
    if field.get("length"):
        type_line += f", Length: {field['length']}"
    lines.append(type_line)
    lines.append(f"    Required: {'false' if field.get('nillable', True) else 'true'}")
    if field.get("referenceTo"):
        lines.append(f"    References: {', '.join(field['referenceTo'])}")
    if field.get("picklistValues"):
        values = ", ".join(v["value"] for v in field["picklistValues"] if v.get("active", True))
        lines.append(f"    Picklist: {values}")
    return "\n".join(lines)


@register_tool(
    "salesforce_describe_object",
    DescribeObjectArgs,
    "Get detailed schema metadata for an object, including all fields, "
    "relationships and picklist values.",
)
def describe_object(ctx: ToolContext, args: DescribeObjectArgs) -> ToolResult:
    describe = getattr(ctx.sf, args.object_name).describe()

    header = f"Object: {describe['name']} ({describe.get('label')})"
    if describe.get("custom"):
        header += " (Custom)"
    fields = "\n".join(_describe_field(f) for f in describe.get("fields", []))
    return text_result(f"{header}\nFields:\n{fields}")
