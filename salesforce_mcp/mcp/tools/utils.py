"""Result rendering for MCP tools - uniform response shape and error hints

Every tool answers with ``{"content": [{"type": "text", "text": ...}], "isError": bool}``.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """Uniform outcome of one tool call"""

    text: str
    is_error: bool = False


class MCPError:
    """Troubleshooting hints for common platform errors"""

    # Common error patterns and their solutions
    ERROR_PATTERNS = {
        "MALFORMED_QUERY": "SOQL query syntax error. Check field names, quoting and clause order.",
        "INVALID_FIELD": "Field does not exist on this object or is not accessible. Check the API name and __c suffix.",
        "INVALID_TYPE": "Object type not found or not accessible. Check the object API name.",
        "INVALID_SEARCH": "SOSL search syntax error. Check the search term and RETURNING clause.",
        "INSUFFICIENT_ACCESS": "The connected user lacks permission for this operation. Check profile and permission sets.",
        "INVALID_SESSION_ID": "The session is invalid or expired. Check the SALESFORCE_* credentials.",
        "INVALID_LOGIN": "Login rejected. Check username, password and security token.",
        "invalid_client": "Client credentials rejected. Check the connected app's consumer key/secret and that the client credentials flow is enabled.",
        "REQUEST_LIMIT_EXCEEDED": "API request limit exceeded. Wait and retry later.",
        "DUPLICATE_VALUE": "A record with the same unique value already exists.",
        "REQUIRED_FIELD_MISSING": "A required field is missing from the record.",
    }

    @classmethod
    def hint_for(cls, error_msg: str) -> Optional[str]:
        lowered = error_msg.lower()
        for error_code, hint in cls.ERROR_PATTERNS.items():
            if error_code.lower() in lowered:
                return hint
        return None


def text_result(text: str) -> ToolResult:
    return ToolResult(text=text, is_error=False)


def error_result(error: Exception) -> ToolResult:
    """Render an exception caught at the dispatch boundary"""
    message = str(error) or type(error).__name__
    text = f"Error: {message}"
    hint = MCPError.hint_for(message)
    if hint:
        text += f"\nHint: {hint}"
    return ToolResult(text=text, is_error=True)


# =============================================================================
# VALUE FORMATTING
# =============================================================================

def escape_soql(value: str) -> str:
    """Escape a value for use inside a quoted SOQL string literal"""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def get_nested_value(record: Optional[Dict[str, Any]], path: str) -> Any:
    """Resolve ``Owner.Manager.Name`` through related records; None when absent."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def format_errors(errors: Any) -> str:
    if isinstance(errors, list):
        return ", ".join(e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors)
    if isinstance(errors, dict):
        return errors.get("message", str(errors))
    return str(errors)


def render_fields(values: Sequence[tuple], indent: str = "    ") -> str:
    return "\n".join(f"{indent}{label}: {format_value(value)}" for label, value in values)


def render_records(records: List[Dict[str, Any]], fields: List[str], heading: str = "Record") -> str:
    """Numbered blocks, one line per requested field in request order"""
    blocks = []
    for idx, record in enumerate(records, start=1):
        values = [(field, get_nested_value(record, field)) for field in fields]
        blocks.append(f"{heading} {idx}:\n{render_fields(values)}")
    return "\n\n".join(blocks)


# =============================================================================
# BULK / EXECUTION OUTCOMES
# =============================================================================

def count_outcomes(results: List[Dict[str, Any]]) -> tuple:
    """(successful, failed) entries of a per-record result list"""
    succeeded = sum(1 for r in results if r.get("success"))
    return succeeded, len(results) - succeeded


def render_bulk_result(operation: str, results: List[Dict[str, Any]]) -> str:
    """Counts plus per-record error messages, in submission order"""
    succeeded, failed = count_outcomes(results)
    text = f"{operation.upper()} completed: {succeeded} successful, {failed} failed"

    if failed:
        lines = []
        for idx, result in enumerate(results, start=1):
            if result.get("success"):
                continue
            errors = result.get("errors")
            lines.append(f"Record {idx}: {format_errors(errors) if errors else 'Unknown error'}")
        text += "\n\nErrors:\n" + "\n".join(lines)

    return text


def render_anonymous_result(result: Dict[str, Any]) -> str:
    """Label compile failure, runtime failure and success distinctly"""
    if not result.get("compiled"):
        return (
            "Compilation: Failed\n"
            f"Error at line {result.get('line')}, column {result.get('column')}: "
            f"{result.get('compileProblem')}"
        )

    text = "Compilation: Success\n"
    if result.get("success"):
        return text + "Execution: Success"

    text += f"Execution: Failed\n{result.get('exceptionMessage')}"
    if result.get("exceptionStackTrace"):
        text += f"\n\nStack trace:\n{result['exceptionStackTrace']}"
    return text
