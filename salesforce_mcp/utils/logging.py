"""Structured logging for tool calls.

Every tool call gets a call ID held in a context variable. ``asyncio.to_thread``
copies the context, so log lines emitted by a handler running in a worker
thread carry the ID of the call that started it.
"""
import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

NO_CALL = "-"

# (call id, tool name) of the tool call being served
_current_call: contextvars.ContextVar[Tuple[str, str]] = contextvars.ContextVar(
    "current_call", default=(NO_CALL, NO_CALL)
)

# Extra attributes copied into JSON output when present on a record
EXTRA_FIELDS = ("tool_name", "duration_ms", "success", "error")

# Libraries that log every HTTP exchange at INFO/DEBUG
NOISY_LOGGERS = ("urllib3", "simple_salesforce", "mcp.server.lowlevel.server")


def start_tool_call(tool_name: str) -> str:
    """Open a new call scope in the current context and return its ID"""
    call_id = uuid.uuid4().hex[:12]
    _current_call.set((call_id, tool_name))
    return call_id


class ToolCallFilter(logging.Filter):
    """Stamp ``call_id`` and ``call_tool`` on every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id, record.call_tool = _current_call.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "call_id": getattr(record, "call_id", NO_CALL),
        }
        entry.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_structured_logging(level: str = "INFO", use_json: bool = False) -> None:
    """Route all logging to stderr; stdout belongs to the stdio transport.

    Args:
        level: stdlib level name (ERROR, WARNING, INFO, DEBUG)
        use_json: one JSON object per line instead of the text format
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ToolCallFilter())
    handler.setFormatter(
        JSONFormatter() if use_json
        else logging.Formatter("%(asctime)s %(levelname)-7s [%(call_id)s %(call_tool)s] %(name)s: %(message)s")
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def log_tool_execution(
    logger: logging.Logger,
    tool_name: str,
    duration_ms: float,
    success: bool,
    error: Optional[str] = None,
) -> None:
    """Emit the one summary line of a tool call (INFO on success, ERROR otherwise)"""
    extra: Dict[str, Any] = {
        "tool_name": tool_name,
        "duration_ms": round(duration_ms, 2),
        "success": success,
    }
    if error:
        extra["error"] = error

    outcome = "succeeded" if success else "failed"
    logger.log(
        logging.INFO if success else logging.ERROR,
        "%s %s in %.1fms", tool_name, outcome, duration_ms,
        extra=extra,
    )
