import json
import logging

import pytest

from salesforce_mcp.mcp.tools.utils import (
    format_value,
    get_nested_value,
    render_anonymous_result,
    render_bulk_result,
)
from salesforce_mcp.utils.errors import PlatformError, ValidationError
from salesforce_mcp.utils.logging import JSONFormatter, ToolCallFilter, log_tool_execution, start_tool_call
from salesforce_mcp.utils.validators import default_label, ensure_custom_suffix, validate_api_name


def test_nested_value_stops_at_missing_relationship() -> None:
    record = {"Account": {"Owner": {"Name": "Jane"}}, "Contact": None}
    assert get_nested_value(record, "Account.Owner.Name") == "Jane"
    assert get_nested_value(record, "Contact.Email") is None
    assert get_nested_value(record, "Missing") is None


def test_format_value() -> None:
    assert format_value(None) == "null"
    assert format_value(True) == "true"
    assert format_value(12.5) == "12.5"
    assert format_value({"a": 1}) == '{"a": 1}'


def test_bulk_result_lists_errors_in_submission_order() -> None:
    text = render_bulk_result("upsert", [
        {"success": False, "errors": [{"message": "first"}, {"message": "second"}]},
        {"success": True},
        {"success": False, "errors": {"message": "third"}},
    ])
    assert text == (
        "UPSERT completed: 1 successful, 2 failed\n\n"
        "Errors:\n"
        "Record 1: first, second\n"
        "Record 3: third"
    )


def test_anonymous_outcomes_are_mutually_exclusive() -> None:
    compile_failure = render_anonymous_result({"compiled": False, "line": 2, "column": 5, "compileProblem": "oops"})
    runtime_failure = render_anonymous_result({"compiled": True, "success": False, "exceptionMessage": "boom"})
    success = render_anonymous_result({"compiled": True, "success": True})

    assert "Execution" not in compile_failure
    assert "Execution: Failed\nboom" in runtime_failure
    assert "Execution: Success" not in runtime_failure
    assert success == "Compilation: Success\nExecution: Success"


@pytest.mark.parametrize("name", ["Invoice__c", "Account", "My_Object_2__c", "Setting__mdt"])
def test_valid_api_names(name) -> None:
    assert validate_api_name(name)


@pytest.mark.parametrize("name", ["", "2Invoice", "Invoice-Item", "A" * 81])
def test_invalid_api_names(name) -> None:
    with pytest.raises(ValidationError):
        validate_api_name(name, "Object")


def test_custom_suffix_is_appended_only_when_missing() -> None:
    assert ensure_custom_suffix("Invoice") == "Invoice__c"
    assert ensure_custom_suffix("Invoice__c") == "Invoice__c"
    assert default_label("Invoice_Line__c") == "Invoice Line"


def test_platform_error_from_rest_error_list() -> None:
    error = PlatformError.from_salesforce_error(
        type("Err", (Exception,), {"content": [{"errorCode": "INVALID_FIELD", "message": "No such column 'Nme'"}]})()
    )
    assert str(error) == "INVALID_FIELD: No such column 'Nme'"
    assert error.error_code == "INVALID_FIELD"


def test_tool_execution_log_carries_structured_fields() -> None:
    records = []

    class Capture(logging.Handler):
        def emit(self, record):
            records.append(record)

    logger = logging.getLogger("salesforce_mcp.tests.capture")
    logger.addHandler(Capture())
    logger.setLevel(logging.INFO)

    log_tool_execution(logger, "salesforce_query_records", 12.5, success=False, error="Error: boom")

    payload = json.loads(JSONFormatter().format(records[0]))
    assert payload["level"] == "ERROR"
    assert payload["tool_name"] == "salesforce_query_records"
    assert payload["duration_ms"] == 12.5
    assert payload["success"] is False
    assert payload["error"] == "Error: boom"


def test_records_carry_the_current_call_id() -> None:
    call_id = start_tool_call("salesforce_read_apex")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)

    assert ToolCallFilter().filter(record)
    assert record.call_id == call_id
    assert record.call_tool == "salesforce_read_apex"
    assert json.loads(JSONFormatter().format(record))["call_id"] == call_id
