import pytest

from salesforce_mcp.mcp.arguments import ManageFieldArgs, QueryRecordsArgs, input_schema, narrow
from salesforce_mcp.mcp.registry import get_tool
from salesforce_mcp.utils.errors import ValidationError


def test_camel_case_keys_map_to_attributes() -> None:
    args = narrow("salesforce_query_records", QueryRecordsArgs, {
        "objectName": "Account",
        "fields": ["Name"],
        "whereClause": "Industry = 'Technology'",
        "orderBy": "Name",
        "limit": 5,
    })
    assert args.object_name == "Account"
    assert args.where_clause == "Industry = 'Technology'"
    assert args.order_by == "Name"
    assert args.limit == 5


def test_missing_argument_object() -> None:
    with pytest.raises(ValidationError, match="Arguments are required for salesforce_query_records"):
        get_tool("salesforce_query_records").validate(None)


def test_missing_required_field_is_named() -> None:
    with pytest.raises(ValidationError, match="objectName"):
        get_tool("salesforce_query_records").validate({"fields": ["Name"]})


def test_upsert_requires_external_id_field() -> None:
    with pytest.raises(ValidationError, match="externalIdField is required for upsert"):
        get_tool("salesforce_dml_records").validate({
            "operation": "upsert",
            "objectName": "Account",
            "records": [{"Name": "Acme"}],
        })


def test_delete_requires_ids() -> None:
    with pytest.raises(ValidationError, match="Id"):
        get_tool("salesforce_dml_records").validate({
            "operation": "delete",
            "objectName": "Account",
            "records": [{"Name": "Acme"}],
        })


def test_unknown_operation_is_rejected() -> None:
    with pytest.raises(ValidationError, match="operation"):
        get_tool("salesforce_dml_records").validate({
            "operation": "merge",
            "objectName": "Account",
            "records": [{"Id": "001"}],
        })


def test_enum_options_are_checked() -> None:
    with pytest.raises(ValidationError, match="sharingModel"):
        get_tool("salesforce_manage_object").validate({
            "operation": "create",
            "objectName": "Invoice",
            "sharingModel": "Public",
        })


def test_field_create_requires_type() -> None:
    with pytest.raises(ValidationError, match="type is required"):
        get_tool("salesforce_manage_field").validate({
            "operation": "create",
            "objectName": "Invoice__c",
            "fieldName": "Amount",
        })


def test_field_update_does_not_require_type() -> None:
    args = get_tool("salesforce_manage_field").validate({
        "operation": "update",
        "objectName": "Invoice__c",
        "fieldName": "Amount",
        "label": "Total Amount",
    })
    assert args.field_type is None


def test_picklist_values_accept_plain_strings() -> None:
    args = narrow("salesforce_manage_field", ManageFieldArgs, {
        "operation": "create",
        "objectName": "Invoice__c",
        "fieldName": "Status",
        "type": "Picklist",
        "picklistValues": ["Open", {"label": "Closed", "isDefault": True}],
    })
    assert [(v.label, v.is_default) for v in args.picklist_values] == [("Open", False), ("Closed", True)]


def test_trigger_create_requires_object_name() -> None:
    with pytest.raises(ValidationError, match="objectName is required"):
        get_tool("salesforce_write_apex_trigger").validate({
            "operation": "create",
            "triggerName": "InvoiceTrigger",
            "body": "trigger InvoiceTrigger on Invoice__c (before insert) {}",
        })


def test_non_object_arguments_are_rejected() -> None:
    with pytest.raises(ValidationError, match="must be an object"):
        get_tool("salesforce_search_objects").validate(["Account"])


def test_input_schema_uses_wire_names() -> None:
    schema = input_schema(QueryRecordsArgs)
    assert set(schema["properties"]) >= {"objectName", "fields", "whereClause", "orderBy", "limit"}
    assert set(schema["required"]) == {"objectName", "fields"}
