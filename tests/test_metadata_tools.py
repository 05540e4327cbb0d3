import copy

import pytest

from salesforce_mcp.mcp.registry import get_tool
from salesforce_mcp.mcp.tools import metadata as metadata_tools
from salesforce_mcp.mcp.tools.metadata import merge_descriptor
from salesforce_mcp.utils.errors import NotFoundError, PlatformError, ValidationError


def _args(tool_name, raw):
    return get_tool(tool_name).validate(raw)


def _saved(full_name):
    return [{"fullName": full_name, "success": True}]


def test_merge_descriptor_applies_only_supplied_overrides() -> None:
    current = {
        "fullName": "Invoice__c",
        "label": "Invoice",
        "enableHistory": False,
        "nameField": {"label": "Name", "type": "Text"},
    }
    snapshot = copy.deepcopy(current)
    overrides = {"label": "Bill", "description": None, "pluralLabel": "", "nameField": {"label": "Invoice Number"}}

    merged = merge_descriptor(current, overrides)

    assert merged == {
        "fullName": "Invoice__c",
        "label": "Bill",
        "enableHistory": False,
        "nameField": {"label": "Invoice Number", "type": "Text"},
    }
    assert current == snapshot
    assert overrides["nameField"] == {"label": "Invoice Number"}


def test_create_object_builds_complete_descriptor(ctx, metadata) -> None:
    metadata.create.return_value = _saved("Invoice__c")
    args = _args("salesforce_manage_object", {
        "operation": "create",
        "objectName": "Invoice",
        "label": "Invoice",
        "pluralLabel": "Invoices",
        "nameFieldType": "AutoNumber",
        "nameFieldFormat": "INV-{0000}",
    })

    result = metadata_tools.manage_object(ctx, args)

    metadata.create.assert_called_once_with("CustomObject", {
        "fullName": "Invoice__c",
        "label": "Invoice",
        "pluralLabel": "Invoices",
        "nameField": {"label": "Name", "type": "AutoNumber", "displayFormat": "INV-{0000}"},
        "deploymentStatus": "Deployed",
        "sharingModel": "ReadWrite",
    })
    assert result.text == "Successfully created custom object Invoice__c"


def test_create_object_keeps_existing_suffix_and_derives_label(ctx, metadata) -> None:
    metadata.create.return_value = _saved("Service_Contract__c")
    args = _args("salesforce_manage_object", {"operation": "create", "objectName": "Service_Contract__c"})

    metadata_tools.manage_object(ctx, args)

    descriptor = metadata.create.call_args.args[1]
    assert descriptor["fullName"] == "Service_Contract__c"
    assert descriptor["label"] == "Service Contract"
    assert descriptor["nameField"] == {"label": "Name", "type": "Text"}


def test_update_object_reads_merges_and_writes(ctx, metadata) -> None:
    metadata.read_one.return_value = {
        "fullName": "Invoice__c",
        "label": "Invoice",
        "pluralLabel": "Invoices",
        "sharingModel": "Private",
        "nameField": {"label": "Name", "type": "Text"},
        "enableReports": True,
    }
    metadata.update.return_value = _saved("Invoice__c")
    args = _args("salesforce_manage_object", {"operation": "update", "objectName": "Invoice", "description": "Billing"})

    result = metadata_tools.manage_object(ctx, args)

    metadata.read_one.assert_called_once_with("CustomObject", "Invoice__c")
    submitted = metadata.update.call_args.args[1]
    assert submitted["description"] == "Billing"
    assert submitted["sharingModel"] == "Private"
    assert submitted["enableReports"] is True
    assert submitted["nameField"] == {"label": "Name", "type": "Text"}
    assert result.text == "Successfully updated custom object Invoice__c"


def test_update_missing_object_is_not_found(ctx, metadata) -> None:
    metadata.read_one.side_effect = NotFoundError("CustomObject Ghost__c not found")
    args = _args("salesforce_manage_object", {"operation": "update", "objectName": "Ghost", "label": "Ghost"})

    with pytest.raises(NotFoundError):
        metadata_tools.manage_object(ctx, args)
    metadata.update.assert_not_called()


def test_failed_save_is_platform_error(ctx, metadata) -> None:
    metadata.create.return_value = [{
        "fullName": "Invoice__c",
        "success": False,
        "errors": {"message": "There is already a Custom Object named Invoice", "statusCode": "DUPLICATE_DEVELOPER_NAME"},
    }]
    args = _args("salesforce_manage_object", {"operation": "create", "objectName": "Invoice"})

    with pytest.raises(PlatformError, match="already a Custom Object named Invoice"):
        metadata_tools.manage_object(ctx, args)


def test_invalid_object_name_never_reaches_metadata_api(ctx, metadata) -> None:
    args = _args("salesforce_manage_object", {"operation": "create", "objectName": "1nvoice"})
    with pytest.raises(ValidationError):
        metadata_tools.manage_object(ctx, args)
    metadata.create.assert_not_called()


def test_lookup_field_carries_relationship_attributes(ctx, metadata) -> None:
    metadata.create.return_value = _saved("Invoice__c.Account__c")
    args = _args("salesforce_manage_field", {
        "operation": "create",
        "objectName": "Invoice__c",
        "fieldName": "Account",
        "label": "Account",
        "type": "Lookup",
        "referenceTo": "Account",
        "relationshipName": "Invoices",
        "deleteConstraint": "SetNull",
    })

    result = metadata_tools.manage_field(ctx, args)

    metadata.create.assert_called_once_with("CustomField", {
        "fullName": "Invoice__c.Account__c",
        "label": "Account",
        "type": "Lookup",
        "referenceTo": "Account",
        "relationshipName": "Invoices",
        "relationshipLabel": "Invoices",
        "deleteConstraint": "SetNull",
    })
    assert result.text == "Successfully created field Account__c on Invoice__c"


def test_reference_attributes_ignored_for_other_types(ctx, metadata) -> None:
    metadata.create.return_value = _saved("Invoice__c.Code__c")
    args = _args("salesforce_manage_field", {
        "operation": "create",
        "objectName": "Invoice__c",
        "fieldName": "Code__c",
        "type": "Text",
        "length": 20,
        "referenceTo": "Account",
    })

    metadata_tools.manage_field(ctx, args)

    descriptor = metadata.create.call_args.args[1]
    assert "referenceTo" not in descriptor
    assert descriptor["length"] == 20
    assert descriptor["label"] == "Code"


def test_picklist_field_builds_value_set(ctx, metadata) -> None:
    metadata.create.return_value = _saved("Invoice__c.Status__c")
    args = _args("salesforce_manage_field", {
        "operation": "create",
        "objectName": "Invoice__c",
        "fieldName": "Status",
        "type": "Picklist",
        "picklistValues": ["Open", {"label": "Paid", "isDefault": True}],
    })

    metadata_tools.manage_field(ctx, args)

    value_set = metadata.create.call_args.args[1]["valueSet"]
    assert value_set == {"valueSetDefinition": {"sorted": True, "value": [
        {"fullName": "Open", "default": False, "label": "Open"},
        {"fullName": "Paid", "default": True, "label": "Paid"},
    ]}}


def test_update_field_reads_merges_and_writes(ctx, metadata) -> None:
    metadata.read_one.return_value = {
        "fullName": "Invoice__c.Amount__c",
        "label": "Amount",
        "type": "Currency",
        "precision": "18",
        "scale": "2",
    }
    metadata.update.return_value = _saved("Invoice__c.Amount__c")
    args = _args("salesforce_manage_field", {
        "operation": "update",
        "objectName": "Invoice__c",
        "fieldName": "Amount",
        "label": "Total Amount",
    })

    metadata_tools.manage_field(ctx, args)

    metadata.read_one.assert_called_once_with("CustomField", "Invoice__c.Amount__c")
    metadata.update.assert_called_once_with("CustomField", {
        "fullName": "Invoice__c.Amount__c",
        "label": "Total Amount",
        "type": "Currency",
        "precision": "18",
        "scale": "2",
    })


def _permission_queries(missing_profiles=(), existing_permission=None):
    def query(soql):
        if "FROM Profile" in soql:
            for name in missing_profiles:
                if f"Name = '{name}'" in soql:
                    return {"records": []}
            return {"records": [{"Id": "00eP"}]}
        if "FROM PermissionSet" in soql:
            return {"records": [{"Id": "0PSP"}]}
        if "FROM FieldPermissions" in soql:
            return {"records": [{"Id": existing_permission}] if existing_permission else []}
        raise AssertionError(f"unexpected query: {soql}")
    return query


def test_grant_reports_each_profile_separately(ctx, sf) -> None:
    sf.query.side_effect = _permission_queries(missing_profiles=["A"])
    args = _args("salesforce_manage_field_permissions", {
        "operation": "grant",
        "objectName": "Invoice__c",
        "fieldName": "Amount",
        "profileNames": ["A", "B"],
    })

    result = metadata_tools.manage_field_permissions(ctx, args)

    assert not result.is_error
    assert "Failed for A: Profile not found: A" in result.text
    assert "Granted to B" in result.text
    sf.FieldPermissions.create.assert_called_once_with({
        "ParentId": "0PSP",
        "SobjectType": "Invoice__c",
        "Field": "Invoice__c.Amount__c",
        "PermissionsRead": True,
        "PermissionsEdit": True,
    })


def test_grant_updates_existing_permission_row(ctx, sf) -> None:
    sf.query.side_effect = _permission_queries(existing_permission="01kX")
    args = _args("salesforce_manage_field_permissions", {
        "operation": "grant",
        "objectName": "Invoice__c",
        "fieldName": "Amount__c",
        "editable": False,
    })

    result = metadata_tools.manage_field_permissions(ctx, args)

    sf.FieldPermissions.update.assert_called_once_with("01kX", {"PermissionsRead": True, "PermissionsEdit": False})
    sf.FieldPermissions.create.assert_not_called()
    assert "Granted to System Administrator" in result.text


def test_revoke_deletes_permission_row(ctx, sf) -> None:
    sf.query.side_effect = _permission_queries(existing_permission="01kX")
    args = _args("salesforce_manage_field_permissions", {
        "operation": "revoke",
        "objectName": "Invoice__c",
        "fieldName": "Amount",
        "profileNames": ["Standard User"],
    })

    result = metadata_tools.manage_field_permissions(ctx, args)

    sf.FieldPermissions.delete.assert_called_once_with("01kX")
    assert "Revoked from Standard User" in result.text


def test_view_lists_profile_access(ctx, sf) -> None:
    sf.query.return_value = {"records": [
        {"Parent": {"Profile": {"Name": "Standard User"}}, "PermissionsRead": True, "PermissionsEdit": False},
        {"Parent": {"Profile": {"Name": "System Administrator"}}, "PermissionsRead": True, "PermissionsEdit": True},
    ]}
    args = _args("salesforce_manage_field_permissions", {
        "operation": "view",
        "objectName": "Invoice__c",
        "fieldName": "Amount",
    })

    text = metadata_tools.manage_field_permissions(ctx, args).text

    soql = sf.query.call_args.args[0]
    assert "Field = 'Invoice__c.Amount__c'" in soql
    assert "Parent.IsOwnedByProfile = true" in soql
    assert "Standard User: Read=true, Edit=false" in text
    assert "System Administrator: Read=true, Edit=true" in text


def test_create_field_then_grants_access(ctx, sf, metadata) -> None:
    metadata.create.return_value = _saved("Invoice__c.Amount__c")
    sf.query.side_effect = _permission_queries()
    args = _args("salesforce_manage_field", {
        "operation": "create",
        "objectName": "Invoice__c",
        "fieldName": "Amount",
        "type": "Currency",
        "precision": 18,
        "scale": 2,
        "grantAccessTo": ["System Administrator"],
    })

    text = metadata_tools.manage_field(ctx, args).text

    assert text.startswith("Successfully created field Amount__c on Invoice__c")
    assert "Field Level Security granted to: System Administrator" in text
    sf.FieldPermissions.create.assert_called_once()
