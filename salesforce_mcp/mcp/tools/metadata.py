"""Custom object, custom field and field-level security tools

Object and field names get the ``__c`` suffix only when it is missing.
Updates are always read-merge-write: the current descriptor is fetched, the
caller's overrides are merged in with ``merge_descriptor`` and the merged
descriptor is submitted, so untouched attributes are preserved.
"""
import logging
from typing import Any, Dict, List, Optional

from salesforce_mcp.mcp.arguments import ManageFieldArgs, ManageFieldPermissionsArgs, ManageObjectArgs
from salesforce_mcp.mcp.registry import ToolContext, register_tool
from salesforce_mcp.mcp.tools.utils import ToolResult, escape_soql, format_value, text_result
from salesforce_mcp.services.metadata import save_errors, save_succeeded
from salesforce_mcp.utils.errors import NotFoundError, PlatformError
from salesforce_mcp.utils.validators import default_label, ensure_custom_suffix, validate_api_name

logger = logging.getLogger(__name__)

DEFAULT_PROFILES = ["System Administrator"]
REFERENCE_TYPES = {"Lookup", "MasterDetail"}


def merge_descriptor(current: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``current`` with ``overrides`` applied; neither input is modified.

    ``None``, empty-string and empty-dict overrides are skipped. Nested dicts merge key by
    key, anything else replaces the current value.
    """
    merged = dict(current)
    for key, value in overrides.items():
        if value is None or value == "" or value == {}:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_descriptor(merged[key], value)
        else:
            merged[key] = value
    return merged


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None and v != ""}


def _check_saved(results: Any, action: str) -> None:
    if not save_succeeded(results):
        errors = save_errors(results)
        raise PlatformError(f"Failed to {action}" + (f": {errors}" if errors else ""))


# =============================================================================
# CUSTOM OBJECTS
# =============================================================================

def build_custom_object(args: ManageObjectArgs, full_name: str) -> Dict[str, Any]:
    """Complete CustomObject descriptor for create"""
    name_field = {
        "label": args.name_field_label or "Name",
        "type": args.name_field_type or "Text",
    }
    if name_field["type"] == "AutoNumber" and args.name_field_format:
        name_field["displayFormat"] = args.name_field_format

    return _compact({
        "fullName": full_name,
        "label": args.label or default_label(full_name),
        "pluralLabel": args.plural_label,
        "description": args.description,
        "nameField": name_field,
        "deploymentStatus": "Deployed",
        "sharingModel": args.sharing_model or "ReadWrite",
    })


def custom_object_overrides(args: ManageObjectArgs) -> Dict[str, Any]:
    return {
        "label": args.label,
        "pluralLabel": args.plural_label,
        "description": args.description,
        "sharingModel": args.sharing_model,
        "nameField": _compact({
            "label": args.name_field_label,
            "type": args.name_field_type,
            "displayFormat": args.name_field_format,
        }),
    }


@register_tool(
    "salesforce_manage_object",
    ManageObjectArgs,
    "Create or update custom objects. Create builds a deployed object with labels, "
    "Name field configuration (Text or AutoNumber) and sharing model; update changes "
    "only the attributes supplied.",
)
def manage_object(ctx: ToolContext, args: ManageObjectArgs) -> ToolResult:
    full_name = ensure_custom_suffix(args.object_name)
    validate_api_name(full_name, "Object")

    if args.operation == "create":
        results = ctx.metadata.create("CustomObject", build_custom_object(args, full_name))
        _check_saved(results, f"create custom object {full_name}")
        return text_result(f"Successfully created custom object {full_name}")

    current = ctx.metadata.read_one("CustomObject", full_name)
    results = ctx.metadata.update("CustomObject", merge_descriptor(current, custom_object_overrides(args)))
    _check_saved(results, f"update custom object {full_name}")
    return text_result(f"Successfully updated custom object {full_name}")


# =============================================================================
# CUSTOM FIELDS
# =============================================================================

def field_attributes(args: ManageFieldArgs) -> Dict[str, Any]:
    """Caller-supplied CustomField attributes, type-specific ones only when relevant"""
    attributes = {
        "label": args.label,
        "type": args.field_type,
        "description": args.description,
        "required": args.required,
        "unique": args.unique,
        "externalId": args.external_id,
        "length": args.length,
        "precision": args.precision,
        "scale": args.scale,
    }

    if args.field_type in REFERENCE_TYPES and args.reference_to:
        attributes.update({
            "referenceTo": args.reference_to,
            "relationshipName": args.relationship_name,
            "relationshipLabel": args.relationship_label or args.relationship_name,
            "deleteConstraint": args.delete_constraint,
        })

    if args.picklist_values:
        attributes["valueSet"] = {
            "valueSetDefinition": {
                "sorted": True,
                "value": [
                    {"fullName": value.label, "default": value.is_default, "label": value.label}
                    for value in args.picklist_values
                ],
            }
        }

    return _compact(attributes)


def build_custom_field(args: ManageFieldArgs, full_name: str, field_api_name: str) -> Dict[str, Any]:
    attributes = field_attributes(args)
    attributes.setdefault("label", default_label(field_api_name))
    return {"fullName": full_name, **attributes}


@register_tool(
    "salesforce_manage_field",
    ManageFieldArgs,
    "Create or update custom fields, including lookup/master-detail relationships "
    "and picklists. On create, grantAccessTo lists profiles that immediately get "
    "read/edit access to the new field.",
)
def manage_field(ctx: ToolContext, args: ManageFieldArgs) -> ToolResult:
    field_api_name = ensure_custom_suffix(args.field_name)
    validate_api_name(args.object_name, "Object")
    validate_api_name(field_api_name, "Field")
    full_name = f"{args.object_name}.{field_api_name}"

    if args.operation == "update":
        current = ctx.metadata.read_one("CustomField", full_name)
        results = ctx.metadata.update("CustomField", merge_descriptor(current, field_attributes(args)))
        _check_saved(results, f"update field {full_name}")
        return text_result(f"Successfully updated field {field_api_name} on {args.object_name}")

    results = ctx.metadata.create("CustomField", build_custom_field(args, full_name, field_api_name))
    _check_saved(results, f"create field {full_name}")
    text = f"Successfully created field {field_api_name} on {args.object_name}"

    if args.grant_access_to:
        outcomes = grant_to_profiles(ctx.sf, args.object_name, field_api_name, args.grant_access_to)
        granted = [profile for profile, error in outcomes if error is None]
        failed = [(profile, error) for profile, error in outcomes if error is not None]
        if granted:
            text += f"\nField Level Security granted to: {', '.join(granted)}"
        for profile, error in failed:
            text += f"\nField Level Security failed for {profile}: {error}"

    return text_result(text)


# =============================================================================
# FIELD LEVEL SECURITY
# =============================================================================

def _profile_permission_set_id(sf, profile_name: str) -> str:
    """Id of the permission set owned by ``profile_name``"""
    profile = sf.query(f"SELECT Id FROM Profile WHERE Name = '{escape_soql(profile_name)}'")
    if not profile.get("records"):
        raise NotFoundError(f"Profile not found: {profile_name}")

    permission_set = sf.query(
        "SELECT Id FROM PermissionSet "
        f"WHERE IsOwnedByProfile = true AND ProfileId = '{profile['records'][0]['Id']}'"
    )
    if not permission_set.get("records"):
        raise NotFoundError(f"No permission set owned by profile {profile_name}")
    return permission_set["records"][0]["Id"]


def _existing_field_permission(sf, parent_id: str, full_field_name: str) -> Optional[str]:
    existing = sf.query(
        "SELECT Id FROM FieldPermissions "
        f"WHERE ParentId = '{parent_id}' AND Field = '{full_field_name}'"
    )
    records = existing.get("records") or []
    return records[0]["Id"] if records else None


def grant_field_permission(
    sf, object_name: str, field_api_name: str, profile_name: str, readable: bool = True, editable: bool = True
) -> None:
    """Give one profile read/edit access, updating its row when it already has one"""
    full_field_name = f"{object_name}.{field_api_name}"
    parent_id = _profile_permission_set_id(sf, profile_name)
    flags = {"PermissionsRead": readable or editable, "PermissionsEdit": editable}

    existing_id = _existing_field_permission(sf, parent_id, full_field_name)
    if existing_id:
        sf.FieldPermissions.update(existing_id, flags)
    else:
        sf.FieldPermissions.create({
            "ParentId": parent_id,
            "SobjectType": object_name,
            "Field": full_field_name,
            **flags,
        })


def revoke_field_permission(sf, object_name: str, field_api_name: str, profile_name: str) -> bool:
    """Remove one profile's access; False when it had none"""
    parent_id = _profile_permission_set_id(sf, profile_name)
    existing_id = _existing_field_permission(sf, parent_id, f"{object_name}.{field_api_name}")
    if not existing_id:
        return False
    sf.FieldPermissions.delete(existing_id)
    return True


def grant_to_profiles(
    sf, object_name: str, field_api_name: str, profile_names: List[str], readable: bool = True, editable: bool = True
) -> List[tuple]:
    """Grant profile by profile; returns ``(profile, error message or None)`` in input order"""
    outcomes = []
    for profile_name in profile_names:
        try:
            grant_field_permission(sf, object_name, field_api_name, profile_name, readable, editable)
            outcomes.append((profile_name, None))
        except Exception as e:
            logger.warning("Failed to grant %s.%s to %s: %s", object_name, field_api_name, profile_name, e)
            outcomes.append((profile_name, str(e)))
    return outcomes


def view_field_permissions(sf, object_name: str, field_api_name: str) -> str:
    full_field_name = f"{object_name}.{field_api_name}"
    result = sf.query(
        "SELECT Parent.Profile.Name, PermissionsRead, PermissionsEdit "
        "FROM FieldPermissions "
        f"WHERE SobjectType = '{object_name}' AND Field = '{full_field_name}' "
        "AND Parent.IsOwnedByProfile = true "
        "ORDER BY Parent.Profile.Name"
    )
    lines = [
        f"{(perm.get('Parent') or {}).get('Profile', {}).get('Name')}: "
        f"Read={format_value(perm.get('PermissionsRead'))}, Edit={format_value(perm.get('PermissionsEdit'))}"
        for perm in result.get("records", [])
    ]
    return f"Field permissions for {full_field_name}:\n" + ("\n".join(lines) if lines else "No profile has access")


@register_tool(
    "salesforce_manage_field_permissions",
    ManageFieldPermissionsArgs,
    "Manage Field Level Security: view which profiles can read/edit a field, or grant/revoke "
    "access for a list of profiles. Each profile is processed independently and reported separately.",
)
def manage_field_permissions(ctx: ToolContext, args: ManageFieldPermissionsArgs) -> ToolResult:
    field_api_name = ensure_custom_suffix(args.field_name)

    if args.operation == "view":
        return text_result(view_field_permissions(ctx.sf, args.object_name, field_api_name))

    profiles = args.profile_names or DEFAULT_PROFILES
    lines = []
    if args.operation == "grant":
        outcomes = grant_to_profiles(
            ctx.sf, args.object_name, field_api_name, profiles, args.readable, args.editable
        )
        for profile_name, error in outcomes:
            lines.append(f"Granted to {profile_name}" if error is None else f"Failed for {profile_name}: {error}")
    else:
        for profile_name in profiles:
            try:
                if revoke_field_permission(ctx.sf, args.object_name, field_api_name, profile_name):
                    lines.append(f"Revoked from {profile_name}")
                else:
                    lines.append(f"No access to revoke for {profile_name}")
            except Exception as e:
                logger.warning("Failed to revoke %s from %s: %s", field_api_name, profile_name, e)
                lines.append(f"Failed for {profile_name}: {e}")

    return text_result(f"Field permissions {args.operation} for {args.object_name}.{field_api_name}:\n" + "\n".join(lines))
