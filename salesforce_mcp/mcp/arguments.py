"""Per-tool argument models.

The wire format is a loosely typed JSON object with camelCase keys. Each tool
narrows it into one of the models below; ``narrow`` is the single conversion
boundary and turns pydantic errors into ``ValidationError``. Validation is
structural only: presence, coarse type and the closed value sets of operation
kinds and enum-like options. Whether a named object or field exists is left to
the platform.
"""
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from salesforce_mcp.utils.errors import ValidationError

SharingModel = Literal["ReadWrite", "Read", "Private", "ControlledByParent"]
NameFieldType = Literal["Text", "AutoNumber"]
DeleteConstraint = Literal["Cascade", "Restrict", "SetNull"]
ApexLogLevel = Literal["NONE", "ERROR", "WARN", "INFO", "DEBUG", "FINE", "FINER", "FINEST"]
SearchScope = Literal["ALL FIELDS", "NAME FIELDS", "EMAIL FIELDS", "PHONE FIELDS", "SIDEBAR FIELDS"]


class ToolArguments(BaseModel):
    """Base for all tool argument models: camelCase on the wire, snake_case in code"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# =============================================================================
# SCHEMA
# =============================================================================

class SearchObjectsArgs(ToolArguments):
    search_pattern: str = Field(description="Search pattern to find objects (e.g. 'account coverage')")


class DescribeObjectArgs(ToolArguments):
    object_name: str = Field(description="API name of the object (e.g. 'Account', 'Invoice__c')")


# =============================================================================
# QUERY / SEARCH
# =============================================================================

class QueryRecordsArgs(ToolArguments):
    object_name: str = Field(description="API name of the object to query")
    fields: List[str] = Field(min_length=1, description="Fields to select; dotted paths traverse relationships")
    where_clause: Optional[str] = Field(default=None, description="WHERE condition without the WHERE keyword")
    order_by: Optional[str] = Field(default=None, description="ORDER BY clause without the keywords")
    limit: Optional[int] = Field(default=None, ge=1, description="Maximum number of records")


class AggregateQueryArgs(ToolArguments):
    object_name: str = Field(description="API name of the object to query")
    select_fields: List[str] = Field(
        min_length=1,
        description="Fields and aggregates, optionally aliased (e.g. 'COUNT(Id) total')",
    )
    group_by_fields: List[str] = Field(min_length=1, description="GROUP BY fields")
    where_clause: Optional[str] = Field(default=None, description="WHERE condition applied before grouping")
    having_clause: Optional[str] = Field(default=None, description="HAVING condition applied to groups")
    order_by: Optional[str] = Field(default=None, description="ORDER BY clause")
    limit: Optional[int] = Field(default=None, ge=1, description="Maximum number of groups")


class SearchObjectSpec(ToolArguments):
    name: str = Field(description="Object API name to return")
    fields: List[str] = Field(min_length=1, description="Fields to return for this object")
    where: Optional[str] = Field(default=None, description="WHERE condition for this object")
    order_by: Optional[str] = Field(default=None, description="ORDER BY clause for this object")
    limit: Optional[int] = Field(default=None, ge=1, description="Maximum records for this object")


class SearchAllArgs(ToolArguments):
    search_term: str = Field(description="Text to search for")
    search_in: Optional[SearchScope] = Field(default=None, description="Field scope, defaults to ALL FIELDS")
    objects: List[SearchObjectSpec] = Field(min_length=1, description="Objects to return")
    with_clauses: Optional[List[str]] = Field(
        default=None,
        description="Extra WITH clauses, e.g. \"DIVISION = 'Global'\" or 'SNIPPET (target_length=120)'",
    )


# =============================================================================
# DML
# =============================================================================

class DmlRecordsArgs(ToolArguments):
    operation: Literal["insert", "update", "delete", "upsert"]
    object_name: str = Field(description="API name of the object")
    records: List[Dict[str, Any]] = Field(min_length=1, description="Records to process")
    external_id_field: Optional[str] = Field(default=None, description="External ID field, required for upsert")

    @model_validator(mode="after")
    def _check_operation_requirements(self):
        if self.operation == "upsert" and not self.external_id_field:
            raise ValueError("externalIdField is required for upsert")
        if self.operation == "delete":
            missing = [idx for idx, record in enumerate(self.records, start=1) if not record.get("Id")]
            if missing:
                raise ValueError(f"records to delete need an Id (missing in record {missing[0]})")
        return self


# =============================================================================
# METADATA
# =============================================================================

class ManageObjectArgs(ToolArguments):
    operation: Literal["create", "update"]
    object_name: str = Field(description="API name of the custom object; __c is appended when missing")
    label: Optional[str] = Field(default=None, description="Label for the object")
    plural_label: Optional[str] = Field(default=None, description="Plural label for the object")
    description: Optional[str] = Field(default=None, description="Description for the object")
    name_field_label: Optional[str] = Field(default=None, description="Label for the Name field")
    name_field_type: Optional[NameFieldType] = Field(default=None, description="Type of the Name field")
    name_field_format: Optional[str] = Field(default=None, description="Display format for an AutoNumber Name field")
    sharing_model: Optional[SharingModel] = Field(default=None, description="Sharing model for the object")


class PicklistValue(ToolArguments):
    label: str
    is_default: bool = False


class ManageFieldArgs(ToolArguments):
    operation: Literal["create", "update"]
    object_name: str = Field(description="API name of the object owning the field")
    field_name: str = Field(description="API name of the field; __c is appended when missing")
    label: Optional[str] = Field(default=None, description="Label for the field")
    field_type: Optional[str] = Field(
        default=None,
        alias="type",
        description="Field type (Text, Number, Checkbox, Date, Picklist, Lookup, MasterDetail, ...)",
    )
    required: Optional[bool] = None
    unique: Optional[bool] = None
    external_id: Optional[bool] = None
    length: Optional[int] = Field(default=None, ge=1)
    precision: Optional[int] = Field(default=None, ge=1)
    scale: Optional[int] = Field(default=None, ge=0)
    reference_to: Optional[str] = Field(default=None, description="Referenced object for Lookup/MasterDetail")
    relationship_label: Optional[str] = None
    relationship_name: Optional[str] = None
    delete_constraint: Optional[DeleteConstraint] = None
    picklist_values: Optional[List[PicklistValue]] = Field(
        default=None,
        description="Picklist values: [{label, isDefault}] or plain strings",
    )
    description: Optional[str] = None
    grant_access_to: Optional[List[str]] = Field(
        default=None,
        description="Profiles granted read/edit access after a successful create",
    )

    @field_validator("picklist_values", mode="before")
    @classmethod
    def _coerce_picklist_strings(cls, value):
        if isinstance(value, list):
            return [{"label": item} if isinstance(item, str) else item for item in value]
        return value

    @model_validator(mode="after")
    def _check_create_requirements(self):
        if self.operation == "create" and not self.field_type:
            raise ValueError("type is required to create a field")
        return self


class ManageFieldPermissionsArgs(ToolArguments):
    operation: Literal["grant", "revoke", "view"]
    object_name: str = Field(description="API name of the object owning the field")
    field_name: str = Field(description="API name of the field; __c is appended when missing")
    profile_names: Optional[List[str]] = Field(
        default=None,
        description="Profiles to grant/revoke; defaults to System Administrator",
    )
    readable: bool = True
    editable: bool = True


# =============================================================================
# APEX
# =============================================================================

class ReadApexArgs(ToolArguments):
    class_name: Optional[str] = Field(default=None, description="Exact class name; omit to list classes")
    name_pattern: Optional[str] = Field(default=None, description="Substring filter for list mode")
    include_metadata: bool = False


class WriteApexArgs(ToolArguments):
    operation: Literal["create", "update"]
    class_name: str
    api_version: Optional[str] = Field(default=None, description="API version; defaults to the configured one")
    body: str = Field(description="Full Apex source of the class")


class ReadApexTriggerArgs(ToolArguments):
    trigger_name: Optional[str] = Field(default=None, description="Exact trigger name; omit to list triggers")
    name_pattern: Optional[str] = Field(default=None, description="Substring filter for list mode")
    include_metadata: bool = False


class WriteApexTriggerArgs(ToolArguments):
    operation: Literal["create", "update"]
    trigger_name: str
    object_name: Optional[str] = Field(default=None, description="Object the trigger fires on; required for create")
    api_version: Optional[str] = None
    body: str = Field(description="Full Apex source of the trigger")

    @model_validator(mode="after")
    def _check_create_requirements(self):
        if self.operation == "create" and not self.object_name:
            raise ValueError("objectName is required to create a trigger")
        return self


class ExecuteAnonymousArgs(ToolArguments):
    apex_code: str = Field(min_length=1, description="Anonymous Apex to execute")
    log_level: Optional[ApexLogLevel] = Field(
        default=None,
        description="When set, the latest anonymous execution debug log is appended",
    )


class ManageDebugLogsArgs(ToolArguments):
    operation: Literal["enable", "disable", "retrieve"]
    username: str = Field(description="Exact username or part of the user's name")
    log_level: Optional[ApexLogLevel] = Field(default=None, description="Debug level, defaults to DEBUG")
    expiration_time: int = Field(default=30, ge=1, description="Minutes until the trace flag expires")
    limit: int = Field(default=10, ge=1, description="Number of logs to retrieve")
    log_id: Optional[str] = Field(default=None, description="Retrieve one specific log with its body")
    include_body: bool = False


ToolArgs = Union[
    SearchObjectsArgs, DescribeObjectArgs, QueryRecordsArgs, AggregateQueryArgs, SearchAllArgs,
    DmlRecordsArgs, ManageObjectArgs, ManageFieldArgs, ManageFieldPermissionsArgs,
    ReadApexArgs, WriteApexArgs, ReadApexTriggerArgs, WriteApexTriggerArgs,
    ExecuteAnonymousArgs, ManageDebugLogsArgs,
]

ArgsT = TypeVar("ArgsT", bound=ToolArguments)


def _describe_error(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def narrow(tool_name: str, model: Type[ArgsT], raw_arguments: Optional[Dict[str, Any]]) -> ArgsT:
    """Validate ``raw_arguments`` into ``model``.

    Raises:
        ValidationError: naming the first missing or malformed field
    """
    if raw_arguments is None:
        raise ValidationError(f"Arguments are required for {tool_name}")
    if not isinstance(raw_arguments, dict):
        raise ValidationError(f"Arguments for {tool_name} must be an object")
    try:
        return model.model_validate(raw_arguments)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        raise ValidationError(f"Invalid arguments for {tool_name}: {_describe_error(first)}") from None


def input_schema(model: Type[ToolArguments]) -> Dict[str, Any]:
    """JSON schema of the wire format (camelCase keys)"""
    return model.model_json_schema(by_alias=True)
