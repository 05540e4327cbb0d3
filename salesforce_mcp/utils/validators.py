"""API name helpers for Salesforce metadata operations"""
import re

from salesforce_mcp.utils.errors import ValidationError

CUSTOM_SUFFIX = "__c"

_API_NAME_PATTERN = re.compile(
    r'^[a-zA-Z][a-zA-Z0-9_]*(__c|__mdt|__e|__b|__x|__kav|__ka|__Feed|__Share|__History|__Tag)?$'
)


def validate_api_name(name: str, metadata_type: str = "API") -> bool:
    """
    Validate Salesforce API name format.

    Rules:
    - Must start with a letter
    - Can contain letters, numbers, underscores
    - Max 80 characters

    This is a format check only; it never asks the org whether the name exists.

    Raises:
        ValidationError: If validation fails
    """
    if not name:
        raise ValidationError(f"{metadata_type} name cannot be empty")

    if len(name) > 80:
        raise ValidationError(f"{metadata_type} name too long (max 80 chars): {name}")

    if not re.match(r'^[a-zA-Z]', name):
        raise ValidationError(f"{metadata_type} name must start with a letter: {name}")

    if not _API_NAME_PATTERN.match(name):
        raise ValidationError(
            f"{metadata_type} name contains invalid characters "
            f"(only letters, numbers, underscore allowed): {name}"
        )

    return True


def ensure_custom_suffix(name: str) -> str:
    """Append ``__c`` unless the name already carries it."""
    if name.endswith(CUSTOM_SUFFIX):
        return name
    return f"{name}{CUSTOM_SUFFIX}"


def strip_custom_suffix(name: str) -> str:
    if name.endswith(CUSTOM_SUFFIX):
        return name[:-len(CUSTOM_SUFFIX)]
    return name


def default_label(api_name: str) -> str:
    """Derive a human label from an API name: ``Custom_Invoice__c`` -> ``Custom Invoice``"""
    return strip_custom_suffix(api_name).replace("_", " ").strip()
