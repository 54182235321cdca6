from typing import Any, Dict, List

from .models import ROLES

REQUIRED_STR_FIELDS = ["user_id", "full_name"]
OPTIONAL_STR_FIELDS = ["bio"]
ITEM_LISTS = ["offerings", "wants"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_positive_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v > 0


def validate_item(data: Any) -> List[str]:
    """
    Validate a single offering/want payload.
    Returns a list of error messages; empty list means valid.
    """
    if not isinstance(data, dict):
        return ["Item must be an object"]

    errors: List[str] = []
    label = data.get("label")
    description = data.get("description")

    if label is not None and not isinstance(label, str):
        errors.append("Field 'label' must be a string if provided")
    if description is not None and not isinstance(description, str):
        errors.append("Field 'description' must be a string if provided")
    if not (_is_non_empty_str(label) or _is_non_empty_str(description)):
        errors.append("Item needs a non-empty 'label' or 'description'")
    return errors


def validate_profile(data: Dict[str, Any]) -> List[str]:
    """
    Validate a profile payload, including any nested offerings and wants.
    Returns a list of error messages; empty list means valid.
    """
    if not isinstance(data, dict):
        return ["Profile must be an object"]

    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    if "user_type" not in data:
        errors.append("Missing required field: user_type")
    elif data["user_type"] not in ROLES:
        errors.append(f"Field 'user_type' must be one of: {', '.join(ROLES)}")

    age = data.get("age")
    if "age" not in data:
        errors.append("Missing required field: age")
    elif not _is_positive_int(age):
        errors.append("Field 'age' must be a positive integer")

    for list_name in ITEM_LISTS:
        items = data.get(list_name)
        if items is None:
            continue
        if not isinstance(items, list):
            errors.append(f"Field '{list_name}' must be a list if provided")
            continue
        for i, item in enumerate(items):
            for err in validate_item(item):
                errors.append(f"{list_name}[{i}]: {err}")

    return errors


def validate_profile_changes(changes: Dict[str, Any]) -> List[str]:
    """
    Validate the editable fields of an existing profile (full_name, age, bio).
    Only the fields present are checked.
    """
    errors: List[str] = []
    if "full_name" in changes and not _is_non_empty_str(changes["full_name"]):
        errors.append("Field 'full_name' must be a non-empty string")
    if "age" in changes and not _is_positive_int(changes["age"]):
        errors.append("Field 'age' must be a positive integer")
    if changes.get("bio") is not None and not isinstance(changes["bio"], str):
        errors.append("Field 'bio' must be a string if provided")
    return errors
