"""
Validator.

Checks the fields visible in the current Step before it may be submitted.
Errors are keyed the same way the renderer looks them up: by field_key for
scalar fields, and by "<array_field_name>[<row>].<field_key>" for array rows.
"""

import re
from typing import Any, Dict, Iterable, Optional

from ..domain.models import FieldDefinition, FieldType, FlowDefinition, Group
from ..state.models import ArrayData, FormData

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ZIP_RE = re.compile(r"^\d{5}$")
POSTAL_CODE_RE = re.compile(r"^[A-Za-z]\d[A-Za-z] ?\d[A-Za-z]\d$")
PHONE_DIGITS = 10


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def check_field(field: FieldDefinition, value: Any) -> Optional[str]:
    """Returns the error message for a single value, or None if it is valid."""
    if is_empty(value):
        return f"{field.name} is required" if field.is_required else None

    text = str(value)
    match field.field_type:
        case FieldType.EMAIL:
            if not EMAIL_RE.match(text):
                return "Please enter a valid email address"
        case FieldType.NUMBER:
            try:
                float(text)
            except ValueError:
                return f"{field.name} must be a number"
        case FieldType.ZIP:
            if not ZIP_RE.match(text):
                return "Please enter a valid 5-digit ZIP code"
        case FieldType.POSTAL_CODE:
            if not POSTAL_CODE_RE.match(text.strip()):
                return "Please enter a valid postal code (A1A 1A1)"
        case FieldType.PHONE:
            if len(re.sub(r"\D", "", text)) != PHONE_DIGITS:
                return "Please enter a valid 10-digit phone number"

    if field.max_length and len(text) > field.max_length:
        return f"{field.name} must be at most {field.max_length} characters"
    return None


def array_error_key(array_field_name: str, row_index: int, field_key: str) -> str:
    return f"{array_field_name}[{row_index}].{field_key}"


class Validator:
    def __init__(self, flow: FlowDefinition):
        self.flow = flow

    def validate_step(
        self,
        groups: Iterable[Group],
        form_data: FormData,
        array_data: ArrayData,
    ) -> Dict[str, str]:
        """
        Validates every field of the given groups.

        Returns an empty dict when the Step may be submitted.
        """
        errors: Dict[str, str] = {}

        for group in groups:
            group_fields = self.flow.fields_for(group.id)

            if group.is_array_group and group.array_field_name:
                for row_index, row in enumerate(array_data.get(group.array_field_name, [])):
                    for field in group_fields:
                        message = check_field(field, row.get(field.field_key))
                        if message:
                            key = array_error_key(group.array_field_name, row_index, field.field_key)
                            errors[key] = message
                continue

            for field in group_fields:
                message = check_field(field, form_data.get(field.field_key))
                if message:
                    errors[field.field_key] = message

        return errors
