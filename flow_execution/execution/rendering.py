"""
Rendering - Field Contract Glue

Field widgets are drawn by the client. This module produces what they
consume: one FieldProps per field (label, type, value, error, ...) and a
StepView describing the whole current Step, including resolved headers and
the row controls of array groups.

Dispatch on the field kind goes through widget_for(), an exhaustive match
over FieldType, so a new field kind cannot be added without deciding how it
is rendered.
"""

import re
from typing import Any, Dict, List, Optional, assert_never

from pydantic import BaseModel, Field

from ..domain.models import DropdownDisplayMode, FieldDefinition, FieldType
from ..schemas.processor import ConfirmationPrompt, ExecutionResult, ExitData
from ..state.models import FlowPhase


class Widget(BaseModel):
    """How the client should draw an input."""
    input_type: str
    input_mode: Optional[str] = None
    default_placeholder: Optional[str] = None
    max_length: Optional[int] = None


def widget_for(field_type: FieldType) -> Widget:
    match field_type:
        case FieldType.TEXT:
            return Widget(input_type="text")
        case FieldType.EMAIL:
            return Widget(input_type="email")
        case FieldType.NUMBER:
            return Widget(input_type="number", input_mode="numeric")
        case FieldType.DATE:
            return Widget(input_type="date")
        case FieldType.DATETIME:
            return Widget(input_type="datetime-local")
        case FieldType.TIME:
            return Widget(input_type="time")
        case FieldType.PHONE:
            return Widget(
                input_type="tel", input_mode="tel",
                default_placeholder="(555) 123-4567", max_length=14,
            )
        case FieldType.ZIP:
            return Widget(
                input_type="text", input_mode="numeric",
                default_placeholder="12345", max_length=5,
            )
        case FieldType.POSTAL_CODE:
            return Widget(input_type="text", default_placeholder="A1A 1A1", max_length=7)
        case FieldType.PROVINCE | FieldType.STATE | FieldType.DROPDOWN:
            return Widget(input_type="select")
        case FieldType.CHECKBOX:
            return Widget(input_type="checkbox")
        case _:
            assert_never(field_type)


# ==============================================================================
# Input normalisation (what the widgets do on change)
# ==============================================================================

def format_phone(raw: str) -> str:
    digits = re.sub(r"\D", "", raw)
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"({digits[:3]}) {digits[3:]}"
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:10]}"


def format_postal_code(raw: str) -> str:
    compact = re.sub(r"[^A-Za-z0-9]", "", raw).upper()[:6]
    if len(compact) > 3:
        return f"{compact[:3]} {compact[3:]}"
    return compact


def normalize_input(field_type: FieldType, raw: Any) -> Any:
    """Applies the widget's formatting to a raw value before it is stored."""
    if field_type == FieldType.CHECKBOX:
        if isinstance(raw, bool):
            return "True" if raw else "False"
        return "True" if str(raw).lower() in ("true", "1", "on", "yes") else "False"
    if raw is None or not isinstance(raw, str):
        return raw
    if field_type == FieldType.PHONE:
        return format_phone(raw)
    if field_type == FieldType.ZIP:
        return re.sub(r"\D", "", raw)[:5]
    if field_type == FieldType.POSTAL_CODE:
        return format_postal_code(raw)
    return raw


def option_value(option: Any) -> str:
    if isinstance(option, dict):
        return str(option.get("value", ""))
    return str(option)


def option_label(option: Any, display_mode: DropdownDisplayMode) -> str:
    if not isinstance(option, dict):
        return str(option)
    value = option.get("value", "")
    description = option.get("description")
    if display_mode == "value_and_description":
        return f"{value} - {description}"
    return str(description or value)


# ==============================================================================
# View models
# ==============================================================================

class DropdownOption(BaseModel):
    value: str
    label: str


class FieldProps(BaseModel):
    """The contract every field renderer consumes."""
    id: str
    key: str
    label: str
    type: FieldType
    required: bool = False
    placeholder: str = ""
    help_text: str = ""
    max_length: int = 0
    options: List[DropdownOption] = Field(default_factory=list)
    dropdown_display_mode: DropdownDisplayMode = "description_only"
    widget: Widget
    value: Any = ""
    error: Optional[str] = None


class GroupView(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    header: Optional[str] = None
    is_array_group: bool = False
    array_field_name: Optional[str] = None
    # Scalar groups
    fields: List[FieldProps] = Field(default_factory=list)
    # Array groups: one list of FieldProps per row
    rows: List[List[FieldProps]] = Field(default_factory=list)
    row_count: int = 0
    max_rows: Optional[int] = None
    can_add_row: bool = False
    can_remove_row: bool = False


class StepView(BaseModel):
    phase: FlowPhase
    step_index: int
    total_steps: int
    is_first_step: bool
    is_last_step: bool
    can_submit: bool = False
    can_go_back: bool = False
    groups: List[GroupView] = Field(default_factory=list)
    confirmation_prompt: Optional[ConfirmationPrompt] = None
    static_map_url: Optional[str] = None
    exit_data: Optional[ExitData] = None
    execution_result: Optional[ExecutionResult] = None


def field_props(field: FieldDefinition, value: Any, error: Optional[str]) -> FieldProps:
    widget = widget_for(field.field_type)
    return FieldProps(
        id=field.id,
        key=field.field_key,
        label=field.name,
        type=field.field_type,
        required=field.is_required,
        placeholder=field.placeholder or widget.default_placeholder or "",
        help_text=field.help_text or "",
        max_length=field.max_length or widget.max_length or 0,
        options=[
            DropdownOption(
                value=option_value(opt),
                label=option_label(opt, field.dropdown_display_mode),
            )
            for opt in field.options
        ],
        dropdown_display_mode=field.dropdown_display_mode,
        widget=widget,
        value="" if value is None else value,
        error=error,
    )


def scalar_fields(fields: List[FieldDefinition], values: Dict[str, Any], errors: Dict[str, str]) -> List[FieldProps]:
    return [field_props(f, values.get(f.field_key), errors.get(f.field_key)) for f in fields]
