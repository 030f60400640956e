"""
Domain Layer - Static Flow Definition Models

This module defines the configuration that drives an execute button: the
Groups (form pages), the Fields inside them, and the NodeMappings that bind
each Group to a vertex of the backend flow graph. None of this changes while
a flow executes; runtime values live in the State Layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional


class InvalidFlowDefinitionError(ValueError):
    """Raised when a flow definition violates its structural invariants."""
    pass


class FieldType(str, Enum):
    """
    Closed set of widget kinds a Field can be rendered as.

    Configuration stores these as plain strings; FieldType.parse() maps
    anything unrecognised to TEXT, the renderer's fallback widget.
    """
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    PHONE = "phone"
    ZIP = "zip"
    POSTAL_CODE = "postal_code"
    PROVINCE = "province"
    STATE = "state"
    TIME = "time"
    DROPDOWN = "dropdown"
    EMAIL = "email"
    CHECKBOX = "checkbox"

    @classmethod
    def parse(cls, raw: Any) -> "FieldType":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw))
        except ValueError:
            return cls.TEXT


"""
ApplyCondition gates a field mapping on the edge the processor last took:
- always: apply whenever context data is available
- on_success: apply only after the 'success' edge
- on_failure: apply only after the 'failure' edge
"""
ApplyCondition = Literal["always", "on_success", "on_failure"]

DropdownDisplayMode = Literal["description_only", "value_and_description"]


@dataclass
class Group:
    """
    One form page of a flow.

    Attributes:
        id: Unique identifier, referenced by Field.group_id and NodeMapping.group_id.
        name: Title shown above the group's fields.
        description: Optional sub-title.
        sort_order: Position of the group within the flow.
        is_array_group: Collects a list of rows instead of scalar values.
        array_min_rows: Lower bound on the row count (array groups only).
        array_max_rows: Upper bound on the row count (array groups only).
        array_field_name: Key the rows are submitted under (array groups only).
    """
    id: str
    name: str
    description: Optional[str] = None
    sort_order: int = 0
    is_array_group: bool = False
    array_min_rows: int = 1
    array_max_rows: int = 10
    array_field_name: str = ""


@dataclass
class FieldDefinition:
    """
    A single input inside a Group.

    Attributes:
        id: Unique identifier.
        group_id: Owning Group.
        name: Human-readable label (also used in validation messages).
        field_key: Key the value is stored and submitted under. Unique within its group.
        field_type: Widget kind.
        is_required: Empty values block submission.
        default_value: Literal default, or a template containing {{path}} placeholders.
        options: Dropdown options, either plain strings or {value, description} dicts.
        dropdown_display_mode: How dropdown options are labelled.
        max_length: Maximum number of characters (0 or None means unlimited).
    """
    id: str
    group_id: str
    name: str
    field_key: str
    field_type: FieldType = FieldType.TEXT
    is_required: bool = False
    default_value: Optional[str] = None
    options: List[Any] = field(default_factory=list)
    dropdown_display_mode: DropdownDisplayMode = "description_only"
    sort_order: int = 0
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    max_length: Optional[int] = None

    def __post_init__(self):
        self.field_type = FieldType.parse(self.field_type)


@dataclass
class FieldMapping:
    """
    Pre-populates a field from context data when its step is shown.

    Attributes:
        variable_path: Dotted path into the context data (e.g. "execute.orderNumber").
        apply_condition: Edge outcome required for the mapping to apply.
    """
    variable_path: str
    apply_condition: ApplyCondition = "always"


@dataclass
class NodeMapping:
    """
    Binds a Group to a backend flow Node.

    Attributes:
        node_id: Backend node identifier, sent back as currentGroupNodeId.
        group_id: The Group shown when execution pauses at this node.
        field_mappings: field_key -> FieldMapping.
        header_content: Optional header template rendered above the group.
        display_with_previous: Merge this group into the preceding group's step.
    """
    node_id: str
    group_id: str
    field_mappings: Dict[str, FieldMapping] = field(default_factory=dict)
    header_content: Optional[str] = None
    display_with_previous: bool = False


@dataclass
class FlowDefinition:
    """
    Everything needed to execute one button.

    Groups are kept in sort_order; fields are kept in sort_order within their
    group. Every field must reference an existing group.
    """
    button_id: str
    name: str
    groups: List[Group] = field(default_factory=list)
    fields: List[FieldDefinition] = field(default_factory=list)
    node_mappings: List[NodeMapping] = field(default_factory=list)
    title: Optional[str] = None

    def __post_init__(self):
        self.groups = sorted(self.groups, key=lambda g: g.sort_order)
        self.fields = sorted(self.fields, key=lambda f: f.sort_order)

        group_ids = {g.id for g in self.groups}
        for fld in self.fields:
            if fld.group_id not in group_ids:
                raise InvalidFlowDefinitionError(
                    f"Field '{fld.field_key}' references unknown group '{fld.group_id}'."
                )

    def get_group(self, group_id: str) -> Optional[Group]:
        return next((g for g in self.groups if g.id == group_id), None)

    def group_index(self, group_id: str) -> int:
        for index, group in enumerate(self.groups):
            if group.id == group_id:
                return index
        return -1

    def fields_for(self, group_id: str) -> List[FieldDefinition]:
        return [f for f in self.fields if f.group_id == group_id]

    def mapping_for(self, group_id: str) -> Optional[NodeMapping]:
        return next((m for m in self.node_mappings if m.group_id == group_id), None)

    def array_group_for(self, array_field_name: str) -> Optional[Group]:
        return next(
            (
                g
                for g in self.groups
                if g.is_array_group and g.array_field_name == array_field_name
            ),
            None,
        )


# ==============================================================================
# Parsing stored configuration
# ==============================================================================

def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Reads a key stored either in snake_case or in the camelCase config format."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _parse_field_mapping(raw: Any) -> FieldMapping:
    # Older configurations store the bare variable path.
    if isinstance(raw, str):
        return FieldMapping(variable_path=raw)
    return FieldMapping(
        variable_path=_pick(raw, "variable_path", "variablePath", ""),
        apply_condition=_pick(raw, "apply_condition", "applyCondition") or "always",
    )


def flow_from_dict(data: Dict[str, Any]) -> FlowDefinition:
    """
    Builds a FlowDefinition from stored JSON.

    Accepts both the snake_case shape produced by serializing the dataclasses
    and the camelCase shape used by the button configuration screens.
    """
    groups = [
        Group(
            id=g["id"],
            name=g.get("name", ""),
            description=g.get("description"),
            sort_order=_pick(g, "sort_order", "sortOrder", 0),
            is_array_group=_pick(g, "is_array_group", "isArrayGroup", False),
            array_min_rows=_pick(g, "array_min_rows", "arrayMinRows", 1),
            array_max_rows=_pick(g, "array_max_rows", "arrayMaxRows", 10),
            array_field_name=_pick(g, "array_field_name", "arrayFieldName", "") or "",
        )
        for g in data.get("groups", [])
    ]

    fields = [
        FieldDefinition(
            id=f["id"],
            group_id=_pick(f, "group_id", "groupId"),
            name=f.get("name", ""),
            field_key=_pick(f, "field_key", "fieldKey"),
            field_type=_pick(f, "field_type", "fieldType", "text"),
            is_required=bool(_pick(f, "is_required", "isRequired", False)),
            default_value=_pick(f, "default_value", "defaultValue"),
            options=f.get("options") or [],
            dropdown_display_mode=_pick(
                f, "dropdown_display_mode", "dropdownDisplayMode", "description_only"
            ) or "description_only",
            sort_order=_pick(f, "sort_order", "sortOrder", 0),
            placeholder=f.get("placeholder"),
            help_text=_pick(f, "help_text", "helpText"),
            max_length=_pick(f, "max_length", "maxLength"),
        )
        for f in data.get("fields", [])
    ]

    node_mappings = []
    for m in _pick(data, "node_mappings", "flowNodeMappings", []):
        raw_mappings = _pick(m, "field_mappings", "fieldMappings", {}) or {}
        node_mappings.append(
            NodeMapping(
                node_id=_pick(m, "node_id", "nodeId"),
                group_id=_pick(m, "group_id", "groupId"),
                field_mappings={
                    key: _parse_field_mapping(value) for key, value in raw_mappings.items()
                },
                header_content=_pick(m, "header_content", "headerContent"),
                display_with_previous=bool(
                    _pick(m, "display_with_previous", "displayWithPrevious", False)
                ),
            )
        )

    return FlowDefinition(
        button_id=_pick(data, "button_id", "buttonId"),
        name=data.get("name", ""),
        title=data.get("title"),
        groups=groups,
        fields=fields,
        node_mappings=node_mappings,
    )
