"""
Form/Array State Store.

Owns the values the user enters during one execution session: scalar
FormData for ordinary groups and rows of ArrayData for repeating groups.

All defaults go through one policy, whether the store is being seeded at
start, at Reset, when a new Step is entered, or when a row is added: the
default is resolved against the current context data, and anything still
holding an unresolved {{placeholder}} is seeded as empty.
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..domain.models import FieldDefinition, FieldType, FlowDefinition, Group, NodeMapping
from ..state.models import ArrayData, FormData
from .exceptions import RowLimitError, UnknownGroupError
from .rendering import normalize_input
from .variables import MISSING, stringify, has_unresolved, lookup_path, resolve

logger = logging.getLogger(__name__)


def initial_value(field: FieldDefinition, context: Optional[Mapping[str, Any]]) -> str:
    """Seed value for a field: its resolved default or ''. Checkboxes always seed 'True' or 'False'."""
    value = resolve(field.default_value, context) if field.default_value else ""
    if has_unresolved(value):
        logger.debug(f"Default for '{field.field_key}' is unresolved, seeding empty")
        value = ""
    if field.field_type == FieldType.CHECKBOX:
        return normalize_input(FieldType.CHECKBOX, value)
    return value


def edge_taken(context: Optional[Mapping[str, Any]]) -> Optional[str]:
    """The edge handle ('success' / 'failure') the processor last followed."""
    if not context:
        return None
    return context.get("lastEdgeHandle") or context.get("edgeHandleTaken")


class FormStateStore:
    def __init__(self, flow: FlowDefinition):
        self.flow = flow
        self.form_data: FormData = {}
        self.array_data: ArrayData = {}

    # ==========================================================================
    # Seeding
    # ==========================================================================

    def seed(self, context: Optional[Mapping[str, Any]] = None):
        """Rebuilds all values from field defaults."""
        form_data: FormData = {}
        array_data: ArrayData = {}

        for group in self.flow.groups:
            if group.is_array_group:
                if group.array_field_name:
                    array_data[group.array_field_name] = [
                        self.default_row(group, context)
                        for _ in range(group.array_min_rows)
                    ]
                continue
            for field in self.flow.fields_for(group.id):
                form_data[field.field_key] = initial_value(field, context)

        self.form_data = form_data
        self.array_data = array_data

    def seed_step(self, groups: Iterable[Group], context: Optional[Mapping[str, Any]]):
        """Resets the scalar fields of a newly entered Step to their defaults."""
        for group in groups:
            if group.is_array_group:
                continue
            for field in self.flow.fields_for(group.id):
                self.form_data[field.field_key] = initial_value(field, context)

    def default_row(self, group: Group, context: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return {
            field.field_key: initial_value(field, context)
            for field in self.flow.fields_for(group.id)
        }

    # ==========================================================================
    # User edits
    # ==========================================================================

    def set_value(self, field_key: str, value: Any):
        self.form_data[field_key] = value

    def set_row_value(self, array_field_name: str, row_index: int, field_key: str, value: Any):
        rows = self.array_data.get(array_field_name)
        if rows is None:
            raise UnknownGroupError(f"No array group named '{array_field_name}'.")
        if not 0 <= row_index < len(rows):
            raise IndexError(f"Row {row_index} does not exist in '{array_field_name}'.")
        rows[row_index][field_key] = value

    def rows(self, group: Group) -> List[Dict[str, Any]]:
        return self.array_data.get(group.array_field_name, [])

    def can_add_row(self, group: Group) -> bool:
        return len(self.rows(group)) < group.array_max_rows

    def can_remove_row(self, group: Group) -> bool:
        return len(self.rows(group)) > group.array_min_rows

    def add_row(self, group: Group, context: Optional[Mapping[str, Any]] = None) -> int:
        """Appends a default row and returns the new row count."""
        if not group.is_array_group:
            raise UnknownGroupError(f"Group '{group.id}' is not an array group.")
        if not self.can_add_row(group):
            raise RowLimitError(
                f"'{group.name}' already has the maximum of {group.array_max_rows} rows."
            )
        rows = self.array_data.setdefault(group.array_field_name, [])
        rows.append(self.default_row(group, context))
        return len(rows)

    def remove_row(self, group: Group, row_index: int) -> int:
        """Removes one row and returns the new row count."""
        if not group.is_array_group:
            raise UnknownGroupError(f"Group '{group.id}' is not an array group.")
        if not self.can_remove_row(group):
            raise RowLimitError(
                f"'{group.name}' needs at least {group.array_min_rows} rows."
            )
        rows = self.array_data[group.array_field_name]
        if not 0 <= row_index < len(rows):
            raise IndexError(f"Row {row_index} does not exist in '{group.name}'.")
        del rows[row_index]
        return len(rows)

    # ==========================================================================
    # Context-driven population
    # ==========================================================================

    def apply_field_mappings(self, mapping: Optional[NodeMapping], context: Optional[Mapping[str, Any]]) -> List[str]:
        """
        Copies context values into mapped fields.

        Each mapping is gated by its apply_condition against the last edge the
        processor took. Paths that do not resolve, or resolve to null, leave
        the field alone. Returns the keys that were written.
        """
        if not mapping or not mapping.field_mappings or not context:
            return []

        edge = edge_taken(context)
        applied = []
        for field_key, field_mapping in mapping.field_mappings.items():
            condition = field_mapping.apply_condition or "always"
            should_apply = (
                condition == "always"
                or (condition == "on_success" and edge == "success")
                or (condition == "on_failure" and edge == "failure")
            )
            if not should_apply or not field_mapping.variable_path:
                continue

            value = lookup_path(context, field_mapping.variable_path)
            if value is MISSING or value is None:
                continue
            self.form_data[field_key] = stringify(value)
            applied.append(field_key)

        if applied:
            logger.debug(f"Applied field mappings for group {mapping.group_id}: {applied}")
        return applied

    # ==========================================================================
    # Submission
    # ==========================================================================

    def execute_parameters(self) -> Dict[str, Any]:
        """FormData and ArrayData flattened into one payload (array names win on clashes)."""
        return copy.deepcopy({**self.form_data, **self.array_data})
