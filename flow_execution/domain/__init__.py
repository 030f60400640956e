"""
Domain Layer - Static Flow Definition Models

Defines the configuration that drives an execute button: Groups, Fields,
and the NodeMappings that bind Groups to backend flow nodes.
"""

from flow_execution.domain.models import (
    ApplyCondition,
    FieldDefinition,
    FieldMapping,
    FieldType,
    FlowDefinition,
    Group,
    InvalidFlowDefinitionError,
    NodeMapping,
    flow_from_dict,
)

__all__ = [
    "ApplyCondition",
    "FieldDefinition",
    "FieldMapping",
    "FieldType",
    "FlowDefinition",
    "Group",
    "InvalidFlowDefinitionError",
    "NodeMapping",
    "flow_from_dict",
]
