"""
Database Table Definitions.

This module defines the SQL schema using SQLModel.
We use the 'DBModel' suffix to distinguish these persistence models
from the domain models (FlowDefinition, Group, ...).
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

# JSONB on PostgreSQL, plain JSON elsewhere (e.g. SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class FlowDefinitionDBModel(SQLModel, table=True):
    """
    Persistence model for execute-button flow definitions.
    Maps 1-to-1 with the 'execute_flows' table.
    """

    __tablename__ = "execute_flows"

    button_id: str = Field(primary_key=True)
    name: str

    # Store the entire nested definition (groups, fields, node mappings) as JSON.
    flow_data: Dict[str, Any] = Field(sa_column=Column(JSONType, nullable=False))

    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
