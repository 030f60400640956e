from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from ..domain.models import FlowDefinition, flow_from_dict
from ..infrastructure.database.tables import FlowDefinitionDBModel
from ..infrastructure.database.connection import engine
from ..data.sample_flows import SAMPLE_FLOWS


class FlowNotFoundError(LookupError):
    """Raised when no flow definition exists for a button."""
    pass


# The Interface
class FlowRepository(ABC):
    """
    Defines how the application accesses flow definitions (the Flow
    Definition Source). This allows us change how data is accessed
    (Memory -> SQL -> API) later without changing the execution engine.
    """

    @abstractmethod
    def get_flow(self, button_id: str) -> FlowDefinition:
        """
        Retrieves the flow definition of an execute button.
        Raises FlowNotFoundError if not found.
        """
        pass


class StaticFlowRepository(FlowRepository):
    """
    Get flows from a hardcoded dict in memory.
    """

    def __init__(self, flows: Optional[Dict[str, FlowDefinition]] = None):
        # Index for O(1) lookup
        self._index: Dict[str, FlowDefinition] = SAMPLE_FLOWS if flows is None else flows

    def get_flow(self, button_id: str) -> FlowDefinition:
        if button_id not in self._index:
            raise FlowNotFoundError(f"Flow for button '{button_id}' not found.")
        return self._index[button_id]


class SqlFlowRepository(FlowRepository):
    """
    Reads from the 'execute_flows' table (JSONB on PostgreSQL).
    """

    def __init__(self, db_engine: Optional[Engine] = None):
        self.engine = db_engine or engine

    def get_flow(self, button_id: str) -> FlowDefinition:
        with Session(self.engine) as db:
            statement = select(FlowDefinitionDBModel).where(
                FlowDefinitionDBModel.button_id == button_id
            )
            result = db.exec(statement).first()

            if not result:
                raise FlowNotFoundError(f"Flow for button '{button_id}' not found in database.")

            # Deserialize JSON -> domain dataclasses
            return flow_from_dict(result.flow_data)
