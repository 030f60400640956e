"""
Database Connection for Flow Definitions.

Only flow definitions are persisted (table 'execute_flows'); execution
sessions stay in memory. The engine is shared by SqlFlowRepository and the
seeding script. With SQLite, connections are used from FastAPI's threadpool,
so the same-thread check is disabled.
"""

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from ...config import settings
from .tables import FlowDefinitionDBModel  # noqa: F401  (registers the table)


def make_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    # echo stays off: flow_data can carry endpoint URLs and credentials
    return create_engine(database_url, echo=False, connect_args=connect_args)


engine = make_engine(settings.DATABASE_URL)


def init_db(db_engine: Engine = None):
    """Creates the flow definition table if it does not exist."""
    SQLModel.metadata.create_all(db_engine or engine)
