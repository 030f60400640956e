"""
Database Seeder.

Run this script to populate the database with the sample flow
definitions defined in data/sample_flows.py.

Usage:
    python -m flow_execution.scripts.db_seed_flows
"""

from fastapi.encoders import jsonable_encoder
from sqlmodel import Session, select

from flow_execution.data.sample_flows import SAMPLE_FLOWS
from flow_execution.infrastructure.database.connection import engine, init_db
from flow_execution.infrastructure.database.tables import FlowDefinitionDBModel


def seed_flows(db_engine=None):
    db_engine = db_engine or engine
    print("Initializing Database Connection...")

    init_db(db_engine)

    with Session(db_engine) as session:
        print(f"Found {len(SAMPLE_FLOWS)} flows to seed.")

        for button_id, flow in SAMPLE_FLOWS.items():
            print(f"Processing flow: {button_id}")

            # Serialize the dataclasses to a JSON-compatible dict using FastAPI's encoder.
            flow_data_json = jsonable_encoder(flow)

            # Upsert logic: update existing records or insert new ones.
            statement = select(FlowDefinitionDBModel).where(FlowDefinitionDBModel.button_id == button_id)
            existing = session.exec(statement).first()

            if existing:
                print("--> Updating existing record.")
                existing.name = flow.name
                existing.flow_data = flow_data_json
                existing.version += 1
                session.add(existing)
            else:
                print("--> Creating new record.")
                session.add(
                    FlowDefinitionDBModel(
                        button_id=button_id,
                        name=flow.name,
                        flow_data=flow_data_json,
                    )
                )

        session.commit()
        print("Flow seeding complete.")


if __name__ == "__main__":
    seed_flows()
