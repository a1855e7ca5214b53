# app/db/models/state/stored_state.py
from sqlmodel import SQLModel, Field
from datetime import datetime

class StoredState(SQLModel, table=True):
    """One durable key/value slot of the collection (bag list, credential)."""
    __tablename__ = "stored_state"
    key: str = Field(primary_key=True, max_length=64)
    value: str
    updated_at: datetime = Field(default_factory=datetime.utcnow)
