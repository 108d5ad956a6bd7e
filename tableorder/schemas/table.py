# tableorder/schemas/table.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TableBase(BaseModel):
    table_number: str = Field(..., min_length=1, max_length=20)
    floor: Optional[str] = "Ground Floor"
    seating_capacity: Optional[int] = Field(4, gt=0)


class TableCreate(TableBase):
    pass


class TableUpdate(BaseModel):
    table_number: Optional[str] = Field(None, min_length=1, max_length=20)
    floor: Optional[str] = None
    seating_capacity: Optional[int] = Field(None, gt=0)
    # locked / unique_code are owned by the order lifecycle and not writable here


class Table(TableBase):
    id: str
    locked: bool
    unique_code: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReconcileResult(BaseModel):
    repaired: int
