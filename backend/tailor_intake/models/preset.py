from typing import Optional, List, Dict, Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class MeasurementPreset(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    shop_id: str = Field(index=True)
    # doubles as the garment-type label
    name: str
    fields: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    base_price: Optional[float] = None
