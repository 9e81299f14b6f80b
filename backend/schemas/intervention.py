# backend/schemas/intervention.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional

from schemas.stock import SerialNumberRef


# Request body for recording parts used on an intervention
class InterventionPartCreate(BaseModel):
    item_id: int
    quantity: int
    serial_number_ids: Optional[List[int]] = None


class PartItemOut(BaseModel):
    id: int
    item_name: str
    part_number: str
    value: float
    tracks_serial_numbers: bool

    model_config = ConfigDict(from_attributes=True)


class InterventionPartOut(BaseModel):
    id: int
    intervention_id: int
    item_id: int
    quantity: int
    movement_id: Optional[int] = None
    created_at: Optional[datetime] = None
    total_value: float
    item: PartItemOut
    serial_numbers: List[SerialNumberRef] = []

    model_config = ConfigDict(from_attributes=True)
