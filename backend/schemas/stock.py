# backend/schemas/stock.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional

from models.stock import MovementType, SerialLocation, SerialStatus


# Movement parameters. Semantic checks (positive quantity, required
# technician, id/quantity agreement) are done by the movement engine so
# they surface as domain errors instead of 422s.
class MovementParams(BaseModel):
    quantity: Optional[int] = None
    serial_number_ids: Optional[List[int]] = None
    serial_numbers: Optional[List[str]] = None  # manual entry for serialized ADD_STOCK
    from_user_id: Optional[int] = None
    to_user_id: Optional[int] = None
    notes: Optional[str] = None


# Schema for creating a movement through the API
class MovementCreate(MovementParams):
    item_id: int
    movement_type: MovementType


class UserRef(BaseModel):
    id: int
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SerialNumberRef(BaseModel):
    id: int
    serial_number: str

    model_config = ConfigDict(from_attributes=True)


class SerialNumberOut(SerialNumberRef):
    item_id: int
    location: SerialLocation
    status: SerialStatus
    technician_id: Optional[int] = None
    technician: Optional[UserRef] = None
    created_at: Optional[datetime] = None


# Schema for returning a movement record
class MovementResponse(BaseModel):
    id: int
    item_id: int
    item_name: Optional[str] = None
    movement_type: MovementType
    quantity: int
    sign: str
    from_user_id: Optional[int] = None
    to_user_id: Optional[int] = None
    notes: Optional[str] = None
    created_by_id: int
    created_at: Optional[datetime] = None
    from_user: Optional[UserRef] = None
    to_user: Optional[UserRef] = None
    created_by: Optional[UserRef] = None
    serial_numbers: List[SerialNumberRef] = []


# Paginated movement history
class MovementPage(BaseModel):
    items: List[MovementResponse]
    total: int
    page: int
    page_size: int
