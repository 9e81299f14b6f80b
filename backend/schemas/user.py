from pydantic import BaseModel, ConfigDict
from typing import List, Optional

from models.users import UserRole
from schemas.stock import SerialNumberRef

# Verified caller identity passed explicitly into every service call
class Actor(BaseModel):
    user_id: int
    role: UserRole

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, role=user.role)

# One line of a technician's stock
class TechnicianStockLine(BaseModel):
    item_id: int
    item_name: str
    part_number: Optional[str] = None
    value: float
    quantity: int
    total_value: float
    main_warehouse_stock: int
    tracks_serial_numbers: bool
    serial_numbers: Optional[List[SerialNumberRef]] = None

# Technician list entry with carried stock totals
class TechnicianSummary(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    total_items: int
    total_value: float
    stock_items: List[TechnicianStockLine] = []

# Full stock detail of one technician
class TechnicianDetail(TechnicianSummary):
    role: UserRole
