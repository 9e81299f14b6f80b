# backend/schemas/warehouse.py
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Optional
from datetime import datetime

from schemas.stock import MovementResponse, SerialNumberOut, UserRef


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Schema for registering a catalog item
class ItemCreate(BaseModel):
    item_name: str = Field(min_length=1)
    part_number: str = Field(min_length=1)
    value: float = Field(ge=0)
    tracks_serial_numbers: bool = False
    auto_sn: bool = False
    sn_prefix: Optional[str] = None
    # Initial bulk stock; ignored for serialized items
    main_warehouse: Optional[int] = Field(default=0, ge=0)


# Schema for partial item updates; tracks_serial_numbers is fixed at creation
class ItemUpdate(BaseModel):
    item_name: Optional[str] = Field(None, min_length=1)
    part_number: Optional[str] = Field(None, min_length=1)
    value: Optional[float] = Field(None, ge=0)
    auto_sn: Optional[bool] = None
    sn_prefix: Optional[str] = None


class TechnicianStockOut(ORMBase):
    technician_id: int
    quantity: int
    technician: Optional[UserRef] = None


# Catalog entry with stock totals (list view)
class ItemOut(ORMBase):
    id: int
    item_name: str
    part_number: str
    value: float
    tracks_serial_numbers: bool
    auto_sn: bool
    sn_prefix: Optional[str] = None
    main_warehouse: int
    warehouse_stock: int
    technician_stock: int
    total_stock: int
    movement_count: int = 0
    created_at: Optional[datetime] = None
    technician_stocks: List[TechnicianStockOut] = []


# Single item with movement history
class ItemDetail(ItemOut):
    movements: List[MovementResponse] = []


# Paginated response for catalog listings
class ItemPage(BaseModel):
    items: List[ItemOut]
    total: int
    page: int
    page_size: int


class AutoSerialRequest(BaseModel):
    count: int


# Either explicit serial numbers or an auto-generation request
class SerialNumbersCreate(BaseModel):
    serial_numbers: Optional[List[str]] = None
    auto: Optional[AutoSerialRequest] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _one_mode(self):
        if (self.serial_numbers is None) == (self.auto is None):
            raise ValueError("Provide either serial_numbers or auto")
        return self


class SerialNumbersCreated(BaseModel):
    created: int
    movement_id: int
    serial_numbers: List[SerialNumberOut]
