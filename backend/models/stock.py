# backend/models/stock.py
import enum
from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Enum, Table,
    UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from database import Base

# Movement classification shared by bulk and serialized items
class MovementType(str, enum.Enum):
    ADD_STOCK = "ADD_STOCK"
    REMOVE_STOCK = "REMOVE_STOCK"
    TRANSFER_TO_TECH = "TRANSFER_TO_TECH"
    TRANSFER_FROM_TECH = "TRANSFER_FROM_TECH"
    USE = "USE"

class SerialLocation(str, enum.Enum):
    MAIN_WAREHOUSE = "MAIN_WAREHOUSE"
    TECHNICIAN = "TECHNICIAN"
    USED = "USED"

class SerialStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    LOST = "LOST"


# Serial units linked to a movement
movement_serial_numbers = Table(
    "movement_serial_numbers",
    Base.metadata,
    Column("movement_id", Integer, ForeignKey("item_movements.id"), primary_key=True),
    Column("serial_number_id", Integer, ForeignKey("serial_number_stock.id"), primary_key=True),
)


# One physical unit of a serialized item
class SerialNumberStock(Base):
    __tablename__ = "serial_number_stock"
    __table_args__ = (UniqueConstraint("item_id", "serial_number", name="uq_serial_per_item"),)

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("warehouse_items.id"), nullable=False, index=True)
    serial_number = Column(String, nullable=False)
    location = Column(Enum(SerialLocation), nullable=False, default=SerialLocation.MAIN_WAREHOUSE, index=True)
    status = Column(Enum(SerialStatus), nullable=False, default=SerialStatus.AVAILABLE)
    # Set only while location == TECHNICIAN
    technician_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    item = relationship("WarehouseItem", back_populates="serial_numbers")
    technician = relationship("User")


# What a technician carries. Authoritative for bulk items,
# a recomputed count of TECHNICIAN-located units for serialized ones.
class TechnicianStock(Base):
    __tablename__ = "technician_stock"
    __table_args__ = (
        UniqueConstraint("item_id", "technician_id", name="uq_technician_stock"),
        CheckConstraint("quantity >= 0"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("warehouse_items.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)

    item = relationship("WarehouseItem", back_populates="technician_stocks")
    technician = relationship("User")


# Immutable record of a stock movement
class ItemMovement(Base):
    __tablename__ = "item_movements"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("warehouse_items.id"), nullable=False, index=True)
    movement_type = Column(Enum(MovementType), nullable=False, index=True)

    # Number of units moved
    quantity = Column(Integer, nullable=False)

    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(String, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    item = relationship("WarehouseItem", back_populates="movements")
    from_user = relationship("User", foreign_keys=[from_user_id])
    to_user = relationship("User", foreign_keys=[to_user_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    serial_numbers = relationship("SerialNumberStock", secondary=movement_serial_numbers, order_by="SerialNumberStock.serial_number")
