# backend/models/warehouse_item.py
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Model WarehouseItem
# Pozycja katalogu części zamiennych. Pozycje bez numerów seryjnych
# liczone są licznikiem main_warehouse, pozycje seryjne - przez rejestr
# SerialNumberStock (main_warehouse zostaje wtedy na 0).
class WarehouseItem(Base):
    __tablename__ = "warehouse_items"

    id = Column(Integer, primary_key=True, index=True)
    item_name = Column(String, nullable=False, index=True)
    part_number = Column(String, nullable=False, index=True)

    # Unit value used for costing technician stock and intervention parts
    value = Column(Float, CheckConstraint("value >= 0"), nullable=False, default=0)

    # Fixed at creation
    tracks_serial_numbers = Column(Boolean, nullable=False, default=False)
    auto_sn = Column(Boolean, nullable=False, default=False)
    sn_prefix = Column(String, nullable=True)

    main_warehouse = Column(Integer, CheckConstraint("main_warehouse >= 0"), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    technician_stocks = relationship("TechnicianStock", back_populates="item")
    serial_numbers = relationship("SerialNumberStock", back_populates="item")
    movements = relationship("ItemMovement", back_populates="item", order_by="ItemMovement.id.desc()")
