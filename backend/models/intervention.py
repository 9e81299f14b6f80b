# backend/models/intervention.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Table, func
from sqlalchemy.orm import relationship
from database import Base

class InterventionStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    QUALITY_ASSESSMENT = "QUALITY_ASSESSMENT"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


# Field-service job. Only the columns the parts flow reads;
# the rest of the intervention lifecycle is managed elsewhere.
class Intervention(Base):
    __tablename__ = "interventions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=True)
    status = Column(Enum(InterventionStatus), nullable=False, default=InterventionStatus.OPEN)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assigned_to = relationship("User")
    parts = relationship("InterventionPart", back_populates="intervention", order_by="InterventionPart.id")


intervention_part_serial_numbers = Table(
    "intervention_part_serial_numbers",
    Base.metadata,
    Column("intervention_part_id", Integer, ForeignKey("intervention_parts.id"), primary_key=True),
    Column("serial_number_id", Integer, ForeignKey("serial_number_stock.id"), primary_key=True),
)


# Parts consumed on an intervention (append-only)
class InterventionPart(Base):
    __tablename__ = "intervention_parts"

    id = Column(Integer, primary_key=True, index=True)
    intervention_id = Column(Integer, ForeignKey("interventions.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("warehouse_items.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    movement_id = Column(Integer, ForeignKey("item_movements.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    intervention = relationship("Intervention", back_populates="parts")
    item = relationship("WarehouseItem")
    movement = relationship("ItemMovement")
    serial_numbers = relationship(
        "SerialNumberStock",
        secondary=intervention_part_serial_numbers,
        order_by="SerialNumberStock.serial_number",
    )
