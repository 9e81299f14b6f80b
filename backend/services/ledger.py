# backend/services/ledger.py
"""Bulk stock ledger: the central counter and per-technician rows.

Every decrement is a guarded ``UPDATE ... WHERE counter >= qty`` whose row
count is checked, so two concurrent decrements cannot both succeed.
A technician row that reaches zero is deleted; a missing row reads as zero.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from models.stock import TechnicianStock
from models.warehouse_item import WarehouseItem
from services.errors import InsufficientStock

logger = logging.getLogger(__name__)


def _technician_row(db: Session, item_id: int, technician_id: int, lock: bool = False) -> Optional[TechnicianStock]:
    query = db.query(TechnicianStock).filter(
        TechnicianStock.item_id == item_id,
        TechnicianStock.technician_id == technician_id,
    )
    if lock:
        query = query.with_for_update()
    return query.populate_existing().first()


def technician_quantity(db: Session, item_id: int, technician_id: int) -> int:
    row = _technician_row(db, item_id, technician_id)
    return row.quantity if row else 0


def warehouse_quantity(db: Session, item_id: int) -> int:
    value = db.query(WarehouseItem.main_warehouse).filter(WarehouseItem.id == item_id).scalar()
    return value or 0


def add_to_warehouse(db: Session, item: WarehouseItem, quantity: int) -> None:
    db.query(WarehouseItem).filter(WarehouseItem.id == item.id).update(
        {WarehouseItem.main_warehouse: WarehouseItem.main_warehouse + quantity},
        synchronize_session="fetch",
    )


def take_from_warehouse(db: Session, item: WarehouseItem, quantity: int) -> None:
    updated = db.query(WarehouseItem).filter(
        WarehouseItem.id == item.id,
        WarehouseItem.main_warehouse >= quantity,
    ).update(
        {WarehouseItem.main_warehouse: WarehouseItem.main_warehouse - quantity},
        synchronize_session="fetch",
    )
    if not updated:
        available = warehouse_quantity(db, item.id)
        logger.warning("Warehouse counter changed under item %s: wanted %s, have %s", item.id, quantity, available)
        raise InsufficientStock("Insufficient stock in main warehouse", available=available)


def add_to_technician(db: Session, item_id: int, technician_id: int, quantity: int) -> None:
    row = _technician_row(db, item_id, technician_id, lock=True)
    if row is None:
        db.add(TechnicianStock(item_id=item_id, technician_id=technician_id, quantity=quantity))
        db.flush()
        return
    db.query(TechnicianStock).filter(TechnicianStock.id == row.id).update(
        {TechnicianStock.quantity: TechnicianStock.quantity + quantity},
        synchronize_session="fetch",
    )


def take_from_technician(db: Session, item_id: int, technician_id: int, quantity: int) -> None:
    updated = db.query(TechnicianStock).filter(
        TechnicianStock.item_id == item_id,
        TechnicianStock.technician_id == technician_id,
        TechnicianStock.quantity >= quantity,
    ).update(
        {TechnicianStock.quantity: TechnicianStock.quantity - quantity},
        synchronize_session="fetch",
    )
    if not updated:
        available = technician_quantity(db, item_id, technician_id)
        raise InsufficientStock("Insufficient stock with technician", available=available)
    _drop_empty_rows(db, item_id, technician_id)


def set_technician_quantity(db: Session, item_id: int, technician_id: int, quantity: int) -> None:
    """Upsert the row to ``quantity``, or delete it when ``quantity`` is 0."""
    row = _technician_row(db, item_id, technician_id, lock=True)
    if quantity <= 0:
        if row is not None:
            db.delete(row)
            db.flush()
        return
    if row is None:
        db.add(TechnicianStock(item_id=item_id, technician_id=technician_id, quantity=quantity))
    else:
        row.quantity = quantity
    db.flush()


def _drop_empty_rows(db: Session, item_id: int, technician_id: int) -> None:
    db.query(TechnicianStock).filter(
        TechnicianStock.item_id == item_id,
        TechnicianStock.technician_id == technician_id,
        TechnicianStock.quantity <= 0,
    ).delete(synchronize_session="fetch")
