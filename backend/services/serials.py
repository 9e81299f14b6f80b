# backend/services/serials.py
"""Serial unit registry.

Unit state machine (no way back once USED)::

    (created)                 --ADD_STOCK-->          MAIN_WAREHOUSE/AVAILABLE
    MAIN_WAREHOUSE/AVAILABLE  --TRANSFER_TO_TECH-->   TECHNICIAN/AVAILABLE
    TECHNICIAN/AVAILABLE      --TRANSFER_FROM_TECH--> MAIN_WAREHOUSE/AVAILABLE
    MAIN_WAREHOUSE/AVAILABLE  --REMOVE_STOCK-->       USED/LOST
    MAIN_WAREHOUSE|TECHNICIAN --USE-->                USED/IN_USE
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models.stock import SerialNumberStock, SerialLocation, SerialStatus
from models.warehouse_item import WarehouseItem
from services import ledger
from services.errors import (
    DuplicateSerialNumber, InvalidInput, NotConfigured, NotFound,
)

logger = logging.getLogger(__name__)

SN_SEPARATOR = "-"


def get_serialized_item(db: Session, item_id: int) -> WarehouseItem:
    item = db.query(WarehouseItem).filter(WarehouseItem.id == item_id).first()
    if not item:
        raise NotFound("Item not found")
    if not item.tracks_serial_numbers:
        raise InvalidInput("This item does not track serial numbers")
    return item


def list_serial_numbers(
    db: Session,
    item_id: int,
    location: Optional[SerialLocation] = None,
    technician_id: Optional[int] = None,
    status: Optional[SerialStatus] = None,
) -> List[SerialNumberStock]:
    get_serialized_item(db, item_id)

    query = db.query(SerialNumberStock).options(joinedload(SerialNumberStock.technician)).filter(
        SerialNumberStock.item_id == item_id
    )
    if location:
        query = query.filter(SerialNumberStock.location == location)
    if technician_id is not None:
        query = query.filter(SerialNumberStock.technician_id == technician_id)
    if status:
        query = query.filter(SerialNumberStock.status == status)
    return query.order_by(SerialNumberStock.serial_number.asc()).all()


def derived_warehouse_count(db: Session, item_id: int) -> int:
    """Units sitting in the main warehouse; the stock level of a serialized item."""
    return db.query(func.count(SerialNumberStock.id)).filter(
        SerialNumberStock.item_id == item_id,
        SerialNumberStock.location == SerialLocation.MAIN_WAREHOUSE,
        SerialNumberStock.status == SerialStatus.AVAILABLE,
    ).scalar() or 0


def held_by(db: Session, item_id: int, technician_id: int) -> List[SerialNumberStock]:
    return db.query(SerialNumberStock).filter(
        SerialNumberStock.item_id == item_id,
        SerialNumberStock.technician_id == technician_id,
        SerialNumberStock.location == SerialLocation.TECHNICIAN,
    ).order_by(SerialNumberStock.serial_number.asc()).all()


def load_units(db: Session, item: WarehouseItem, ids: Sequence[int]) -> List[SerialNumberStock]:
    """Lock and re-read the requested units; every id must belong to ``item``."""
    units = db.query(SerialNumberStock).filter(
        SerialNumberStock.item_id == item.id,
        SerialNumberStock.id.in_(ids),
    ).with_for_update().populate_existing().all()
    if len(units) != len(ids):
        missing = set(ids) - {u.id for u in units}
        raise NotFound("Some serial numbers not found", serial_number_ids=sorted(missing))
    return units


def normalize_manual(serial_numbers: Iterable[str]) -> List[str]:
    values = [(sn or "").strip() for sn in serial_numbers]
    if not values or any(not v for v in values):
        raise InvalidInput("Serial numbers must be non-empty strings")
    seen, repeated = set(), set()
    for v in values:
        if v in seen:
            repeated.add(v)
        seen.add(v)
    if repeated:
        raise DuplicateSerialNumber(repeated, detail=f"Serial numbers repeated in request: {', '.join(sorted(repeated))}")
    return values


def next_auto_serials(db: Session, item: WarehouseItem, count: int) -> List[str]:
    """Continue ``PREFIX-n`` numbering from the highest suffix already used.

    Scanning the registry (instead of keeping a counter) keeps auto numbering
    collision-free next to manually entered serial numbers.
    """
    prefix = (item.sn_prefix or "").strip()
    if not item.auto_sn or not prefix:
        raise NotConfigured("Automatic serial numbers are not configured for this item")

    pattern = re.compile(rf"^{re.escape(prefix)}{re.escape(SN_SEPARATOR)}(\d+)$")
    rows = db.query(SerialNumberStock.serial_number).filter(
        SerialNumberStock.item_id == item.id,
        SerialNumberStock.serial_number.like(f"{prefix}{SN_SEPARATOR}%"),
    ).all()

    highest = 0
    for (value,) in rows:
        match = pattern.match(value)
        if match:
            highest = max(highest, int(match.group(1)))

    return [f"{prefix}{SN_SEPARATOR}{highest + n}" for n in range(1, count + 1)]


def create_units(db: Session, item: WarehouseItem, serial_numbers: List[str]) -> List[SerialNumberStock]:
    existing = db.query(SerialNumberStock.serial_number).filter(
        SerialNumberStock.item_id == item.id,
        SerialNumberStock.serial_number.in_(serial_numbers),
    ).all()
    if existing:
        raise DuplicateSerialNumber(v for (v,) in existing)

    units = [
        SerialNumberStock(
            item_id=item.id,
            serial_number=sn,
            location=SerialLocation.MAIN_WAREHOUSE,
            status=SerialStatus.AVAILABLE,
            technician_id=None,
        )
        for sn in serial_numbers
    ]
    db.add_all(units)
    try:
        db.flush()
    except IntegrityError as e:
        # Concurrent insert of the same number won the unique constraint
        logger.warning("Serial number collision on item %s: %s", item.id, e)
        raise DuplicateSerialNumber(serial_numbers, detail="Serial numbers were registered concurrently") from e
    return units


def transition(
    db: Session,
    item: WarehouseItem,
    ids: Sequence[int],
    *,
    from_locations: Sequence[SerialLocation],
    values: Dict[Any, Any],
    error,
    detail: str,
    technician_id: Optional[int] = None,
) -> None:
    """Guarded state change: only units still AVAILABLE in ``from_locations``
    (and held by ``technician_id`` when given) match; if any unit moved in the
    meantime ``error`` is raised and the enclosing transaction rolls back."""
    query = db.query(SerialNumberStock).filter(
        SerialNumberStock.item_id == item.id,
        SerialNumberStock.id.in_(ids),
        SerialNumberStock.status == SerialStatus.AVAILABLE,
        SerialNumberStock.location.in_(list(from_locations)),
    )
    if technician_id is not None:
        query = query.filter(SerialNumberStock.technician_id == technician_id)

    updated = query.update(values, synchronize_session="fetch")
    if updated != len(ids):
        logger.warning("Serial units of item %s changed concurrently (%s of %s matched)", item.id, updated, len(ids))
        raise error(detail, ids)


def recount_technician_stock(db: Session, item_id: int, technician_id: int) -> int:
    """Rebuild the cached TechnicianStock row from the live unit count."""
    db.flush()
    count = db.query(func.count(SerialNumberStock.id)).filter(
        SerialNumberStock.item_id == item_id,
        SerialNumberStock.technician_id == technician_id,
        SerialNumberStock.location == SerialLocation.TECHNICIAN,
    ).scalar() or 0
    ledger.set_technician_quantity(db, item_id, technician_id, count)
    return count
