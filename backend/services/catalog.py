# backend/services/catalog.py
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from database import atomic
from models.stock import ItemMovement, MovementType, TechnicianStock
from models.warehouse_item import WarehouseItem
from schemas.stock import MovementParams
from schemas.user import Actor
from schemas.warehouse import ItemCreate, ItemUpdate
from services import serials
from services.errors import Forbidden, InvalidInput, NotFound
from services.movements import execute_movement
from utils.permissions import can_manage_catalog

logger = logging.getLogger(__name__)


def _require_catalog_role(actor: Actor) -> None:
    if actor is None or not can_manage_catalog(actor.role):
        raise Forbidden("Only administrators and supervisors can manage the catalog")


def _check_sn_settings(tracks_serial_numbers: bool, auto_sn: bool, sn_prefix: Optional[str]) -> Optional[str]:
    prefix = (sn_prefix or "").strip() or None
    if auto_sn and not tracks_serial_numbers:
        raise InvalidInput("Automatic serial numbers require an item that tracks serial numbers")
    if auto_sn and not prefix:
        raise InvalidInput("Serial number prefix is required when automatic serial numbers are enabled")
    return prefix


def get_item(db: Session, item_id: int) -> WarehouseItem:
    item = db.query(WarehouseItem).options(
        selectinload(WarehouseItem.technician_stocks).joinedload(TechnicianStock.technician),
    ).filter(WarehouseItem.id == item_id).first()
    if not item:
        raise NotFound("Item not found")
    return item


def create_item(db: Session, data: ItemCreate, actor: Actor) -> WarehouseItem:
    _require_catalog_role(actor)
    prefix = _check_sn_settings(data.tracks_serial_numbers, data.auto_sn, data.sn_prefix)

    initial_stock = 0 if data.tracks_serial_numbers else (data.main_warehouse or 0)
    if initial_stock < 0:
        raise InvalidInput("Initial stock cannot be negative")

    with atomic(db):
        item = WarehouseItem(
            item_name=data.item_name.strip(),
            part_number=data.part_number.strip(),
            value=data.value,
            tracks_serial_numbers=data.tracks_serial_numbers,
            auto_sn=data.auto_sn,
            sn_prefix=prefix,
            main_warehouse=0,
        )
        db.add(item)
        db.flush()

        # Initial bulk stock goes through the ledger so it leaves a movement record
        if initial_stock > 0:
            execute_movement(
                db, item.id, MovementType.ADD_STOCK, actor,
                MovementParams(quantity=initial_stock, notes="Initial stock"),
            )
        item_id = item.id

    logger.info("Catalog item %s created by user %s", item_id, actor.user_id)
    return get_item(db, item_id)


def update_item(db: Session, item_id: int, data: ItemUpdate, actor: Actor) -> WarehouseItem:
    _require_catalog_role(actor)

    with atomic(db):
        item = db.query(WarehouseItem).filter(WarehouseItem.id == item_id).with_for_update().first()
        if not item:
            raise NotFound("Item not found")

        changes = data.model_dump(exclude_unset=True)
        auto_sn = changes.get("auto_sn", item.auto_sn)
        prefix = changes.get("sn_prefix", item.sn_prefix)
        changes["sn_prefix"] = _check_sn_settings(item.tracks_serial_numbers, auto_sn, prefix)

        for field in ("item_name", "part_number"):
            if field in changes and changes[field] is not None:
                changes[field] = changes[field].strip()
        for field, value in changes.items():
            if value is None and field in ("item_name", "part_number", "value", "auto_sn"):
                continue
            setattr(item, field, value)

    return get_item(db, item_id)


def stock_totals(db: Session, item: WarehouseItem) -> Dict[str, int]:
    technician_total = sum(ts.quantity for ts in item.technician_stocks)
    if item.tracks_serial_numbers:
        warehouse = serials.derived_warehouse_count(db, item.id)
    else:
        warehouse = item.main_warehouse
    return {
        "warehouse_stock": warehouse,
        "technician_stock": technician_total,
        "total_stock": warehouse + technician_total,
    }


def list_items(
    db: Session,
    q: Optional[str] = None,
    tracks_serial_numbers: Optional[bool] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[WarehouseItem], int]:
    query = db.query(WarehouseItem)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(WarehouseItem.item_name.ilike(like), WarehouseItem.part_number.ilike(like)))
    if tracks_serial_numbers is not None:
        query = query.filter(WarehouseItem.tracks_serial_numbers == tracks_serial_numbers)

    total = query.count()
    items = query.options(
        selectinload(WarehouseItem.technician_stocks).joinedload(TechnicianStock.technician),
    ).order_by(WarehouseItem.created_at.desc(), WarehouseItem.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def movement_counts(db: Session, item_ids: List[int]) -> Dict[int, int]:
    if not item_ids:
        return {}
    rows = db.query(ItemMovement.item_id, func.count(ItemMovement.id)).filter(
        ItemMovement.item_id.in_(item_ids)
    ).group_by(ItemMovement.item_id).all()
    return {item_id: count for item_id, count in rows}


def list_movements(
    db: Session,
    item_id: Optional[int] = None,
    movement_type: Optional[MovementType] = None,
    technician_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[ItemMovement], int]:
    query = db.query(ItemMovement)
    if item_id is not None:
        query = query.filter(ItemMovement.item_id == item_id)
    if movement_type:
        query = query.filter(ItemMovement.movement_type == movement_type)
    if technician_id is not None:
        query = query.filter(or_(ItemMovement.from_user_id == technician_id, ItemMovement.to_user_id == technician_id))

    total = query.count()
    movements = query.options(
        joinedload(ItemMovement.item),
        joinedload(ItemMovement.from_user),
        joinedload(ItemMovement.to_user),
        joinedload(ItemMovement.created_by),
        selectinload(ItemMovement.serial_numbers),
    ).order_by(ItemMovement.created_at.desc(), ItemMovement.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return movements, total
