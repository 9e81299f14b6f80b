# backend/services/technicians.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session, joinedload

from models.stock import TechnicianStock
from models.users import User, UserRole
from models.warehouse_item import WarehouseItem
from services import serials
from services.errors import NotFound


def _stock_rows(db: Session, technician_id: int) -> List[TechnicianStock]:
    # Rows are deleted at zero, so existence means the technician carries the item
    return db.query(TechnicianStock).join(WarehouseItem).options(
        joinedload(TechnicianStock.item)
    ).filter(
        TechnicianStock.technician_id == technician_id,
    ).order_by(WarehouseItem.item_name.asc()).all()


def _line(db: Session, stock: TechnicianStock, with_serials: bool) -> Dict[str, Any]:
    item = stock.item
    line = {
        "item_id": item.id,
        "item_name": item.item_name,
        "part_number": item.part_number,
        "value": item.value,
        "quantity": stock.quantity,
        "total_value": stock.quantity * item.value,
        "main_warehouse_stock": (
            serials.derived_warehouse_count(db, item.id) if item.tracks_serial_numbers else item.main_warehouse
        ),
        "tracks_serial_numbers": item.tracks_serial_numbers,
        "serial_numbers": None,
    }
    if with_serials and item.tracks_serial_numbers:
        line["serial_numbers"] = serials.held_by(db, item.id, stock.technician_id)
    return line


def _summary(db: Session, tech: User, with_serials: bool) -> Dict[str, Any]:
    lines = [_line(db, s, with_serials) for s in _stock_rows(db, tech.id)]
    return {
        "id": tech.id,
        "name": tech.name,
        "email": tech.email,
        "total_items": sum(line["quantity"] for line in lines),
        "total_value": sum(line["total_value"] for line in lines),
        "stock_items": lines,
    }


def list_technicians_with_stock(db: Session) -> List[Dict[str, Any]]:
    technicians = db.query(User).filter(User.role == UserRole.TECHNICIAN).order_by(User.name.asc(), User.id.asc()).all()
    return [_summary(db, tech, with_serials=False) for tech in technicians]


def get_technician_stock(db: Session, technician_id: int) -> Dict[str, Any]:
    tech = db.query(User).filter(User.id == technician_id).first()
    if not tech or tech.role != UserRole.TECHNICIAN:
        raise NotFound("Technician not found")
    detail = _summary(db, tech, with_serials=True)
    detail["role"] = tech.role
    return detail
