# backend/routes/warehouse.py
from typing import Optional, List

from fastapi import APIRouter, Depends, Request, Query, status
from sqlalchemy.orm import Session

from database import get_db
from models.stock import MovementType, SerialLocation, SerialStatus
from models.warehouse_item import WarehouseItem
from schemas.user import Actor, TechnicianSummary, TechnicianDetail
from schemas.stock import MovementParams, SerialNumberOut
from schemas.warehouse import (
    ItemCreate, ItemUpdate, ItemOut, ItemDetail, ItemPage,
    SerialNumbersCreate, SerialNumbersCreated,
)
from services import catalog, serials, technicians
from services.movements import apply_movement
from routes.stock import movement_to_out
from utils.tokenJWT import get_actor
from utils.audit import write_log

router = APIRouter(prefix="/warehouse", tags=["Warehouse"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _item_out(db: Session, item: WarehouseItem, movement_count: int = 0) -> dict:
    data = {
        "id": item.id,
        "item_name": item.item_name,
        "part_number": item.part_number,
        "value": item.value,
        "tracks_serial_numbers": item.tracks_serial_numbers,
        "auto_sn": item.auto_sn,
        "sn_prefix": item.sn_prefix,
        "main_warehouse": item.main_warehouse,
        "created_at": item.created_at,
        "movement_count": movement_count,
        "technician_stocks": item.technician_stocks,
    }
    data.update(catalog.stock_totals(db, item))
    return data


def _item_detail(db: Session, item: WarehouseItem) -> ItemDetail:
    movements, total = catalog.list_movements(db, item_id=item.id, page=1, page_size=1000)
    data = _item_out(db, item, movement_count=total)
    data["movements"] = [movement_to_out(m) for m in movements]
    return ItemDetail(**data)


# =========================
# KATALOG
# =========================
@router.get("/items", response_model=ItemPage)
def list_items(
    q: Optional[str] = Query(None, description="Search by name or part number"),
    tracks_serial_numbers: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    items, total = catalog.list_items(db, q=q, tracks_serial_numbers=tracks_serial_numbers, page=page, page_size=page_size)
    counts = catalog.movement_counts(db, [i.id for i in items])
    return {
        "items": [_item_out(db, i, counts.get(i.id, 0)) for i in items],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("/items", response_model=ItemDetail, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: ItemCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    item = catalog.create_item(db, payload, actor)
    out = _item_detail(db, item)
    write_log(db, user_id=actor.user_id, action="ITEM_CREATE", resource="warehouse_item",
              ip=_client_ip(request), meta={"id": out.id})
    return out


@router.get("/items/{item_id}", response_model=ItemDetail)
def get_item(item_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return _item_detail(db, catalog.get_item(db, item_id))


@router.put("/items/{item_id}", response_model=ItemDetail)
def update_item(
    item_id: int,
    payload: ItemUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    item = catalog.update_item(db, item_id, payload, actor)
    out = _item_detail(db, item)
    write_log(db, user_id=actor.user_id, action="ITEM_UPDATE", resource="warehouse_item",
              ip=_client_ip(request), meta={"id": item_id, "fields": sorted(payload.model_dump(exclude_unset=True))})
    return out


# =========================
# NUMERY SERYJNE
# =========================
@router.get("/items/{item_id}/serial-numbers", response_model=List[SerialNumberOut])
def list_serial_numbers(
    item_id: int,
    location: Optional[SerialLocation] = Query(None),
    technician_id: Optional[int] = Query(None),
    status: Optional[SerialStatus] = Query(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return serials.list_serial_numbers(db, item_id, location=location, technician_id=technician_id, status=status)


# Adds units through an ADD_STOCK movement, manual or auto-generated
@router.post("/items/{item_id}/serial-numbers", response_model=SerialNumbersCreated, status_code=status.HTTP_201_CREATED)
def add_serial_numbers(
    item_id: int,
    payload: SerialNumbersCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    serials.get_serialized_item(db, item_id)
    if payload.auto is not None:
        params = MovementParams(quantity=payload.auto.count, notes=payload.notes)
    else:
        params = MovementParams(serial_numbers=payload.serial_numbers, notes=payload.notes)

    result = apply_movement(db, item_id, MovementType.ADD_STOCK, actor, params)
    out = SerialNumbersCreated(
        created=len(result.units),
        movement_id=result.movement.id,
        serial_numbers=[SerialNumberOut.model_validate(u) for u in result.units],
    )
    write_log(db, user_id=actor.user_id, action="SERIAL_ADD", resource="serial_number",
              ip=_client_ip(request), meta={"item_id": item_id, "count": out.created})
    return out


# =========================
# MAGAZYNY TECHNIKÓW
# =========================
@router.get("/technicians", response_model=List[TechnicianSummary])
def list_technicians(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return technicians.list_technicians_with_stock(db)


@router.get("/technicians/{technician_id}", response_model=TechnicianDetail)
def get_technician(technician_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return technicians.get_technician_stock(db, technician_id)
