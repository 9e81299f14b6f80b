# backend/routes/stock.py
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from models.stock import ItemMovement, MovementType
from schemas.user import Actor
from utils.tokenJWT import get_actor
from utils.audit import write_log
from services import catalog
from services.movements import apply_movement, movement_sign
import schemas.stock as stock_schemas

router = APIRouter(tags=["Stock"])


def movement_to_out(m: ItemMovement) -> stock_schemas.MovementResponse:
    return stock_schemas.MovementResponse(
        id=m.id,
        item_id=m.item_id,
        item_name=m.item.item_name if m.item else None,
        movement_type=m.movement_type,
        quantity=m.quantity,
        sign=movement_sign(m.movement_type),
        from_user_id=m.from_user_id,
        to_user_id=m.to_user_id,
        notes=m.notes,
        created_by_id=m.created_by_id,
        created_at=m.created_at,
        from_user=m.from_user,
        to_user=m.to_user,
        created_by=m.created_by,
        serial_numbers=m.serial_numbers,
    )


@router.get("/movements", response_model=stock_schemas.MovementPage)
def list_movements(
    item_id: Optional[int] = Query(None),
    type: Optional[MovementType] = Query(None),
    technician_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    movements, total = catalog.list_movements(
        db, item_id=item_id, movement_type=type, technician_id=technician_id,
        page=page, page_size=page_size,
    )
    return {
        "items": [movement_to_out(m) for m in movements],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


# Unified stock movement for bulk and serialized items
@router.post("/movements", response_model=stock_schemas.MovementResponse, status_code=status.HTTP_201_CREATED)
def create_movement(
    payload: stock_schemas.MovementCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    params = stock_schemas.MovementParams(**payload.model_dump(exclude={"item_id", "movement_type"}))
    result = apply_movement(db, payload.item_id, payload.movement_type, actor, params)
    out = movement_to_out(result.movement)

    write_log(
        db, user_id=actor.user_id, action="STOCK_MOVEMENT", resource="stock", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"id": out.id, "item_id": out.item_id, "type": out.movement_type.value, "qty": out.quantity},
    )
    return out
