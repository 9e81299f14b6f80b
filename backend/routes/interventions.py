# backend/routes/interventions.py
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.intervention import InterventionPart
from schemas.intervention import InterventionPartCreate, InterventionPartOut
from schemas.user import Actor
from services.consumption import consume_for_intervention, list_intervention_parts
from utils.tokenJWT import get_actor
from utils.audit import write_log

router = APIRouter(prefix="/interventions", tags=["Interventions"])


def _part_to_out(part: InterventionPart) -> InterventionPartOut:
    return InterventionPartOut(
        id=part.id,
        intervention_id=part.intervention_id,
        item_id=part.item_id,
        quantity=part.quantity,
        movement_id=part.movement_id,
        created_at=part.created_at,
        total_value=round(part.quantity * part.item.value, 2),
        item=part.item,
        serial_numbers=part.serial_numbers,
    )


# Parts used on an intervention, with consumed serial numbers
@router.get("/{intervention_id}/parts", response_model=List[InterventionPartOut])
def get_parts(intervention_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return [_part_to_out(p) for p in list_intervention_parts(db, intervention_id)]


@router.post("/{intervention_id}/parts", response_model=InterventionPartOut, status_code=status.HTTP_201_CREATED)
def add_part(
    intervention_id: int,
    payload: InterventionPartCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    part = consume_for_intervention(
        db, intervention_id, payload.item_id, payload.quantity, payload.serial_number_ids, actor,
    )
    out = _part_to_out(part)
    write_log(
        db, user_id=actor.user_id, action="PART_USE", resource="intervention",
        ip=request.client.host if request.client else None,
        meta={"intervention_id": intervention_id, "item_id": out.item_id, "qty": out.quantity},
    )
    return out
