# backend/services/consumption.py
"""Intervention parts consumption.

The only caller that scopes a USE movement to a single technician: the
intervention's assignee must hold every consumed unit (or enough bulk
quantity) before the engine runs.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from database import atomic
from models.intervention import Intervention, InterventionPart
from models.stock import MovementType, SerialLocation, SerialStatus
from models.users import UserRole
from schemas.stock import MovementParams
from schemas.user import Actor
from services import ledger, serials
from services.errors import (
    Forbidden, InsufficientStock, InvalidInput, NotFound, UnitNotAssigned,
)
from services.movements import execute_movement, lock_item
from utils.permissions import is_locked_for

logger = logging.getLogger(__name__)


def _get_intervention(db: Session, intervention_id: int) -> Intervention:
    intervention = db.query(Intervention).filter(Intervention.id == intervention_id).first()
    if not intervention:
        raise NotFound("Intervention not found")
    return intervention


def consume_for_intervention(
    db: Session,
    intervention_id: int,
    item_id: int,
    quantity: int,
    serial_number_ids: Optional[List[int]],
    actor: Actor,
) -> InterventionPart:
    with atomic(db):
        intervention = _get_intervention(db, intervention_id)

        if is_locked_for(actor.role, intervention.status):
            raise Forbidden(f"Cannot add parts to an intervention with status {intervention.status.value}")
        if actor.role == UserRole.TECHNICIAN and intervention.assigned_to_id != actor.user_id:
            raise Forbidden("Intervention is assigned to another technician")

        technician_id = intervention.assigned_to_id
        if technician_id is None:
            raise InvalidInput("Intervention has no assigned technician")
        if quantity is None or quantity <= 0:
            raise InvalidInput("Quantity must be a positive integer")

        item = lock_item(db, item_id)
        ids = list(serial_number_ids or [])

        if item.tracks_serial_numbers:
            if len(ids) != quantity or len(set(ids)) != len(ids):
                raise InvalidInput("Serial numbers required for serialized items, one per unit")
            units = serials.load_units(db, item, ids)
            bad = [
                u.id for u in units
                if u.location != SerialLocation.TECHNICIAN
                or u.technician_id != technician_id
                or u.status != SerialStatus.AVAILABLE
            ]
            if bad:
                raise UnitNotAssigned("Some serial numbers are not assigned to the intervention technician", bad)
        else:
            if ids:
                raise InvalidInput("This item does not track serial numbers")
            available = ledger.technician_quantity(db, item.id, technician_id)
            if available < quantity:
                raise InsufficientStock("Insufficient stock", available=available)

        result = execute_movement(
            db, item.id, MovementType.USE, actor,
            MovementParams(
                quantity=quantity,
                serial_number_ids=ids or None,
                from_user_id=technician_id,
                notes=f"Used in intervention {intervention.id}",
            ),
        )

        part = InterventionPart(
            intervention_id=intervention.id,
            item_id=item.id,
            quantity=quantity,
            movement_id=result.movement.id,
        )
        part.serial_numbers = list(result.units)
        db.add(part)
        db.flush()
        part_id = part.id

    logger.info("Intervention %s: %s x%s consumed by technician %s", intervention_id, item_id, quantity, technician_id)
    return get_part(db, part_id)


def get_part(db: Session, part_id: int) -> InterventionPart:
    return db.query(InterventionPart).options(
        joinedload(InterventionPart.item),
        selectinload(InterventionPart.serial_numbers),
    ).filter(InterventionPart.id == part_id).one()


def list_intervention_parts(db: Session, intervention_id: int) -> List[InterventionPart]:
    _get_intervention(db, intervention_id)
    return db.query(InterventionPart).options(
        joinedload(InterventionPart.item),
        selectinload(InterventionPart.serial_numbers),
    ).filter(InterventionPart.intervention_id == intervention_id).order_by(InterventionPart.id.asc()).all()
