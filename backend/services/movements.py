# backend/services/movements.py
"""Movement engine.

``apply_movement`` validates a stock movement against the bulk ledger or the
serial registry, applies it and appends the ``ItemMovement`` audit record, all
inside one transaction. Bulk and serialized items are handled by two
``StockMovable`` strategies chosen once per item.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from config import settings
from database import atomic
from models.stock import ItemMovement, MovementType, SerialLocation, SerialNumberStock, SerialStatus
from models.users import User, UserRole
from models.warehouse_item import WarehouseItem
from schemas.stock import MovementParams
from schemas.user import Actor
from services import ledger, serials
from services.errors import (
    Forbidden, InsufficientStock, InvalidInput, NotFound, UnitNotAssigned, UnitNotAvailable,
)

logger = logging.getLogger(__name__)

_SIGNS = {
    MovementType.ADD_STOCK: "+",
    MovementType.REMOVE_STOCK: "-",
    MovementType.USE: "-",
    MovementType.TRANSFER_TO_TECH: "",
    MovementType.TRANSFER_FROM_TECH: "",
}


def movement_sign(movement_type: MovementType) -> str:
    """Display sign: gains are '+', losses '-', transfers only change location."""
    return _SIGNS[MovementType(movement_type)]


@dataclass
class MovementResult:
    movement: ItemMovement
    item: WarehouseItem
    units: List[SerialNumberStock] = field(default_factory=list)


@dataclass
class _Outcome:
    quantity: int
    units: List[SerialNumberStock] = field(default_factory=list)
    from_user_id: Optional[int] = None
    to_user_id: Optional[int] = None


def _require_technician(db: Session, user_id: Optional[int], what: str) -> User:
    if user_id is None:
        raise InvalidInput(f"Technician ID required for {what}")
    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.role != UserRole.TECHNICIAN:
        raise NotFound("Technician not found")
    return user


class StockMovable:
    """One capability, two inventory models. Each method validates first and
    mutates only after every check passed."""

    def __init__(self, db: Session, item: WarehouseItem):
        self.db = db
        self.item = item

    def add(self, params: MovementParams) -> _Outcome:
        raise NotImplementedError

    def remove(self, params: MovementParams) -> _Outcome:
        raise NotImplementedError

    def transfer_out(self, params: MovementParams) -> _Outcome:
        raise NotImplementedError

    def transfer_in(self, params: MovementParams) -> _Outcome:
        raise NotImplementedError

    def use(self, params: MovementParams) -> _Outcome:
        raise NotImplementedError


class BulkStock(StockMovable):

    def _quantity(self, params: MovementParams) -> int:
        if params.serial_number_ids or params.serial_numbers:
            raise InvalidInput("This item does not track serial numbers")
        if params.quantity is None or params.quantity <= 0:
            raise InvalidInput("Quantity must be a positive integer")
        return params.quantity

    def _check_warehouse(self, quantity: int) -> None:
        if self.item.main_warehouse < quantity:
            raise InsufficientStock("Insufficient stock in main warehouse", available=self.item.main_warehouse)

    def _check_technician(self, technician_id: int, quantity: int) -> None:
        available = ledger.technician_quantity(self.db, self.item.id, technician_id)
        if available < quantity:
            raise InsufficientStock("Insufficient stock with technician", available=available)

    def add(self, params):
        quantity = self._quantity(params)
        ledger.add_to_warehouse(self.db, self.item, quantity)
        return _Outcome(quantity)

    def remove(self, params):
        quantity = self._quantity(params)
        self._check_warehouse(quantity)
        ledger.take_from_warehouse(self.db, self.item, quantity)
        return _Outcome(quantity)

    def transfer_out(self, params):
        quantity = self._quantity(params)
        tech = _require_technician(self.db, params.to_user_id, "transfer")
        self._check_warehouse(quantity)
        ledger.take_from_warehouse(self.db, self.item, quantity)
        ledger.add_to_technician(self.db, self.item.id, tech.id, quantity)
        return _Outcome(quantity, to_user_id=tech.id)

    def transfer_in(self, params):
        quantity = self._quantity(params)
        tech = _require_technician(self.db, params.from_user_id, "return transfer")
        self._check_technician(tech.id, quantity)
        ledger.take_from_technician(self.db, self.item.id, tech.id, quantity)
        ledger.add_to_warehouse(self.db, self.item, quantity)
        return _Outcome(quantity, from_user_id=tech.id)

    def use(self, params):
        quantity = self._quantity(params)
        tech = _require_technician(self.db, params.from_user_id, "usage")
        self._check_technician(tech.id, quantity)
        # Consumed, so the central counter does not change
        ledger.take_from_technician(self.db, self.item.id, tech.id, quantity)
        return _Outcome(quantity, from_user_id=tech.id)


class SerializedStock(StockMovable):

    def _ids(self, params: MovementParams) -> List[int]:
        if params.serial_numbers:
            raise InvalidInput("Serial number strings are only accepted when adding stock")
        ids = list(params.serial_number_ids or [])
        if not ids:
            raise InvalidInput("serial_number_ids are required for serialized items")
        if len(set(ids)) != len(ids):
            raise InvalidInput("Duplicate serial number ids in request")
        if params.quantity is not None and params.quantity != len(ids):
            raise InvalidInput("Quantity does not match the number of serial numbers")
        return ids

    def _require_in_warehouse(self, units: List[SerialNumberStock]) -> None:
        bad = [
            u.id for u in units
            if u.location != SerialLocation.MAIN_WAREHOUSE or u.status != SerialStatus.AVAILABLE
        ]
        if bad:
            raise UnitNotAvailable("Some serial numbers are not in main warehouse", bad)

    def add(self, params):
        if params.serial_number_ids:
            raise InvalidInput("New stock takes serial number strings, not ids")
        if params.serial_numbers:
            if params.quantity is not None and params.quantity != len(params.serial_numbers):
                raise InvalidInput("Quantity does not match the number of serial numbers")
            values = serials.normalize_manual(params.serial_numbers)
        else:
            count = params.quantity
            if count is None or count <= 0:
                raise InvalidInput("Provide serial numbers or a positive count to generate")
            if count > settings.AUTO_SN_MAX_BATCH:
                raise InvalidInput(f"At most {settings.AUTO_SN_MAX_BATCH} serial numbers can be generated at once")
            values = serials.next_auto_serials(self.db, self.item, count)

        units = serials.create_units(self.db, self.item, values)
        return _Outcome(len(units), units)

    def remove(self, params):
        ids = self._ids(params)
        units = serials.load_units(self.db, self.item, ids)
        self._require_in_warehouse(units)
        serials.transition(
            self.db, self.item, ids,
            from_locations=[SerialLocation.MAIN_WAREHOUSE],
            values={
                SerialNumberStock.location: SerialLocation.USED,
                SerialNumberStock.status: SerialStatus.LOST,
                SerialNumberStock.technician_id: None,
            },
            error=UnitNotAvailable,
            detail="Some serial numbers are not in main warehouse",
        )
        return _Outcome(len(ids), units)

    def transfer_out(self, params):
        ids = self._ids(params)
        tech = _require_technician(self.db, params.to_user_id, "transfer")
        units = serials.load_units(self.db, self.item, ids)
        self._require_in_warehouse(units)
        serials.transition(
            self.db, self.item, ids,
            from_locations=[SerialLocation.MAIN_WAREHOUSE],
            values={
                SerialNumberStock.location: SerialLocation.TECHNICIAN,
                SerialNumberStock.technician_id: tech.id,
            },
            error=UnitNotAvailable,
            detail="Some serial numbers are not in main warehouse",
        )
        serials.recount_technician_stock(self.db, self.item.id, tech.id)
        return _Outcome(len(ids), units, to_user_id=tech.id)

    def transfer_in(self, params):
        ids = self._ids(params)
        tech = _require_technician(self.db, params.from_user_id, "return transfer")
        units = serials.load_units(self.db, self.item, ids)
        bad = [
            u.id for u in units
            if u.location != SerialLocation.TECHNICIAN
            or u.technician_id != tech.id
            or u.status != SerialStatus.AVAILABLE
        ]
        if bad:
            raise UnitNotAssigned("Some serial numbers are not assigned to this technician", bad)
        serials.transition(
            self.db, self.item, ids,
            from_locations=[SerialLocation.TECHNICIAN],
            technician_id=tech.id,
            values={
                SerialNumberStock.location: SerialLocation.MAIN_WAREHOUSE,
                SerialNumberStock.technician_id: None,
            },
            error=UnitNotAssigned,
            detail="Some serial numbers are not assigned to this technician",
        )
        serials.recount_technician_stock(self.db, self.item.id, tech.id)
        return _Outcome(len(ids), units, from_user_id=tech.id)

    def use(self, params):
        # Without from_user_id any holder may be consumed from here, including
        # the warehouse and several technicians at once. With it, every unit
        # must be carried by that technician.
        ids = self._ids(params)
        tech = None
        if params.from_user_id is not None:
            tech = _require_technician(self.db, params.from_user_id, "usage")
        units = serials.load_units(self.db, self.item, ids)
        bad = [
            u.id for u in units
            if u.location == SerialLocation.USED or u.status != SerialStatus.AVAILABLE
        ]
        if bad:
            raise UnitNotAvailable("Some serial numbers are no longer available", bad)
        if tech is not None:
            bad = [
                u.id for u in units
                if u.location != SerialLocation.TECHNICIAN or u.technician_id != tech.id
            ]
            if bad:
                raise UnitNotAssigned("Some serial numbers are not assigned to this technician", bad)

        holders = sorted({u.technician_id for u in units if u.location == SerialLocation.TECHNICIAN})
        if tech is not None:
            from_locations = [SerialLocation.TECHNICIAN]
        else:
            from_locations = [SerialLocation.MAIN_WAREHOUSE, SerialLocation.TECHNICIAN]
        serials.transition(
            self.db, self.item, ids,
            from_locations=from_locations,
            technician_id=tech.id if tech is not None else None,
            values={
                SerialNumberStock.location: SerialLocation.USED,
                SerialNumberStock.status: SerialStatus.IN_USE,
                SerialNumberStock.technician_id: None,
            },
            error=UnitNotAvailable,
            detail="Some serial numbers are no longer available",
        )
        for technician_id in holders:
            serials.recount_technician_stock(self.db, self.item.id, technician_id)
        if len(holders) > 1:
            logger.info("USE on item %s consumed units from %s technicians", self.item.id, len(holders))

        from_user_id = params.from_user_id
        if from_user_id is None and len(holders) == 1:
            from_user_id = holders[0]
        return _Outcome(len(ids), units, from_user_id=from_user_id)


def strategy_for(db: Session, item: WarehouseItem) -> StockMovable:
    if item.tracks_serial_numbers:
        return SerializedStock(db, item)
    return BulkStock(db, item)


_OPERATIONS = {
    MovementType.ADD_STOCK: "add",
    MovementType.REMOVE_STOCK: "remove",
    MovementType.TRANSFER_TO_TECH: "transfer_out",
    MovementType.TRANSFER_FROM_TECH: "transfer_in",
    MovementType.USE: "use",
}


def lock_item(db: Session, item_id: int) -> WarehouseItem:
    item = (
        db.query(WarehouseItem)
        .filter(WarehouseItem.id == item_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not item:
        raise NotFound("Item not found")
    return item


def _coerce_type(movement_type: Union[MovementType, str]) -> MovementType:
    try:
        return MovementType(movement_type)
    except ValueError:
        raise InvalidInput("Invalid movement type")


def execute_movement(
    db: Session,
    item_id: int,
    movement_type: Union[MovementType, str],
    actor: Actor,
    params: MovementParams,
) -> MovementResult:
    """Run one movement inside the caller's transaction (no commit)."""
    if actor is None:
        raise Forbidden("Authenticated actor required")
    movement_type = _coerce_type(movement_type)

    item = lock_item(db, item_id)
    strategy = strategy_for(db, item)

    operation = _OPERATIONS.get(movement_type)
    if operation is None:
        logger.error("No handler for movement type %s", movement_type)
        raise RuntimeError(f"Unhandled movement type {movement_type}")

    outcome = getattr(strategy, operation)(params)

    movement = ItemMovement(
        item_id=item.id,
        movement_type=movement_type,
        quantity=outcome.quantity,
        from_user_id=outcome.from_user_id,
        to_user_id=outcome.to_user_id,
        notes=params.notes or None,
        created_by_id=actor.user_id,
    )
    if item.tracks_serial_numbers:
        movement.serial_numbers = list(outcome.units)
    db.add(movement)
    db.flush()

    return MovementResult(movement=movement, item=item, units=list(outcome.units))


def apply_movement(
    db: Session,
    item_id: int,
    movement_type: Union[MovementType, str],
    actor: Actor,
    params: MovementParams,
) -> MovementResult:
    with atomic(db):
        result = execute_movement(db, item_id, movement_type, actor, params)

    logger.info(
        "Movement %s: %s x%s on item %s by user %s",
        result.movement.id, result.movement.movement_type.value, result.movement.quantity,
        item_id, actor.user_id,
    )
    return result
