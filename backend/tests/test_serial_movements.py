import pytest

from config import settings
from models.stock import (
    ItemMovement, MovementType, SerialLocation, SerialNumberStock, SerialStatus, TechnicianStock,
)
from models.warehouse_item import WarehouseItem
from schemas.stock import MovementParams
from services import catalog, ledger, serials
from services.errors import (
    DuplicateSerialNumber, InvalidInput, NotConfigured, NotFound, UnitNotAssigned, UnitNotAvailable,
)
from services.movements import apply_movement


@pytest.fixture()
def pump(make_item):
    return make_item(name="Pump", part_number="P-1", value=250.0,
                     tracks_serial_numbers=True, auto_sn=True, sn_prefix="PMP")


def _add_auto(db, actor, item, count):
    return apply_movement(db, item.id, MovementType.ADD_STOCK, actor, MovementParams(quantity=count))


def _units(db, item_id):
    return db.query(SerialNumberStock).filter_by(item_id=item_id).order_by(SerialNumberStock.id).all()


def test_auto_numbering_continues_sequence(db, admin_actor, pump):
    first = _add_auto(db, admin_actor, pump, 3)
    assert [u.serial_number for u in first.units] == ["PMP-1", "PMP-2", "PMP-3"]

    second = _add_auto(db, admin_actor, pump, 2)
    assert [u.serial_number for u in second.units] == ["PMP-4", "PMP-5"]

    units = _units(db, pump.id)
    assert all(u.location == SerialLocation.MAIN_WAREHOUSE and u.status == SerialStatus.AVAILABLE for u in units)
    assert serials.derived_warehouse_count(db, pump.id) == 5
    # Legacy counter is not used for serialized items
    assert db.get(WarehouseItem, pump.id).main_warehouse == 0

    movement = db.get(ItemMovement, second.movement.id)
    assert movement.quantity == 2
    assert sorted(u.serial_number for u in movement.serial_numbers) == ["PMP-4", "PMP-5"]


def test_auto_numbering_skips_past_manual_entries(db, admin_actor, pump):
    apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor,
                   MovementParams(serial_numbers=["PMP-7", "PMP-x", "OTHER-99"]))
    result = _add_auto(db, admin_actor, pump, 2)
    assert [u.serial_number for u in result.units] == ["PMP-8", "PMP-9"]


def test_auto_numbering_requires_configuration(db, admin_actor, make_item):
    item = make_item(tracks_serial_numbers=True, auto_sn=False)
    with pytest.raises(NotConfigured):
        _add_auto(db, admin_actor, item, 1)
    assert _units(db, item.id) == []


def test_auto_batch_limit(db, admin_actor, pump):
    with pytest.raises(InvalidInput):
        _add_auto(db, admin_actor, pump, settings.AUTO_SN_MAX_BATCH + 1)
    with pytest.raises(InvalidInput):
        _add_auto(db, admin_actor, pump, 0)


def test_manual_serials_are_trimmed(db, admin_actor, pump):
    result = apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor,
                            MovementParams(serial_numbers=["  A-1 ", "A-2"]))
    assert [u.serial_number for u in result.units] == ["A-1", "A-2"]
    assert result.movement.quantity == 2


def test_duplicate_against_registry_creates_nothing(db, admin_actor, pump):
    apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor, MovementParams(serial_numbers=["X1"]))

    with pytest.raises(DuplicateSerialNumber) as exc:
        apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor,
                       MovementParams(serial_numbers=["X2", "X1"]))

    assert exc.value.serial_numbers == ["X1"]
    assert [u.serial_number for u in _units(db, pump.id)] == ["X1"]
    assert db.query(ItemMovement).filter_by(item_id=pump.id).count() == 1


def test_duplicate_within_request(db, admin_actor, pump):
    with pytest.raises(DuplicateSerialNumber) as exc:
        apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor,
                       MovementParams(serial_numbers=["X1", "X1"]))
    assert exc.value.serial_numbers == ["X1"]
    assert _units(db, pump.id) == []


def test_same_serial_allowed_on_another_item(db, admin_actor, pump, make_item):
    other = make_item(name="Valve", part_number="V-1", tracks_serial_numbers=True)
    apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor, MovementParams(serial_numbers=["SN-1"]))
    apply_movement(db, other.id, MovementType.ADD_STOCK, admin_actor, MovementParams(serial_numbers=["SN-1"]))
    assert db.query(SerialNumberStock).filter_by(serial_number="SN-1").count() == 2


def test_blank_serial_rejected(db, admin_actor, pump):
    with pytest.raises(InvalidInput):
        apply_movement(db, pump.id, MovementType.ADD_STOCK, admin_actor, MovementParams(serial_numbers=["A", "  "]))


def test_transfer_updates_cached_count(db, admin_actor, tech1, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 3).units]

    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=ids[:2], to_user_id=tech1.id))

    held = serials.held_by(db, pump.id, tech1.id)
    assert [u.id for u in held] == ids[:2]
    assert ledger.technician_quantity(db, pump.id, tech1.id) == 2
    assert serials.derived_warehouse_count(db, pump.id) == 1

    apply_movement(db, pump.id, MovementType.TRANSFER_FROM_TECH, admin_actor,
                   MovementParams(serial_number_ids=[ids[0]], from_user_id=tech1.id))
    assert ledger.technician_quantity(db, pump.id, tech1.id) == 1
    unit = db.get(SerialNumberStock, ids[0])
    assert unit.location == SerialLocation.MAIN_WAREHOUSE
    assert unit.technician_id is None


def test_transfer_of_already_transferred_unit_fails(db, admin_actor, tech1, tech2, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 2).units]
    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=[ids[0]], to_user_id=tech1.id))

    with pytest.raises(UnitNotAvailable) as exc:
        apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                       MovementParams(serial_number_ids=ids, to_user_id=tech2.id))

    assert exc.value.serial_number_ids == [ids[0]]
    assert db.get(SerialNumberStock, ids[0]).technician_id == tech1.id
    assert db.get(SerialNumberStock, ids[1]).location == SerialLocation.MAIN_WAREHOUSE
    assert ledger.technician_quantity(db, pump.id, tech2.id) == 0
    assert db.query(ItemMovement).filter_by(item_id=pump.id, movement_type=MovementType.TRANSFER_TO_TECH).count() == 1


def test_return_from_wrong_technician(db, admin_actor, tech1, tech2, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 1).units]
    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=ids, to_user_id=tech1.id))

    with pytest.raises(UnitNotAssigned):
        apply_movement(db, pump.id, MovementType.TRANSFER_FROM_TECH, admin_actor,
                       MovementParams(serial_number_ids=ids, from_user_id=tech2.id))
    assert db.get(SerialNumberStock, ids[0]).technician_id == tech1.id


def test_remove_marks_units_lost(db, admin_actor, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 2).units]
    apply_movement(db, pump.id, MovementType.REMOVE_STOCK, admin_actor, MovementParams(serial_number_ids=[ids[0]]))

    unit = db.get(SerialNumberStock, ids[0])
    assert (unit.location, unit.status) == (SerialLocation.USED, SerialStatus.LOST)
    assert serials.derived_warehouse_count(db, pump.id) == 1


def test_used_units_are_final(db, admin_actor, tech1, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 1).units]
    apply_movement(db, pump.id, MovementType.USE, admin_actor, MovementParams(serial_number_ids=ids))
    unit = db.get(SerialNumberStock, ids[0])
    assert (unit.location, unit.status) == (SerialLocation.USED, SerialStatus.IN_USE)

    for movement_type, params in [
        (MovementType.USE, MovementParams(serial_number_ids=ids)),
        (MovementType.REMOVE_STOCK, MovementParams(serial_number_ids=ids)),
        (MovementType.TRANSFER_TO_TECH, MovementParams(serial_number_ids=ids, to_user_id=tech1.id)),
    ]:
        with pytest.raises(UnitNotAvailable):
            apply_movement(db, pump.id, movement_type, admin_actor, params)
    with pytest.raises(UnitNotAssigned):
        apply_movement(db, pump.id, MovementType.TRANSFER_FROM_TECH, admin_actor,
                       MovementParams(serial_number_ids=ids, from_user_id=tech1.id))

    unit = db.get(SerialNumberStock, ids[0])
    assert (unit.location, unit.status) == (SerialLocation.USED, SerialStatus.IN_USE)


def test_use_across_several_holders(db, admin_actor, tech1, tech2, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 3).units]
    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=[ids[0]], to_user_id=tech1.id))
    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=[ids[1]], to_user_id=tech2.id))

    result = apply_movement(db, pump.id, MovementType.USE, admin_actor, MovementParams(serial_number_ids=ids))

    assert result.movement.quantity == 3
    assert result.movement.from_user_id is None
    assert db.query(TechnicianStock).filter_by(item_id=pump.id).count() == 0
    assert serials.derived_warehouse_count(db, pump.id) == 0


def test_use_infers_single_holder(db, admin_actor, tech1, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 2).units]
    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=ids, to_user_id=tech1.id))

    result = apply_movement(db, pump.id, MovementType.USE, admin_actor, MovementParams(serial_number_ids=[ids[0]]))
    assert result.movement.from_user_id == tech1.id
    assert ledger.technician_quantity(db, pump.id, tech1.id) == 1


def test_use_from_named_technician_requires_their_units(db, admin_actor, tech1, tech2, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 2).units]
    apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                   MovementParams(serial_number_ids=[ids[0]], to_user_id=tech1.id))

    # Held by tech1, not tech2
    with pytest.raises(UnitNotAssigned) as exc:
        apply_movement(db, pump.id, MovementType.USE, admin_actor,
                       MovementParams(serial_number_ids=[ids[0]], from_user_id=tech2.id))
    assert exc.value.serial_number_ids == [ids[0]]

    # Still in the main warehouse
    with pytest.raises(UnitNotAssigned):
        apply_movement(db, pump.id, MovementType.USE, admin_actor,
                       MovementParams(serial_number_ids=[ids[1]], from_user_id=tech1.id))

    unit = db.get(SerialNumberStock, ids[0])
    assert (unit.location, unit.technician_id) == (SerialLocation.TECHNICIAN, tech1.id)
    assert ledger.technician_quantity(db, pump.id, tech1.id) == 1
    assert db.query(ItemMovement).filter_by(item_id=pump.id, movement_type=MovementType.USE).count() == 0

    result = apply_movement(db, pump.id, MovementType.USE, admin_actor,
                            MovementParams(serial_number_ids=[ids[0]], from_user_id=tech1.id))
    assert result.movement.from_user_id == tech1.id
    _, total = catalog.list_movements(db, technician_id=tech1.id, movement_type=MovementType.USE)
    assert total == 1


def test_unknown_serial_ids(db, admin_actor, tech1, pump, make_item):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 1).units]
    with pytest.raises(NotFound) as exc:
        apply_movement(db, pump.id, MovementType.TRANSFER_TO_TECH, admin_actor,
                       MovementParams(serial_number_ids=[ids[0], 9999], to_user_id=tech1.id))
    assert exc.value.extra["serial_number_ids"] == [9999]

    # Ids of another item's units do not resolve either
    other = make_item(name="Valve", part_number="V-1", tracks_serial_numbers=True, auto_sn=True, sn_prefix="VLV")
    other_ids = [u.id for u in _add_auto(db, admin_actor, other, 1).units]
    with pytest.raises(NotFound):
        apply_movement(db, pump.id, MovementType.REMOVE_STOCK, admin_actor, MovementParams(serial_number_ids=other_ids))
    assert db.get(SerialNumberStock, ids[0]).location == SerialLocation.MAIN_WAREHOUSE


def test_serial_ids_validation(db, admin_actor, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 2).units]
    with pytest.raises(InvalidInput):
        apply_movement(db, pump.id, MovementType.REMOVE_STOCK, admin_actor, MovementParams(quantity=1))
    with pytest.raises(InvalidInput):
        apply_movement(db, pump.id, MovementType.REMOVE_STOCK, admin_actor,
                       MovementParams(serial_number_ids=[ids[0], ids[0]]))
    with pytest.raises(InvalidInput):
        apply_movement(db, pump.id, MovementType.REMOVE_STOCK, admin_actor,
                       MovementParams(quantity=1, serial_number_ids=ids))


def test_cached_count_matches_units(db, admin_actor, tech1, pump):
    ids = [u.id for u in _add_auto(db, admin_actor, pump, 5).units]
    steps = [
        (MovementType.TRANSFER_TO_TECH, MovementParams(serial_number_ids=ids[:4], to_user_id=tech1.id)),
        (MovementType.USE, MovementParams(serial_number_ids=[ids[0]], from_user_id=tech1.id)),
        (MovementType.TRANSFER_FROM_TECH, MovementParams(serial_number_ids=[ids[1]], from_user_id=tech1.id)),
        (MovementType.REMOVE_STOCK, MovementParams(serial_number_ids=[ids[1]])),
    ]
    for movement_type, params in steps:
        apply_movement(db, pump.id, movement_type, admin_actor, params)
        held = db.query(SerialNumberStock).filter_by(
            item_id=pump.id, technician_id=tech1.id, location=SerialLocation.TECHNICIAN
        ).count()
        assert ledger.technician_quantity(db, pump.id, tech1.id) == held

    assert ledger.technician_quantity(db, pump.id, tech1.id) == 2
