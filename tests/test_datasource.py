import asyncio

import pytest
from fakes import ROOT  # noqa: F401
from sqlalchemy.exc import IntegrityError, OperationalError

from stockaudit.core.errors import MutationNotAllowed, PermanentDataSourceError, TransientDataSourceError
from stockaudit.crud.devices import (
    create_device,
    get_device,
    list_devices,
    update_device_fields,
    update_devices_fields,
)
from stockaudit.crud.orders import create_order, list_orders, set_order_deleted
from stockaudit.db.session import Base, build_engine, build_session_factory
from stockaudit.models import device as device_model  # noqa: F401
from stockaudit.models import order as order_model  # noqa: F401
from stockaudit.schemas.common import MaterialType
from stockaudit.services.datasource import SqlDataSource, classify_db_error


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    try:
        yield build_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _order(db, **overrides):
    payload = {
        "sales_order": "SO-100",
        "asset_type": "Tablet",
        "model": "Lenovo TB301XU",
        "warehouse": "Trichy",
        "quantity": 2,
        "serial_numbers": ["A1", ""],
    }
    payload.update(overrides)
    return create_order(db, payload, actor="ops@example.com")


def test_create_order_keeps_blank_slots_and_stamps(db_session):
    order = _order(db_session, serial_numbers=[" a1 ", None], material_type=MaterialType.OUTWARD)

    assert order.serial_numbers == ["a1", ""]
    assert order.material_type == "Outward"
    assert order.created_by == "ops@example.com"
    assert order.created_at.endswith("Z")


def test_create_order_requires_core_fields(db_session):
    with pytest.raises(ValueError):
        _order(db_session, warehouse="  ")


def test_soft_delete_hides_order_only_on_request(db_session):
    kept = _order(db_session)
    gone = _order(db_session, sales_order="SO-101")
    set_order_deleted(db_session, gone, True, actor="admin@example.com")

    assert {order.id for order in list_orders(db_session)} == {kept.id, gone.id}
    assert [order.id for order in list_orders(db_session, include_deleted=False)] == [kept.id]


def test_update_device_fields_rejects_non_audit_columns(db_session):
    device = create_device(db_session, {"serial_number": "A1", "warehouse": "Trichy"})

    with pytest.raises(MutationNotAllowed):
        update_device_fields(db_session, device.id, {"warehouse": "Indore"})
    with pytest.raises(MutationNotAllowed):
        update_devices_fields(db_session, [device.id], {"asset_check": "Matched", "model": "X"})

    assert get_device(db_session, device.id).warehouse == "Trichy"


def test_update_devices_fields_confirms_existing_ids(db_session):
    first = create_device(db_session, {"serial_number": "A1"})
    second = create_device(db_session, {"serial_number": "A2"})

    confirmed = update_devices_fields(
        db_session, [second.id, 999, first.id, second.id], {"asset_check": "Unmatched", "updated_by": "a@b"}
    )

    assert confirmed == [second.id, first.id]
    db_session.expire_all()
    assert {device.asset_check for device in list_devices(db_session)} == {"Unmatched"}


def test_sql_data_source_returns_records(session_factory, db_session):
    order = _order(db_session)
    create_device(db_session, {"serial_number": " a1 ", "order_id": order.id, "material_type": "Inward"})
    source = SqlDataSource(session_factory)

    orders = asyncio.run(source.list_orders())
    devices = asyncio.run(source.list_devices())

    assert orders[0].serial_numbers == ("A1", "")
    assert orders[0].material_type == MaterialType.INWARD
    assert devices[0].serial_number == "a1"
    assert devices[0].order_id == order.id


def test_sql_data_source_updates(session_factory, db_session):
    device = create_device(db_session, {"serial_number": "A1"})
    source = SqlDataSource(session_factory)

    record = asyncio.run(source.update_device(device.id, {"asset_check": "Matched", "updated_by": "a@b"}))
    outcome = asyncio.run(source.update_devices([device.id, 4242], {"asset_check": "Unmatched"}))

    assert record.asset_check == "Matched"
    assert record.updated_by == "a@b"
    assert outcome.error is None
    assert outcome.updated_ids == [device.id]


def test_sql_data_source_missing_device_is_permanent(session_factory):
    source = SqlDataSource(session_factory)

    with pytest.raises(PermanentDataSourceError):
        asyncio.run(source.update_device(4242, {"asset_check": "Matched"}))


def test_database_errors_are_classified():
    locked = OperationalError("UPDATE devices", {}, Exception("database is locked"))
    constraint = IntegrityError("UPDATE devices", {}, Exception("NOT NULL"))

    assert isinstance(classify_db_error(locked), TransientDataSourceError)
    assert isinstance(classify_db_error(constraint), PermanentDataSourceError)
    assert not classify_db_error(constraint).transient
