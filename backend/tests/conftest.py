import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app's own engine in memory; tests bind their own below
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

from database import Base, get_db  # noqa: E402
from models.users import User, UserRole  # noqa: E402
from models.warehouse_item import WarehouseItem  # noqa: E402
from models.intervention import Intervention, InterventionStatus  # noqa: E402
import models.stock  # noqa: E402,F401
import models.log  # noqa: E402,F401
from schemas.user import Actor  # noqa: E402
from utils.tokenJWT import create_access_token  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _user(db, email, name, role):
    user = User(email=email, name=name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin(db):
    return _user(db, "admin@example.com", "Admin", UserRole.ADMIN)


@pytest.fixture()
def supervisor(db):
    return _user(db, "supervisor@example.com", "Supervisor", UserRole.SUPERVISOR)


@pytest.fixture()
def tech1(db):
    return _user(db, "tech1@example.com", "Anna Tech", UserRole.TECHNICIAN)


@pytest.fixture()
def tech2(db):
    return _user(db, "tech2@example.com", "Bartek Tech", UserRole.TECHNICIAN)


@pytest.fixture()
def admin_actor(admin):
    return Actor.from_user(admin)


@pytest.fixture()
def make_item(db):
    def _make(name="Filter", part_number="F-100", value=10.0, main_warehouse=0,
              tracks_serial_numbers=False, auto_sn=False, sn_prefix=None):
        item = WarehouseItem(
            item_name=name,
            part_number=part_number,
            value=value,
            main_warehouse=main_warehouse,
            tracks_serial_numbers=tracks_serial_numbers,
            auto_sn=auto_sn,
            sn_prefix=sn_prefix,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    return _make


@pytest.fixture()
def make_intervention(db):
    def _make(assigned_to=None, status=InterventionStatus.IN_PROGRESS, title="Boiler service"):
        intervention = Intervention(
            title=title,
            status=status,
            assigned_to_id=assigned_to.id if assigned_to else None,
        )
        db.add(intervention)
        db.commit()
        db.refresh(intervention)
        return intervention
    return _make


@pytest.fixture()
def client(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}
    return _headers
