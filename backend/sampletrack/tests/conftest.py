import os
os.environ["TESTING"] = "1"
import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from sampletrack.main import app
from sampletrack.database import Base, get_db
from sampletrack import models, notify
from sampletrack.services.labware import create_labware
from sampletrack.storelight import StoreError, get_store_client

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, _record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


class FakeStoreClient:
    """Stands in for the storage service; records every unstore request."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[list[str], str]] = []

    def unstore_barcodes(self, barcodes, username):
        barcodes = sorted(set(barcodes))
        self.calls.append((barcodes, username))
        if self.fail:
            raise StoreError("Storage service request failed: connection refused")
        return len(barcodes)


@pytest.fixture
def store_client():
    fake = FakeStoreClient()
    app.dependency_overrides[get_store_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_store_client, None)


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.EMAIL_OUTBOX.clear()
    yield
    notify.EMAIL_OUTBOX.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def unique(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:8]}"


def make_user(db, role: str = "normal", email: str | None = None) -> models.User:
    user = models.User(username=unique("user"), role=role, email=email)
    db.add(user)
    db.commit()
    return user


def auth_headers(user: models.User) -> dict[str, str]:
    return {"X-Username": user.username}


def op_type(db, name: str, **flags) -> models.OperationType:
    """Fetch the named operation type, creating it with ``flags`` on first use."""
    existing = db.query(models.OperationType).filter(models.OperationType.name == name).one_or_none()
    if existing is not None:
        return existing
    created = models.OperationType(name=name, **flags)
    db.add(created)
    db.commit()
    return created


def seed_operation_types(db) -> None:
    op_type(db, "Release", in_place=True)
    op_type(db, "Destroy", in_place=True)
    op_type(db, "Clean out", in_place=True)
    op_type(db, "Transfer", discard_source=True)
    op_type(db, "Aliquot")
    op_type(db, "Dual index plate", in_place=True, transfers_reagent=True)


def labware_type(db, name: str = "Plate 2x2", rows: int = 2, columns: int = 2) -> models.LabwareType:
    existing = db.query(models.LabwareType).filter(models.LabwareType.name == name).one_or_none()
    if existing is not None:
        return existing
    created = models.LabwareType(name=name, num_rows=rows, num_columns=columns)
    db.add(created)
    db.commit()
    return created


def make_labware(db, filled=("A1",), lw_type: models.LabwareType | None = None, **flags) -> models.Labware:
    """Labware with one fresh sample in each of the ``filled`` slot addresses."""
    lw = create_labware(db, lw_type or labware_type(db))
    for address in filled:
        lw.opt_slot(address).samples.append(models.Sample(tissue=unique("TISSUE-")))
    for flag, value in flags.items():
        setattr(lw, flag, value)
    db.commit()
    return lw


def make_work(db, status: str = "active") -> models.Work:
    work = models.Work(work_number=unique("SGP").upper(), status=status)
    db.add(work)
    db.commit()
    return work


def make_reference(db, model, key: str, enabled: bool = True, value: str | None = None):
    entity = model(**{key: value or unique("ref-")}, enabled=enabled)
    db.add(entity)
    db.commit()
    return entity


def table_counts(db) -> dict[str, int]:
    """Row count of every table, for asserting that nothing was written."""
    db.expire_all()
    return {
        table.name: db.execute(sa.select(sa.func.count()).select_from(table)).scalar()
        for table in Base.metadata.sorted_tables
    }
