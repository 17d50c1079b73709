import os

# must be set before app.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from decimal import Decimal
from typing import Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db, get_directory, get_payment_gate
from app.db.base import Base
from app.main import app
from app.models import InventoryBatch, Medication, Patient, User
from app.schemas.pharmacy_prescription import PrescriptionCreate, RxLineCreate
from app.services import pharmacy as pharmacy_service
from app.services.directory import SqlDirectory


class StubGate:
    """Payment gate with a fixed outstanding balance (0 = settled)."""

    def __init__(self, balance: Decimal = Decimal("0")):
        self.balance = Decimal(balance)

    def get_outstanding_balance(self, db: Session, prescription_id: int) -> Decimal:
        return self.balance


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared across threads (TestClient runs in a worker)."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    TestingSession = sessionmaker(bind=engine, autoflush=False,
                                  expire_on_commit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def prescriber(db: Session) -> User:
    user = User(name="Dr. House", email="house@example.com", is_doctor=True)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def pharmacist(db: Session) -> User:
    user = User(name="Pharm Acist", email="pharm@example.com",
                is_pharmacist=True)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def patient(db: Session) -> Patient:
    p = Patient(uhid="UH-0001", first_name="Jane", last_name="Doe")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def make_medication(db: Session):
    """Factory: make_medication("AMOX") -> Medication."""
    counter = {"n": 0}

    def _make(name: str = None, **kwargs) -> Medication:
        counter["n"] += 1
        n = counter["n"]
        med = Medication(
            drug_code=kwargs.pop("drug_code", f"DRUG{n:03d}"),
            name=name or f"Medication {n}",
            **kwargs,
        )
        db.add(med)
        db.commit()
        return med

    return _make


@pytest.fixture
def make_batch(db: Session):
    """
    Factory inserting batches directly, so past expiry dates are allowed
    (receive_batch only accepts future ones).
    """
    counter = {"n": 0}

    def _make(
        medication: Medication,
        expiry_date: date,
        quantity: int,
        selling_price: str = "2.00",
        batch_number: str = None,
        unit_cost: str = "1.00",
        available_quantity: int = None,
        is_active: bool = True,
    ) -> InventoryBatch:
        counter["n"] += 1
        batch = InventoryBatch(
            medication_id=medication.id,
            batch_number=batch_number or f"B-{medication.id}-{counter['n']}",
            expiry_date=expiry_date,
            quantity=quantity,
            available_quantity=quantity if available_quantity is None else available_quantity,
            unit_cost=Decimal(unit_cost),
            selling_price=Decimal(selling_price),
            is_active=is_active,
            version=1,
        )
        db.add(batch)
        db.commit()
        return batch

    return _make


@pytest.fixture
def make_prescription(db: Session, patient: Patient, prescriber: User):
    """Factory: make_prescription([(med, qty), ...]) -> Prescription."""

    def _make(lines: List[Tuple[Medication, int]] = (), notes: str = None):
        data = PrescriptionCreate(
            patient_id=patient.id,
            prescriber_id=prescriber.id,
            notes=notes,
            lines=[RxLineCreate(medication_id=m.id, quantity=q) for m, q in lines],
        )
        return pharmacy_service.create_prescription(db, data, SqlDirectory())

    return _make


@pytest.fixture
def gate() -> StubGate:
    return StubGate()


@pytest.fixture
def client(db: Session, gate: StubGate) -> Generator[TestClient, None, None]:
    """TestClient bound to the per-test session and stub payment gate."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gate] = lambda: gate
    app.dependency_overrides[get_directory] = lambda: SqlDirectory()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
