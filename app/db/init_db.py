# app/db/init_db.py
from __future__ import annotations

import argparse
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Set

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import engine as default_engine
from app.db.base import Base
from app.models import InventoryBatch, Medication, Patient, User

logger = logging.getLogger(__name__)


def list_tables(bind: Engine) -> Set[str]:
    names = set(inspect(bind).get_table_names())
    logger.info("Existing tables: %s", sorted(names))
    return names


def seed_demo(db: Session) -> None:
    """
    Seed a prescriber, a patient and one medication with two batches; safe to
    run multiple times.
    """
    if not db.query(User).filter(User.email == "doctor@example.com").first():
        db.add(User(name="Demo Doctor", email="doctor@example.com",
                    is_doctor=True))
    if not db.query(Patient).filter(Patient.uhid == "DEMO-0001").first():
        db.add(Patient(uhid="DEMO-0001", first_name="Demo", last_name="Patient"))

    med = db.query(Medication).filter(Medication.drug_code == "PCM500").first()
    if not med:
        med = Medication(drug_code="PCM500", name="Paracetamol 500mg",
                         generic_name="Paracetamol", form="tablet",
                         strength="500mg", category="analgesic")
        db.add(med)
        db.flush()

        today = date.today()
        for number, days, qty in (("PCM500-A", 90, 5), ("PCM500-B", 270, 3)):
            db.add(InventoryBatch(
                medication_id=med.id,
                batch_number=number,
                expiry_date=today + timedelta(days=days),
                quantity=qty,
                available_quantity=qty,
                unit_cost=Decimal("1.20"),
                selling_price=Decimal("2.00"),
                supplier="Demo Supplier",
                purchase_date=today,
            ))


def run(fresh: bool = False, demo: bool = False,
        bind: Optional[Engine] = None) -> None:
    bind = bind or default_engine

    if fresh:
        logger.warning("Dropping ALL tables (dev only)")
        Base.metadata.drop_all(bind=bind)

    logger.info("Creating all missing tables")
    Base.metadata.create_all(bind=bind)
    list_tables(bind)

    if not demo:
        return
    try:
        with Session(bind) as db:
            seed_demo(db)
            db.commit()
            logger.info("Demo data seeded")
    except SQLAlchemyError:
        logger.exception("Seeding failed")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, optionally seed demo data).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Insert a demo prescriber, patient and stocked medication.",
    )
    args = parser.parse_args()
    run(fresh=args.fresh, demo=args.demo)
