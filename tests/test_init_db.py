from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.db import init_db
from app.models import InventoryBatch, Medication, User


def test_run_creates_tables_and_seeds_once(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'init.db'}")

    init_db.run(demo=True, bind=engine)
    init_db.run(demo=True, bind=engine)

    tables = init_db.list_tables(engine)
    assert {"pharmacy_medications", "pharmacy_inventory_batches",
            "pharmacy_prescriptions", "pharmacy_dispense_records",
            "billing_invoices"} <= tables

    with Session(engine) as db:
        assert db.query(User).count() == 1
        assert db.query(Medication).count() == 1
        assert db.query(InventoryBatch).count() == 2
    engine.dispose()
