from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import InventoryBatch
from app.schemas.pharmacy_inventory import BatchCreate, BatchUpdate, MedicationCreate
from app.services import inventory as inventory_service


def _future(days: int = 180) -> date:
    return date.today() + timedelta(days=days)


class TestCatalog:
    def test_create_medication(self, db):
        med = inventory_service.create_medication(
            db, MedicationCreate(drug_code="AMX500", name="Amoxicillin 500mg",
                                 generic_name="Amoxicillin", category="antibiotic"))
        assert med.id is not None
        assert med.is_active is True
        assert med.requires_prescription is True

    def test_duplicate_drug_code_rejected(self, db, make_medication):
        make_medication("Existing", drug_code="AMX500")
        with pytest.raises(ConflictError):
            inventory_service.create_medication(
                db, MedicationCreate(drug_code="AMX500", name="Other"))

    def test_list_medications_search_and_filters(self, db, make_medication):
        make_medication("Amoxicillin", generic_name="amoxicillin", category="antibiotic")
        make_medication("Paracetamol", category="analgesic")
        make_medication("Morphine", controlled_drug=True, category="analgesic")

        found = inventory_service.list_medications(db, search="amox")
        assert [m.name for m in found] == ["Amoxicillin"]

        analgesics = inventory_service.list_medications(db, category="analgesic")
        assert {m.name for m in analgesics} == {"Paracetamol", "Morphine"}

        controlled = inventory_service.list_medications(db, controlled_drug=True)
        assert [m.name for m in controlled] == ["Morphine"]

    def test_get_medication_missing(self, db):
        with pytest.raises(NotFoundError):
            inventory_service.get_medication(db, 999)

    def test_deactivate_medication(self, db, make_medication):
        med = make_medication()
        inventory_service.set_medication_active(db, med.id, False)
        with pytest.raises(NotFoundError):
            inventory_service.get_active_medication(db, med.id)


class TestReceiveBatch:
    def test_available_starts_at_quantity(self, db, make_medication):
        med = make_medication()
        batch = inventory_service.receive_batch(
            db,
            BatchCreate(medication_id=med.id, batch_number="LOT-1",
                        expiry_date=_future(), quantity=40,
                        unit_cost=Decimal("1.10"), selling_price=Decimal("2.00")),
        )
        assert batch.quantity == 40
        assert batch.available_quantity == 40
        assert batch.version == 1

    def test_expiry_must_be_in_future(self, db, make_medication):
        med = make_medication()
        with pytest.raises(ValidationError):
            inventory_service.receive_batch(
                db,
                BatchCreate(medication_id=med.id, batch_number="LOT-OLD",
                            expiry_date=date.today(), quantity=5,
                            unit_cost=Decimal("1"), selling_price=Decimal("2")),
            )

    def test_duplicate_batch_number(self, db, make_medication, make_batch):
        med = make_medication()
        make_batch(med, _future(), 5, batch_number="LOT-DUP")
        with pytest.raises(ConflictError):
            inventory_service.receive_batch(
                db,
                BatchCreate(medication_id=med.id, batch_number="LOT-DUP",
                            expiry_date=_future(), quantity=5,
                            unit_cost=Decimal("1"), selling_price=Decimal("2")),
            )

    def test_unknown_medication(self, db):
        with pytest.raises(NotFoundError):
            inventory_service.receive_batch(
                db,
                BatchCreate(medication_id=404, batch_number="LOT-X",
                            expiry_date=_future(), quantity=5,
                            unit_cost=Decimal("1"), selling_price=Decimal("2")),
            )

    def test_update_batch_leaves_quantities_alone(self, db, make_medication, make_batch):
        med = make_medication()
        batch = make_batch(med, _future(), 10)
        updated = inventory_service.update_batch(
            db, batch.id, BatchUpdate(selling_price=Decimal("3.50"), supplier="Acme"))
        assert updated.selling_price == Decimal("3.50")
        assert updated.supplier == "Acme"
        assert updated.quantity == 10
        assert updated.available_quantity == 10


class TestFefo:
    def test_earliest_expiry_first(self, db, make_medication, make_batch):
        med = make_medication()
        late = make_batch(med, date(2025, 6, 1), 5)
        early = make_batch(med, date(2025, 1, 1), 3)

        batches = inventory_service.get_active_batches(db, med.id)
        assert [b.id for b in batches] == [early.id, late.id]

    def test_same_expiry_breaks_tie_by_id(self, db, make_medication, make_batch):
        med = make_medication()
        first = make_batch(med, date(2025, 3, 1), 2)
        second = make_batch(med, date(2025, 3, 1), 2)

        batches = inventory_service.get_active_batches(db, med.id, lock=True)
        assert [b.id for b in batches] == [first.id, second.id]

    def test_inactive_and_empty_batches(self, db, make_medication, make_batch):
        med = make_medication()
        make_batch(med, date(2025, 1, 1), 5, is_active=False)
        empty = make_batch(med, date(2025, 2, 1), 5, available_quantity=0)
        live = make_batch(med, date(2025, 3, 1), 5)

        assert [b.id for b in inventory_service.get_active_batches(db, med.id)] == [
            empty.id, live.id
        ]
        assert [b.id for b in inventory_service.get_active_batches(
            db, med.id, in_stock_only=True)] == [live.id]

    def test_skip_expired_setting(self, db, make_medication, make_batch, monkeypatch):
        med = make_medication()
        make_batch(med, date.today() - timedelta(days=1), 5)
        fresh = make_batch(med, _future(), 5)

        monkeypatch.setattr(settings, "DISPENSE_SKIP_EXPIRED", True)
        assert [b.id for b in inventory_service.get_active_batches(db, med.id)] == [fresh.id]


class TestDecrement:
    def test_success_bumps_version(self, db, make_medication, make_batch):
        med = make_medication()
        batch = make_batch(med, _future(), 10)

        assert inventory_service.decrement_batch(db, batch, 4) is True
        db.commit()

        db.expire_all()
        fresh = db.get(InventoryBatch, batch.id)
        assert fresh.available_quantity == 6
        assert fresh.version == 2

    def test_stale_version_is_refused(self, db, make_medication, make_batch):
        med = make_medication()
        batch = make_batch(med, _future(), 10)

        # another writer moves the row behind the ORM's back
        db.execute(
            update(InventoryBatch).where(InventoryBatch.id == batch.id).values(
                available_quantity=InventoryBatch.available_quantity - 1,
                version=InventoryBatch.version + 1,
            ).execution_options(synchronize_session=False))
        db.commit()

        assert batch.version == 1
        assert inventory_service.decrement_batch(db, batch, 2) is False

        db.expire_all()
        assert db.get(InventoryBatch, batch.id).available_quantity == 9

    def test_never_goes_negative(self, db, make_medication, make_batch):
        med = make_medication()
        batch = make_batch(med, _future(), 3)
        assert inventory_service.decrement_batch(db, batch, 4) is False
        assert batch.available_quantity == 3

    def test_rejects_non_positive_quantity(self, db, make_medication, make_batch):
        med = make_medication()
        batch = make_batch(med, _future(), 3)
        with pytest.raises(ValueError):
            inventory_service.decrement_batch(db, batch, 0)


class TestStockAlerts:

    @pytest.fixture
    def shelf(self, make_medication, make_batch):
        today = date.today()
        amox = make_medication("Amoxicillin", category="Antibiotic")
        morphine = make_medication("Morphine", controlled_drug=True)
        return {
            "plenty": make_batch(amox, today + timedelta(days=200), 50),
            "short": make_batch(amox, today + timedelta(days=10), 8, unit_cost="2.00"),
            "empty": make_batch(amox, today + timedelta(days=5), 5, available_quantity=0),
            "few": make_batch(morphine, today + timedelta(days=400), 3, unit_cost="1.50"),
            "off": make_batch(morphine, today + timedelta(days=1), 1, is_active=False),
        }

    def test_summary(self, db, shelf):
        summary = inventory_service.inventory_summary(db)

        assert summary["total_items"] == 4
        assert summary["total_value"] == Decimal("70.50")
        assert summary["low_stock_items"] == 3
        assert summary["expiring_items"] == 2
        assert summary["controlled_drugs"] == 1
        assert summary["categories"] == {"Antibiotic": 3, "Uncategorized": 1}
        assert shelf["off"].id not in {b.id for b in summary["inventory"]}

    def test_low_stock_levels(self, db, shelf):
        alerts = inventory_service.low_stock_alerts(db)
        assert [(a["batch_id"], a["alert_level"]) for a in alerts] == [
            (shelf["empty"].id, "CRITICAL"),
            (shelf["few"].id, "CRITICAL"),
            (shelf["short"].id, "LOW"),
        ]
        assert alerts[1]["medication_name"] == "Morphine"

    def test_expiring_within_window(self, db, shelf):
        soon = inventory_service.expiring_batches(db)
        assert [(b["batch_id"], b["days_until_expiry"]) for b in soon] == [
            (shelf["short"].id, 10)
        ]

        within_year = inventory_service.expiring_batches(db, days=365)
        assert [b["batch_id"] for b in within_year] == [shelf["short"].id,
                                                         shelf["plenty"].id]

    def test_expired_stock_shows_negative_days(self, db, make_medication, make_batch):
        med = make_medication()
        old = make_batch(med, date.today() - timedelta(days=3), 4)
        assert [(b["batch_id"], b["days_until_expiry"])
                for b in inventory_service.expiring_batches(db)] == [(old.id, -3)]
