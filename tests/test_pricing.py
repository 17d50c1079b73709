from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import InsufficientStockError, NotFoundError
from app.services import pricing


def test_lowest_active_price_and_total_stock(db, make_medication, make_batch):
    med = make_medication("Ibuprofen")
    make_batch(med, date(2025, 1, 1), 4, selling_price="2.50")
    make_batch(med, date(2025, 6, 1), 6, selling_price="2.00")
    make_batch(med, date(2025, 3, 1), 50, selling_price="1.00", is_active=False)

    quote = pricing.resolve(db, med.id, 7)

    assert quote.unit_price == Decimal("2.00")
    assert quote.available_quantity == 10
    assert quote.can_fulfill is True
    assert quote.line_total == Decimal("14.00")


def test_no_batches_cannot_fulfill(db, make_medication):
    med = make_medication()
    quote = pricing.resolve(db, med.id, 1)
    assert quote.unit_price is None
    assert quote.available_quantity == 0
    assert quote.can_fulfill is False


def test_require_reports_shortfall(db, make_medication, make_batch):
    med = make_medication("Cetirizine")
    make_batch(med, date(2025, 1, 1), 3)

    with pytest.raises(InsufficientStockError) as exc:
        pricing.require(db, med.id, 5)

    err = exc.value
    assert err.status_code == 400
    assert err.code == "INSUFFICIENT_STOCK"
    assert err.details["medication_name"] == "Cetirizine"
    assert (err.required, err.available, err.shortfall) == (5, 3, 2)


def test_inactive_medication_is_not_found(db, make_medication, make_batch):
    med = make_medication(is_active=False)
    make_batch(med, date(2025, 1, 1), 3)
    with pytest.raises(NotFoundError):
        pricing.resolve(db, med.id, 1)


def test_round_money_half_up():
    assert pricing.round_money(Decimal("2.345")) == Decimal("2.35")
    assert pricing.round_money(Decimal("2")) == Decimal("2.00")
