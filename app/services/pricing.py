# FILE: app/services/pricing.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InsufficientStockError
from app.models.pharmacy_inventory import Medication
from app.services.inventory import get_active_batches, get_active_medication

MONEY = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


@dataclass
class Availability:
    medication: Medication
    requested_quantity: int
    unit_price: Optional[Decimal]
    available_quantity: int

    @property
    def can_fulfill(self) -> bool:
        return self.unit_price is not None and self.available_quantity >= self.requested_quantity

    @property
    def line_total(self) -> Decimal:
        return round_money((self.unit_price or Decimal("0")) * self.requested_quantity)


def resolve(db: Session, medication_id: int, requested_quantity: int) -> Availability:
    """
    Quote a medication against its active batches.

    unit_price is the lowest selling price among the active batches (not a
    weighted average); dispensing may later draw from pricier batches.
    available_quantity is the sum over the same batches. Nothing is reserved.
    """
    med = get_active_medication(db, medication_id)
    batches = get_active_batches(db, med.id)

    prices = [Decimal(str(b.selling_price)) for b in batches]
    unit_price = round_money(min(prices)) if prices else None
    available = sum(int(b.available_quantity or 0) for b in batches)

    return Availability(
        medication=med,
        requested_quantity=int(requested_quantity),
        unit_price=unit_price,
        available_quantity=available,
    )


def require(db: Session, medication_id: int, requested_quantity: int) -> Availability:
    avail = resolve(db, medication_id, requested_quantity)
    if not avail.can_fulfill:
        raise InsufficientStockError(
            medication_id=avail.medication.id,
            medication_name=avail.medication.name,
            required=avail.requested_quantity,
            available=avail.available_quantity,
        )
    return avail
