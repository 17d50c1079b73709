# FILE: app/models/pharmacy_inventory.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from app.db.base import Base

Money = Numeric(14, 2)


# -------------------------
# Catalog
# -------------------------
class Medication(Base):
    """
    Catalog entry. Created by catalog management; once batches or
    prescriptions point at it only `is_active` is expected to change.
    """
    __tablename__ = "pharmacy_medications"

    id = Column(Integer, primary_key=True, index=True)
    drug_code = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    generic_name = Column(String(255), default="")

    form = Column(String(100), default="")
    strength = Column(String(100), default="")
    manufacturer = Column(String(255), default="")
    category = Column(String(120), default="", index=True)

    controlled_drug = Column(Boolean, default=False, nullable=False)
    requires_prescription = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    batches = relationship(
        "InventoryBatch",
        back_populates="medication",
        order_by=lambda: [InventoryBatch.expiry_date, InventoryBatch.id],
    )


# -------------------------
# Stock
# -------------------------
class InventoryBatch(Base):
    """
    A received lot of one medication.

    `quantity` is what was received and never changes.
    `available_quantity` only goes down through dispensing (see
    services.inventory.decrement_batch) and is guarded by `version`.
    """
    __tablename__ = "pharmacy_inventory_batches"
    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="ck_batch_available_non_negative"),
        CheckConstraint("available_quantity <= quantity", name="ck_batch_available_le_received"),
        Index("ix_batch_med_expiry", "medication_id", "expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medication_id = Column(Integer, ForeignKey("pharmacy_medications.id"), nullable=False, index=True)

    batch_number = Column(String(100), unique=True, nullable=False, index=True)
    expiry_date = Column(Date, nullable=False)

    quantity = Column(Integer, nullable=False)
    available_quantity = Column(Integer, nullable=False)

    unit_cost = Column(Money, nullable=False, default=0)
    selling_price = Column(Money, nullable=False, default=0)

    supplier = Column(String(255), default="")
    purchase_date = Column(Date, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # bumped on every stock decrement (compare-and-swap token)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    medication = relationship("Medication", back_populates="batches")
    dispense_records = relationship("DispenseRecord", back_populates="batch")
