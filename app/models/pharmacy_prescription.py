# FILE: app/models/pharmacy_prescription.py
from __future__ import annotations

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Date,
    Boolean,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class PrescriptionStatus(str, enum.Enum):
    PENDING = "PENDING"
    DISPENSED = "DISPENSED"
    CANCELLED = "CANCELLED"


class Prescription(Base):
    """
    Prescription header.

    status:
      - PENDING    -> lines can be added / removed, can be invoiced and dispensed
      - DISPENSED  -> terminal, stock has been handed out
      - CANCELLED  -> terminal

    `version` is the SQLAlchemy version counter: two sessions racing on the
    same header (dispense vs cancel, two dispenses) cannot both commit.
    """

    __tablename__ = "pharmacy_prescriptions"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    prescriber_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    prescription_date = Column(DateTime,
                               nullable=False,
                               server_default=func.now(),
                               index=True)
    status = Column(String(16),
                    nullable=False,
                    default=PrescriptionStatus.PENDING.value,
                    index=True)

    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    dispensed_at = Column(DateTime, nullable=True)
    dispensed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    cancelled_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}

    # --- Relationships ---
    lines = relationship(
        "PrescriptionLine",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="PrescriptionLine.id",
    )

    patient = relationship("Patient")
    prescriber = relationship("User", foreign_keys=[prescriber_id])
    dispensed_by = relationship("User", foreign_keys=[dispensed_by_id])

    @property
    def is_pending(self) -> bool:
        return self.status == PrescriptionStatus.PENDING.value


class PrescriptionLine(Base):
    """
    One medication on a prescription.

    unit_price / total_price are snapshotted when the line is created and are
    never re-derived from the batches afterwards.
    """

    __tablename__ = "pharmacy_prescription_lines"
    __table_args__ = (
        UniqueConstraint("prescription_id", "medication_id", name="uq_rx_line_medication"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(
        Integer,
        ForeignKey("pharmacy_prescriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medication_id = Column(Integer, ForeignKey("pharmacy_medications.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)

    # Dosing
    dosage = Column(String(64), nullable=True)  # "500 mg", "5 ml"
    frequency = Column(String(64), nullable=True)  # BD, TDS, 1-0-1
    duration = Column(String(64), nullable=True)  # "5 days"
    instructions = Column(Text, nullable=True)

    # set once stock for the whole line has been handed out
    is_paid = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    prescription = relationship("Prescription", back_populates="lines")
    medication = relationship("Medication")
    dispense_records = relationship(
        "DispenseRecord",
        back_populates="line",
        order_by="DispenseRecord.id",
    )


class DispenseRecord(Base):
    """
    Ledger row: `quantity` units of one batch handed out for one line.
    Insert-only. Batch number and expiry are copied at the time of the draw.
    """

    __tablename__ = "pharmacy_dispense_records"

    id = Column(Integer, primary_key=True, index=True)
    line_id = Column(
        Integer,
        ForeignKey("pharmacy_prescription_lines.id"),
        nullable=False,
        index=True,
    )
    batch_id = Column(
        Integer,
        ForeignKey("pharmacy_inventory_batches.id"),
        nullable=False,
        index=True,
    )

    quantity = Column(Integer, nullable=False)
    batch_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=False)

    dispensed_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    dispensed_at = Column(DateTime, nullable=False, server_default=func.now())
    notes = Column(Text, nullable=True)

    line = relationship("PrescriptionLine", back_populates="dispense_records")
    batch = relationship("InventoryBatch", back_populates="dispense_records")
