# app/api/deps.py
from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.directory import Directory, SqlDirectory
from app.services.payment_gate import InvoicePaymentGate, PaymentGate


# =========================================================
# DB (per request)
# =========================================================
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# BOUNDARIES (overridable in tests / other deployments)
# =========================================================
def get_payment_gate() -> PaymentGate:
    return InvoicePaymentGate()


def get_directory() -> Directory:
    return SqlDirectory()
