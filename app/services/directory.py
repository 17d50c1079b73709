# FILE: app/services/directory.py
from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from app.models.patient import Patient
from app.models.user import User


class Directory(Protocol):
    """Patient / staff lookups owned by other modules."""

    def patient_exists(self, db: Session, patient_id: int) -> bool:
        ...

    def prescriber_exists(self, db: Session, prescriber_id: int) -> bool:
        ...


class SqlDirectory:
    """Reads the shared patients / users tables."""

    def patient_exists(self, db: Session, patient_id: int) -> bool:
        patient = db.get(Patient, patient_id)
        return bool(patient and patient.is_active)

    def prescriber_exists(self, db: Session, prescriber_id: int) -> bool:
        user = db.get(User, prescriber_id)
        return bool(user and user.can_prescribe)
