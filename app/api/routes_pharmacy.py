# FILE: app/api/routes_pharmacy.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_directory, get_payment_gate
from app.schemas.pharmacy_prescription import (
    DispenseIn,
    DispenseOut,
    InvoiceOut,
    PaymentStatusOut,
    PrescriptionAvailabilityOut,
    PrescriptionCancelIn,
    PrescriptionCreate,
    PrescriptionOut,
    PrescriptionSummaryOut,
    PrescriptionUpdate,
    RxLineCreate,
    RxLineOut,
    RxLineUpdate,
)
from app.services import dispensing as dispensing_service
from app.services import pharmacy as pharmacy_service
from app.services.directory import Directory
from app.services.payment_gate import PaymentGate

router = APIRouter(prefix="/pharmacy", tags=["pharmacy"])

# ------------------------------------------------------------------
# Prescriptions
# ------------------------------------------------------------------


@router.post("/prescriptions",
             response_model=PrescriptionOut,
             status_code=status.HTTP_201_CREATED)
def create_prescription(
        payload: PrescriptionCreate,
        db: Session = Depends(get_db),
        directory: Directory = Depends(get_directory),
):
    return pharmacy_service.create_prescription(db, payload, directory)


@router.get("/prescriptions", response_model=List[PrescriptionSummaryOut])
def list_prescriptions(
        patient_id: Optional[int] = None,
        prescriber_id: Optional[int] = None,
        status: Optional[str] = Query(None,
                                      description="PENDING|DISPENSED|CANCELLED"),
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = Query(100, ge=1, le=500),
        offset: int = Query(0, ge=0),
        db: Session = Depends(get_db),
):
    return pharmacy_service.list_prescriptions(
        db,
        patient_id=patient_id,
        prescriber_id=prescriber_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.get("/prescriptions/ready-to-dispense",
            response_model=List[PrescriptionSummaryOut])
def ready_to_dispense(
        db: Session = Depends(get_db),
        gate: PaymentGate = Depends(get_payment_gate),
):
    return pharmacy_service.list_ready_to_dispense(db, gate)


@router.get("/prescriptions/{rx_id}", response_model=PrescriptionOut)
def get_prescription(rx_id: int, db: Session = Depends(get_db)):
    return pharmacy_service.get_prescription(db, rx_id)


@router.patch("/prescriptions/{rx_id}", response_model=PrescriptionOut)
def update_prescription(
        rx_id: int,
        payload: PrescriptionUpdate,
        db: Session = Depends(get_db),
):
    pharmacy_service.update_prescription(db, rx_id, payload)
    return pharmacy_service.get_prescription(db, rx_id)


@router.post("/prescriptions/{rx_id}/cancel", response_model=PrescriptionOut)
def cancel_prescription(
        rx_id: int,
        payload: Optional[PrescriptionCancelIn] = None,
        db: Session = Depends(get_db),
):
    pharmacy_service.cancel_prescription(db, rx_id,
                                         payload.reason if payload else None)
    return pharmacy_service.get_prescription(db, rx_id)


# ------------------------------------------------------------------
# Lines
# ------------------------------------------------------------------


@router.post("/prescriptions/{rx_id}/lines",
             response_model=RxLineOut,
             status_code=status.HTTP_201_CREATED)
def add_rx_line(
        rx_id: int,
        payload: RxLineCreate,
        db: Session = Depends(get_db),
):
    return pharmacy_service.add_line(db, rx_id, payload)


@router.patch("/prescriptions/{rx_id}/lines/{line_id}", response_model=RxLineOut)
def update_rx_line(
        rx_id: int,
        line_id: int,
        payload: RxLineUpdate,
        db: Session = Depends(get_db),
):
    return pharmacy_service.update_line(db, rx_id, line_id, payload)


@router.delete("/prescriptions/{rx_id}/lines/{line_id}")
def delete_rx_line(rx_id: int, line_id: int, db: Session = Depends(get_db)):
    return pharmacy_service.remove_line(db, rx_id, line_id)


# ------------------------------------------------------------------
# Availability / billing
# ------------------------------------------------------------------


@router.get("/prescriptions/{rx_id}/availability",
            response_model=PrescriptionAvailabilityOut)
def prescription_availability(rx_id: int, db: Session = Depends(get_db)):
    return pharmacy_service.check_availability(db, rx_id)


@router.post("/prescriptions/{rx_id}/invoice",
             response_model=InvoiceOut,
             status_code=status.HTTP_201_CREATED)
def create_invoice(rx_id: int, db: Session = Depends(get_db)):
    return pharmacy_service.create_invoice(db, rx_id)


@router.get("/prescriptions/{rx_id}/payment-status",
            response_model=PaymentStatusOut)
def payment_status(rx_id: int, db: Session = Depends(get_db)):
    return pharmacy_service.get_payment_status(db, rx_id)


# ------------------------------------------------------------------
# Dispense
# ------------------------------------------------------------------


@router.post("/prescriptions/{rx_id}/dispense", response_model=DispenseOut)
def dispense_prescription(
        rx_id: int,
        payload: DispenseIn,
        db: Session = Depends(get_db),
        gate: PaymentGate = Depends(get_payment_gate),
):
    result = dispensing_service.dispense(db, rx_id, payload.dispensed_by, gate,
                                         notes=payload.notes)
    return {
        "prescription": pharmacy_service.get_prescription(db, rx_id),
        "dispense_records": result.dispense_records,
        "message": result.message,
    }
