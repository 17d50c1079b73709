# app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All pharmacy tables (catalog, batches, prescriptions, invoices) inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from app.models import (  # noqa: F401,E402
    user,
    patient,
    billing,
    pharmacy_inventory,
    pharmacy_prescription,
)
