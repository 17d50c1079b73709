# app/api/router.py
from fastapi import APIRouter
from app.api import (
    # Pharmacy
    routes_pharmacy_inventory,
    routes_pharmacy,
)

api_router = APIRouter()

# ---- Pharmacy (both routers carry their own /pharmacy prefix)
api_router.include_router(routes_pharmacy_inventory.router)
api_router.include_router(routes_pharmacy.router)
