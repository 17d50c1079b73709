# FILE: app/api/response.py
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.exceptions import PharmacyError


def error_body(msg: str, code: Optional[str] = None, details: Any = None) -> Dict[str, Any]:
    return {"ok": False, "error": {"msg": msg, "code": code, "details": details}}


def err(
    msg: str = "Something went wrong",
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """
    Every failure leaves the API as:
    {"ok": false, "error": {"msg": "...", "code": "...", "details": ...}}
    """
    # Decimal / date values in details need jsonable_encoder
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(msg, code, details)),
        headers=dict(headers) if headers else None,
    )


def err_from(exc: PharmacyError) -> JSONResponse:
    return err(exc.message, status_code=exc.status_code, code=exc.code,
               details=exc.details, headers=exc.headers)
