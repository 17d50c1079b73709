# app/core/config.py
import os
from typing import List
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Pharmacy Fulfillment API")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- MySQL ----------
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    MYSQL_USER: str = os.getenv("MYSQL_USER", "pharmacy_user")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "pharmacy")
    DB_DRIVER: str = os.getenv("DB_DRIVER", "pymysql")
    DB_ECHO: bool = _flag("DB_ECHO")

    # DATABASE_URL wins over the MYSQL_* pieces (tests, sqlite, postgres...)
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL") or (
        f"mysql+{DB_DRIVER}://{quote_plus(MYSQL_USER)}:{quote_plus(MYSQL_PASSWORD)}"
        f"@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}?charset=utf8mb4")

    # ---------- Logging ----------
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # ---------- Dispensing ----------
    # optimistic retries per batch decrement before CONCURRENCY_CONFLICT
    DISPENSE_MAX_RETRIES: int = int(os.getenv("DISPENSE_MAX_RETRIES", "3"))
    DISPENSE_SKIP_EXPIRED: bool = _flag("DISPENSE_SKIP_EXPIRED")

    # ---------- Stock alerts ----------
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
    CRITICAL_STOCK_THRESHOLD: int = int(os.getenv("CRITICAL_STOCK_THRESHOLD", "5"))
    EXPIRY_ALERT_DAYS: int = int(os.getenv("EXPIRY_ALERT_DAYS", "30"))

    # ---------- Billing ----------
    INVOICE_DUE_DAYS: int = int(os.getenv("INVOICE_DUE_DAYS", "7"))


settings = Settings()
