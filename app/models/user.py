from sqlalchemy import Column, Integer, String, Boolean
from app.db.base import Base


class User(Base):
    """
    Staff directory row (read-only here). Owned by the staff/auth module;
    pharmacy only checks that a prescriber exists and is allowed to prescribe.
    """
    __tablename__ = "users"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(191), unique=True,
                   nullable=False)  # <= 191, no index=True

    is_active = Column(Boolean, default=True, nullable=False)
    is_doctor = Column(Boolean, default=False, nullable=False)
    is_pharmacist = Column(Boolean, default=False, nullable=False)

    @property
    def can_prescribe(self) -> bool:
        return bool(self.is_active and (self.is_doctor or self.is_pharmacist))
