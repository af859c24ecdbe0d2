import enum

from sqlalchemy import Column, DateTime, Enum, String
from sqlalchemy.orm import validates

from ..database import Base, new_id, utcnow
from ..errors import ValidationError


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class User(Base):
    """SQLAlchemy model for application users."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(320), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String)
    last_name = Column(String)
    role = Column(Enum(Role, name="user_role"), default=Role.CUSTOMER, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @validates("email")
    def _validate_email(self, key, value):
        if not value or not value.strip():
            raise ValidationError("Email is required")
        return normalize_email(value)

    @validates("first_name", "last_name")
    def _strip_name(self, key, value):
        return value.strip() if value is not None else None

    @validates("role")
    def _validate_role(self, key, value):
        try:
            return Role(value)
        except ValueError:
            raise ValidationError(f"Invalid role: {value}") from None

    def __repr__(self) -> str:
        return f"<User {self.email} {self.role.value if self.role else None}>"
