"""Request bodies and the response envelope served by the API."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, confloat, conint
from pydantic.alias_generators import to_camel

from .models.user import Role


class CamelModel(BaseModel):
    """Base model exposing camelCase JSON keys while accepting either form."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class RegisterRequest(CamelModel):
    """Request body for registering a new user.

    Has no ``role`` field; new accounts are always customers.
    """

    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(CamelModel):
    email: str
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


class UserOut(CamelModel):
    """Sanitized user record; the password hash is never part of it."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role
    created_at: datetime
    updated_at: datetime


class AuthData(CamelModel):
    user: UserOut
    token: str
    refresh_token: str


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: confloat(ge=0, allow_inf_nan=False)
    category: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1)
    in_stock: bool = True
    quantity: conint(ge=0)


class ProductUpdate(CamelModel):
    """Partial update; omitted fields keep their stored value."""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[confloat(ge=0, allow_inf_nan=False)] = None
    category: Optional[str] = Field(None, min_length=1)
    image: Optional[str] = Field(None, min_length=1)
    in_stock: Optional[bool] = None
    quantity: Optional[conint(ge=0)] = None


class ProductOut(CamelModel):
    id: str
    name: str
    description: str
    price: float
    category: str
    image: str
    in_stock: bool
    quantity: int
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Envelope(BaseModel):
    """Fixed response shape shared by every endpoint."""

    success: bool = True
    message: str = ""
    data: Any = None


class AuthEnvelope(Envelope):
    data: AuthData


class UserEnvelope(Envelope):
    data: UserOut


class ProductEnvelope(Envelope):
    data: ProductOut


class ProductListEnvelope(Envelope):
    data: List[ProductOut]
    pagination: Pagination
