"""Product catalog queries and admin CRUD operations."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List

from prometheus_client import Counter
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import InternalError, NotFound, ServiceError, ValidationError
from ..models.product import Product

logger = logging.getLogger(__name__)

PRODUCT_CHANGE_COUNTER = Counter(
    "product_changes_total", "Total product mutations", ["action"]
)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "price",
    "category",
    "image",
    "in_stock",
    "quantity",
)


@dataclass
class ProductPage:
    items: List[Product]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _handle_service_error(session: Session, exc: Exception) -> None:
    """Rollback the transaction and re-raise as a domain error."""
    session.rollback()
    if isinstance(exc, ServiceError):
        raise exc
    logger.exception("product service error", exc_info=exc)
    if isinstance(exc, SQLAlchemyError):
        raise InternalError() from exc
    raise ValidationError(str(exc)) from exc


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_product_filter(category: str | None = None, search: str | None = None) -> list:
    """Build the predicates narrowing a product listing.

    ``category`` must match exactly; ``search`` is a case-insensitive substring
    match against name or description. The returned predicates are ANDed.
    """
    predicates = []
    if category and category.strip():
        predicates.append(Product.category == category.strip())
    if search and search.strip():
        pattern = f"%{_escape_like(search.strip())}%"
        predicates.append(
            or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.description.ilike(pattern, escape="\\"),
            )
        )
    return predicates


def list_products(
    session: Session,
    page: int = 1,
    limit: int | None = None,
    category: str | None = None,
    search: str | None = None,
) -> ProductPage:
    """Return one page of products, newest first."""
    limit = settings.default_page_size if limit is None else limit
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive integers")

    try:
        query = session.query(Product).filter(*build_product_filter(category, search))
        total = query.count()
        items = (
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
    except Exception as exc:
        _handle_service_error(session, exc)

    return ProductPage(items=items, total=total, page=page, limit=limit)


def get_product(session: Session, product_id: str) -> Product:
    try:
        product = session.get(Product, product_id)
    except Exception as exc:
        _handle_service_error(session, exc)
    if product is None:
        raise NotFound("Product not found")
    return product


def create_product(session: Session, data: Dict[str, Any]) -> Product:
    logger.info("create product name=%s", data.get("name"))
    try:
        product = Product(**data)
        session.add(product)
        session.commit()
        session.refresh(product)
    except Exception as exc:
        _handle_service_error(session, exc)

    PRODUCT_CHANGE_COUNTER.labels(action="create").inc()
    return product


def update_product(session: Session, product_id: str, changes: Dict[str, Any]) -> Product:
    """Apply the given fields to a product, leaving every other field untouched."""
    product = get_product(session, product_id)
    changes = {
        key: value
        for key, value in changes.items()
        if key in UPDATABLE_FIELDS and value is not None
    }
    if not changes:
        return product

    logger.info("update product id=%s fields=%s", product_id, sorted(changes))
    try:
        for key, value in changes.items():
            setattr(product, key, value)
        session.commit()
        session.refresh(product)
    except Exception as exc:
        _handle_service_error(session, exc)

    PRODUCT_CHANGE_COUNTER.labels(action="update").inc()
    return product


def delete_product(session: Session, product_id: str) -> None:
    product = get_product(session, product_id)
    logger.info("delete product id=%s", product_id)
    try:
        session.delete(product)
        session.commit()
    except Exception as exc:
        _handle_service_error(session, exc)

    PRODUCT_CHANGE_COUNTER.labels(action="delete").inc()
