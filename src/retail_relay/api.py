"""FastAPI application exposing auth and product catalog endpoints."""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import Counter, make_asgi_app
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import AuthContext, authenticate, authorize
from .config import settings
from .database import db, get_session
from .errors import ServiceError
from .models.user import Role
from .schemas import (
    AuthData,
    AuthEnvelope,
    Envelope,
    LoginRequest,
    Pagination,
    ProductCreate,
    ProductEnvelope,
    ProductListEnvelope,
    ProductOut,
    ProductUpdate,
    RefreshRequest,
    RegisterRequest,
    UserEnvelope,
    UserOut,
)
from .services import auth as auth_service
from .services import products as product_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.connect()
    yield
    db.dispose()


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
app = FastAPI(title=settings.api_title, lifespan=lifespan)
app.state.limiter = limiter
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.mount("/metrics", make_asgi_app())

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)

require_admin = authorize(Role.ADMIN)


def _endpoint_label(request: Request) -> str:
    """Route template such as ``/api/v1/products/{product_id}``, never the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=_endpoint_label(request),
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=_endpoint_label(request),
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "message": message}
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    response = _error_response(429, f"Rate limit exceeded: {exc.detail}")
    current_limit = getattr(request.state, "view_rate_limit", None)
    if current_limit is not None:
        response = request.app.state.limiter._inject_headers(response, current_limit)
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return _error_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _error_response(exc.status_code, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error")


@app.get("/health")
def health():
    """Report liveness and the state of the database handle."""
    return {"status": "OK", "database": db.state.value}


auth_router = APIRouter(prefix="/auth", tags=["auth"])
product_router = APIRouter(prefix="/products", tags=["products"])


def _auth_envelope(result: auth_service.AuthResult, message: str) -> AuthEnvelope:
    return AuthEnvelope(
        message=message,
        data=AuthData(
            user=UserOut.model_validate(result.user),
            token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        ),
    )


@auth_router.post("/register", response_model=AuthEnvelope, status_code=201)
@limiter.limit(settings.auth_rate_limit)
def register(
    request: Request, payload: RegisterRequest, session: Session = Depends(get_session)
):
    result = auth_service.register(
        session,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return _auth_envelope(result, "User registered successfully")


@auth_router.post("/login", response_model=AuthEnvelope)
@limiter.limit(settings.auth_rate_limit)
def login(request: Request, payload: LoginRequest, session: Session = Depends(get_session)):
    result = auth_service.login(session, payload.email, payload.password)
    return _auth_envelope(result, "Login successful")


@auth_router.post("/refresh", response_model=AuthEnvelope)
def refresh(payload: RefreshRequest, session: Session = Depends(get_session)):
    result = auth_service.refresh(session, payload.refresh_token)
    return _auth_envelope(result, "Token refreshed")


@auth_router.get("/profile", response_model=UserEnvelope)
def profile(
    context: AuthContext = Depends(authenticate),
    session: Session = Depends(get_session),
):
    user = auth_service.get_profile(session, context.user_id)
    return UserEnvelope(message="Profile retrieved", data=UserOut.model_validate(user))


@product_router.get("", response_model=ProductListEnvelope)
def list_products(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1, le=settings.max_page_size),
    category: str | None = None,
    search: str | None = None,
    session: Session = Depends(get_session),
):
    """Return a page of products filtered by category and free-text search."""
    result = product_service.list_products(
        session, page=page, limit=limit, category=category, search=search
    )
    return ProductListEnvelope(
        message="Products retrieved",
        data=[ProductOut.model_validate(p) for p in result.items],
        pagination=Pagination(
            page=result.page, limit=result.limit, total=result.total, pages=result.pages
        ),
    )


@product_router.get("/{product_id}", response_model=ProductEnvelope)
def get_product(product_id: str, session: Session = Depends(get_session)):
    product = product_service.get_product(session, product_id)
    return ProductEnvelope(message="Product retrieved", data=ProductOut.model_validate(product))


@product_router.post(
    "",
    response_model=ProductEnvelope,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_product(payload: ProductCreate, session: Session = Depends(get_session)):
    product = product_service.create_product(session, payload.model_dump())
    return ProductEnvelope(
        message="Product created successfully", data=ProductOut.model_validate(product)
    )


@product_router.put(
    "/{product_id}",
    response_model=ProductEnvelope,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: str, payload: ProductUpdate, session: Session = Depends(get_session)
):
    product = product_service.update_product(
        session, product_id, payload.model_dump(exclude_unset=True, exclude_none=True)
    )
    return ProductEnvelope(
        message="Product updated successfully", data=ProductOut.model_validate(product)
    )


@product_router.delete(
    "/{product_id}",
    response_model=Envelope,
    dependencies=[Depends(require_admin)],
)
def delete_product(product_id: str, session: Session = Depends(get_session)):
    product_service.delete_product(session, product_id)
    return Envelope(message="Product deleted successfully")


app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(product_router, prefix=settings.api_prefix)
