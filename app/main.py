"""
DTE-CL Bridge — Main API Application
FastAPI backend that turns Shopify sales into Chilean DTEs via Lioren.

Complete flow:
  1. POST /api/emit-dte               → Boleta/Factura from the storefront form
  2. POST /api/validate               → Same payload, no emission (inspection)
  3. POST /api/webhooks/orders-paid   → Shopify paid order → Boleta/Factura (once per order)
  4. POST /api/webhooks/refunds       → Shopify refund → Nota de Crédito

Architecture:
  - Lioren issues the documents (folio, PDF, XML)
  - Shopify order metafields are the only persistence (folio per order)
  - Invoice data comes from the order's note_attributes
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings, get_lioren_url
from app.modules.lioren_client import LiorenError
from app.modules.shopify_store import StoreError
from app.routers import dte_router
from app.schemas.models import ErrorResponse, HealthResponse
from app.services.document_type import DocumentValidationError
from app.services.dte_service import DTEServiceError
from app.utils.dte_helpers import current_timestamp

# ─────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("dte-cl")


# ─────────────────────────────────────────────────────────────
# APP LIFECYCLE
# ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 {settings.app_name} v{settings.app_version} starting...")
    logger.info(f"   Lioren environment: {settings.lioren_environment.value}")
    logger.info(f"   Lioren boletas URL: {get_lioren_url('boletas')}")
    logger.info(f"   Shopify shop: {settings.shopify_shop}")
    if not settings.shopify_webhook_secret:
        logger.warning("   SHOPIFY_WEBHOOK_SECRET not set: webhook signatures are NOT verified")
    yield
    logger.info(f"{settings.app_name} shutdown complete.")


# ─────────────────────────────────────────────────────────────
# FASTAPI APP
# ─────────────────────────────────────────────────────────────

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

app = FastAPI(
    title="DTE-CL Bridge API",
    description=(
        "Emisión automática de boletas, facturas y notas de crédito electrónicas "
        "(SII Chile) para órdenes de Shopify, a través de la API de Lioren."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Rate limiter setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# ─────────────────────────────────────────────────────────────
# GLOBAL EXCEPTION HANDLERS
# ─────────────────────────────────────────────────────────────

def _error(status_code: int, error: str, details=None, message: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error, details=details, message=message, timestamp=current_timestamp(),
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(DocumentValidationError)
async def document_validation_handler(request: Request, exc: DocumentValidationError):
    logger.info(f"Validation failed on {request.url.path}: {exc.errors}")
    return _error(400, exc.message, details=exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return _error(400, "Datos inválidos", details=details)


@app.exception_handler(LiorenError)
async def lioren_error_handler(request: Request, exc: LiorenError):
    logger.error(f"Lioren error on {request.url.path}: {exc.message}")
    return _error(500, "Error interno del servidor", details=exc.to_details(), message=exc.message)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Shopify error on {request.url.path}: {exc.message}")
    return _error(
        500, "Error interno del servidor",
        details={"upstream_status": exc.status_code, "upstream_body": exc.response_body,
                 "retryable": exc.retryable},
        message=exc.message,
    )


@app.exception_handler(DTEServiceError)
async def dte_service_error_handler(request: Request, exc: DTEServiceError):
    logger.error(f"DTE service error on {request.url.path}: {exc.code} {exc.message}")
    return _error(500, "Error interno del servidor", details={"code": exc.code}, message=exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return _error(405, "Método no permitido. Use POST.")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return _error(500, "Error interno del servidor", message=str(exc))


# ═════════════════════════════════════════════════════════════
# ROUTES
# ═════════════════════════════════════════════════════════════

app.include_router(dte_router.router)


@app.get("/health", response_model=HealthResponse, tags=["Sistema"])
async def health_check():
    """Verificar estado del servicio."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "environment": settings.lioren_environment.value,
        "lioren_url": get_lioren_url("boletas"),
    }
