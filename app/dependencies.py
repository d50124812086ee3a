"""
DTE-CL Bridge: Dependencias FastAPI
===================================
Inyección de dependencias: settings, clientes externos y servicio DTE.
"""
import base64
import hashlib
import hmac
import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from app.core.config import Settings, settings
from app.lioren.dte_builder import DTEBuilder
from app.modules.lioren_client import LiorenClient
from app.modules.shopify_store import ShopifyStore
from app.services.commune_resolver import PlaceholderCommuneResolver
from app.services.dte_service import DTEService

logger = logging.getLogger("dte-cl.dependencies")


# ── Singletons ──

@lru_cache()
def get_settings() -> Settings:
    return settings


@lru_cache()
def get_lioren_client() -> LiorenClient:
    """Lioren client singleton."""
    return LiorenClient(get_settings())


@lru_cache()
def get_shopify_store() -> ShopifyStore:
    """Shopify Admin API store singleton."""
    return ShopifyStore(get_settings())


def get_dte_service(
    lioren: LiorenClient = Depends(get_lioren_client),
    store: ShopifyStore = Depends(get_shopify_store),
) -> DTEService:
    """DTE service con Lioren y Shopify inyectados."""
    return DTEService(lioren=lioren, store=store,
                      builder=DTEBuilder(PlaceholderCommuneResolver()))


# ── Webhook verification ──

def shopify_hmac(body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of the raw body, as sent in X-Shopify-Hmac-Sha256."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


async def verify_shopify_webhook(
    request: Request,
    cfg: Settings = Depends(get_settings),
) -> None:
    """
    Rejects webhooks whose HMAC header does not match.
    Disabled when SHOPIFY_WEBHOOK_SECRET is not configured.
    """
    if not cfg.shopify_webhook_secret:
        return
    received = request.headers.get("X-Shopify-Hmac-Sha256", "")
    expected = shopify_hmac(await request.body(), cfg.shopify_webhook_secret)
    if not hmac.compare_digest(received, expected):
        logger.warning(f"Invalid Shopify webhook signature on {request.url.path}")
        raise HTTPException(401, "Firma de webhook inválida")
