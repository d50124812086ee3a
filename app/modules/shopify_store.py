"""
DTE-CL Bridge — Module: ShopifyStore
Order-tracking store backed by the Shopify Admin REST API.

Emission records live as order metafields:
- namespace "lioren_dte":    folio, pdf_url                       (boleta/factura)
- namespace "lioren_refund": nota_credito_folio, nota_credito_pdf_url

Endpoints:
- GET  /orders/{id}/metafields.json?namespace=...
- POST /orders/{id}/metafields.json
- GET  /orders/{id}.json
"""

import httpx
import logging
from typing import Optional

from app.core.config import Settings

logger = logging.getLogger(__name__)

NAMESPACE_DTE = "lioren_dte"
NAMESPACE_REFUND = "lioren_refund"


class StoreError(Exception):
    """Raised when the Shopify Admin API fails or is unreachable."""
    def __init__(self, message: str, status_code: int = 500,
                 response_body=None, retryable: bool = False):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable
        super().__init__(self.message)


class ShopifyStore:
    """
    Usage:
        store = ShopifyStore(settings)
        fields = await store.get_metafields(order_id, "lioren_dte")
        order = await store.get_order(order_id)
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.base_url = settings.shopify_admin_url
        self.timeout = settings.http_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "X-Shopify-Access-Token": self.settings.shopify_access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException:
            raise StoreError(f"Timeout en Shopify ({method} {path})", status_code=504, retryable=True)
        except httpx.TransportError as e:
            raise StoreError(f"No se pudo conectar con Shopify: {e}", status_code=502, retryable=True)

        if not response.is_success:
            raise StoreError(
                f"Shopify HTTP {response.status_code} en {method} {path}",
                status_code=response.status_code,
                response_body=response.text[:1000],
                retryable=response.status_code >= 500,
            )
        try:
            return response.json()
        except ValueError:
            raise StoreError(
                f"Shopify retornó una respuesta no-JSON en {method} {path}",
                status_code=response.status_code,
                response_body=response.text[:300],
            )

    async def get_metafields(self, order_id, namespace: str) -> dict[str, str]:
        """Metafields of an order in one namespace, as {key: value}."""
        data = await self._request(
            "GET", f"/orders/{order_id}/metafields.json", params={"namespace": namespace},
        )
        return {
            m["key"]: m.get("value")
            for m in data.get("metafields") or []
            if m.get("namespace", namespace) == namespace and "key" in m
        }

    async def set_metafield(self, order_id, namespace: str, key: str, value: str) -> None:
        await self._request("POST", f"/orders/{order_id}/metafields.json", json={
            "metafield": {
                "namespace": namespace,
                "key": key,
                "value": value,
                "type": "single_line_text_field",
            }
        })
        logger.info(f"Metafield {namespace}.{key} saved for order {order_id}")

    async def get_order(self, order_id) -> Optional[dict]:
        data = await self._request("GET", f"/orders/{order_id}.json")
        return data.get("order")
