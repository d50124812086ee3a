"""
emission_guard.py — At-most-once DTE emission per Shopify order.

Read-then-write against the order metafields. Best effort: two concurrent
deliveries of the same webhook can both pass find_existing(). A failed
lookup counts as "not emitted" (billing a paid order wins over a possible
duplicate) and a failed write never undoes an emission.
"""

import logging
from typing import Optional

from app.modules.shopify_store import NAMESPACE_DTE, NAMESPACE_REFUND, ShopifyStore, StoreError
from app.schemas.models import EmissionRecord, IssueResult

logger = logging.getLogger("dte-cl.emission_guard")

KEY_FOLIO = "folio"
KEY_PDF_URL = "pdf_url"
KEY_NC_FOLIO = "nota_credito_folio"
KEY_NC_PDF_URL = "nota_credito_pdf_url"


class EmissionGuard:
    def __init__(self, store: ShopifyStore):
        self.store = store

    async def find_existing(self, order_id) -> Optional[EmissionRecord]:
        """Stored boleta/factura for the order, or None (also when the lookup fails)."""
        try:
            fields = await self.store.get_metafields(order_id, NAMESPACE_DTE)
        except StoreError as e:
            logger.error(f"Could not verify emission for order {order_id}, proceeding: {e.message}")
            return None
        return self._record(order_id, fields.get(KEY_FOLIO), fields.get(KEY_PDF_URL))

    async def original_folio(self, order_id) -> Optional[str]:
        """Folio of the order's original document, for nota de crédito references."""
        record = await self.find_existing(order_id)
        return record.folio if record else None

    async def record(self, order_id, result: IssueResult) -> bool:
        return await self._write_result(order_id, NAMESPACE_DTE, KEY_FOLIO, KEY_PDF_URL, result)

    async def record_credit_note(self, order_id, result: IssueResult) -> bool:
        return await self._write_result(order_id, NAMESPACE_REFUND, KEY_NC_FOLIO, KEY_NC_PDF_URL, result)

    async def _write_result(self, order_id, namespace: str, folio_key: str, pdf_key: str,
                            result: IssueResult) -> bool:
        # An empty folio would read back as "not emitted"
        if not result.folio:
            logger.error(
                f"Lioren accepted a document for order {order_id} without folio, "
                f"nothing stored under {namespace}: {result.raw_response}"
            )
            return False
        return await self._write(order_id, namespace, {
            folio_key: result.folio,
            pdf_key: result.url_pdf,
        })

    async def _write(self, order_id, namespace: str, values: dict) -> bool:
        """Persist each metafield; failures are logged, never raised."""
        ok = True
        for key, value in values.items():
            try:
                await self.store.set_metafield(order_id, namespace, key, str(value or ""))
            except StoreError as e:
                ok = False
                logger.error(
                    f"Error saving metafield {namespace}.{key} for order {order_id}: "
                    f"{e.message} {e.response_body or ''}"
                )
        return ok

    @staticmethod
    def _record(order_id, folio: Optional[str], pdf_url: Optional[str]) -> Optional[EmissionRecord]:
        if not folio:
            return None
        return EmissionRecord(
            order_id=str(order_id), folio=folio, pdf_url=pdf_url or None,
        )
