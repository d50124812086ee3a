"""
DTE-CL Bridge: Servicio de Emisión DTE
=======================================
Orquesta: idempotencia → tipo de documento → detalles → payload → Lioren → metafields.

Entry points:
  - emit_direct()        storefront form, strict validation, live emission
  - validate_direct()    same payload as emit_direct(), never calls Lioren
  - process_paid_order() Shopify orders/paid webhook
  - process_refund()     Shopify refunds/create webhook → nota de crédito
"""
import logging
from typing import Any

from pydantic import ValidationError

from app.lioren.dte_builder import (
    DTEBuilder, order_observaciones, refund_observaciones,
)
from app.lioren.line_items import map_sale_lines
from app.modules.lioren_client import LiorenClient
from app.modules.shopify_store import ShopifyStore
from app.schemas.models import (
    DocumentReference, DocumentRequest, EmitRequest, IssueResult, RefundLine, SaleLine,
    TipoDocumento,
)
from app.services.document_type import (
    ATTR_COMPANY, ATTR_GIRO, ATTR_RUT, ERR_ITEMS, DocumentValidationError,
    attribute_value, preferences_from_order, resolve_for_order, resolve_for_submission,
)
from app.services.emission_guard import EmissionGuard
from app.services.refund_reconciler import parse_original_lines, reconcile_refund
from app.utils.dte_helpers import current_date, current_timestamp, date_part
from app.utils.pricing import PriceStrategy, compute_totals

logger = logging.getLogger("dte-cl.dte_service")


class DTEServiceError(Exception):
    def __init__(self, message: str, code: str = "DTE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


def parse_sale_lines(items: list[dict]) -> list[SaleLine]:
    """Shopify line_items → SaleLine; malformed lines are a validation error."""
    lines = []
    errors = []
    for i, item in enumerate(items, 1):
        try:
            lines.append(SaleLine.model_validate(item))
        except ValidationError as e:
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"])
                errors.append(f"Item {i}: {field} {err['msg']}")
    if errors:
        raise DocumentValidationError(errors)
    if not lines:
        raise DocumentValidationError([ERR_ITEMS])
    return lines


def order_receptor(order: dict, rut=None, company=None, giro=None) -> dict:
    shipping = order.get("shipping_address") or {}
    customer = order.get("customer") or {}
    return {
        "rut": rut,
        "company": company,
        "giro": giro,
        "address": shipping.get("address1"),
        "city": shipping.get("city"),
        "email": customer.get("email"),
        "phone": shipping.get("phone"),
    }


class DTEService:
    """Servicio principal de emisión DTE (Shopify → Lioren)."""

    def __init__(self, lioren: LiorenClient, store: ShopifyStore,
                 builder: DTEBuilder | None = None):
        self.lioren = lioren
        self.store = store
        self.guard = EmissionGuard(store)
        self.builder = builder or DTEBuilder()

    # ══════════════════════════════════════════════════════════
    # DIRECT EMISSION (storefront form)
    # ══════════════════════════════════════════════════════════

    def prepare_direct(self, request: EmitRequest) -> tuple[TipoDocumento, DocumentRequest]:
        """Validate + build. Shared by emit_direct and validate_direct."""
        tipo = resolve_for_submission(request)
        detalles = map_sale_lines(request.items, PriceStrategy.ALREADY_NET)
        shipping = request.shipping
        receptor = {
            "rut": request.rut,
            "company": request.company,
            "giro": request.giro,
            "address": shipping.address1 if shipping else None,
            "city": shipping.city if shipping else None,
            "email": request.email,
            "phone": request.phone,
        }
        document = self.builder.build(
            tipo, detalles, receptor,
            observaciones=order_observaciones(request.order_number),
        )
        return tipo, document

    async def emit_direct(self, request: EmitRequest) -> dict:
        tipo, document = self.prepare_direct(request)
        logger.info(f"Emitting {tipo.label.upper()} (direct request, order={request.order_number})")
        result = await self.lioren.submit(tipo, document)
        return self._success(tipo, result, document)

    def validate_direct(self, request: EmitRequest) -> dict:
        tipo, document = self.prepare_direct(request)
        totales = compute_totals(line.gross_line_total for line in request.items)
        logger.info(f"Validation only: {tipo.label} with {len(document.detalles)} detalles")
        return {
            "success": True,
            "message": f"Validación exitosa - {tipo.label} lista para emitir",
            "validation": {
                "endpoint": self.lioren.url_for(tipo),
                "payload_generado": document.to_payload(),
                "datos_validados": request.model_dump(mode="json", by_alias=True, exclude_none=True),
                "totales": totales,
                "nota": "ESTA ES SOLO UNA VALIDACIÓN - NO SE EMITIÓ DOCUMENTO REAL",
            },
            "ready_for_production": True,
            "timestamp": current_timestamp(),
        }

    # ══════════════════════════════════════════════════════════
    # SHOPIFY ORDERS/PAID
    # ══════════════════════════════════════════════════════════

    async def process_paid_order(self, order: dict) -> dict:
        order_id = order.get("id")
        order_number = order.get("order_number")
        if order_id is None:
            raise DocumentValidationError(["Order id requerido"])
        logger.info(f"Paid order received: id={order_id}, number={order_number}")

        existing = await self.guard.find_existing(order_id)
        if existing:
            logger.info(f"DTE already emitted for order {order_id} (folio {existing.folio}), skipping")
            return {
                "success": True,
                "message": "DTE ya emitido para esta orden",
                "orderId": str(order_id),
                "orderNumber": _str_or_none(order_number),
            }

        prefs = preferences_from_order(order)
        tipo = resolve_for_order(prefs)
        lines = parse_sale_lines(order.get("line_items") or [])
        detalles = map_sale_lines(lines, PriceStrategy.TAX_INCLUSIVE)
        totales = compute_totals(line.gross_line_total for line in lines)
        logger.info(f"Order {order_number}: {len(detalles)} detalles, totales={totales}")

        document = self.builder.build(
            tipo, detalles,
            order_receptor(order, prefs.rut, prefs.company, prefs.giro),
            observaciones=order_observaciones(order_number),
        )
        logger.info(f"Emitting {tipo.label.upper()} for order {order_number}")
        result = await self.lioren.submit(tipo, document)

        await self.guard.record(order_id, result)

        response = self._success(tipo, result, document)
        response["data"]["orderId"] = str(order_id)
        response["data"]["orderNumber"] = _str_or_none(order_number)
        return response

    # ══════════════════════════════════════════════════════════
    # SHOPIFY REFUNDS → NOTA DE CRÉDITO
    # ══════════════════════════════════════════════════════════

    async def process_refund(self, refund: dict) -> dict:
        refund_id = refund.get("id")
        order_id = refund.get("order_id")
        if order_id is None:
            raise DocumentValidationError(["order_id requerido"])
        logger.info(f"Refund received: id={refund_id}, order={order_id}")

        folio_original = await self.guard.original_folio(order_id)
        if not folio_original:
            logger.warning(f"No original folio for order {order_id}, skipping nota de crédito")
            return self._skip("No se encontró DTE original, saltando Nota de Crédito", refund_id, order_id)

        order = await self.store.get_order(order_id)
        if not order:
            raise DTEServiceError("No se pudo obtener la orden original", code="ORDER_NOT_FOUND")

        original_lines = parse_original_lines(order.get("line_items") or [])
        refund_lines = [RefundLine.model_validate(item) for item in refund.get("refund_line_items") or []]
        detalles = reconcile_refund(refund_lines, original_lines)
        if not detalles:
            logger.warning(f"Refund {refund_id}: no items to credit")
            return self._skip("No hay items para devolver", refund_id, order_id)

        attrs = order.get("note_attributes") or []
        referencia = DocumentReference(
            tipodoc=resolve_for_order(preferences_from_order(order)).value,
            folio=folio_original,
            fecha=date_part(order.get("created_at")) or current_date(),
        )
        receptor = order_receptor(
            order,
            attribute_value(attrs, ATTR_RUT),
            attribute_value(attrs, ATTR_COMPANY),
            attribute_value(attrs, ATTR_GIRO),
        )
        document = self.builder.build(
            TipoDocumento.NOTA_CREDITO, detalles, receptor,
            observaciones=refund_observaciones(order.get("order_number"), refund_id),
            referencia=referencia,
        )
        logger.info(f"Emitting NOTA DE CRÉDITO for refund {refund_id} ({len(detalles)} detalles)")
        result = await self.lioren.submit(TipoDocumento.NOTA_CREDITO, document)

        await self.guard.record_credit_note(order_id, result)

        response = self._success(TipoDocumento.NOTA_CREDITO, result, document)
        response["data"].update({
            "refundId": _str_or_none(refund_id),
            "orderId": str(order_id),
            "folioOriginal": folio_original,
        })
        return response

    # ══════════════════════════════════════════════════════════
    # HELPERS
    # ══════════════════════════════════════════════════════════

    @staticmethod
    def _success(tipo: TipoDocumento, result: IssueResult, document: DocumentRequest) -> dict[str, Any]:
        return {
            "success": True,
            "message": f"{tipo.label} emitida exitosamente",
            "data": {
                "folio": result.folio or "N/A",
                "tipoDTE": tipo.value,
                "fechaEmision": document.emisor.fecha or current_date(),
                "urlPDF": result.url_pdf,
                "urlXML": result.url_xml,
                "timestamp": current_timestamp(),
            },
        }

    @staticmethod
    def _skip(message: str, refund_id, order_id) -> dict:
        return {
            "success": True,
            "message": message,
            "refundId": _str_or_none(refund_id),
            "orderId": str(order_id),
        }


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None
