"""
DTE-CL Bridge: Boleta vs Factura
================================
Two entry points share the same invoice requirements:

- resolve_for_order(): Shopify webhook path. Missing/invalid invoice data
  silently downgrades to boleta; a paid order is always billed.
- resolve_for_submission(): storefront form path. The same problems reject
  the whole request with an itemized list.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from app.schemas.models import EmitRequest, TipoDocumento
from app.utils.rut import validate_rut

logger = logging.getLogger("dte-cl.document_type")

MIN_TEXT_LENGTH = 3

# Shopify note_attributes written by the checkout billing form
ATTR_DOCUMENT_TYPE = "billing_document_type"
ATTR_RUT = "billing_rut"
ATTR_COMPANY = "billing_company_name"
ATTR_GIRO = "billing_business_type"

ERR_TIPO = "Tipo de documento inválido"
ERR_RUT = "RUT inválido para factura"
ERR_COMPANY = "Nombre de empresa requerido para factura"
ERR_GIRO = "Giro empresarial requerido para factura"
ERR_ITEMS = "Items de venta requeridos"
ERR_TOTAL = "Total de venta debe ser mayor a 0"


class DocumentValidationError(Exception):
    """Raised when a direct emission request cannot be billed as submitted."""
    def __init__(self, errors: list[str]):
        self.errors = errors
        self.message = "Datos inválidos"
        super().__init__(f"{self.message}: {', '.join(errors)}")


@dataclass(frozen=True)
class BillingPreferences:
    doc_type: Optional[TipoDocumento] = None
    rut: Optional[str] = None
    company: Optional[str] = None
    giro: Optional[str] = None


def attribute_value(note_attributes: list[dict] | None, name: str) -> Optional[str]:
    for attr in note_attributes or []:
        if attr.get("name") == name:
            value = attr.get("value")
            return str(value) if value is not None else None
    return None


def preferences_from_order(order: dict) -> BillingPreferences:
    """Read billing preferences from the order's note_attributes."""
    attrs = order.get("note_attributes") or []
    raw_type = attribute_value(attrs, ATTR_DOCUMENT_TYPE)
    doc_type = None
    if raw_type is not None:
        doc_type = TipoDocumento.FACTURA if raw_type == "factura" else TipoDocumento.BOLETA
    return BillingPreferences(
        doc_type=doc_type,
        rut=attribute_value(attrs, ATTR_RUT),
        company=attribute_value(attrs, ATTR_COMPANY),
        giro=attribute_value(attrs, ATTR_GIRO),
    )


def _too_short(value: Optional[str]) -> bool:
    return not value or len(value.strip()) < MIN_TEXT_LENGTH


def invoice_violations(prefs: BillingPreferences) -> list[str]:
    """Every unmet requirement for issuing a factura."""
    errors = []
    if not prefs.rut or not validate_rut(prefs.rut):
        errors.append(ERR_RUT)
    if _too_short(prefs.company):
        errors.append(ERR_COMPANY)
    if _too_short(prefs.giro):
        errors.append(ERR_GIRO)
    return errors


def resolve_for_order(prefs: BillingPreferences) -> TipoDocumento:
    """Order-driven path: factura only if requested and complete, else boleta."""
    if prefs.doc_type != TipoDocumento.FACTURA:
        return TipoDocumento.BOLETA
    violations = invoice_violations(prefs)
    if violations:
        logger.warning(f"Factura requested but data incomplete, emitting boleta: {violations}")
        return TipoDocumento.BOLETA
    return TipoDocumento.FACTURA


def resolve_for_submission(request: EmitRequest) -> TipoDocumento:
    """
    Direct-submission path. Raises DocumentValidationError listing every
    problem at once; no external call is made on failure.
    """
    errors = []
    tipo = TipoDocumento.BOLETA
    if request.doc_type is not None:
        if request.doc_type not in (TipoDocumento.FACTURA.value, TipoDocumento.BOLETA.value):
            errors.append(ERR_TIPO)
        else:
            tipo = TipoDocumento(request.doc_type)

    if tipo == TipoDocumento.FACTURA:
        errors.extend(invoice_violations(BillingPreferences(
            doc_type=tipo, rut=request.rut, company=request.company, giro=request.giro,
        )))

    if not request.items:
        errors.append(ERR_ITEMS)
    if not request.total or request.total <= 0:
        errors.append(ERR_TOTAL)

    if errors:
        raise DocumentValidationError(errors)
    return tipo
