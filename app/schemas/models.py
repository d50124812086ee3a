"""
DTE-CL Bridge Pydantic Schemas
Domain models, Lioren payload shapes and API request/response models.
"""

from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Any
from enum import Enum


# ─────────────────────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────────────────────

class TipoDocumento(str, Enum):
    FACTURA = "33"
    BOLETA = "39"
    NOTA_CREDITO = "61"

    @property
    def label(self) -> str:
        return {
            TipoDocumento.FACTURA: "Factura",
            TipoDocumento.BOLETA: "Boleta",
            TipoDocumento.NOTA_CREDITO: "Nota de Crédito",
        }[self]


# ─────────────────────────────────────────────────────────────
# SALE SIDE (Shopify / storefront input, read-only)
# ─────────────────────────────────────────────────────────────

class SaleLine(BaseModel):
    """One sold line as delivered by Shopify or the storefront form."""
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    id: Optional[str] = None
    sku: Optional[str] = None
    variant_id: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    variant_title: Optional[str] = None
    description: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0, ge=0)
    line_price: Optional[float] = Field(default=None, ge=0)

    @property
    def gross_line_total(self) -> float:
        if self.line_price is not None:
            return self.line_price
        return self.price * self.quantity


class RefundLine(BaseModel):
    """A refund_line_items entry: which original line, how many units back."""
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    id: Optional[str] = None
    line_item_id: Optional[str] = None
    quantity: int = Field(default=1, ge=0)


class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address1: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# LIOREN PAYLOAD
# ─────────────────────────────────────────────────────────────

class FiscalDetailLine(BaseModel):
    """One `detalles` entry of a Lioren document."""
    model_config = ConfigDict(frozen=True)

    codigo: str
    nombre: str = Field(..., max_length=80)
    cantidad: int
    unidad: str = "UN"
    precio: int
    exento: bool = False
    descripcion: str = Field(..., max_length=1000)


class Receptor(BaseModel):
    """Document receiver (FiscalParty). Optional for boletas."""
    model_config = ConfigDict(frozen=True)

    rut: str
    rs: str = Field(..., max_length=100)
    giro: Optional[str] = Field(None, max_length=40)
    comuna: int
    ciudad: int
    direccion: str = Field(..., max_length=50)
    email: Optional[str] = Field(None, max_length=80)
    telefono: Optional[str] = Field(None, max_length=9)


class Emisor(BaseModel):
    model_config = ConfigDict(frozen=True)

    tipodoc: TipoDocumento
    fecha: Optional[str] = None
    servicio: Optional[int] = None
    observaciones: Optional[str] = None


class DocumentReference(BaseModel):
    """Original document cited by a nota de crédito."""
    model_config = ConfigDict(frozen=True)

    tipodoc: str
    folio: str
    fecha: str


class DocumentRequest(BaseModel):
    """Full Lioren request body. Built once per emission, never mutated."""
    model_config = ConfigDict(frozen=True)

    emisor: Emisor
    receptor: Optional[Receptor] = None
    detalles: tuple[FiscalDetailLine, ...]
    referencia: Optional[DocumentReference] = None
    expects: str = "all"

    @property
    def tipo(self) -> TipoDocumento:
        return self.emisor.tipodoc

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# ─────────────────────────────────────────────────────────────
# EMISSION RESULTS
# ─────────────────────────────────────────────────────────────

class IssueResult(BaseModel):
    """What Lioren returns for an emitted document."""
    folio: Optional[str] = None
    url_pdf: Optional[str] = None
    url_xml: Optional[str] = None
    raw_response: Optional[dict] = None


class EmissionRecord(BaseModel):
    """Folio + artifact stored on the Shopify order (metafields)."""
    order_id: str
    folio: str
    pdf_url: Optional[str] = None
    xml_url: Optional[str] = None
    emitted_at: Optional[datetime] = None


# ─────────────────────────────────────────────────────────────
# DIRECT EMISSION (storefront form)
# ─────────────────────────────────────────────────────────────

class EmitRequest(BaseModel):
    """Body of POST /api/emit-dte and POST /api/validate."""
    # Storefronts send orderNumber / phone / rut as JSON numbers too
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True,
                              json_schema_extra={
        "examples": [{
            "docType": "33", "rut": "76.086.428-5", "company": "Comercial Ejemplo SpA",
            "giro": "Venta de alimentos", "email": "compras@ejemplo.cl",
            "phone": "912345678", "orderNumber": "1001",
            "shipping": {"address1": "Av. Providencia 1234"},
            "items": [{"title": "Caja gourmet", "price": 10000, "quantity": 2}],
            "total": 20000,
        }]
    })

    doc_type: Optional[str] = Field(None, alias="docType", description="'39' boleta, '33' factura")
    rut: Optional[str] = None
    company: Optional[str] = None
    giro: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    order_number: Optional[str] = Field(None, alias="orderNumber")
    shipping: Optional[ShippingAddress] = None
    items: list[SaleLine] = Field(default_factory=list)
    total: Optional[float] = None


# ─────────────────────────────────────────────────────────────
# RESPONSE ENVELOPES
# ─────────────────────────────────────────────────────────────

class EmissionData(BaseModel):
    folio: str
    tipoDTE: str
    fechaEmision: str
    urlPDF: Optional[str] = None
    urlXML: Optional[str] = None
    timestamp: str
    orderId: Optional[str] = None
    orderNumber: Optional[str] = None
    refundId: Optional[str] = None
    folioOriginal: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[EmissionData] = None
    orderId: Optional[str] = None
    orderNumber: Optional[str] = None
    refundId: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    details: Optional[Any] = None
    message: Optional[str] = None
    timestamp: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check."""
    status: str = "ok"
    version: str
    environment: str
    lioren_url: str
