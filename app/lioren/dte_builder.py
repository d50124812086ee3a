"""
DTE-CL Bridge: Constructor de documentos Lioren (39 / 33 / 61)
==============================================================
Builds the request bodies accepted by the Lioren API.

REGLAS:
- 39: emisor lleva servicio=3 y NO lleva fecha; receptor solo si hay RUT + razón social
- 33: receptor obligatorio y completo (giro, email, teléfono)
- 61: receptor copiado desde la orden original (sin re-validar) + referencia obligatoria
- RUT del receptor va sin puntos ni guión
- Todos piden expects="all" (PDF + XML en la respuesta)
- comuna/ciudad vienen del CommuneResolver (placeholder 95/76)
"""
from typing import Optional, Sequence

from app.schemas.models import (
    DocumentReference, DocumentRequest, Emisor, FiscalDetailLine, Receptor, TipoDocumento,
)
from app.services.commune_resolver import CommuneResolver, PlaceholderCommuneResolver
from app.utils.dte_helpers import current_date, truncate
from app.utils.rut import clean_rut

SERVICIO_BOLETA = 3
SIN_DIRECCION = "Sin dirección"

ENDPOINTS: dict[TipoDocumento, str] = {
    TipoDocumento.BOLETA: "boletas",
    TipoDocumento.FACTURA: "dtes",
    TipoDocumento.NOTA_CREDITO: "notas_credito",
}

# Max lengths accepted by Lioren for receptor fields
MAX_RS = 100
MAX_GIRO = 40
MAX_DIRECCION = 50
MAX_EMAIL = 80
MAX_TELEFONO = 9


def endpoint_for(tipo: TipoDocumento) -> str:
    """Lioren service key (see LIOREN_URLS) for a document type."""
    return ENDPOINTS[tipo]


def order_observaciones(order_number) -> str:
    return f"Venta online - Shopify Order #{order_number or 'N/A'}"


def refund_observaciones(order_number, refund_id) -> str:
    return f"Devolución - Shopify Order #{order_number or 'N/A'} - Refund #{refund_id or 'N/A'}"


class DTEBuilder:
    """
    Receptor input is a plain dict with raw (untruncated) values:
        rut, company, giro, address, city, email, phone
    """

    def __init__(self, commune_resolver: CommuneResolver | None = None):
        self.communes = commune_resolver or PlaceholderCommuneResolver()

    def build(self, tipo: TipoDocumento, detalles: Sequence[FiscalDetailLine],
              receptor: Optional[dict] = None, *, observaciones: str | None = None,
              fecha: str | None = None,
              referencia: DocumentReference | None = None) -> DocumentRequest:
        if tipo == TipoDocumento.BOLETA:
            return self.build_boleta(detalles, receptor, observaciones=observaciones)
        if tipo == TipoDocumento.FACTURA:
            return self.build_factura(detalles, receptor or {}, observaciones=observaciones, fecha=fecha)
        if tipo == TipoDocumento.NOTA_CREDITO:
            if referencia is None:
                raise ValueError("Nota de crédito requiere referencia al documento original")
            return self.build_nota_credito(detalles, receptor or {}, referencia,
                                           observaciones=observaciones, fecha=fecha)
        raise ValueError(f"Tipo DTE no soportado: {tipo}")

    # === BOLETA (39) ===
    def build_boleta(self, detalles: Sequence[FiscalDetailLine],
                     receptor: Optional[dict] = None, *,
                     observaciones: str | None = None) -> DocumentRequest:
        rec = None
        if receptor and receptor.get("rut") and receptor.get("company"):
            comuna, ciudad = self.communes.resolve(receptor.get("city"), receptor.get("address"))
            rec = Receptor(
                rut=clean_rut(receptor["rut"]),
                rs=truncate(receptor["company"], MAX_RS),
                comuna=comuna, ciudad=ciudad,
                direccion=truncate(receptor.get("address"), MAX_DIRECCION, SIN_DIRECCION),
            )
        return DocumentRequest(
            emisor=Emisor(tipodoc=TipoDocumento.BOLETA, servicio=SERVICIO_BOLETA,
                          observaciones=observaciones),
            receptor=rec,
            detalles=tuple(detalles),
        )

    # === FACTURA (33) ===
    def build_factura(self, detalles: Sequence[FiscalDetailLine], receptor: dict, *,
                      observaciones: str | None = None,
                      fecha: str | None = None) -> DocumentRequest:
        return DocumentRequest(
            emisor=Emisor(tipodoc=TipoDocumento.FACTURA, fecha=fecha or current_date(),
                          observaciones=observaciones),
            receptor=self._full_receptor(receptor),
            detalles=tuple(detalles),
        )

    # === NOTA DE CRÉDITO (61) ===
    def build_nota_credito(self, detalles: Sequence[FiscalDetailLine], receptor: dict,
                           referencia: DocumentReference, *,
                           observaciones: str | None = None,
                           fecha: str | None = None) -> DocumentRequest:
        return DocumentRequest(
            emisor=Emisor(tipodoc=TipoDocumento.NOTA_CREDITO, fecha=fecha or current_date(),
                          observaciones=observaciones),
            receptor=self._full_receptor(receptor),
            detalles=tuple(detalles),
            referencia=referencia,
        )

    # === HELPERS ===
    def _full_receptor(self, r: dict) -> Receptor:
        comuna, ciudad = self.communes.resolve(r.get("city"), r.get("address"))
        return Receptor(
            rut=clean_rut(r.get("rut")),
            rs=truncate(r.get("company"), MAX_RS),
            giro=truncate(r.get("giro"), MAX_GIRO),
            comuna=comuna, ciudad=ciudad,
            direccion=truncate(r.get("address"), MAX_DIRECCION, SIN_DIRECCION),
            email=truncate(r.get("email"), MAX_EMAIL),
            telefono=truncate(r.get("phone"), MAX_TELEFONO),
        )
