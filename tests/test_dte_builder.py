"""
DTE-CL Bridge: Test Suite — detalles, tipo de documento, payloads Lioren
=======================================================================
Validates the sale-line mapper, the boleta/factura decision, the three
document builders and the refund reconciliation.

Run: python -m pytest tests/test_dte_builder.py -v
"""
import pytest

from app.lioren.dte_builder import (
    DTEBuilder, endpoint_for, order_observaciones, refund_observaciones,
)
from app.lioren.line_items import map_sale_line, map_sale_lines
from app.schemas.models import (
    DocumentReference, EmitRequest, FiscalDetailLine, RefundLine, SaleLine, TipoDocumento,
)
from app.services.commune_resolver import PLACEHOLDER_CIUDAD, PLACEHOLDER_COMUNA
from app.services.document_type import (
    ERR_COMPANY, ERR_GIRO, ERR_ITEMS, ERR_RUT, ERR_TIPO, ERR_TOTAL,
    BillingPreferences, DocumentValidationError, invoice_violations,
    preferences_from_order, resolve_for_order, resolve_for_submission,
)
from app.services.refund_reconciler import parse_original_lines, reconcile_refund
from app.utils.pricing import PriceStrategy

RUT_VALIDO = "76.086.428-5"

RECEPTOR = {
    "rut": RUT_VALIDO,
    "company": "Comercial Ejemplo SpA",
    "giro": "Venta al por menor de alimentos",
    "address": "Av. Providencia 1234",
    "city": "Santiago",
    "email": "compras@ejemplo.cl",
    "phone": "912345678",
}

DETALLES = [
    FiscalDetailLine(codigo="SKU-1", nombre="Café", cantidad=2, precio=1000, descripcion="Café"),
    FiscalDetailLine(codigo="SKU-2", nombre="Té", cantidad=1, precio=2000, descripcion="Té"),
]


# ═══════════════════════════════════════════
# LINE-ITEM MAPPER
# ═══════════════════════════════════════════

class TestLineItemMapper:
    def test_two_lines_normalized(self):
        lines = [
            SaleLine(sku="A", name="Aceite", price=1190, quantity=1),
            SaleLine(sku="B", name="Berries", price=2380, quantity=3),
        ]
        detalles = map_sale_lines(lines, PriceStrategy.TAX_INCLUSIVE)
        assert [d.precio for d in detalles] == [1000, 2000]
        assert [d.cantidad for d in detalles] == [1, 3]
        assert all(d.exento is False for d in detalles)
        assert all(d.unidad == "UN" for d in detalles)

    def test_length_and_order_preserved(self):
        lines = [SaleLine(sku=f"S{i}", name=f"Item {i}", price=i * 100) for i in range(1, 21)]
        detalles = map_sale_lines(lines, PriceStrategy.ALREADY_NET)
        assert len(detalles) == len(lines)
        assert [d.codigo for d in detalles] == [f"S{i}" for i in range(1, 21)]

    def test_code_fallbacks(self):
        lines = [
            SaleLine(sku="SKU-X", variant_id="111"),
            SaleLine(variant_id=222),
            SaleLine(),
        ]
        detalles = map_sale_lines(lines, PriceStrategy.ALREADY_NET)
        assert [d.codigo for d in detalles] == ["SKU-X", "222", "PROD-3"]

    def test_name_fallbacks_and_truncation(self):
        detalles = map_sale_lines([
            SaleLine(title="Solo título"),
            SaleLine(),
            SaleLine(name="N" * 200),
        ], PriceStrategy.ALREADY_NET)
        assert detalles[0].nombre == "Solo título"
        assert detalles[1].nombre == "Producto"
        assert len(detalles[2].nombre) == 80

    def test_description_defaults_to_name_and_truncates(self):
        detalles = map_sale_lines([
            SaleLine(name="Caja gourmet"),
            SaleLine(name="Caja", variant_title="Grande"),
            SaleLine(name="Caja", description="D" * 5000),
        ], PriceStrategy.ALREADY_NET)
        assert detalles[0].descripcion == "Caja gourmet"
        assert detalles[1].descripcion == "Grande"
        assert len(detalles[2].descripcion) == 1000

    def test_manual_prices_are_only_rounded(self):
        detalle = map_sale_line(SaleLine(name="X", price=1190.6), 1, PriceStrategy.ALREADY_NET)
        assert detalle.precio == 1191


# ═══════════════════════════════════════════
# DOCUMENT-TYPE RESOLVER
# ═══════════════════════════════════════════

def _order(**attrs) -> dict:
    return {"note_attributes": [{"name": k, "value": v} for k, v in attrs.items()]}


class TestPreferencesFromOrder:
    def test_factura_attributes(self):
        prefs = preferences_from_order(_order(
            billing_document_type="factura", billing_rut=RUT_VALIDO,
            billing_company_name="ACME", billing_business_type="Comercio",
        ))
        assert prefs.doc_type == TipoDocumento.FACTURA
        assert prefs.rut == RUT_VALIDO
        assert prefs.company == "ACME"
        assert prefs.giro == "Comercio"

    def test_other_value_is_boleta(self):
        assert preferences_from_order(_order(billing_document_type="boleta")).doc_type == TipoDocumento.BOLETA

    def test_no_attributes(self):
        prefs = preferences_from_order({})
        assert prefs.doc_type is None
        assert prefs.rut is None


class TestResolveForOrder:
    def test_default_is_boleta(self):
        assert resolve_for_order(BillingPreferences()) == TipoDocumento.BOLETA

    def test_complete_factura(self):
        prefs = BillingPreferences(TipoDocumento.FACTURA, RUT_VALIDO, "ACME SpA", "Comercio")
        assert resolve_for_order(prefs) == TipoDocumento.FACTURA

    def test_invalid_data_downgrades_silently(self):
        prefs = BillingPreferences(TipoDocumento.FACTURA, "12.345.678-9", "", "")
        assert resolve_for_order(prefs) == TipoDocumento.BOLETA

    @pytest.mark.parametrize("rut,company,giro", [
        ("12.345.678-9", "ACME SpA", "Comercio"),
        (RUT_VALIDO, "AB", "Comercio"),
        (RUT_VALIDO, "ACME SpA", "  x  "),
        (None, "ACME SpA", "Comercio"),
    ])
    def test_any_violation_downgrades(self, rut, company, giro):
        prefs = BillingPreferences(TipoDocumento.FACTURA, rut, company, giro)
        assert resolve_for_order(prefs) == TipoDocumento.BOLETA

    def test_boleta_requested_stays_boleta(self):
        prefs = BillingPreferences(TipoDocumento.BOLETA, RUT_VALIDO, "ACME SpA", "Comercio")
        assert resolve_for_order(prefs) == TipoDocumento.BOLETA


class TestResolveForSubmission:
    def _request(self, **kw) -> EmitRequest:
        data = {"items": [{"name": "Caja", "price": 1000}], "total": 1000}
        data.update(kw)
        return EmitRequest.model_validate(data)

    def test_factura_missing_data_lists_all_three(self):
        with pytest.raises(DocumentValidationError) as exc_info:
            resolve_for_submission(self._request(docType="33", rut="12.345.678-9", company="", giro=""))
        assert exc_info.value.errors == [ERR_RUT, ERR_COMPANY, ERR_GIRO]

    def test_same_data_on_order_path_is_boleta(self):
        prefs = BillingPreferences(TipoDocumento.FACTURA, "12.345.678-9", "", "")
        assert resolve_for_order(prefs) == TipoDocumento.BOLETA
        assert invoice_violations(prefs) == [ERR_RUT, ERR_COMPANY, ERR_GIRO]

    def test_valid_factura(self):
        request = self._request(docType="33", rut=RUT_VALIDO, company="ACME SpA", giro="Comercio")
        assert resolve_for_submission(request) == TipoDocumento.FACTURA

    def test_missing_doc_type_defaults_to_boleta(self):
        assert resolve_for_submission(self._request()) == TipoDocumento.BOLETA

    def test_unknown_doc_type(self):
        with pytest.raises(DocumentValidationError) as exc_info:
            resolve_for_submission(self._request(docType="52"))
        assert exc_info.value.errors == [ERR_TIPO]

    def test_empty_items_and_total(self):
        with pytest.raises(DocumentValidationError) as exc_info:
            resolve_for_submission(self._request(docType="39", items=[], total=0))
        assert exc_info.value.errors == [ERR_ITEMS, ERR_TOTAL]


# ═══════════════════════════════════════════
# PAYLOAD BUILDER
# ═══════════════════════════════════════════

class TestBoleta39:
    def setup_method(self):
        self.builder = DTEBuilder()

    def test_without_receptor(self):
        payload = self.builder.build_boleta(DETALLES, observaciones="Venta online").to_payload()
        assert payload["emisor"] == {"tipodoc": "39", "servicio": 3, "observaciones": "Venta online"}
        assert "receptor" not in payload
        assert "referencia" not in payload
        assert payload["expects"] == "all"
        assert len(payload["detalles"]) == 2

    def test_receptor_requires_rut_and_company(self):
        payload = self.builder.build_boleta(DETALLES, {"rut": RUT_VALIDO}).to_payload()
        assert "receptor" not in payload

    def test_with_receptor(self):
        payload = self.builder.build_boleta(DETALLES, RECEPTOR).to_payload()
        assert payload["receptor"] == {
            "rut": "760864285", "rs": "Comercial Ejemplo SpA",
            "comuna": PLACEHOLDER_COMUNA, "ciudad": PLACEHOLDER_CIUDAD,
            "direccion": "Av. Providencia 1234",
        }

    def test_no_fecha(self):
        payload = self.builder.build_boleta(DETALLES).to_payload()
        assert "fecha" not in payload["emisor"]

    def test_detalle_shape(self):
        payload = self.builder.build_boleta(DETALLES).to_payload()
        assert payload["detalles"][0] == {
            "codigo": "SKU-1", "nombre": "Café", "cantidad": 2, "unidad": "UN",
            "precio": 1000, "exento": False, "descripcion": "Café",
        }


class TestFactura33:
    def setup_method(self):
        self.payload = DTEBuilder().build_factura(
            DETALLES, RECEPTOR, observaciones="Venta online", fecha="2024-05-02",
        ).to_payload()

    def test_emisor(self):
        assert self.payload["emisor"] == {"tipodoc": "33", "fecha": "2024-05-02",
                                          "observaciones": "Venta online"}

    def test_full_receptor(self):
        assert self.payload["receptor"] == {
            "rut": "760864285", "rs": "Comercial Ejemplo SpA",
            "giro": "Venta al por menor de alimentos",
            "comuna": 95, "ciudad": 76, "direccion": "Av. Providencia 1234",
            "email": "compras@ejemplo.cl", "telefono": "912345678",
        }

    def test_truncation(self):
        long = dict(RECEPTOR, company="C" * 300, giro="G" * 300, address="A" * 300,
                    email="e" * 300, phone="+56912345678")
        rec = DTEBuilder().build_factura(DETALLES, long).to_payload()["receptor"]
        assert len(rec["rs"]) == 100
        assert len(rec["giro"]) == 40
        assert len(rec["direccion"]) == 50
        assert len(rec["email"]) == 80
        assert rec["telefono"] == "+56912345"

    def test_missing_address(self):
        rec = DTEBuilder().build_factura(DETALLES, dict(RECEPTOR, address=None)).to_payload()["receptor"]
        assert rec["direccion"] == "Sin dirección"

    def test_default_fecha_is_today(self):
        payload = DTEBuilder().build_factura(DETALLES, RECEPTOR).to_payload()
        assert len(payload["emisor"]["fecha"]) == 10


class TestNotaCredito61:
    def setup_method(self):
        self.ref = DocumentReference(tipodoc="33", folio="1500", fecha="2024-04-30")
        self.payload = DTEBuilder().build(
            TipoDocumento.NOTA_CREDITO, DETALLES, RECEPTOR,
            observaciones=refund_observaciones(1001, 9001), fecha="2024-05-02",
            referencia=self.ref,
        ).to_payload()

    def test_emisor(self):
        assert self.payload["emisor"]["tipodoc"] == "61"
        assert self.payload["emisor"]["observaciones"] == "Devolución - Shopify Order #1001 - Refund #9001"

    def test_referencia(self):
        assert self.payload["referencia"] == {"tipodoc": "33", "folio": "1500", "fecha": "2024-04-30"}

    def test_receptor_not_revalidated(self):
        payload = DTEBuilder().build_nota_credito(DETALLES, {}, self.ref).to_payload()
        assert payload["receptor"]["rut"] == ""
        assert payload["receptor"]["direccion"] == "Sin dirección"

    def test_requires_referencia(self):
        with pytest.raises(ValueError):
            DTEBuilder().build(TipoDocumento.NOTA_CREDITO, DETALLES, RECEPTOR)


class TestBuilderHelpers:
    def test_endpoints(self):
        assert endpoint_for(TipoDocumento.BOLETA) == "boletas"
        assert endpoint_for(TipoDocumento.FACTURA) == "dtes"
        assert endpoint_for(TipoDocumento.NOTA_CREDITO) == "notas_credito"

    def test_observaciones(self):
        assert order_observaciones(1001) == "Venta online - Shopify Order #1001"
        assert order_observaciones(None) == "Venta online - Shopify Order #N/A"

    def test_custom_commune_resolver(self):
        class FixedResolver:
            def resolve(self, city=None, address=None):
                return 13101, 1

        rec = DTEBuilder(FixedResolver()).build_factura(DETALLES, RECEPTOR).to_payload()["receptor"]
        assert (rec["comuna"], rec["ciudad"]) == (13101, 1)


# ═══════════════════════════════════════════
# REFUND RECONCILER
# ═══════════════════════════════════════════

ORIGINAL_LINES = [
    SaleLine(id=1, sku="A", name="Aceite", variant_title="1L", price=1190, quantity=3),
    SaleLine(id=2, sku="B", name="Berries", price="2380.00", quantity=1),
]


class TestRefundReconciler:
    def test_refunded_quantity_at_original_price(self):
        detalles = reconcile_refund([RefundLine(id=10, line_item_id=1, quantity=2)], ORIGINAL_LINES)
        assert len(detalles) == 1
        assert detalles[0].cantidad == 2
        assert detalles[0].precio == 1000
        assert detalles[0].codigo == "A"
        assert detalles[0].descripcion == "Devolución - 1L"

    def test_unmatched_line_dropped(self):
        detalles = reconcile_refund([
            RefundLine(id=10, line_item_id=999, quantity=1),
            RefundLine(id=11, line_item_id=2, quantity=1),
        ], ORIGINAL_LINES)
        assert [d.codigo for d in detalles] == ["B"]
        assert detalles[0].precio == 2000

    def test_no_matches_is_empty(self):
        assert reconcile_refund([RefundLine(id=10, line_item_id=999, quantity=1)], ORIGINAL_LINES) == []

    def test_empty_refund(self):
        assert reconcile_refund([], ORIGINAL_LINES) == []

    def test_fallback_code_matches_original_document(self):
        lines = [SaleLine(id=1, sku="A", name="Aceite", price=1190),
                 SaleLine(id=2, name="Sin SKU", price=2380)]
        sale_codes = [d.codigo for d in map_sale_lines(lines, PriceStrategy.TAX_INCLUSIVE)]
        credit = reconcile_refund([RefundLine(id=10, line_item_id=2, quantity=1)], lines)
        assert sale_codes == ["A", "PROD-2"]
        assert credit[0].codigo == "PROD-2"

    def test_unreadable_original_line_keeps_positions(self):
        lines = parse_original_lines([
            {"id": 1, "name": "Editada", "price": "1190.00", "quantity": 0},
            {"id": 2, "name": "Sin SKU", "price": "2380.00", "quantity": 1},
        ])
        assert lines[0] is None
        credit = reconcile_refund([
            RefundLine(id=10, line_item_id=1, quantity=1),
            RefundLine(id=11, line_item_id=2, quantity=1),
        ], lines)
        assert [d.codigo for d in credit] == ["PROD-2"]
        assert credit[0].precio == 2000
