"""
DTE-CL Bridge: Sale line → Lioren `detalles`
=============================================
One SaleLine always produces exactly one FiscalDetailLine, in order.

Fallback rules (first non-empty value wins):
  codigo       sku → variant_id → "PROD-{n}"   (n = 1-based position in the order)
  nombre       name → title → "Producto"        (max 80)
  cantidad     quantity → 1
  precio       price → 0, normalized by PriceStrategy
  descripcion  variant_title → description → nombre  (max 1000)

Shopify line items carry no `description`, so for orders and refunds the
descripcion is effectively variant_title → nombre. `description` only comes
from storefront form items.
"""
from typing import Iterable

from app.schemas.models import FiscalDetailLine, SaleLine
from app.utils.pricing import PriceStrategy, normalize_price

MAX_NOMBRE = 80
MAX_DESCRIPCION = 1000
UNIDAD = "UN"
DEFAULT_NOMBRE = "Producto"


def _first(*values) -> str | None:
    for v in values:
        if v:
            return str(v)
    return None


def line_code(line: SaleLine, index: int) -> str:
    return _first(line.sku, line.variant_id) or f"PROD-{index}"


def line_name(line: SaleLine) -> str:
    return (_first(line.name, line.title) or DEFAULT_NOMBRE)[:MAX_NOMBRE]


def map_sale_line(line: SaleLine, index: int, strategy: PriceStrategy, *,
                  quantity: int | None = None,
                  description_prefix: str = "") -> FiscalDetailLine:
    nombre = line_name(line)
    descripcion = _first(line.variant_title, line.description) or nombre
    return FiscalDetailLine(
        codigo=line_code(line, index),
        nombre=nombre,
        cantidad=quantity if quantity is not None else (line.quantity or 1),
        unidad=UNIDAD,
        precio=normalize_price(line.price, strategy),
        exento=False,
        descripcion=f"{description_prefix}{descripcion[:MAX_DESCRIPCION]}"[:MAX_DESCRIPCION],
    )


def map_sale_lines(lines: Iterable[SaleLine], strategy: PriceStrategy) -> list[FiscalDetailLine]:
    return [map_sale_line(line, i, strategy) for i, line in enumerate(lines, 1)]
