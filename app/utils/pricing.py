"""
DTE-CL Bridge — Price Normalization
Chilean pesos have no sub-unit: every amount sent to Lioren is an integer.

Two strategies, selected by where the price came from:
- TAX_INCLUSIVE: Shopify line items carry IVA-inclusive prices → round(price / 1.19)
- ALREADY_NET:   prices typed into the storefront form are sent as-is → round(price)
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable

VAT_RATE = Decimal("0.19")


class PriceStrategy(str, Enum):
    TAX_INCLUSIVE = "tax_inclusive"
    ALREADY_NET = "already_net"


def round_half_up(amount) -> int:
    """Round to the nearest peso, halves away from zero (not banker's rounding)."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def net_from_gross(amount, rate: Decimal = VAT_RATE) -> int:
    """IVA-inclusive → IVA-exclusive, rounded to the peso."""
    return round_half_up(Decimal(str(amount)) / (1 + rate))


def normalize_price(amount, strategy: PriceStrategy) -> int:
    if amount is None:
        amount = 0
    if strategy == PriceStrategy.TAX_INCLUSIVE:
        return net_from_gross(amount)
    return round_half_up(amount)


def compute_totals(gross_line_totals: Iterable) -> dict:
    """
    Order totals from IVA-inclusive line totals.
    subtotal = sum of per-line net totals, iva = gross - net.
    """
    subtotal = 0
    gross = Decimal("0")
    for line_total in gross_line_totals:
        line_gross = Decimal(str(line_total or 0))
        subtotal += net_from_gross(line_gross)
        gross += line_gross
    total = round_half_up(gross)
    return {"subtotal": subtotal, "iva": total - subtotal, "total": total}
