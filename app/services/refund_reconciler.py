"""
refund_reconciler.py — Shopify refund → nota de crédito `detalles`.

Each refunded line is matched to the original order line by id. The credit
note carries the refunded quantity at the price originally charged
(IVA-inclusive price from the order, normalized again), so it always
mirrors the original document, fallback codes included: "PROD-{n}" uses the
line's position in the order, not in the refund. Unmatched lines are
dropped; an empty result means no nota de crédito must be emitted.
"""

import logging
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError

from app.lioren.line_items import map_sale_line
from app.schemas.models import FiscalDetailLine, RefundLine, SaleLine
from app.utils.pricing import PriceStrategy

logger = logging.getLogger("dte-cl.refund_reconciler")

DEVOLUCION_PREFIX = "Devolución - "


def parse_original_lines(items: Iterable[dict]) -> list[Optional[SaleLine]]:
    """
    Order line_items → SaleLine. A line that no longer validates (e.g. edited
    to quantity 0) becomes None so the remaining lines keep their positions.
    """
    lines = []
    for position, item in enumerate(items, 1):
        try:
            lines.append(SaleLine.model_validate(item))
        except ValidationError as e:
            logger.warning(
                f"Original line {position} (id={item.get('id')}) unreadable, skipping: "
                f"{e.error_count()} error(s)"
            )
            lines.append(None)
    return lines


def reconcile_refund(refund_lines: Iterable[RefundLine],
                     original_lines: Sequence[Optional[SaleLine]]) -> list[FiscalDetailLine]:
    by_id = {
        line.id: (position, line)
        for position, line in enumerate(original_lines, 1)
        if line is not None and line.id is not None
    }
    detalles = []
    for refund_line in refund_lines:
        match = by_id.get(refund_line.line_item_id)
        if match is None:
            logger.warning(
                f"Original item not found for refund item {refund_line.id} "
                f"(line_item_id={refund_line.line_item_id}), skipping"
            )
            continue
        if refund_line.quantity < 1:
            logger.warning(f"Refund item {refund_line.id} has quantity 0, skipping")
            continue
        position, original = match
        detalles.append(map_sale_line(
            original, position, PriceStrategy.TAX_INCLUSIVE,
            quantity=refund_line.quantity,
            description_prefix=DEVOLUCION_PREFIX,
        ))
    return detalles
