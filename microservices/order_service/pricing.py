"""
Order Pricing

Builds line snapshots and the pricing summary from raw cart input.
Rounding is ROUND_HALF_UP to 2 places at every aggregation step
(line total, sub total, discount, grand total).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Tuple, Union

from .models import OrderItem, OrderItemInput, Pricing

CENT = Decimal("0.01")
Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert input money to Decimal without binary float artifacts"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Round to 2 decimal places, half up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Major currency units to the gateway's smallest unit (e.g. paise)"""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PricingCalculator:
    """Pure pricing computation. No I/O."""

    @staticmethod
    def compute(
        raw_items: Iterable[Union[OrderItemInput, dict]],
        discount_amount: Optional[Number] = None,
    ) -> Tuple[List[OrderItem], Pricing]:
        """
        Compute item snapshots and pricing.

        Args:
            raw_items: Cart lines carrying item_id, name, price, quantity
            discount_amount: Flat discount, 0 when omitted

        Returns:
            (items, pricing) ready to persist
        """
        items: List[OrderItem] = []
        for raw in raw_items:
            line = raw if isinstance(raw, OrderItemInput) else OrderItemInput(**raw)
            items.append(OrderItem(
                item_id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                total=round_money(line.price * line.quantity),
            ))

        sub_total = round_money(sum((i.total for i in items), Decimal("0")))
        discount = round_money(discount_amount or 0)
        total_amount = round_money(max(Decimal("0"), sub_total - discount))

        return items, Pricing(sub_total=sub_total, discount=discount, total_amount=total_amount)
