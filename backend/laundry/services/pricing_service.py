# Overview: Pure cart pricing; turns priced lines into subtotal/tax/total.

"""
Cart Pricing

WHY: Subtotal, tax and loyalty redemption math must be identical for the
cart preview, order creation and delivery repricing.

DESIGN PRINCIPLES:
- Pure functions: no database access, no global settings. The tax rate is
  passed in by the caller (see tax_rate_for_branch).
- Rounding happens once, half-up, on the summed subtotal (never per line).
- Caller bugs (negative prices, non-positive quantities) raise instead of
  being clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Iterable

from ..errors import ValidationError
from ..money import MAX_AMOUNT, parse_decimal, round_half_up

ZERO = Decimal("0")

# Per-line quantity ceiling; keeps subtotals inside the money range.
MAX_QUANTITY = 10_000


@dataclass(frozen=True)
class CartLine:
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class CartSummary:
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    item_count: int
    redeemed_points: int = 0
    final_total: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "total": str(self.total),
            "item_count": self.item_count,
            "redeemed_points": self.redeemed_points,
            "final_total": str(self.final_total),
        }


def _validate_quantity(quantity: Any, field: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{field} must be an integer")
    if quantity <= 0:
        raise ValidationError(f"{field} must be > 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} must be <= {MAX_QUANTITY}")
    return quantity


def _validate_line(line: CartLine, index: int) -> None:
    if not isinstance(line.unit_price, Decimal):
        raise ValidationError(f"lines[{index}].unit_price must be a Decimal")
    if line.unit_price < 0:
        raise ValidationError(f"lines[{index}].unit_price must be >= 0")
    if line.unit_price > MAX_AMOUNT:
        raise ValidationError(f"lines[{index}].unit_price exceeds maximum amount")
    _validate_quantity(line.quantity, f"lines[{index}].quantity")


def compute_summary(
    lines: Iterable[CartLine],
    tax_rate: Decimal,
    *,
    redeemed_points: int = 0,
    customer_points: int = 0,
) -> CartSummary:
    """
    Compute the cart summary.

    Redemption is clamped to min(customer_points, floor(total)) at
    1 point = 1 currency unit; final_total never goes below zero.
    """
    lines = list(lines)
    if not isinstance(tax_rate, Decimal):
        raise ValidationError("tax_rate must be a Decimal")
    if tax_rate < 0:
        raise ValidationError("tax_rate must be >= 0")

    raw_subtotal = ZERO
    item_count = 0
    for index, line in enumerate(lines):
        _validate_line(line, index)
        raw_subtotal += line.unit_price * line.quantity
        item_count += line.quantity

    subtotal = round_half_up(raw_subtotal)
    tax = round_half_up(subtotal * tax_rate)
    total = subtotal + tax

    redeemed = 0
    if redeemed_points:
        if isinstance(redeemed_points, bool) or not isinstance(redeemed_points, int) or redeemed_points < 0:
            raise ValidationError("redeemed_points must be a non-negative integer")
        max_redeemable = min(max(customer_points, 0), int(total.to_integral_value(rounding=ROUND_FLOOR)))
        redeemed = min(redeemed_points, max_redeemable)

    final_total = max(total - Decimal(redeemed), ZERO)

    return CartSummary(
        subtotal=subtotal,
        tax=tax,
        total=total,
        item_count=item_count,
        redeemed_points=redeemed,
        final_total=final_total,
    )


def tax_rate_for_branch(branch) -> Decimal:
    """Branch tax configuration as a decimal fraction (850 bps -> 0.085)."""
    return Decimal(branch.tax_rate_bps or 0) / Decimal(10000)


def price_lines(items: list[dict], *, default_quantity: int | None = None, default_price: Decimal | None = None) -> list[dict]:
    """
    Normalize raw order items into the stored snapshot.

    Each item carries clothing_item, service, quantity, unit_price and
    line_total (unrounded product, as a decimal string). Defaults apply
    only when the caller supplies them (public delivery intake).
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    priced = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        quantity = raw.get("quantity")
        if quantity is None and default_quantity is not None:
            quantity = default_quantity
        quantity = _validate_quantity(quantity, f"items[{index}].quantity")

        price_raw = raw.get("unit_price", raw.get("price"))
        if price_raw is None and default_price is not None:
            unit_price = default_price
        else:
            unit_price = parse_decimal(price_raw, f"items[{index}].unit_price")
        if unit_price < 0:
            raise ValidationError(f"items[{index}].unit_price must be >= 0")

        clothing_item = raw.get("clothing_item", raw.get("name"))
        if not clothing_item:
            raise ValidationError(f"items[{index}].clothing_item is required")

        priced.append({
            "clothing_item": clothing_item,
            "service": raw.get("service"),
            "quantity": quantity,
            "unit_price": str(unit_price),
            "line_total": str(unit_price * quantity),
        })
    return priced


def summarize_items(priced_items: list[dict], tax_rate: Decimal) -> CartSummary:
    """compute_summary over a stored items snapshot."""
    return compute_summary(
        [CartLine(unit_price=Decimal(i["unit_price"]), quantity=i["quantity"]) for i in priced_items],
        tax_rate,
    )


def parse_cart_lines(items: list[dict]) -> list[CartLine]:
    """Cart lines from a live cart payload ({unit_price|price, quantity})."""
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        unit_price = parse_decimal(raw.get("unit_price", raw.get("price")), f"items[{index}].unit_price")
        lines.append(CartLine(unit_price=unit_price, quantity=raw.get("quantity")))
    return lines
