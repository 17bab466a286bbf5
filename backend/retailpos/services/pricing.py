# Overview: Pure monetary helpers for line, document and VAT totals; no database access.

"""
Monetary Calculation Engine

All amounts are integer cents. Intermediate arithmetic uses Decimal and is
rounded half-up to the cent once per line and once per VAT group.

DISCOUNTS:
- percent: discount_value is in percentage points (10 = 10%)
- fixed: discount_value is in cents. With discount_target "ttc" the amount was
  taken off the VAT-inclusive price, so it is converted back to its HTVA
  equivalent by dividing by (1 + vat_rate/100) before subtraction.

VAT is always computed per line vat_rate. The document-level discount is
spread over the rate groups in proportion to their base.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

DEFAULT_VAT_RATE = Decimal("21")
HUNDRED = Decimal("100")


def round_cents(value: Decimal) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _dec(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _get(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


def _vat_rate(item: Any) -> Decimal:
    return _dec(_get(item, "vat_rate"), DEFAULT_VAT_RATE)


@dataclass
class VatGroup:
    rate: Decimal
    category: str
    base_cents: int = 0
    vat_cents: int = 0
    total_cents: int = 0

    def to_dict(self) -> dict:
        rate = int(self.rate) if self.rate == self.rate.to_integral_value() else float(self.rate)
        return {
            "rate": rate,
            "category": self.category,
            "base_cents": self.base_cents,
            "vat_cents": self.vat_cents,
            "total_cents": self.total_cents,
        }


@dataclass
class DocumentTotals:
    subtotal_cents: int
    discount_cents: int
    net_cents: int
    vat_cents: int
    total_cents: int
    vat_breakdown: list[VatGroup] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "net_cents": self.net_cents,
            "vat_cents": self.vat_cents,
            "total_cents": self.total_cents,
            "vat_breakdown": [g.to_dict() for g in self.vat_breakdown],
        }


def vat_category(rate: Decimal) -> str:
    """UNCL5305 category code used on e-invoices: S (standard) or Z (zero rated)."""
    return "S" if rate > 0 else "Z"


def _line_amount(item: Any) -> Decimal:
    """Unrounded HTVA amount of one line after its own discount."""
    qty = _dec(_get(item, "qty"))
    unit_price = _dec(_get(item, "unit_price_cents"))
    amount = qty * unit_price

    discount_type = _get(item, "discount_type")
    discount_value = _dec(_get(item, "discount_value"))
    if discount_type == "percent":
        amount -= amount * discount_value / HUNDRED
    elif discount_type == "fixed":
        if _get(item, "discount_target") == "ttc":
            discount_value = discount_value / (1 + _vat_rate(item) / HUNDRED)
        amount -= discount_value
    else:
        return amount

    # A discount never turns a sale line into a refund
    return max(amount, Decimal("0"))


def calculate_line_total(item: Any) -> int:
    """HTVA total of a single line in cents (qty * unit price minus the line discount)."""
    return round_cents(_line_amount(item))


def global_discount_cents(subtotal_cents: int, discount_type: str | None, discount_value: Any) -> int:
    value = _dec(discount_value)
    if discount_type == "percent":
        return round_cents(Decimal(subtotal_cents) * value / HUNDRED)
    if discount_type == "fixed":
        return round_cents(value)
    return 0


def _allocate(net_cents: int, bases: list[int]) -> list[int]:
    """Split net_cents across groups pro rata of their base; the last group absorbs rounding."""
    subtotal = sum(bases)
    if not bases:
        return []
    if subtotal == 0 or net_cents == subtotal:
        return list(bases)
    shares = [round_cents(Decimal(b) * net_cents / subtotal) for b in bases[:-1]]
    shares.append(net_cents - sum(shares))
    return shares


def calculate_document_totals(
    items: Iterable[Any],
    global_discount_type: str | None = None,
    global_discount_value: Any = None,
) -> DocumentTotals:
    """
    Full document computation: line totals, global discount, VAT per rate.

    The net subtotal is clamped at 0 before VAT is added, so a document total
    is never negative.
    """
    groups: dict[Decimal, int] = {}
    for item in items:
        rate = _vat_rate(item)
        groups[rate] = groups.get(rate, 0) + calculate_line_total(item)

    subtotal = sum(groups.values())
    discount = global_discount_cents(subtotal, global_discount_type, global_discount_value)
    net = max(subtotal - discount, 0)

    rates = list(groups.keys())
    nets = _allocate(net, [groups[r] for r in rates])

    breakdown: list[VatGroup] = []
    vat_total = 0
    for rate, base in zip(rates, nets):
        vat = round_cents(Decimal(base) * rate / HUNDRED)
        vat_total += vat
        breakdown.append(VatGroup(rate=rate, category=vat_category(rate), base_cents=base, vat_cents=vat, total_cents=base + vat))

    return DocumentTotals(
        subtotal_cents=subtotal,
        discount_cents=subtotal - net,
        net_cents=net,
        vat_cents=vat_total,
        total_cents=net + vat_total,
        vat_breakdown=breakdown,
    )


def calculate_total(
    items: Iterable[Any],
    global_discount_type: str | None = None,
    global_discount_value: Any = None,
) -> int:
    """Grand total (TTC) in cents."""
    return calculate_document_totals(items, global_discount_type, global_discount_value).total_cents


def calculate_vat_breakdown(items: Iterable[Any]) -> list[VatGroup]:
    """Group lines by vat_rate and sum base/VAT/total per rate (no document discount)."""
    groups: dict[Decimal, VatGroup] = {}
    for item in items:
        rate = _vat_rate(item)
        group = groups.get(rate)
        if group is None:
            group = groups[rate] = VatGroup(rate=rate, category=vat_category(rate))
        base = calculate_line_total(item)
        vat = round_cents(Decimal(base) * rate / HUNDRED)
        group.base_cents += base
        group.vat_cents += vat
        group.total_cents += base + vat
    return list(groups.values())


def net_unit_price_cents(line_net_cents: int, qty: int) -> int:
    """Per-unit price actually charged on a line, after its discount."""
    if qty <= 0:
        return 0
    return round_cents(Decimal(line_net_cents) / qty)
