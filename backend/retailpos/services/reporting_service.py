# Overview: Service-layer operations for reporting; read-only aggregates over documents and stock.

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Product
from ..time_utils import parse_day_bounds, to_utc_z, utcnow
from . import document_types, inventory_service, pricing
from .document_service import documents_in_range


# Documents that represent turnover
SALES_DOCUMENT_TYPES = (document_types.INVOICE, document_types.RECEIPT)


class ReportError(ValueError):
    """Raised when report parameters are invalid."""
    pass


def _range(date_from: str | None, date_to: str | None) -> tuple[datetime, datetime]:
    try:
        start, end = parse_day_bounds(date_from, date_to)
    except ValueError:
        raise ReportError("date_from/date_to must be YYYY-MM-DD")
    if start > end:
        raise ReportError("date_from must be before date_to")
    return start, end


def vat_report(date_from: str | None = None, date_to: str | None = None) -> dict:
    """
    VAT collected per rate over invoices and receipts dated in the range.

    Each document is broken down with its own discounts, so the bases add up
    to what was actually invoiced.
    """
    start, end = _range(date_from, date_to)
    groups: dict = {}
    for doc in documents_in_range(SALES_DOCUMENT_TYPES, start, end):
        totals = pricing.calculate_document_totals(
            [line.to_calc_dict() for line in doc.lines],
            doc.global_discount_type,
            doc.global_discount_value,
        )
        for group in totals.vat_breakdown:
            acc = groups.get(group.rate)
            if acc is None:
                acc = groups[group.rate] = pricing.VatGroup(rate=group.rate, category=group.category)
            acc.base_cents += group.base_cents
            acc.vat_cents += group.vat_cents
            acc.total_cents += group.total_cents

    breakdown = [g.to_dict() for g in sorted(groups.values(), key=lambda g: g.rate, reverse=True)]
    return {
        "breakdown": breakdown,
        "totals": {
            "base_cents": sum(g["base_cents"] for g in breakdown),
            "vat_cents": sum(g["vat_cents"] for g in breakdown),
            "total_cents": sum(g["total_cents"] for g in breakdown),
        },
    }


def dashboard_report(date_from: str | None = None, date_to: str | None = None) -> dict:
    start, end = _range(date_from, date_to)
    docs = documents_in_range(SALES_DOCUMENT_TYPES, start, end)

    total_sales = sum(d.total_cents for d in docs)
    products_sold = 0
    customers: set[int] = set()
    products: dict = {}
    methods: dict[str, int] = {}
    per_day: dict[str, int] = {}

    for doc in docs:
        if doc.customer_id:
            customers.add(doc.customer_id)
        day = doc.date.date().isoformat()
        per_day[day] = per_day.get(day, 0) + doc.total_cents
        for line in doc.lines:
            products_sold += line.qty
            key = line.product_id or line.sku or line.description
            stats = products.setdefault(key, {"name": line.description, "sku": line.sku, "qty": 0, "revenue_cents": 0})
            stats["qty"] += line.qty
            stats["revenue_cents"] += pricing.calculate_line_total(line)
        for payment in doc.payments:
            methods[payment.method] = methods.get(payment.method, 0) + payment.amount_cents

    # Daily trend only over an explicit window, or from the first sale when open-ended
    trend = []
    if docs:
        day = (start if date_from else docs[0].date).date()
        last = end.date()
        while day <= last:
            key = day.isoformat()
            trend.append({"date": key, "total_cents": per_day.get(key, 0)})
            day += timedelta(days=1)

    count = len(docs)
    return {
        "summary": {
            "total_sales_cents": total_sales,
            "transactions_count": count,
            "products_sold": products_sold,
            "active_customers": len(customers),
            "average_ticket_cents": pricing.round_cents(Decimal(total_sales) / count) if count else 0,
        },
        "top_products": sorted(products.values(), key=lambda s: s["revenue_cents"], reverse=True)[:10],
        "payment_methods": methods,
        "daily_trend": trend,
    }


def inventory_report() -> dict:
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    products = db.session.query(Product).order_by(Product.sku.asc()).all()

    low_stock = [p for p in products if 0 < (p.stock_qty or 0) <= (p.min_stock or threshold)]
    out_of_stock = [p for p in products if (p.stock_qty or 0) <= 0]

    return {
        "summary": {
            "total_products": len(products),
            "total_value_cents": sum(max(p.stock_qty or 0, 0) * (p.price_cents or 0) for p in products),
            "low_stock_count": len(low_stock),
            "out_of_stock_count": len(out_of_stock),
        },
        "low_stock": [
            {"id": p.id, "sku": p.sku, "name": p.name, "stock_qty": p.stock_qty, "min_stock": p.min_stock or threshold}
            for p in low_stock
        ],
        "out_of_stock": [
            {"id": p.id, "sku": p.sku, "name": p.name, "stock_qty": p.stock_qty}
            for p in out_of_stock
        ],
        "generated_at": to_utc_z(utcnow()),
    }


def stock_alerts() -> list[dict]:
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    return [
        {
            "id": p.id,
            "sku": p.sku,
            "name": p.name,
            "stock_qty": p.stock_qty,
            "min_stock": p.min_stock or threshold,
        }
        for p in inventory_service.low_stock_products(threshold)
    ]
