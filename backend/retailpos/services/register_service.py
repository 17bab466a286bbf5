# Overview: Service-layer operations for cash-register shifts; open, close and cash reconciliation.

"""
Register Shifts

WHY: Cashier accountability. A shift records the opening float; at close the
cashier counts the drawer and the expected amount is reconstructed from the
cash payments taken while the shift was open, less cash refunds.

LIFECYCLE:
- open: only one shift may be open at a time
- closed: expected_cash = opening + cash payments - credit notes refunded in
  cash, both within [opened_at, closed_at],
  variance = counted - expected (only when a count was given)
"""

from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Shift
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, parse_int
from .concurrency import run_with_retry
from .payment_service import cash_received_between
from .return_service import cash_refunded_between

SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"

DEFAULT_CASHIER_NAME = "Caissier"


def get_current_shift() -> Shift | None:
    return (
        db.session.query(Shift)
        .filter_by(status=SHIFT_STATUS_OPEN)
        .order_by(Shift.id.desc())
        .first()
    )


def list_shifts(limit: int = 10) -> list[Shift]:
    if limit < 0:
        raise ValidationError("limit must be >= 0")
    return db.session.query(Shift).order_by(Shift.id.desc()).limit(limit).all()


def _cash(value: Any, field: str) -> int:
    cents = parse_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    return cents


def open_shift(
    opening_cash_cents: Any = 0,
    cashier_name: str | None = None,
    register_number: Any = None,
) -> Shift:
    """
    Open a shift.

    Raises:
        ConflictError: a shift is already open
        ValidationError: negative or malformed opening cash
    """
    opening = _cash(opening_cash_cents if opening_cash_cents is not None else 0, "opening_cash_cents")

    def _op() -> Shift:
        if get_current_shift() is not None:
            raise ConflictError("Shift already open")

        shift = Shift(
            status=SHIFT_STATUS_OPEN,
            opening_cash_cents=opening,
            cashier_name=(cashier_name or DEFAULT_CASHIER_NAME),
            register_number=str(register_number) if register_number is not None else "1",
            opened_at=utcnow(),
        )
        db.session.add(shift)
        db.session.commit()
        return shift

    shift = run_with_retry(_op)
    current_app.logger.info(
        "Shift %s opened by %s with %s", shift.id, shift.cashier_name, shift.opening_cash_cents
    )
    return shift


def close_shift(counted_cash_cents: Any = None, close_notes: str | None = None) -> Shift:
    """
    Close the open shift and reconcile the drawer.

    Raises:
        ConflictError: no shift is open
    """
    counted = _cash(counted_cash_cents, "counted_cash_cents") if counted_cash_cents is not None else None

    def _op() -> Shift:
        shift = get_current_shift()
        if shift is None:
            raise ConflictError("No open shift")

        now = utcnow()
        expected = (
            shift.opening_cash_cents
            + cash_received_between(shift.opened_at, now)
            - cash_refunded_between(shift.opened_at, now)
        )

        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_at = now
        shift.counted_cash_cents = counted
        shift.expected_cash_cents = expected
        shift.variance_cents = (counted - expected) if counted is not None else None
        shift.close_notes = close_notes or ""
        db.session.commit()
        return shift

    shift = run_with_retry(_op)
    current_app.logger.info(
        "Shift %s closed: expected %s counted %s variance %s",
        shift.id, shift.expected_cash_cents, shift.counted_cash_cents, shift.variance_cents,
    )
    return shift
