# Overview: Service-layer operations for customers and their store-credit ledger.

"""
Customers & Store Credit

credit_balance_cents is a running balance; every change to it appends a
CustomerCreditEntry in the same unit of work, so the ledger always sums to
the balance.

- credit: a credit note settled as customer credit
- debit: a document paid with method "customer_credit"
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, CustomerCreditEntry
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "vat_number", "peppol_id"},
    required_on_create={"name"},
)


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.vat_number.ilike(like))
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)

    def _op() -> Customer:
        customer = Customer(**patch)
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer(customer_id: int, payload: dict) -> Customer:
    """
    Partial update. Documents already issued keep their customer snapshot.
    """
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)

    def _op() -> Customer:
        customer = get_customer(customer_id)
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def _locked_customer(customer_id: int) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).one_or_none()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def credit_customer(
    customer_id: int,
    amount_cents: int,
    *,
    source: str,
    source_id: int | None = None,
    description: str | None = None,
) -> CustomerCreditEntry:
    """Increase the customer's store credit. Runs inside the caller's unit of work."""
    if amount_cents <= 0:
        raise ValidationError("Credit amount must be positive")
    customer = _locked_customer(customer_id)
    customer.credit_balance_cents = (customer.credit_balance_cents or 0) + amount_cents
    entry = CustomerCreditEntry(
        customer_id=customer.id,
        entry_type="credit",
        amount_cents=amount_cents,
        source=source,
        source_id=source_id,
        description=description,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def debit_customer(
    customer_id: int,
    amount_cents: int,
    *,
    source: str,
    source_id: int | None = None,
    description: str | None = None,
) -> CustomerCreditEntry:
    """Consume store credit. Raises ConflictError when the balance does not cover it."""
    if amount_cents <= 0:
        raise ValidationError("Debit amount must be positive")
    customer = _locked_customer(customer_id)
    balance = customer.credit_balance_cents or 0
    if amount_cents > balance:
        raise ConflictError(
            f"Insufficient customer credit: balance {balance}, requested {amount_cents}"
        )
    customer.credit_balance_cents = balance - amount_cents
    entry = CustomerCreditEntry(
        customer_id=customer.id,
        entry_type="debit",
        amount_cents=amount_cents,
        source=source,
        source_id=source_id,
        description=description,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def credit_ledger(customer_id: int) -> list[CustomerCreditEntry]:
    get_customer(customer_id)
    return (
        db.session.query(CustomerCreditEntry)
        .filter_by(customer_id=customer_id)
        .order_by(CustomerCreditEntry.id.desc())
        .all()
    )
