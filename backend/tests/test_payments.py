import pytest

from conftest import make_document
from retailpos.extensions import db
from retailpos.models import Customer
from retailpos.services import conversion_service, customer_service, document_service, payment_service
from retailpos.validation import ConflictError, NotFoundError, ValidationError


class TestPaymentStatus:

    def test_overpayment_never_regresses(self, db_session, product):
        invoice = document_service.create_document({
            "doc_type": "invoice",
            "items": [{"product_id": product.id, "qty": 1, "unit_price_cents": 10000, "vat_rate": 0}],
        })
        assert invoice.total_cents == 10000

        doc = payment_service.add_payment(invoice.id, "cash", 4000)
        assert doc.paid_total_cents == 4000
        assert doc.status == "partially_paid"
        assert doc.payment_status == "partially_paid"

        doc = payment_service.add_payment(invoice.id, "card", 7000)
        assert doc.paid_total_cents == 11000
        assert doc.status == "paid"
        assert doc.payment_status == "paid"

    def test_full_payment_of_example_invoice(self, db_session, product):
        quote = make_document("quote", product, 5)
        delivery = conversion_service.convert_document(quote.id, "delivery_note")
        invoice = conversion_service.convert_document(delivery.id, "invoice")

        doc = payment_service.add_payment(invoice.id, "bank_transfer", 12100, reference="VIR-1")
        assert doc.status == "paid"
        assert doc.payments[0].reference == "VIR-1"

    def test_paid_total_is_sum_of_payments(self, db_session, product):
        invoice = make_document("invoice", product, 1, unit_price_cents=10000)
        for amount in (100, 200, 300):
            payment_service.add_payment(invoice.id, "cash", amount)
        doc = payment_service.add_payment(invoice.id, "cash", 400)
        assert doc.paid_total_cents == 1000
        assert [p.amount_cents for p in doc.payments] == [100, 200, 300, 400]

    def test_credited_invoice_keeps_status(self, db_session, product):
        invoice = make_document("invoice", product, 1)
        conversion_service.convert_document(invoice.id, "credit_note")

        doc = payment_service.add_payment(invoice.id, "cash", 500)
        assert doc.status == "credited"
        assert doc.paid_total_cents == 500
        assert doc.payment_status == "partially_paid"


class TestPaymentValidation:

    @pytest.mark.parametrize("method, amount", [
        ("cash", 0),
        ("cash", -5),
        ("cash", "12.50"),
        ("cash", 1.5),
        ("cash", None),
        ("bitcoin", 100),
        (None, 100),
    ])
    def test_rejected(self, db_session, product, method, amount):
        invoice = make_document("invoice", product, 1)
        with pytest.raises(ValidationError):
            payment_service.add_payment(invoice.id, method, amount)

    def test_missing_document(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.add_payment(999, "cash", 100)


class TestCustomerCreditPayments:

    def test_debits_balance(self, db_session, product, customer):
        customer_service.credit_customer(customer.id, 5000, source="manual")
        db.session.commit()

        invoice = make_document("invoice", product, 1, customer_id=customer.id)
        doc = payment_service.add_payment(invoice.id, "customer_credit", 2000)

        assert doc.paid_total_cents == 2000
        assert db.session.get(Customer, customer.id).credit_balance_cents == 3000
        ledger = customer_service.credit_ledger(customer.id)
        assert [e.entry_type for e in ledger] == ["debit", "credit"]

    def test_insufficient_balance_is_a_conflict(self, db_session, product, customer):
        invoice = make_document("invoice", product, 1, customer_id=customer.id)
        with pytest.raises(ConflictError):
            payment_service.add_payment(invoice.id, "customer_credit", 100)

        db.session.expire_all()
        invoice = document_service.get_document(invoice.id)
        assert invoice.status == "unpaid"
        assert invoice.paid_total_cents == 0
        assert invoice.payments == []

    def test_requires_customer(self, db_session, product):
        invoice = make_document("invoice", product, 1)
        with pytest.raises(ValidationError):
            payment_service.add_payment(invoice.id, "customer_credit", 100)
