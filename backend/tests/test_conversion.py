"""
Conversion chain tests: stock moves exactly once per physical movement,
statuses and links follow the registry, and lines are copied, not shared.
"""

import pytest

from conftest import make_document, stock_of
from retailpos.extensions import db
from retailpos.models import Document, DocumentLine
from retailpos.services import conversion_service, document_service, document_types
from retailpos.services.document_types import get_document_defaults, source_status_after
from retailpos.validation import NotFoundError, ValidationError


class TestRegistry:

    @pytest.mark.parametrize("target, source, expected", [
        ("quote", None, ("draft", False)),
        ("purchase_order", "quote", ("confirmed", False)),
        ("delivery_note", "purchase_order", ("delivered", True)),
        ("invoice", "delivery_note", ("unpaid", False)),
        ("invoice", "quote", ("unpaid", True)),
        ("invoice", None, ("unpaid", True)),
        ("credit_note", "invoice", ("draft", False)),
        ("proforma", "quote", ("draft", False)),
    ])
    def test_defaults(self, target, source, expected):
        defaults = get_document_defaults(target, source)
        assert (defaults.status, defaults.should_decrease_stock) == expected

    def test_source_transitions(self):
        assert source_status_after("quote", "delivery_note") == "accepted"
        assert source_status_after("purchase_order", "invoice") == "completed"
        assert source_status_after("delivery_note", "invoice") == "invoiced"
        assert source_status_after("invoice", "credit_note") == "credited"
        assert source_status_after("quote", "proforma") is None

    def test_prefixes(self):
        assert document_types.prefix_for("quote") == "DEV"
        assert document_types.prefix_for("invoice") == "FAC"
        assert document_types.prefix_for("purchase_order") == "BC"
        assert document_types.prefix_for("delivery_note") == "BL"
        assert document_types.prefix_for("credit_note") == "AV"
        assert document_types.prefix_for("proforma") == "DOC"


class TestConversionStock:

    def test_quote_delivery_invoice_decrements_once(self, db_session, product):
        quote = make_document("quote", product, 5)
        assert stock_of(product.id) == 100

        delivery = conversion_service.convert_document(quote.id, "delivery_note")
        assert stock_of(product.id) == 95

        conversion_service.convert_document(delivery.id, "invoice")
        assert stock_of(product.id) == 95

    def test_quote_to_invoice_decrements(self, db_session, product):
        quote = make_document("quote", product, 5)
        conversion_service.convert_document(quote.id, "invoice")
        assert stock_of(product.id) == 95

    def test_purchase_order_does_not_move_stock(self, db_session, product):
        quote = make_document("quote", product, 4)
        order = conversion_service.convert_document(quote.id, "purchase_order")
        assert order.status == "confirmed"
        assert stock_of(product.id) == 100

    def test_credit_note_conversion_does_not_move_stock(self, db_session, product):
        invoice = make_document("invoice", product, 3)
        assert stock_of(product.id) == 97

        conversion_service.convert_document(invoice.id, "credit_note")
        assert stock_of(product.id) == 97

    def test_receipt_lines_do_not_move_again(self, db_session, product):
        receipt = document_service.create_sale({
            "items": [{"product_id": product.id, "qty": 2, "unit_price_cents": 2000}],
            "payments": [{"method": "cash", "amount_cents": 4840}],
        })
        assert stock_of(product.id) == 98

        invoice = conversion_service.convert_document(receipt.id, "invoice")
        assert invoice.sale_id == receipt.id
        assert stock_of(product.id) == 98

    def test_direct_invoice_with_sale_id_does_not_move_stock(self, db_session, product):
        invoice = make_document("invoice", product, 2, sale_id=99)
        assert invoice.sale_id == 99
        assert stock_of(product.id) == 100

    def test_unknown_product_is_skipped(self, db_session, product):
        quote = document_service.create_document({
            "doc_type": "quote",
            "items": [
                {"product_id": 999, "qty": 1, "unit_price_cents": 100},
                {"product_id": product.id, "qty": 1, "unit_price_cents": 100},
            ],
        })
        conversion_service.convert_document(quote.id, "delivery_note")
        assert stock_of(product.id) == 99

    def test_unknown_product_rejected_in_strict_mode(self, app, db_session, product):
        app.config["STRICT_STOCK_PRODUCTS"] = True
        quote = document_service.create_document({
            "doc_type": "quote",
            "items": [{"product_id": 999, "qty": 1, "unit_price_cents": 100}],
        })
        before = db.session.query(Document).count()

        with pytest.raises(NotFoundError):
            conversion_service.convert_document(quote.id, "delivery_note")
        assert db.session.query(Document).count() == before


class TestConversionDocument:

    def test_example_chain(self, db_session, product):
        quote = make_document("quote", product, 5)
        assert quote.total_cents == 12100
        assert quote.status == "draft"
        assert quote.number.startswith("DEV-")

        delivery = conversion_service.convert_document(quote.id, "delivery_note")
        assert delivery.status == "delivered"
        assert delivery.number.startswith("BL-")
        assert document_service.get_document(quote.id).status == "accepted"

        invoice = conversion_service.convert_document(delivery.id, "invoice")
        assert invoice.status == "unpaid"
        assert invoice.total_cents == 12100
        assert invoice.source_document_id == delivery.id
        assert invoice.source_document_type == "delivery_note"
        assert invoice.source_document_number == delivery.number
        assert document_service.get_document(delivery.id).status == "invoiced"

    @pytest.mark.parametrize("target", ["purchase_order", "delivery_note", "invoice", "credit_note", "proforma"])
    def test_total_is_preserved(self, db_session, product, target):
        quote = make_document("quote", product, 3, unit_price_cents=1999, global_discount_type="percent", global_discount_value=7)
        converted = conversion_service.convert_document(quote.id, target)
        assert converted.total_cents == quote.total_cents
        assert converted.payments == []
        assert converted.paid_total_cents == 0

    def test_items_are_deep_copied(self, db_session, product):
        quote = make_document("quote", product, 5)
        invoice = conversion_service.convert_document(quote.id, "invoice")

        invoice.lines[0].qty = 42
        invoice.lines[0].description = "changed"
        db.session.commit()

        source = document_service.get_document(quote.id)
        assert source.lines[0].qty == 5
        assert source.lines[0].description == "Carrelage Blanc 30x30"
        assert db.session.query(DocumentLine).count() == 2

    def test_credit_note_links_back_to_invoice(self, db_session, product, customer):
        invoice = make_document("invoice", product, 2, customer_id=customer.id)
        credit = conversion_service.convert_document(invoice.id, "credit_note")

        invoice = document_service.get_document(invoice.id)
        assert invoice.status == "credited"
        assert invoice.credit_note_id == credit.id
        assert invoice.credit_note_number == credit.number
        assert credit.number.startswith("AV-")
        assert credit.lines[0].invoice_line_id == 1
        assert credit.customer_name == "Jean Dupont"

    def test_missing_source_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            conversion_service.convert_document(12345, "invoice")

    @pytest.mark.parametrize("target", [None, "", "order_form"])
    def test_bad_target_is_rejected_without_side_effects(self, db_session, product, target):
        quote = make_document("quote", product, 5)

        with pytest.raises(ValidationError):
            conversion_service.convert_document(quote.id, target)

        assert db.session.query(Document).count() == 1
        assert document_service.get_document(quote.id).status == "draft"
        assert stock_of(product.id) == 100

    def test_missing_source_wins_over_bad_target(self, db_session):
        with pytest.raises(NotFoundError):
            conversion_service.convert_document(12345, "")

    def test_duplicate_resets_to_draft(self, db_session, product, customer):
        invoice = make_document("invoice", product, 2, customer_id=customer.id)
        copy = document_service.duplicate_document(invoice.id)

        assert copy.id != invoice.id
        assert copy.doc_type == "invoice"
        assert copy.status == "draft"
        assert copy.number != invoice.number
        assert copy.source_document_id is None
        assert copy.total_cents == invoice.total_cents
        assert copy.customer_id == customer.id
        # duplicating never moves stock
        assert stock_of(product.id) == 98
