import pytest

from conftest import make_document
from retailpos.services import document_service, payment_service, register_service, return_service
from retailpos.validation import ConflictError, ValidationError


class TestShiftLifecycle:

    def test_open_and_close_with_cash_sales(self, db_session, product):
        shift = register_service.open_shift(10000, "Marie", 2)
        assert shift.status == "open"
        assert shift.register_number == "2"
        assert register_service.get_current_shift().id == shift.id

        document_service.create_sale({
            "items": [{"product_id": product.id, "qty": 1, "unit_price_cents": 2000}],
            "payments": [{"method": "cash", "amount_cents": 2420}],
        })
        document_service.create_sale({
            "items": [{"product_id": product.id, "qty": 1, "unit_price_cents": 2000}],
            "payments": [{"method": "card", "amount_cents": 2420}],
        })

        closed = register_service.close_shift(12400, "short 20 cents")
        assert closed.status == "closed"
        assert closed.expected_cash_cents == 12420
        assert closed.counted_cash_cents == 12400
        assert closed.variance_cents == -20
        assert closed.close_notes == "short 20 cents"
        assert register_service.get_current_shift() is None

    def test_cash_refunds_leave_the_drawer(self, db_session, product):
        register_service.open_shift(10000)
        invoice = make_document("invoice", product, 10)
        payment_service.add_payment(invoice.id, "cash", 24200)

        cash_return = return_service.create_return(invoice.id, [{"invoice_line_id": 1, "qty_returned": 3}])
        return_service.settle_credit_note(cash_return.credit_note_id, "cash")
        card_return = return_service.create_return(invoice.id, [{"invoice_line_id": 1, "qty_returned": 2}])
        return_service.settle_credit_note(card_return.credit_note_id, "card")

        closed = register_service.close_shift(26940)
        assert closed.expected_cash_cents == 10000 + 24200 - 7260
        assert closed.variance_cents == 0

    def test_close_without_count(self, db_session):
        register_service.open_shift(5000)
        closed = register_service.close_shift()
        assert closed.expected_cash_cents == 5000
        assert closed.variance_cents is None

    def test_only_one_open_shift(self, db_session):
        register_service.open_shift(0)
        with pytest.raises(ConflictError):
            register_service.open_shift(0)

    def test_close_without_open_shift(self, db_session):
        with pytest.raises(ConflictError):
            register_service.close_shift(0)

    @pytest.mark.parametrize("amount", [-1, "abc", 10.5])
    def test_bad_opening_cash(self, db_session, amount):
        with pytest.raises(ValidationError):
            register_service.open_shift(amount)

    def test_list_newest_first(self, db_session):
        for cash in (100, 200, 300):
            register_service.open_shift(cash)
            register_service.close_shift(cash)
        shifts = register_service.list_shifts(limit=2)
        assert [s.opening_cash_cents for s in shifts] == [300, 200]
