import pytest

from conftest import make_document
from retailpos.services import document_service, reporting_service
from retailpos.services.reporting_service import ReportError
from retailpos.time_utils import utcnow


class TestVatReport:

    def test_breakdown_per_rate(self, db_session, product, second_product):
        document_service.create_document({
            "doc_type": "invoice",
            "items": [
                {"product_id": product.id, "qty": 1, "unit_price_cents": 10000, "vat_rate": 21},
                {"product_id": second_product.id, "qty": 2, "unit_price_cents": 5000, "vat_rate": 6},
            ],
        })
        document_service.create_sale({
            "items": [{"product_id": product.id, "qty": 1, "unit_price_cents": 1000, "vat_rate": 21}],
        })
        # Quotes are not turnover
        make_document("quote", product, 50)

        report = reporting_service.vat_report()
        by_rate = {g["rate"]: g for g in report["breakdown"]}

        assert by_rate[21]["base_cents"] == 11000
        assert by_rate[21]["vat_cents"] == 2310
        assert by_rate[6]["base_cents"] == 10000
        assert by_rate[6]["vat_cents"] == 600
        assert report["totals"]["total_cents"] == 11000 + 2310 + 10000 + 600

    def test_date_filter(self, db_session, product):
        make_document("invoice", product, 1)
        today = utcnow().date().isoformat()

        assert reporting_service.vat_report(today, today)["totals"]["base_cents"] == 2000
        assert reporting_service.vat_report("2000-01-01", "2000-12-31")["breakdown"] == []

    @pytest.mark.parametrize("date_from, date_to", [("yesterday", None), ("2024-02-10", "2024-02-01")])
    def test_bad_range(self, db_session, date_from, date_to):
        with pytest.raises(ReportError):
            reporting_service.vat_report(date_from, date_to)


class TestDashboard:

    def test_summary(self, db_session, product, customer):
        document_service.create_sale({
            "customer_id": customer.id,
            "items": [{"product_id": product.id, "qty": 3, "unit_price_cents": 1000}],
            "payments": [{"method": "cash", "amount_cents": 3630}],
        })
        document_service.create_sale({
            "items": [{"product_id": product.id, "qty": 1, "unit_price_cents": 1000}],
            "payments": [{"method": "card", "amount_cents": 1210}],
        })

        report = reporting_service.dashboard_report()

        assert report["summary"]["total_sales_cents"] == 4840
        assert report["summary"]["transactions_count"] == 2
        assert report["summary"]["products_sold"] == 4
        assert report["summary"]["active_customers"] == 1
        assert report["summary"]["average_ticket_cents"] == 2420
        assert report["payment_methods"] == {"cash": 3630, "card": 1210}
        assert report["top_products"][0]["qty"] == 4
        assert report["daily_trend"][-1]["total_cents"] == 4840

    def test_empty(self, db_session):
        report = reporting_service.dashboard_report()
        assert report["summary"]["transactions_count"] == 0
        assert report["daily_trend"] == []


class TestInventory:

    def test_low_and_out_of_stock(self, db_session, product, second_product):
        second_product.stock_qty = 4
        product.min_stock = 120
        db_session.commit()

        report = reporting_service.inventory_report()
        assert report["summary"]["total_products"] == 2
        assert report["summary"]["low_stock_count"] == 2
        assert report["summary"]["total_value_cents"] == 100 * 2000 + 4 * 4250

        alerts = reporting_service.stock_alerts()
        assert [a["sku"] for a in alerts] == ["P2", "P1"]

    def test_out_of_stock(self, db_session, product):
        make_document("invoice", product, 100)
        report = reporting_service.inventory_report()
        assert report["summary"]["out_of_stock_count"] == 1
        assert report["out_of_stock"][0]["sku"] == "P1"
