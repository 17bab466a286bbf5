from decimal import Decimal

from retailpos.services import pricing


def line(qty, unit_price_cents, vat_rate=21, **discount):
    item = {"qty": qty, "unit_price_cents": unit_price_cents, "vat_rate": vat_rate}
    item.update(discount)
    return item


class TestLineTotal:

    def test_plain_line(self):
        assert pricing.calculate_line_total(line(5, 2000)) == 10000

    def test_percent_discount_in_points(self):
        assert pricing.calculate_line_total(line(2, 1000, discount_type="percent", discount_value=10)) == 1800

    def test_fixed_discount_htva(self):
        assert pricing.calculate_line_total(line(2, 1000, discount_type="fixed", discount_value=500)) == 1500

    def test_fixed_discount_ttc_is_converted_to_htva(self):
        # 121 cents off the VAT-inclusive price is 100 cents HTVA at 21%
        item = line(1, 1000, discount_type="fixed", discount_value=121, discount_target="ttc")
        assert pricing.calculate_line_total(item) == 900

    def test_discount_never_goes_negative(self):
        assert pricing.calculate_line_total(line(1, 500, discount_type="fixed", discount_value=900)) == 0

    def test_rounding_is_half_up(self):
        # 3 * 333 = 999, 5% off = 949.05
        assert pricing.calculate_line_total(line(3, 333, discount_type="percent", discount_value=5)) == 949
        assert pricing.round_cents(Decimal("0.5")) == 1
        assert pricing.round_cents(Decimal("2.5")) == 3


class TestDocumentTotals:

    def test_example_quote_total(self):
        # 5 x 20.00 at 21% -> 121.00
        assert pricing.calculate_total([line(5, 2000)]) == 12100

    def test_global_percent_discount(self):
        totals = pricing.calculate_document_totals([line(1, 10000)], "percent", 10)
        assert totals.subtotal_cents == 10000
        assert totals.discount_cents == 1000
        assert totals.net_cents == 9000
        assert totals.vat_cents == 1890
        assert totals.total_cents == 10890

    def test_global_fixed_discount_clamped_at_zero(self):
        totals = pricing.calculate_document_totals([line(1, 1000)], "fixed", 5000)
        assert totals.net_cents == 0
        assert totals.total_cents == 0

    def test_vat_uses_each_line_rate(self):
        totals = pricing.calculate_document_totals([line(1, 10000, 21), line(1, 10000, 6)])
        assert totals.vat_cents == 2100 + 600
        assert totals.total_cents == 22700

    def test_global_discount_spread_over_rates(self):
        totals = pricing.calculate_document_totals(
            [line(1, 10000, 21), line(1, 10000, 6)], "fixed", 2000
        )
        bases = {g.rate: g.base_cents for g in totals.vat_breakdown}
        assert bases[Decimal("21")] == 9000
        assert bases[Decimal("6")] == 9000
        assert sum(bases.values()) == totals.net_cents

    def test_empty_document(self):
        assert pricing.calculate_total([]) == 0


class TestVatBreakdown:

    def test_groups_by_rate(self):
        groups = pricing.calculate_vat_breakdown([line(2, 1000, 21), line(1, 500, 21), line(1, 1000, 0)])
        by_rate = {g.rate: g for g in groups}

        assert by_rate[Decimal("21")].base_cents == 2500
        assert by_rate[Decimal("21")].vat_cents == 525
        assert by_rate[Decimal("21")].category == "S"
        assert by_rate[Decimal("0")].vat_cents == 0
        assert by_rate[Decimal("0")].category == "Z"

    def test_to_dict_uses_plain_rate(self):
        group = pricing.calculate_vat_breakdown([line(1, 100, 21)])[0].to_dict()
        assert group == {"rate": 21, "category": "S", "base_cents": 100, "vat_cents": 21, "total_cents": 121}

    def test_net_unit_price(self):
        assert pricing.net_unit_price_cents(1800, 2) == 900
        assert pricing.net_unit_price_cents(100, 0) == 0
