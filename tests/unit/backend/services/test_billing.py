"""
Unit Tests for billing arithmetic.

Pure functions: line pricing, discounts and document numbering.
"""

from decimal import Decimal

import pytest

from crm.backend.core.exceptions import ValidationError
from crm.backend.services.billing import (
    LineItemInput,
    apply_discount,
    compute_line_totals,
    next_document_number,
    to_decimal,
)


class TestLineTotals:
    def test_ten_days_at_eighty(self):
        totals = compute_line_totals([
            {"description": "Dev", "quantity": 10, "unitPrice": 80, "vatRate": 20},
        ])

        assert totals.subtotal_ht == Decimal("800.00")
        assert totals.tax_amount == Decimal("160.00")
        assert totals.total_ttc == Decimal("960.00")

    def test_default_vat_rate_applies(self):
        totals = compute_line_totals(
            [{"description": "Formation", "quantity": 1, "unitPrice": 100}],
            default_vat_rate=Decimal("10"),
        )
        assert totals.tax_amount == Decimal("10.00")

    def test_each_line_rounded_before_summing(self):
        totals = compute_line_totals([
            {"description": "A", "quantity": "1", "unitPrice": "0.105", "vatRate": 0},
            {"description": "B", "quantity": "1", "unitPrice": "0.105", "vatRate": 0},
        ])
        assert [line.total_ht for line in totals.lines] == [Decimal("0.11"), Decimal("0.11")]
        assert totals.subtotal_ht == Decimal("0.22")

    def test_mixed_rates(self):
        totals = compute_line_totals([
            {"description": "Hébergement", "quantity": 12, "unitPrice": "9,90", "vatRate": 20},
            {"description": "Livre", "quantity": 2, "unit_price_ht": 15, "vat_rate": "5.5"},
        ])
        assert totals.subtotal_ht == Decimal("148.80")
        assert totals.tax_amount == Decimal("25.41")
        assert totals.total_ttc == Decimal("174.21")

    def test_quantity_defaults_to_one(self):
        item = LineItemInput.from_mapping({"description": "Forfait", "unitPrice": 50})
        assert item.quantity == Decimal("1")

    @pytest.mark.parametrize("data", [
        {"description": "", "unitPrice": 10},
        {"description": "Sans prix"},
        {"description": "Zéro", "quantity": 0, "unitPrice": 10},
        {"description": "TVA", "unitPrice": 10, "vatRate": -1},
    ])
    def test_invalid_lines_rejected(self, data):
        with pytest.raises(ValidationError):
            compute_line_totals([data])


class TestDiscount:
    def _totals(self):
        return compute_line_totals([{"description": "Dev", "quantity": 10, "unitPrice": 80}])

    def test_percentage(self):
        document = apply_discount(self._totals(), "percentage", Decimal("10"))

        assert document.discount_amount == Decimal("80.00")
        assert document.tax_amount == Decimal("144.00")
        assert document.total_ttc == Decimal("864.00")

    def test_fixed_capped_at_subtotal(self):
        document = apply_discount(self._totals(), "fixed", Decimal("1000"))

        assert document.discount_amount == Decimal("800.00")
        assert document.total_ttc == Decimal("0.00")

    def test_no_discount(self):
        document = apply_discount(self._totals(), None, None)
        assert document.discount_amount == Decimal("0.00")
        assert document.total_ttc == Decimal("960.00")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            apply_discount(self._totals(), "coupon", Decimal("5"))


class TestNumbering:
    def test_first_number_of_year(self):
        assert next_document_number(None, "FAC", 2026) == "FAC-2026-00001"

    def test_increments_last_number(self):
        assert next_document_number("FAC-2026-00041", "FAC", 2026) == "FAC-2026-00042"

    def test_previous_year_restarts(self):
        assert next_document_number("FAC-2025-00099", "FAC", 2026) == "FAC-2026-00001"

    def test_minimum_from_settings(self):
        assert next_document_number(None, "FAC", 2026, minimum=120) == "FAC-2026-00120"
        assert next_document_number("FAC-2026-00200", "FAC", 2026, minimum=120) == "FAC-2026-00201"

    def test_custom_format(self):
        assert next_document_number("DEV/2026/00003/A", "DEV", 2026, "{PREFIX}/{YEAR}/{NUMBER}/A") == "DEV/2026/00004/A"


class TestToDecimal:
    def test_french_decimal_comma(self):
        assert to_decimal("1 234,50") == Decimal("1234.50")

    def test_float_keeps_its_repr(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, True, "abc"])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value)
