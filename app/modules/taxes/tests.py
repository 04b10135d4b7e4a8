"""
Tests del calculador de impuestos incluidos y descuentos por línea
"""

import pytest
from decimal import Decimal

from app.modules.taxes.calculator import TaxCalculator, round_currency, to_decimal
from app.modules.taxes.models import DiscountType
from app.modules.taxes.schemas import LineDiscount


# ===== PRECIO CON DESCUENTO =====

class TestDiscountedUnitPrice:
    """Precio unitario efectivo de una línea"""

    def test_percent_discount_on_taxed_price(self):
        """Test 10% sobre la base sin INC 8%: 10000 -> ~9000"""
        price = TaxCalculator.discounted_unit_price(
            Decimal("10000"), Decimal("8"), {"type": "PERCENT", "value": 10}
        )
        assert abs(price - Decimal("9000")) < Decimal("0.01")

    @pytest.mark.parametrize("rate", [0, 5, 8, 19])
    def test_zero_percent_keeps_original_price(self, rate):
        """Test descuento de 0% no cambia el precio para ninguna tasa"""
        price = TaxCalculator.discounted_unit_price(
            Decimal("12345"), rate, LineDiscount(type=DiscountType.PERCENT, value=Decimal("0"))
        )
        assert round_currency(price) == Decimal("12345")

    def test_value_discount_subtracts_amount(self):
        price = TaxCalculator.discounted_unit_price(Decimal("10000"), 8, {"type": "VALUE", "value": 1500})
        assert price == Decimal("8500")

    def test_value_discount_never_negative(self):
        price = TaxCalculator.discounted_unit_price(Decimal("1000"), 0, {"type": "value", "value": 5000})
        assert price == Decimal("0")

    def test_percent_discount_without_tax(self):
        price = TaxCalculator.discounted_unit_price(Decimal("20000"), 0, {"type": "PERCENT", "value": 25})
        assert price == Decimal("15000")

    def test_without_discount_uses_known_price(self):
        """Test sin descuento se respeta el precio de venta ya conocido"""
        assert TaxCalculator.discounted_unit_price(Decimal("10000"), 8, None, Decimal("9500")) == Decimal("9500")
        assert TaxCalculator.discounted_unit_price(Decimal("10000"), 8) == Decimal("10000")


# ===== LÍNEAS Y TOTALES =====

class TestLineCalculation:
    """El impuesto se extrae del valor bruto"""

    def test_line_extracts_included_tax(self):
        line = TaxCalculator.calculate_line(Decimal("9000"), 2, Decimal("8"), Decimal("10000"))
        assert line.quantity == 2
        assert round_currency(line.total) == Decimal("18000")
        assert round_currency(line.tax_amount) == Decimal("1333")
        assert round_currency(line.subtotal) == Decimal("16667")
        assert line.original_unit_price == Decimal("10000")

    def test_line_without_tax(self):
        line = TaxCalculator.calculate_line(Decimal("50000"), 1, 0)
        assert line.tax_amount == Decimal("0")
        assert line.subtotal == Decimal("50000")
        assert line.original_unit_price == Decimal("50000")

    def test_quantity_floor_is_one(self):
        line = TaxCalculator.calculate_line(Decimal("5000"), 0)
        assert line.quantity == 1
        assert line.total == Decimal("5000")

    def test_discounted_line_end_to_end(self):
        """Test 10% de descuento con INC 8% y cantidad 2"""
        price = TaxCalculator.discounted_unit_price(Decimal("10000"), 8, {"type": "PERCENT", "value": 10})
        totals = TaxCalculator.calculate_totals([TaxCalculator.calculate_line(price, 2, 8)])
        assert totals.total == Decimal("18000")
        assert totals.tax == Decimal("1333")
        assert totals.subtotal == Decimal("16667")


class TestTotals:
    def test_totals_equal_sum_of_prices_without_discount(self):
        """Test sin descuentos el total es la suma de precio x cantidad redondeada"""
        items = [(Decimal("12500.40"), 3), (Decimal("8900"), 1), (Decimal("3200.55"), 2)]
        lines = [TaxCalculator.calculate_line(price, qty, 8) for price, qty in items]
        totals = TaxCalculator.calculate_totals(lines)
        assert totals.total == round_currency(sum(price * qty for price, qty in items))

    def test_totals_fall_back_to_stored_bills(self):
        totals = TaxCalculator.calculate_totals([], {"subtotal": 100000, "tax": 8000, "total": 108000})
        assert totals.subtotal == Decimal("100000")
        assert totals.tax == Decimal("8000")
        assert totals.total == Decimal("108000")

    def test_zero_tax_falls_back_independently(self):
        """Test cada total que sume cero usa su valor guardado"""
        lines = [TaxCalculator.calculate_line(Decimal("1000"), 1, 0)]
        totals = TaxCalculator.calculate_totals(lines, {"tax": 80})
        assert totals.total == Decimal("1000")
        assert totals.tax == Decimal("80")


class TestHelpers:
    def test_round_currency_half_up(self):
        assert round_currency(Decimal("1333.5")) == Decimal("1334")
        assert round_currency("1333.49") == Decimal("1333")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("8") == Decimal("8")


# ===== API =====

class TestTaxesApi:
    def test_admin_creates_tax(self, client, admin_headers):
        response = client.post("/taxes/", headers=admin_headers, json={
            "name": "IVA 19%", "code": "01", "rate": 19, "type": "VAT"
        })
        assert response.status_code == 201
        assert response.json()["regimen"] == "REGIMEN_COMUN"

    def test_cashier_cannot_create_tax(self, client, cashier_headers):
        response = client.post("/taxes/", headers=cashier_headers, json={
            "name": "IVA 5%", "code": "01", "rate": 5, "type": "VAT"
        })
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_list_requires_token(self, client):
        response = client.get("/taxes/")
        assert response.status_code == 401
