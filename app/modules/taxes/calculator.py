"""
Cálculo de precios con impuesto incluido y descuentos por línea.

Los precios de carta ya incluyen el impuesto (INC/IVA); el calculador
lo descuenta del valor bruto en lugar de sumarlo. Los totales se
redondean a pesos enteros al momento de sumarlos.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Any

from app.modules.taxes.models import DiscountType
from app.modules.taxes.schemas import LineCalculation, TotalsCalculation

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convierte números, strings o None a Decimal (None → 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value: Any) -> Decimal:
    """Redondeo comercial a pesos enteros (sin centavos)."""
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def _discount_field(discount: Any, field: str):
    if isinstance(discount, dict):
        return discount.get(field)
    return getattr(discount, field, None)


class TaxCalculator:
    """Helper para calcular precios con descuento e impuesto incluido"""

    @staticmethod
    def discounted_unit_price(
        original_unit_price: Any,
        tax_rate_percent: Any = 0,
        discount: Optional[Any] = None,
        fallback_unit_price: Optional[Any] = None
    ) -> Decimal:
        """
        Precio unitario efectivo de una línea.

        Args:
            original_unit_price: Precio de carta antes del descuento
            tax_rate_percent: Tasa del impuesto en porcentaje (8 para 8%)
            discount: Descuento {type, value} o None
            fallback_unit_price: Precio de venta ya conocido; se usa cuando no hay descuento

        Returns:
            Precio unitario con impuesto incluido
        """
        original = to_decimal(original_unit_price)
        rate = to_decimal(tax_rate_percent)

        if not discount:
            fallback = to_decimal(fallback_unit_price)
            return fallback or original

        discount_type = _discount_field(discount, "type")
        if isinstance(discount_type, str):
            discount_type = DiscountType(discount_type.strip().upper())
        value = to_decimal(_discount_field(discount, "value"))

        if discount_type == DiscountType.VALUE:
            return max(ZERO, original - value)

        if discount_type == DiscountType.PERCENT:
            factor = 1 + rate / HUNDRED
            base = original / factor if rate > 0 else original
            new_base = max(ZERO, base - base * value / HUNDRED)
            return new_base * factor if rate > 0 else new_base

        return original

    @staticmethod
    def calculate_line(
        unit_price: Any,
        quantity: Any,
        tax_rate_percent: Any = 0,
        original_unit_price: Optional[Any] = None
    ) -> LineCalculation:
        """
        Valores de una línea: el impuesto se extrae del bruto.

        La cantidad mínima facturable es 1.
        """
        qty = max(1, int(quantity or 0))
        price = to_decimal(unit_price)
        rate = to_decimal(tax_rate_percent)

        gross = price * qty
        tax_amount = gross - gross / (1 + rate / HUNDRED) if rate > 0 else ZERO
        subtotal = gross - tax_amount

        return LineCalculation(
            quantity=qty,
            unit_price=price,
            original_unit_price=to_decimal(original_unit_price) if original_unit_price is not None else price,
            tax_rate=rate,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=subtotal + tax_amount
        )

    @staticmethod
    def calculate_totals(
        lines: Iterable[LineCalculation],
        fallback: Optional[dict] = None
    ) -> TotalsCalculation:
        """
        Sumar las líneas y redondear a pesos enteros.

        Cada total que sume cero cae al valor guardado en el pedido
        (``fallback``) para tolerar pedidos con datos parciales.
        """
        subtotal = tax = total = ZERO
        for line in lines:
            subtotal += line.subtotal
            tax += line.tax_amount
            total += line.subtotal + line.tax_amount

        fallback = fallback or {}
        if not subtotal:
            subtotal = to_decimal(fallback.get("subtotal"))
        if not tax:
            tax = to_decimal(fallback.get("tax"))
        if not total:
            total = to_decimal(fallback.get("total"))

        return TotalsCalculation(
            subtotal=round_currency(subtotal),
            tax=round_currency(tax),
            total=round_currency(total)
        )


def get_standard_restaurant_taxes() -> list:
    """
    Impuestos habituales de un restaurante en Colombia.
    Útil para seeds e interfaces de usuario.
    """
    return [
        {"name": "INC 8%", "code": "04", "rate": Decimal("8"), "type": "INC", "regimen": "REGIMEN_COMUN"},
        {"name": "IVA 19%", "code": "01", "rate": Decimal("19"), "type": "VAT", "regimen": "REGIMEN_COMUN"},
        {"name": "IVA 5%", "code": "01", "rate": Decimal("5"), "type": "VAT", "regimen": "REGIMEN_COMUN"},
        {"name": "Excluido", "code": "ZZ", "rate": Decimal("0"), "type": "EXEMPT", "regimen": "NO_RESPONSABLE"},
    ]
