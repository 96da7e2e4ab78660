"""Tax & service charge calculation.

Pure functions, no I/O. Amounts are integers in minor currency units and every
component is rounded half-up on its own.
"""
from decimal import Decimal, ROUND_HALF_UP

from app.schemas.orders import PricingBreakdown
from app.schemas.tenant import TenantFiscalConfig


def round_minor(x: Decimal) -> int:
    return int(x.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _rate(r: float) -> Decimal:
    # via str to avoid float binary artifacts (0.18 -> 0.18, not 0.17999...)
    return Decimal(str(r))


def calculate_tax(subtotal: int, config: TenantFiscalConfig) -> int:
    if not config.enable_tax or not config.tax_rate or config.tax_rate <= 0:
        return 0
    return round_minor(Decimal(subtotal) * _rate(config.tax_rate))


def calculate_service_charge(subtotal: int, config: TenantFiscalConfig) -> int:
    # always on the pre-discount subtotal
    if not config.enable_service_charge or not config.service_charge_rate or config.service_charge_rate <= 0:
        return 0
    return round_minor(Decimal(subtotal) * _rate(config.service_charge_rate))


def calculate_order_total(subtotal: int, config: TenantFiscalConfig, discount_amount: int = 0) -> PricingBreakdown:
    """
    Full pricing breakdown for an order.

    >>> cfg = TenantFiscalConfig(enable_tax=True, tax_rate=0.18, enable_service_charge=True, service_charge_rate=0.10)
    >>> calculate_order_total(10000, cfg, 0).total
    12800
    """
    if subtotal < 0:
        raise ValueError("subtotal must be non-negative")
    tax = calculate_tax(subtotal, config)
    service = calculate_service_charge(subtotal, config)
    discount = min(max(int(discount_amount), 0), subtotal)
    return PricingBreakdown(
        subtotal=subtotal,
        tax_amount=tax,
        service_charge_amount=service,
        discount_amount=discount,
        total=subtotal + tax + service - discount,
    )
