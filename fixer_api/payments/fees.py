from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings

from .exceptions import InvalidAmount

CENT = Decimal('0.01')


@dataclass(frozen=True)
class FeeBreakdown:
    base_amount: Decimal
    service_fee: Decimal
    total_amount: Decimal  # charged to the poster
    net_amount: Decimal  # paid out to the worker


def to_money(value):
    """Coerce to a two-place Decimal, rounding half up."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_fees(base_amount, rate=None, minimum=None) -> FeeBreakdown:
    """
    Service fee is max(minimum, base * rate), rounded half up to the cent.

    The same fee is added on top of the base for the poster (total_amount)
    and taken off the base for the worker (net_amount).
    """
    base = to_money(base_amount)
    if base <= 0:
        raise InvalidAmount("Amount must be greater than zero.")

    rate = Decimal(str(settings.SERVICE_FEE_RATE if rate is None else rate))
    minimum = to_money(settings.SERVICE_FEE_MINIMUM if minimum is None else minimum)

    service_fee = max(minimum, (base * rate).quantize(CENT, rounding=ROUND_HALF_UP))
    return FeeBreakdown(
        base_amount=base,
        service_fee=service_fee,
        total_amount=base + service_fee,
        net_amount=base - service_fee,
    )


def worker_fees(base_amount) -> FeeBreakdown:
    """Fee schedule applied to worker payouts."""
    return compute_fees(
        base_amount,
        rate=settings.WORKER_FEE_RATE,
        minimum=settings.WORKER_FEE_MINIMUM,
    )


def to_minor_units(amount):
    """Decimal dollars to integer cents for the processor."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
