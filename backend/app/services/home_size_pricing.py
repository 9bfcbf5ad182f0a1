from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional, Tuple

from ..core.config import settings

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PricingPolicy:
    base_price: Decimal
    extra_bed_bath_fee: Decimal
    half_bath_fee: Decimal

    @classmethod
    def from_settings(cls) -> "PricingPolicy":
        return cls(
            base_price=Decimal(settings.PRICING_BASE_PRICE),
            extra_bed_bath_fee=Decimal(settings.PRICING_EXTRA_BED_BATH_FEE),
            half_bath_fee=Decimal(settings.PRICING_HALF_BATH_FEE),
        )


def home_size_price(beds: int, baths: Decimal | float | int, policy: PricingPolicy) -> Decimal:
    """List price of a cleaning for a home of the given size.

    base + extra beds beyond the first + extra full baths beyond the first,
    plus a half-bath fee when the bath count ends in .5 or more. A home with
    under one full bath has its only bath covered by the base price.
    """
    baths = Decimal(str(baths))
    full_baths = baths.to_integral_value(rounding=ROUND_FLOOR)
    extra_beds = max(0, int(beds) - 1)
    extra_baths = max(Decimal("0"), full_baths - 1)
    half_baths = 1 if full_baths >= 1 and (baths - full_baths) >= Decimal("0.5") else 0
    return (
        policy.base_price
        + extra_beds * policy.extra_bed_bath_fee
        + extra_baths * policy.extra_bed_bath_fee
        + half_baths * policy.half_bath_fee
    )


def recalculate_price(
    original_beds: int,
    original_baths: Decimal | float | int,
    original_price: Decimal | float | int,
    reported_beds: int,
    reported_baths: Decimal | float | int,
    policy: Optional[PricingPolicy] = None,
) -> Tuple[Decimal, Decimal]:
    """Return ``(new_price, delta)`` for a reported home size.

    The appointment keeps whatever it was actually booked at (promos, add-ons)
    and moves by the list-price difference between the two sizes. The result
    never goes below zero and is rounded to cents.
    """
    policy = policy or PricingPolicy.from_settings()
    original_price = Decimal(str(original_price)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    size_delta = home_size_price(reported_beds, reported_baths, policy) - home_size_price(
        original_beds, original_baths, policy
    )
    new_price = max(Decimal("0"), original_price + size_delta).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return new_price, new_price - original_price
