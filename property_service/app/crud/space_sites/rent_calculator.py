"""Resolve a unit's monthly rent from its building's rent policy.

Pure functions only; persistence lives in ``rent_bulk_update_crud``.
"""
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from shared.helpers.money_helper import round_money

from ...enum.space_sites_enum import RateSource
from ...schemas.space_sites.rent_policy_schemas import RentPolicy, RentResolution, UnitRentAttributes


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _insufficient(reason: str, **extra) -> RentResolution:
    return RentResolution(
        total=None,
        rate_source=RateSource.insufficient_data.value,
        breakdown={"reason": reason, **extra},
    )


def _find_floor_override(policy: RentPolicy, floor: int):
    for entry in policy.floor_overrides:
        if entry.floor == floor:
            return entry
    return None


def _clamp(policy: RentPolicy, rate: Decimal) -> Tuple[Decimal, bool]:
    if policy.min_rate_per_sqm is not None and rate < policy.min_rate_per_sqm:
        return policy.min_rate_per_sqm, True
    return rate, False


def compute_policy_rate(policy: RentPolicy, floor: int) -> Dict[str, Any]:
    """Rate per sqm from base rate, per-floor decrement, ground multiplier and minimum."""
    decrement = policy.decrement_per_floor or Decimal(0)
    floors_above_first = max(floor - 1, 0)
    rate = policy.base_rate_per_sqm - decrement * floors_above_first

    multiplier_applied = False
    if floor <= 0 and policy.ground_floor_multiplier is not None:
        rate = rate * policy.ground_floor_multiplier
        multiplier_applied = True

    rate, clamped = _clamp(policy, rate)

    return {
        "rate": rate,
        "floors_above_first": floors_above_first,
        "multiplier_applied": multiplier_applied,
        "clamped": clamped,
    }


def resolve_rent(
    policy: Optional[RentPolicy],
    unit: UnitRentAttributes,
    precision: Optional[int] = None,
) -> RentResolution:
    # 1. flat override, returned verbatim
    if unit.flat_rent_override is not None:
        return RentResolution(
            total=unit.flat_rent_override,
            rate_source=RateSource.unit_flat_override.value,
            breakdown={"flatRentOverride": _num(unit.flat_rent_override)},
        )

    if unit.area is None:
        return _insufficient("missing-area", floor=unit.floor)

    # 2. per-unit rate override
    if unit.rate_per_sqm_override is not None:
        rate = unit.rate_per_sqm_override
        return RentResolution(
            total=round_money(rate * unit.area, precision),
            rate_source=RateSource.unit_rate_override.value,
            breakdown={
                "ratePerSqm": _num(rate),
                "area": _num(unit.area),
                "floor": unit.floor,
            },
        )

    if policy is None:
        return _insufficient("missing-policy", area=_num(unit.area))
    if unit.floor is None:
        return _insufficient("missing-floor", area=_num(unit.area))

    # 3. floor specific rate
    floor_override = _find_floor_override(policy, unit.floor)
    if floor_override is not None:
        rate, clamped = _clamp(policy, floor_override.rate_per_sqm)
        return RentResolution(
            total=round_money(rate * unit.area, precision),
            rate_source=RateSource.floor_override.value,
            breakdown={
                "ratePerSqm": _num(rate),
                "area": _num(unit.area),
                "floor": unit.floor,
                "minRatePerSqm": _num(policy.min_rate_per_sqm),
                "clamped": clamped,
            },
        )

    # 4. computed from the policy
    computed = compute_policy_rate(policy, unit.floor)
    rate = computed["rate"]
    rate_source = (
        RateSource.policy_computed_clamped if computed["clamped"]
        else RateSource.policy_computed
    )
    return RentResolution(
        total=round_money(rate * unit.area, precision),
        rate_source=rate_source.value,
        breakdown={
            "ratePerSqm": _num(rate),
            "area": _num(unit.area),
            "floor": unit.floor,
            "baseRatePerSqm": _num(policy.base_rate_per_sqm),
            "decrementPerFloor": _num(policy.decrement_per_floor),
            "floorsAboveFirst": computed["floors_above_first"],
            "groundFloorMultiplier": _num(policy.ground_floor_multiplier)
            if computed["multiplier_applied"] else None,
            "minRatePerSqm": _num(policy.min_rate_per_sqm),
            "clamped": computed["clamped"],
        },
    )
