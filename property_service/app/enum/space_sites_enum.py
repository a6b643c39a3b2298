from enum import Enum


class RateSource(str, Enum):
    unit_flat_override = "unit-flat-override"
    unit_rate_override = "unit-rate-override"
    floor_override = "floor-override"
    policy_computed = "policy-computed"
    policy_computed_clamped = "policy-computed-clamped"
    insufficient_data = "insufficient-data"
