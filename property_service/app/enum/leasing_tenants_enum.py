from enum import Enum


class LeaseStatus(str, Enum):
    active = "active"
    expired = "expired"
    terminated = "terminated"
    draft = "draft"


class BillingCycle(str, Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    annually = "annually"
