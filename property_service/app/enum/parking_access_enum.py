from enum import Enum


class AssignmentType(str, Enum):
    tenant = "tenant"
    visitor = "visitor"


class BillingPeriod(str, Enum):
    monthly = "monthly"
    daily = "daily"
    hourly = "hourly"


class AssignmentStatus(str, Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"
