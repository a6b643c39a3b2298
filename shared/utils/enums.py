from enum import Enum


class UserAccountType(str, Enum):
    ORGANIZATION = "organization"
    TENANT = "tenant"
    STAFF = "staff"
    SUPER_ADMIN = "super_admin"
