"""Caller identity and role permissions."""

from sparkgate.identity.types import (
    CallerIdentity,
    Role,
    can_create_invoice,
    can_manage,
    can_pay,
)

__all__ = [
    "CallerIdentity",
    "Role",
    "can_pay",
    "can_create_invoice",
    "can_manage",
]
