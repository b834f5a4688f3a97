"""
Caller identity and role permissions.

Identities arrive already verified (token verification lives outside the
engine). Each identity carries the limits its budget is enforced with.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sparkgate.core.config import Config


class Role(str, Enum):
    """Access role attached to a caller credential."""

    ADMIN = "admin"
    INVOICE = "invoice"
    PAY_ONLY = "pay-only"
    READ_ONLY = "read-only"

    @classmethod
    def from_string(cls, value: str) -> Role:
        for member in cls:
            if member.value == value.lower():
                return member
        raise ValueError(f"Unknown role: {value}. Supported: {[r.value for r in cls]}")


def can_pay(role: Role) -> bool:
    """Roles that can send payments (pay invoices, L402)."""
    return role in (Role.ADMIN, Role.PAY_ONLY)


def can_create_invoice(role: Role) -> bool:
    """Roles that can create invoices."""
    return role in (Role.ADMIN, Role.INVOICE)


def can_manage(role: Role) -> bool:
    """Roles that can transfer funds and reset budgets."""
    return role == Role.ADMIN


@dataclass(frozen=True)
class CallerIdentity:
    """
    A verified caller.

    Attributes:
        caller_id: Budget namespace. Callers sharing a budget pool share an id.
        role: Access role (a role name such as "pay-only" is accepted)
        max_tx_sats: Per-transaction cap (None = config default)
        daily_budget_sats: Per-UTC-day cap (None = config default)
        label: Human-readable name for logs
    """

    caller_id: str
    role: Role | str = Role.READ_ONLY
    max_tx_sats: int | None = None
    daily_budget_sats: int | None = None
    label: str = ""

    def __post_init__(self) -> None:
        if not self.caller_id:
            raise ValueError("caller_id is required")
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role.from_string(self.role))

    def with_defaults(self, config: Config) -> CallerIdentity:
        """Fill missing limits from configuration."""
        return CallerIdentity(
            caller_id=self.caller_id,
            role=self.role,
            max_tx_sats=(
                self.max_tx_sats if self.max_tx_sats is not None else config.default_max_tx_sats
            ),
            daily_budget_sats=(
                self.daily_budget_sats
                if self.daily_budget_sats is not None
                else config.default_daily_budget_sats
            ),
            label=self.label,
        )
