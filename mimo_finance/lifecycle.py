"""
Payment Status Lifecycle

Enumerates payment states, the transitions between them, and what each
audience is allowed to see. The backend owns enforcement; this module only
reports which actions are currently legal so callers can enable or disable them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable, NamedTuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PaymentStatus(str, Enum):
    CREATING = "CREATING"
    PENDING = "PENDING"
    SHARED = "SHARED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    ON_HOLD = "ON_HOLD"
    PAID = "PAID"


class Audience(str, Enum):
    ADMIN = "admin"
    PARTNER = "partner"


STATUS_ALIASES = {
    "AWAITING": PaymentStatus.SHARED,
    "AWAITING_APPROVAL": PaymentStatus.SHARED,
    "ONHOLD": PaymentStatus.ON_HOLD,
    "HOLD": PaymentStatus.ON_HOLD,
}

TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.CREATING: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.PENDING: frozenset({PaymentStatus.SHARED, PaymentStatus.ON_HOLD}),
    PaymentStatus.ON_HOLD: frozenset({PaymentStatus.PENDING, PaymentStatus.SHARED}),
    PaymentStatus.DECLINED: frozenset({PaymentStatus.SHARED}),
    PaymentStatus.SHARED: frozenset({PaymentStatus.APPROVED, PaymentStatus.DECLINED}),
    PaymentStatus.APPROVED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset(),
}

# States in which linkage and line amounts may change and a linked service may be claimed again.
REOPENABLE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.ON_HOLD, PaymentStatus.DECLINED})
PARTNER_VISIBLE_STATUSES = frozenset(
    {
        PaymentStatus.SHARED,
        PaymentStatus.APPROVED,
        PaymentStatus.PAID,
        PaymentStatus.DECLINED,
        PaymentStatus.ON_HOLD,
    }
)
OPEN_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.SHARED, PaymentStatus.APPROVED, PaymentStatus.ON_HOLD})

ADMIN_LABELS = {
    PaymentStatus.CREATING: "creating",
    PaymentStatus.PENDING: "pending",
    PaymentStatus.SHARED: "AWAITING APPROVAL",
    PaymentStatus.APPROVED: "approved",
    PaymentStatus.DECLINED: "declined",
    PaymentStatus.ON_HOLD: "on hold",
    PaymentStatus.PAID: "paid",
}
PARTNER_PENDING = frozenset({PaymentStatus.CREATING, PaymentStatus.PENDING, PaymentStatus.SHARED})


class LegalActions(NamedTuple):
    can_share: bool
    can_approve: bool
    can_decline: bool
    can_mark_paid: bool
    can_hold: bool
    can_release: bool
    can_edit_lines: bool
    can_add_note: bool


class TransitionCheck(NamedTuple):
    allowed: bool
    reason: str | None


def parse_status(value: Any) -> PaymentStatus:
    """
    Map a raw status string onto PaymentStatus.

    Blank input is the system-assigned initial state (PENDING). Unknown values
    also fall back to PENDING, which keeps them admin-only.
    """
    if isinstance(value, PaymentStatus):
        return value
    text = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if not text:
        return PaymentStatus.PENDING
    if text in STATUS_ALIASES:
        return STATUS_ALIASES[text]
    try:
        return PaymentStatus(text)
    except ValueError:
        logger.info("Unknown payment status %r treated as PENDING", value)
        return PaymentStatus.PENDING


def legal_actions(status: Any, audience: Audience | str = Audience.ADMIN) -> LegalActions:
    """Actions open to ``audience``. Partners may only approve or decline a shared payment and add notes."""
    current = parse_status(status)
    allowed = TRANSITIONS[current]
    if Audience(audience) is Audience.PARTNER:
        return LegalActions(
            can_share=False,
            can_approve=PaymentStatus.APPROVED in allowed,
            can_decline=PaymentStatus.DECLINED in allowed,
            can_mark_paid=False,
            can_hold=False,
            can_release=False,
            can_edit_lines=False,
            can_add_note=True,
        )
    return LegalActions(
        can_share=PaymentStatus.SHARED in allowed,
        can_approve=PaymentStatus.APPROVED in allowed,
        can_decline=PaymentStatus.DECLINED in allowed,
        can_mark_paid=PaymentStatus.PAID in allowed,
        can_hold=PaymentStatus.ON_HOLD in allowed,
        can_release=current is PaymentStatus.ON_HOLD,
        can_edit_lines=current in REOPENABLE_STATUSES,
        can_add_note=True,
    )


def check_transition(current: Any, target: Any, note: str | None = None) -> TransitionCheck:
    source = parse_status(current)
    destination = parse_status(target)
    if destination not in TRANSITIONS[source]:
        return TransitionCheck(False, f"{source.value} -> {destination.value} is not a legal transition")
    if destination is PaymentStatus.DECLINED and not (note or "").strip():
        return TransitionCheck(False, "Declining a payment requires a note")
    return TransitionCheck(True, None)


def display_status(status: Any, audience: Audience | str = Audience.ADMIN) -> str:
    current = parse_status(status)
    if Audience(audience) is Audience.PARTNER and current in PARTNER_PENDING:
        return "pending"
    return ADMIN_LABELS[current]


def is_visible_to_partner(status: Any) -> bool:
    return parse_status(status) in PARTNER_VISIBLE_STATUSES


def is_modifiable(status: Any) -> bool:
    return parse_status(status) in REOPENABLE_STATUSES


def is_reopenable(status: Any) -> bool:
    return parse_status(status) in REOPENABLE_STATUSES


def status_of(record: Any) -> Any:
    if isinstance(record, dict):
        return record.get("status") or record.get("state")
    return getattr(record, "status", None)


def filter_visible_to_partner(payments: Iterable[T]) -> list[T]:
    return [payment for payment in payments if is_visible_to_partner(status_of(payment))]
