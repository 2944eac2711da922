#!/usr/bin/env python3

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, NamedTuple

from mimo_finance.business_calendar import (
    DEFAULT_ANCHOR_DOW,
    BusinessWeek,
    anchor_month_for_range,
    month_key,
    wall_clock,
    week_containing,
)
from mimo_finance.core import (
    ZERO,
    Payment,
    Service,
    client_name,
    first_present,
    instant_sort_value,
    normalize_payment,
    normalize_service,
)
from mimo_finance.fuzzy import FuzzySettings, cluster_names, name_key, normalize_name, representative_name
from mimo_finance.lifecycle import OPEN_STATUSES, PaymentStatus, filter_visible_to_partner
from mimo_finance.reconciler import ServiceIndex, resolve_service_lines
from mimo_finance.utils.drafts import apply_line_drafts

UNKNOWN_PARTNER = "Unknown Partner"
UNKNOWN_CLIENT = "Unknown Client"
UNASSIGNED_PARTNER_KEY = "unassigned"

PaymentLike = Mapping[str, Any] | Payment
ServiceLike = Mapping[str, Any] | Service


@dataclass
class PartnerSummary:
    partner_id: str
    display_name: str
    count: int = 0
    total: Decimal = ZERO
    last_status: PaymentStatus | None = None
    last_activity: float | None = None
    items: list[Any] = field(default_factory=list)


@dataclass
class ClientSummary:
    key: str
    display_name: str
    count: int = 0
    total: Decimal = ZERO
    names: list[str] = field(default_factory=list)
    items: list[Service] = field(default_factory=list)
    last_service_date: datetime | None = None


class WeekTotals(NamedTuple):
    total: Decimal
    open_amount: Decimal
    paid_amount: Decimal
    count: int


class WalletMetrics(NamedTuple):
    week_total: Decimal
    month_total: Decimal
    year_total: Decimal
    awaiting_count: int


class StatusBoard(NamedTuple):
    approved: list[Payment]
    shared: list[Payment]
    paid: list[Payment]


def line_total(
    payment: PaymentLike,
    lines: list[Service],
    drafts: Mapping[str, Any] | None = None,
) -> Decimal:
    """Sum of line amounts (drafts applied), or the payment's stored total when there are no lines."""
    if lines:
        effective, _ = apply_line_drafts(lines, drafts)
        return sum((line.final_value for line in effective), ZERO)
    record = normalize_payment(payment)
    return record.total if record.total is not None else ZERO


def payment_amount(
    payment: PaymentLike,
    lines: list[Service],
    drafts: Mapping[str, Any] | None = None,
) -> Decimal:
    """
    The amount a payment is worth.

    A stored non-zero total is authoritative, except while lines are being
    edited, when the recomputed sum wins.
    """
    record = normalize_payment(payment)
    if drafts:
        return line_total(record, lines, drafts)
    if record.total:
        return record.total
    return line_total(record, lines)


def directory_name(entry: Any) -> str | None:
    if entry is None:
        return None
    if isinstance(entry, Mapping):
        name = first_present(entry, "name", "fullName", "displayName")
        if name is None:
            parts = [str(entry.get(k) or "").strip() for k in ("firstName", "lastName")]
            name = " ".join(part for part in parts if part) or None
        return str(name).strip() if name else None
    text = str(entry).strip()
    return text or None


def build_partner_directory(users: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    directory: dict[str, str] = {}
    for user in users:
        user_id = first_present(user, "id", "_id")
        name = directory_name(user)
        if user_id is not None and name:
            directory[str(user_id)] = name
    return directory


def resolve_partner_name(
    record: Payment | Service,
    directory: Mapping[str, Any] | None = None,
    fallback: str = UNKNOWN_PARTNER,
) -> str:
    if record.partner_name:
        return record.partner_name
    if directory and record.partner_id:
        name = directory_name(directory.get(record.partner_id))
        if name:
            return name
    return fallback


def _limit(summaries: list[PartnerSummary], limit: int | None) -> list[PartnerSummary]:
    return summaries[:limit] if limit is not None else summaries


def _summary_for(
    summaries: dict[str, PartnerSummary],
    record: Payment | Service,
    directory: Mapping[str, Any] | None,
    unknown_label: str,
) -> PartnerSummary:
    key = record.partner_id or UNASSIGNED_PARTNER_KEY
    name = resolve_partner_name(record, directory, unknown_label)
    summary = summaries.get(key)
    if summary is None:
        summary = PartnerSummary(partner_id=key, display_name=name)
        summaries[key] = summary
    elif name != unknown_label:
        # last write wins, but a placeholder never overwrites a real name
        summary.display_name = name
    return summary


def partner_service_rankings(
    services: Iterable[ServiceLike],
    directory: Mapping[str, Any] | None = None,
    limit: int | None = None,
    unknown_label: str = UNKNOWN_PARTNER,
) -> list[PartnerSummary]:
    """Partners ranked by service count, then revenue."""
    summaries: dict[str, PartnerSummary] = {}
    for service in map(normalize_service, services):
        summary = _summary_for(summaries, service, directory, unknown_label)
        summary.count += 1
        summary.total += service.final_value
        summary.items.append(service)

    ranked = sorted(summaries.values(), key=lambda s: (s.count, s.total), reverse=True)
    return _limit(ranked, limit)


def partner_payment_rankings(
    payments: Iterable[PaymentLike],
    directory: Mapping[str, Any] | None = None,
    service_index: ServiceIndex | None = None,
    limit: int | None = None,
    unknown_label: str = UNKNOWN_PARTNER,
) -> list[PartnerSummary]:
    """Partners ranked by paid-out amount. ``last_status`` follows the most recently updated payment."""
    summaries: dict[str, PartnerSummary] = {}
    for payment in map(normalize_payment, payments):
        summary = _summary_for(summaries, payment, directory, unknown_label)
        lines = resolve_service_lines(payment, service_index) if service_index is not None else []
        summary.count += 1
        summary.total += payment_amount(payment, lines)
        summary.items.append(payment)

        activity = instant_sort_value(payment.updated_at or payment.created_at)
        if activity is None:
            if summary.last_activity is None:
                summary.last_status = payment.status
        elif summary.last_activity is None or activity >= summary.last_activity:
            summary.last_activity = activity
            summary.last_status = payment.status

    ranked = sorted(summaries.values(), key=lambda s: s.total, reverse=True)
    return _limit(ranked, limit)


def earned_anchor(payment: PaymentLike) -> datetime | None:
    record = normalize_payment(payment)
    return record.week_start or record.created_at


def paid_anchor(payment: PaymentLike) -> datetime | None:
    record = normalize_payment(payment)
    return record.paid_at or record.week_start


def payment_week_key(
    payment: PaymentLike,
    timezone: str | None = None,
    anchor_dow: int = DEFAULT_ANCHOR_DOW,
) -> str | None:
    """Key computed from ``weekStart`` when present, else the stored ``weekKey``, else ``createdAt``."""
    record = normalize_payment(payment)
    if record.week_start is None and record.week_key:
        return record.week_key
    week = week_containing(earned_anchor(record), timezone, anchor_dow)
    return week.key if week else None


def earned_in_week(payment: PaymentLike, week: BusinessWeek) -> bool:
    return payment_week_key(payment, week.timezone, week.anchor_dow) == week.key


def earned_in_month(payment: PaymentLike, year_month: str, timezone: str | None = None) -> bool:
    return month_key(earned_anchor(payment), timezone) == year_month


def paid_in_month(payment: PaymentLike, year_month: str, timezone: str | None = None) -> bool:
    return month_key(paid_anchor(payment), timezone) == year_month


def period_month(payment: PaymentLike, timezone: str | None = None) -> str | None:
    """Month label for a payment's period: the month holding most of its days."""
    record = normalize_payment(payment)
    if record.week_start and record.week_end:
        return anchor_month_for_range(record.week_start, record.week_end, timezone)
    return month_key(earned_anchor(record), timezone)


def payments_for_week(payments: Iterable[PaymentLike], week: BusinessWeek) -> list[Payment]:
    return [payment for payment in map(normalize_payment, payments) if earned_in_week(payment, week)]


def service_dedupe_key(service: ServiceLike) -> str:
    record = normalize_service(service)
    if record.id:
        return record.id
    amount = record.final_value
    amount_text = str(int(amount)) if amount == amount.to_integral_value() else format(amount.normalize(), "f")
    return "|".join(
        [
            normalize_name(client_name(record)),
            (record.service_date_raw or "")[:10],
            normalize_name(record.service_type),
            amount_text,
        ]
    )


def _merge_clients(groups: list[ClientSummary], settings: FuzzySettings | None) -> list[ClientSummary]:
    merged: list[ClientSummary] = []
    clusters = cluster_names(
        groups,
        name_of=lambda group: group.display_name,
        recency_of=lambda group: group.last_service_date,
        settings=settings,
    )
    for cluster in clusters:
        seed = cluster.members[0]
        combined = ClientSummary(key=seed.key, display_name="")
        for member in cluster.members:
            combined.count += member.count
            combined.total += member.total
            combined.names.extend(member.names)
            combined.items.extend(member.items)
            combined.last_service_date = _latest(combined.last_service_date, member.last_service_date)
        combined.display_name = representative_name(combined.names) or UNKNOWN_CLIENT
        merged.append(combined)
    return merged


def _latest(current: datetime | None, candidate: datetime | None) -> datetime | None:
    if candidate is None:
        return current
    if current is None:
        return candidate
    return candidate if instant_sort_value(candidate) > instant_sort_value(current) else current


def weekly_client_summary(
    payments: Iterable[PaymentLike],
    service_index: ServiceIndex,
    week: BusinessWeek,
    merge_similar: bool = False,
    fuzzy: FuzzySettings | None = None,
) -> list[ClientSummary]:
    """
    Who cost what in one business week.

    Services of every payment earned in ``week`` are grouped by client name key.
    A service reachable through several payments is counted once. With
    ``merge_similar`` the groups are further merged by fuzzy name matching.
    """
    seen: set[str] = set()
    groups: dict[str, ClientSummary] = {}
    for payment in payments_for_week(payments, week):
        for line in resolve_service_lines(payment, service_index):
            dedupe = service_dedupe_key(line)
            if dedupe in seen:
                continue
            seen.add(dedupe)

            raw_name = client_name(line)
            key = name_key(raw_name) or f"unknown:{dedupe}"
            group = groups.get(key)
            if group is None:
                group = ClientSummary(key=key, display_name="")
                groups[key] = group
            group.count += 1
            group.total += line.final_value
            group.items.append(line)
            if raw_name:
                group.names.append(raw_name)
            group.last_service_date = _latest(group.last_service_date, line.service_date)

    summaries = list(groups.values())
    for summary in summaries:
        summary.display_name = representative_name(summary.names) or UNKNOWN_CLIENT
    if merge_similar:
        summaries = _merge_clients(summaries, fuzzy)
    return sorted(summaries, key=lambda s: s.total, reverse=True)


def week_totals(
    payments: Iterable[PaymentLike],
    week: BusinessWeek,
    service_index: ServiceIndex | None = None,
) -> WeekTotals:
    total = open_amount = paid_amount = ZERO
    count = 0
    for payment in payments_for_week(payments, week):
        lines = resolve_service_lines(payment, service_index) if service_index is not None else []
        amount = payment_amount(payment, lines)
        count += 1
        total += amount
        if payment.status in OPEN_STATUSES:
            open_amount += amount
        elif payment.status is PaymentStatus.PAID:
            paid_amount += amount
    return WeekTotals(total=total, open_amount=open_amount, paid_amount=paid_amount, count=count)


def partner_scoped_payments(payments: Iterable[PaymentLike], partner_id: str) -> list[Payment]:
    """Payments a partner may see: their own, and only once shared."""
    visible = filter_visible_to_partner(map(normalize_payment, payments))
    return [payment for payment in visible if payment.partner_id == partner_id]


def partner_wallet_metrics(
    payments: Iterable[PaymentLike],
    partner_id: str,
    reference: Any = None,
    service_index: ServiceIndex | None = None,
    timezone: str | None = None,
) -> WalletMetrics:
    moment = wall_clock(reference if reference is not None else datetime.now(dt_timezone.utc), timezone)
    if moment is None:
        raise ValueError(f"Unusable reference date: {reference!r}")
    week = week_containing(moment, timezone)
    month = f"{moment.year:04d}-{moment.month:02d}"

    week_total = month_total = year_total = ZERO
    awaiting = 0
    for payment in partner_scoped_payments(payments, partner_id):
        if payment.status is PaymentStatus.SHARED:
            awaiting += 1
        lines = resolve_service_lines(payment, service_index) if service_index is not None else []
        amount = payment_amount(payment, lines)
        if week is not None and earned_in_week(payment, week):
            week_total += amount
        if earned_in_month(payment, month, timezone):
            month_total += amount
        anchor = wall_clock(earned_anchor(payment), timezone)
        if anchor is not None and anchor.year == moment.year:
            year_total += amount
    return WalletMetrics(week_total, month_total, year_total, awaiting)


def _newest_first(payments: list[Payment], anchor: Any) -> list[Payment]:
    return sorted(payments, key=lambda p: instant_sort_value(anchor(p)) or float("-inf"), reverse=True)


def status_board(
    payments: Iterable[PaymentLike],
    year_month: str,
    timezone: str | None = None,
) -> StatusBoard:
    """
    Finance board columns for one month.

    Approved and shared payments are placed by when they were earned; undated
    ones are always shown. Paid payments are placed by when they were paid.
    """
    approved: list[Payment] = []
    shared: list[Payment] = []
    paid: list[Payment] = []
    for payment in map(normalize_payment, payments):
        if payment.status is PaymentStatus.PAID:
            if paid_in_month(payment, year_month, timezone):
                paid.append(payment)
            continue
        if payment.status not in (PaymentStatus.APPROVED, PaymentStatus.SHARED):
            continue
        anchor = earned_anchor(payment)
        if anchor is not None and month_key(anchor, timezone) != year_month:
            continue
        (approved if payment.status is PaymentStatus.APPROVED else shared).append(payment)

    return StatusBoard(
        approved=_newest_first(approved, earned_anchor),
        shared=_newest_first(shared, earned_anchor),
        paid=_newest_first(paid, paid_anchor),
    )
