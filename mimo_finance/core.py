#!/usr/bin/env python3

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from mimo_finance.lifecycle import PaymentStatus, parse_status

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
PLACEHOLDER = "—"

SERVICE_TYPE_NAMES = {
    "IN_PERSON_TOUR": "In-Person Tour",
    "VIRTUAL_TOUR": "Virtual Tour",
    "COORDINATOR": "Coordinator",
    "CONCIERGE": "Concierge Service",
    "TICKET_DELIVERY": "Ticket Delivery",
    "DELIVERY": "Delivery",
    "AIRPORT_ASSISTANCE": "Airport Assistance",
    "VACATION_HOME_ASSISTANCE": "Vacation Home Assistance",
    "HOTEL_ASSISTANCE": "Hotel Assistance",
    "ADJUSMENT": "Adjusment",
    "REIMBURSEMENT": "Reimbursement",
    "EXTRA HOUR": "Extra Hour",
    "BABYSITTER": "Babysitter",
}


@dataclass
class Service:
    id: str | None
    partner_id: str | None = None
    partner_name: str | None = None
    first_name: str = ""
    last_name: str = ""
    service_date: datetime | None = None
    service_date_raw: str | None = None
    service_type: str | None = None
    service_type_id: str | None = None
    final_value: Decimal = ZERO
    park: str | None = None
    location: str | None = None
    team: str | None = None
    guests: Any = None
    hopper: Any = None
    observation: str | None = None


@dataclass
class NoteEntry:
    id: str
    at: datetime | None
    text: str


@dataclass
class Payment:
    id: str | None
    partner_id: str | None = None
    partner_name: str | None = None
    service_ids: list[str] = field(default_factory=list)
    embedded_services: list[Service] = field(default_factory=list)
    week_start: datetime | None = None
    week_end: datetime | None = None
    week_key: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    paid_at: datetime | None = None
    total: Decimal | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    notes_log: list[NoteEntry] = field(default_factory=list)


def parse_instant(value: Any) -> datetime | None:
    """
    Coerce a loosely typed timestamp into a datetime.

    Accepts datetimes, dates, ISO-8601 strings (a trailing ``Z`` is read as UTC)
    and epoch milliseconds. Anything unparseable yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug("Discarding out-of-range epoch value %r", value)
            return None

    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Discarding malformed date %r", value)
        return None


def instant_sort_value(value: Any) -> float | None:
    moment = parse_instant(value)
    if moment is None:
        return None
    try:
        return moment.timestamp()
    except (OverflowError, OSError, ValueError):
        return None


def as_decimal(value: Any) -> Decimal:
    """Coerce an amount to Decimal, treating missing or non-numeric input as zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip().replace("$", "").replace(",", "")
        if not text:
            return ZERO
        try:
            amount = Decimal(text)
        except InvalidOperation:
            logger.debug("Non-numeric amount %r treated as zero", value)
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def to_cents(value: Decimal | None) -> int:
    if value is None:
        return 0
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_money(value: Decimal | None) -> str:
    if value is None:
        return "n/a"
    return f"${value.quantize(Decimal('0.01')):,.2f}"


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and (not value.strip() or value.strip() == PLACEHOLDER):
        return False
    return True


def first_present(record: Mapping[str, Any], *paths: str) -> Any:
    """Return the first non-blank value among dotted key paths (``"period.start"``)."""
    for path in paths:
        current: Any = record
        for part in path.split("."):
            if not isinstance(current, Mapping):
                current = None
                break
            current = current.get(part)
        if _present(current):
            return current
    return None


def record_id(value: Any) -> str | None:
    """Canonical identity of a record or reference: ``id``, then ``_id``, then ``serviceId``."""
    if value is None:
        return None
    if isinstance(value, (Service, Payment)):
        return value.id
    if isinstance(value, Mapping):
        for key in ("id", "_id", "serviceId"):
            candidate = value.get(key)
            if candidate is not None and str(candidate).strip():
                return str(candidate).strip()
        return None
    text = str(value).strip()
    return text or None


def normalize_list(response: Any) -> list[Any]:
    if isinstance(response, list):
        return response
    if isinstance(response, Mapping):
        for key in ("items", "data"):
            if isinstance(response.get(key), list):
                return list(response[key])
    return []


def service_type_label(value: Any) -> str | None:
    if not _present(value):
        return None
    text = str(value).strip()
    known = SERVICE_TYPE_NAMES.get(text.upper())
    if known:
        return known
    words = text.replace("_", " ").replace("-", " ").split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def _text(value: Any) -> str | None:
    if not _present(value):
        return None
    return str(value).strip()


def partner_reference(record: Mapping[str, Any]) -> str | None:
    return _text(first_present(record, "partnerId", "partner_id", "partner.id", "partner._id", "userId"))


def partner_display_name(record: Mapping[str, Any]) -> str | None:
    return _text(first_present(record, "partnerName", "partner.name", "partner.fullName"))


def normalize_service(raw: Mapping[str, Any] | Service) -> Service:
    if isinstance(raw, Service):
        return raw
    if not isinstance(raw, Mapping):
        return Service(id=record_id(raw))

    type_ref = raw.get("serviceType")
    type_id: str | None
    type_name: str | None = None
    if isinstance(type_ref, Mapping):
        type_id = _text(type_ref.get("id") or type_ref.get("_id"))
        type_name = _text(type_ref.get("name"))
    else:
        type_id = _text(type_ref) or _text(raw.get("serviceTypeId"))

    date_value = first_present(raw, "serviceDate", "date", "when")
    service_date = parse_instant(date_value)
    if isinstance(date_value, str):
        date_raw: str | None = date_value.strip()
    else:
        date_raw = service_date.isoformat() if service_date else None

    return Service(
        id=record_id(raw),
        partner_id=partner_reference(raw),
        partner_name=partner_display_name(raw),
        first_name=str(raw.get("firstName") or "").strip(),
        last_name=str(raw.get("lastName") or "").strip(),
        service_date=service_date,
        service_date_raw=date_raw,
        service_type=type_name or service_type_label(type_id),
        service_type_id=type_id,
        final_value=as_decimal(first_present(raw, "finalValue", "value", "amount")),
        park=_text(raw.get("park")),
        location=_text(raw.get("location")),
        team=_text(raw.get("team")),
        guests=raw.get("guests"),
        hopper=raw.get("hopper"),
        observation=_text(raw.get("observation")),
    )


def client_name(service: Service | Mapping[str, Any]) -> str:
    if isinstance(service, Mapping):
        service = normalize_service(service)
    return f"{service.first_name} {service.last_name}".strip()


def _normalize_notes(raw: Mapping[str, Any]) -> list[NoteEntry]:
    entries: list[NoteEntry] = []
    log = raw.get("notesLog")
    if isinstance(log, list):
        for position, item in enumerate(log):
            if isinstance(item, Mapping):
                text = str(item.get("text") or "").strip()
                if not text:
                    continue
                entries.append(
                    NoteEntry(
                        id=str(item.get("id") or position),
                        at=parse_instant(item.get("at")),
                        text=text,
                    )
                )
            elif _present(item):
                entries.append(NoteEntry(id=str(position), at=None, text=str(item).strip()))
    legacy = raw.get("notes")
    if not entries and isinstance(legacy, str) and legacy.strip():
        entries.append(NoteEntry(id="legacy", at=None, text=legacy.strip()))
    return entries


def _collect_links(raw: Mapping[str, Any]) -> tuple[list[str], list[Service]]:
    ids: list[str] = []
    declared = raw.get("serviceIds")
    if isinstance(declared, list):
        for entry in declared:
            service_id = record_id(entry)
            if service_id is not None:
                ids.append(service_id)

    embedded: list[Service] = []
    legacy_refs: list[str] = []
    for key in ("services", "items"):
        entries = raw.get(key)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if isinstance(entry, (Mapping, Service)):
                embedded.append(normalize_service(entry))
            else:
                ref = record_id(entry)
                if ref is not None:
                    legacy_refs.append(ref)
    return ids + legacy_refs, embedded


def normalize_payment(raw: Mapping[str, Any] | Payment) -> Payment:
    if isinstance(raw, Payment):
        return raw
    if not isinstance(raw, Mapping):
        logger.debug("Non-mapping payment record %r read as an empty payment", raw)
        return Payment(id=record_id(raw))

    service_ids, embedded = _collect_links(raw)
    total_value = first_present(raw, "total", "totalAmount", "amount")
    week_key = raw.get("weekKey")

    return Payment(
        id=record_id(raw),
        partner_id=partner_reference(raw),
        partner_name=partner_display_name(raw),
        service_ids=service_ids,
        embedded_services=embedded,
        week_start=parse_instant(first_present(raw, "weekStart", "period.start", "periodFrom")),
        week_end=parse_instant(first_present(raw, "weekEnd", "period.end", "periodTo")),
        week_key=str(week_key) if _present(week_key) else None,
        created_at=parse_instant(raw.get("createdAt")),
        updated_at=parse_instant(raw.get("updatedAt")),
        paid_at=parse_instant(raw.get("paidAt")),
        total=None if total_value is None else as_decimal(total_value),
        status=parse_status(first_present(raw, "status", "state")),
        notes_log=_normalize_notes(raw),
    )


def normalize_services(records: Iterable[Mapping[str, Any] | Service]) -> list[Service]:
    return [normalize_service(record) for record in records]


def normalize_payments(records: Iterable[Mapping[str, Any] | Payment]) -> list[Payment]:
    return [normalize_payment(record) for record in records]
