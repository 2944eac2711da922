#!/usr/bin/env python3

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Mapping, NamedTuple

from mimo_finance.business_calendar import wall_clock
from mimo_finance.core import (
    Payment,
    Service,
    normalize_payment,
    normalize_service,
)
from mimo_finance.lifecycle import Audience, display_status, is_reopenable

logger = logging.getLogger(__name__)

NOT_LINKED = "not linked"

ServiceIndex = Mapping[str, Any]


class ServiceLink(NamedTuple):
    status: str
    payment_id: str | None


def build_service_index(services: Iterable[Mapping[str, Any] | Service]) -> dict[str, Service]:
    """Map service id to its normalized record. Later duplicates replace earlier ones."""
    index: dict[str, Service] = {}
    for record in services:
        service = normalize_service(record)
        if service.id is None:
            logger.debug("Skipping service without an id in index build")
            continue
        index[service.id] = service
    return index


def _lookup(service_index: ServiceIndex, service_id: str) -> Service | None:
    found = service_index.get(service_id)
    if found is None:
        return None
    service = normalize_service(found)
    if service.id is None:
        service = replace(service, id=service_id)
    return service


def linked_service_ids(payment: Mapping[str, Any] | Payment) -> list[str]:
    """Every service id a payment claims, declared ids first, without duplicates."""
    record = normalize_payment(payment)
    ids: list[str] = []
    seen: set[str] = set()
    for service_id in record.service_ids + [s.id for s in record.embedded_services if s.id is not None]:
        if service_id not in seen:
            seen.add(service_id)
            ids.append(service_id)
    return ids


def resolve_service_lines(
    payment: Mapping[str, Any] | Payment,
    service_index: ServiceIndex,
) -> list[Service]:
    """
    Resolve the concrete service lines a payment covers.

    Declared ids come first in their original order, deduplicated. Each id
    prefers the payment's embedded snapshot over the index entry. Embedded
    records whose id was not declared follow, then embedded records without any
    id. Ids that resolve to nothing are dropped.
    """
    record = normalize_payment(payment)

    embedded: dict[str, Service] = {}
    anonymous: list[Service] = []
    for service in record.embedded_services:
        if service.id is None:
            anonymous.append(service)
        else:
            embedded[service.id] = service

    lines: list[Service] = []
    seen: set[str] = set()
    for service_id in record.service_ids:
        if service_id in seen:
            continue
        seen.add(service_id)
        service = embedded.get(service_id) or _lookup(service_index, service_id)
        if service is None:
            logger.debug("Payment %s references unknown service %s", record.id, service_id)
            continue
        lines.append(service)

    for service_id, service in embedded.items():
        if service_id not in seen:
            seen.add(service_id)
            lines.append(service)

    lines.extend(anonymous)
    return lines


def orphaned_references(payment: Mapping[str, Any] | Payment, service_index: ServiceIndex) -> list[str]:
    record = normalize_payment(payment)
    embedded_ids = {s.id for s in record.embedded_services if s.id is not None}
    orphans: list[str] = []
    for service_id in record.service_ids:
        if service_id in embedded_ids or service_id in orphans:
            continue
        if service_index.get(service_id) is None:
            orphans.append(service_id)
    return orphans


def build_payment_index(payments: Iterable[Mapping[str, Any] | Payment]) -> dict[str, Payment]:
    """
    Reverse index from service id to the payment that owns it.

    A service claimed by several payments belongs to the later one in input
    order, unless that would displace a payment that can no longer be reopened
    with one that can.
    """
    index: dict[str, Payment] = {}
    for payment in map(normalize_payment, payments):
        for service_id in linked_service_ids(payment):
            current = index.get(service_id)
            if current is not None and not is_reopenable(current.status) and is_reopenable(payment.status):
                continue
            index[service_id] = payment
    return index


def link_status(payment: Payment | None) -> str:
    if payment is None:
        return NOT_LINKED
    label = display_status(payment.status, Audience.PARTNER)
    if label in ("paid", "declined"):
        return label
    return "pending"


def service_payment_statuses(
    payments: Iterable[Mapping[str, Any] | Payment],
    services: Iterable[Mapping[str, Any] | Service] | None = None,
) -> dict[str, ServiceLink]:
    index = build_payment_index(payments)
    statuses = {
        service_id: ServiceLink(link_status(payment), payment.id) for service_id, payment in index.items()
    }
    for record in services or []:
        service = normalize_service(record)
        if service.id is not None and service.id not in statuses:
            statuses[service.id] = ServiceLink(NOT_LINKED, None)
    return statuses


def can_link_service(
    service_id: str,
    payment_index: Mapping[str, Payment],
    target_payment_id: str | None = None,
) -> bool:
    owner = payment_index.get(service_id)
    if owner is None:
        return True
    if target_payment_id is not None and owner.id == target_payment_id:
        return True
    return is_reopenable(owner.status)


def eligible_services(
    services: Iterable[Mapping[str, Any] | Service],
    payments: Iterable[Mapping[str, Any] | Payment],
    partner_id: str | None = None,
    date_from: Any = None,
    date_to: Any = None,
    target_payment_id: str | None = None,
    timezone: str | None = None,
) -> list[Service]:
    """Services a new or edited payment may still claim, filtered by partner and service date (inclusive days)."""
    payment_index = build_payment_index(payments)
    lower = wall_clock(date_from, timezone) if date_from is not None else None
    upper = wall_clock(date_to, timezone) if date_to is not None else None

    eligible: list[Service] = []
    for service in map(normalize_service, services):
        if service.id is None:
            continue
        if partner_id is not None and service.partner_id != partner_id:
            continue
        if lower is not None or upper is not None:
            moment = wall_clock(service.service_date, timezone)
            if moment is None:
                continue
            if lower is not None and moment.date() < lower.date():
                continue
            if upper is not None and moment.date() > upper.date():
                continue
        if can_link_service(service.id, payment_index, target_payment_id):
            eligible.append(service)
    return eligible
