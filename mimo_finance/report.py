#!/usr/bin/env python3

from __future__ import annotations

from typing import Any, Iterable, Mapping

from mimo_finance.aggregator import (
    UNASSIGNED_PARTNER_KEY,
    PaymentLike,
    ServiceLike,
    earned_anchor,
    partner_payment_rankings,
    partner_scoped_payments,
    payment_amount,
    payment_week_key,
    payments_for_week,
    weekly_client_summary,
    week_totals,
)
from mimo_finance.business_calendar import BusinessWeek
from mimo_finance.config import FinanceSettings
from mimo_finance.core import normalize_payment, to_cents
from mimo_finance.lifecycle import Audience, display_status, legal_actions
from mimo_finance.reconciler import build_service_index, orphaned_references, resolve_service_lines

REPORT_SCHEMA_VERSION = "0.3.0"


def collect_warnings(payments: list[Any], service_index: Mapping[str, Any]) -> list[str]:
    warnings: list[str] = []
    for payment in payments:
        label = payment.id or "(no id)"
        if earned_anchor(payment) is None:
            warnings.append(f"Payment {label} has no usable weekStart or createdAt; left out of weekly totals.")
        orphans = orphaned_references(payment, service_index)
        if orphans:
            warnings.append(f"Payment {label} references unknown services: {', '.join(orphans)}.")
    return warnings


def build_weekly_report(
    payments: Iterable[PaymentLike],
    services: Iterable[ServiceLike],
    week: BusinessWeek,
    directory: Mapping[str, Any] | None = None,
    audience: Audience | str = Audience.ADMIN,
    partner_id: str | None = None,
    settings: FinanceSettings | None = None,
    merge_similar: bool = False,
) -> dict[str, Any]:
    """
    Assemble the JSON-ready weekly report.

    Amounts are integer cents. For the partner audience the visibility filter
    is applied before anything is aggregated.
    """
    settings = settings or FinanceSettings()
    audience = Audience(audience)
    service_index = build_service_index(services)
    records = [normalize_payment(payment) for payment in payments]

    if audience is Audience.PARTNER:
        if not partner_id:
            raise ValueError("A partner-scoped report needs a partner id.")
        records = partner_scoped_payments(records, partner_id)

    in_week = payments_for_week(records, week)
    totals = week_totals(in_week, week, service_index)
    partners = partner_payment_rankings(
        in_week,
        directory=directory,
        service_index=service_index,
        unknown_label=settings.unknown_partner_label,
    )
    clients = weekly_client_summary(
        in_week,
        service_index,
        week,
        merge_similar=merge_similar,
        fuzzy=settings.fuzzy,
    )

    partner_names = {summary.partner_id: summary.display_name for summary in partners}
    payment_rows: list[dict[str, Any]] = []
    for payment in in_week:
        lines = resolve_service_lines(payment, service_index)
        actions = legal_actions(payment.status, audience)
        payment_rows.append(
            {
                "id": payment.id,
                "partner_id": payment.partner_id,
                "partner_name": partner_names.get(
                    payment.partner_id or UNASSIGNED_PARTNER_KEY, settings.unknown_partner_label
                ),
                "status": payment.status.value,
                "display_status": display_status(payment.status, audience),
                "week_key": payment_week_key(payment, week.timezone, week.anchor_dow),
                "line_count": len(lines),
                "total_cents": to_cents(payment_amount(payment, lines)),
                "actions": actions._asdict(),
            }
        )

    return {
        "schema_version": REPORT_SCHEMA_VERSION,
        "audience": audience.value,
        "partner_id": partner_id if audience is Audience.PARTNER else None,
        "week": week.to_dict(),
        "summary": {
            "payment_count": totals.count,
            "client_count": len(clients),
            "total_cents": to_cents(totals.total),
            "open_cents": to_cents(totals.open_amount),
            "paid_cents": to_cents(totals.paid_amount),
        },
        "partners": [
            {
                "partner_id": summary.partner_id,
                "display_name": summary.display_name,
                "payment_count": summary.count,
                "total_cents": to_cents(summary.total),
                "last_status": summary.last_status.value if summary.last_status else None,
            }
            for summary in partners
        ],
        "clients": [
            {
                "key": summary.key,
                "display_name": summary.display_name,
                "service_count": summary.count,
                "total_cents": to_cents(summary.total),
                "service_ids": [item.id for item in summary.items if item.id],
            }
            for summary in clients
        ],
        "payments": payment_rows,
        "warnings": collect_warnings(records, service_index),
    }


def client_rows(report: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten client rows for CSV export."""
    return [
        {
            "week_key": report["week"]["key"],
            "client_key": client["key"],
            "client": client["display_name"],
            "services": client["service_count"],
            "total": f"{client['total_cents'] / 100:.2f}",
            "service_ids": ";".join(client["service_ids"]),
        }
        for client in report["clients"]
    ]


def report_to_markdown(report: dict[str, Any]) -> str:
    week = report["week"]
    summary = report["summary"]

    lines: list[str] = []

    lines.append(f"# Weekly Finance Report {week['key']}")
    lines.append("")
    lines.append(f"- Schema Version: {report['schema_version']}")
    lines.append(f"- Week: {week['label']}")
    lines.append(f"- Audience: {report['audience']}")
    lines.append("")

    lines.append("## Summary")
    lines.append(f"- Payments: {summary['payment_count']}")
    lines.append(f"- Total: ${summary['total_cents'] / 100:,.2f}")
    lines.append(f"- Still open: ${summary['open_cents'] / 100:,.2f}")
    lines.append(f"- Paid: ${summary['paid_cents'] / 100:,.2f}")
    lines.append("")

    if report["partners"]:
        lines.append("## Partners")
        lines.append("| Partner | Payments | Total | Last Status |")
        lines.append("| :--- | ---: | ---: | :--- |")
        for partner in report["partners"]:
            lines.append(
                f"| {partner['display_name']} | {partner['payment_count']} | "
                f"${partner['total_cents'] / 100:,.2f} | {partner['last_status'] or '—'} |"
            )
        lines.append("")

    if report["clients"]:
        lines.append("## Clients")
        lines.append("| Client | Services | Total |")
        lines.append("| :--- | ---: | ---: |")
        for client in report["clients"]:
            lines.append(
                f"| {client['display_name']} | {client['service_count']} | ${client['total_cents'] / 100:,.2f} |"
            )
        lines.append("")

    if report["payments"]:
        lines.append("## Payments")
        lines.append("| Payment | Partner | Status | Lines | Total |")
        lines.append("| :--- | :--- | :--- | ---: | ---: |")
        for row in report["payments"]:
            lines.append(
                f"| `{row['id'] or '—'}` | {row['partner_name']} | {row['display_status']} | "
                f"{row['line_count']} | ${row['total_cents'] / 100:,.2f} |"
            )
        lines.append("")

    if report["warnings"]:
        lines.append("## Warnings")
        for warning in report["warnings"]:
            lines.append(f"- {warning}")
        lines.append("")

    return "\n".join(lines)
