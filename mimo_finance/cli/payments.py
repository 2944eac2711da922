"""
CLI Entry Point: mimo-payments

Lists payments with their resolved totals, display status and the actions
currently legal for each.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from mimo_finance.aggregator import partner_scoped_payments, payment_amount, payment_week_key
from mimo_finance.core import Payment, normalize_list, normalize_payment, to_cents
from mimo_finance.lifecycle import Audience, display_status, legal_actions, parse_status
from mimo_finance.reconciler import build_service_index, resolve_service_lines
from mimo_finance.utils.console import print_table

ACTION_NAMES = {
    "can_share": "share",
    "can_approve": "approve",
    "can_decline": "decline",
    "can_mark_paid": "mark paid",
    "can_hold": "hold",
    "can_release": "release",
    "can_edit_lines": "edit lines",
}


def read_records(path: Path) -> list[Any]:
    with path.open("r", encoding="utf-8") as handle:
        return normalize_list(json.load(handle))


def payment_to_json(
    payment: Payment,
    service_index: dict[str, Any],
    audience: Audience,
    timezone: str | None = None,
) -> dict[str, Any]:
    lines = resolve_service_lines(payment, service_index)
    return {
        "id": payment.id,
        "partner_id": payment.partner_id,
        "partner_name": payment.partner_name,
        "week_key": payment_week_key(payment, timezone),
        "status": payment.status.value,
        "display_status": display_status(payment.status, audience),
        "service_ids": [line.id for line in lines if line.id],
        "total_cents": to_cents(payment_amount(payment, lines)),
        "actions": legal_actions(payment.status, audience)._asdict(),
        "notes": [note.text for note in payment.notes_log],
    }


def describe_actions(actions: dict[str, bool]) -> str:
    names = [label for key, label in ACTION_NAMES.items() if actions.get(key)]
    return ", ".join(names) or "notes only"


def main() -> None:
    parser = argparse.ArgumentParser(description="List payments with totals, statuses and legal actions.")
    parser.add_argument("--payments", type=Path, required=True, help="Payments JSON.")
    parser.add_argument("--services", type=Path, default=None, help="Optional services JSON for line resolution.")
    parser.add_argument("--partner-id", default=None, help="Show the partner-facing view for this partner.")
    parser.add_argument("--status", default=None, help="Only list payments in this status.")
    parser.add_argument("--timezone", default=None, help="IANA time zone for week keys.")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table.")
    args = parser.parse_args()

    for path in (args.payments, args.services):
        if path is not None and not path.exists():
            sys.exit(f"Error: Input file not found: {path}")

    payments = [normalize_payment(record) for record in read_records(args.payments)]
    service_index = build_service_index(read_records(args.services)) if args.services else {}

    audience = Audience.ADMIN
    if args.partner_id:
        audience = Audience.PARTNER
        payments = partner_scoped_payments(payments, args.partner_id)
    if args.status:
        wanted = parse_status(args.status)
        payments = [payment for payment in payments if payment.status is wanted]

    rows = [payment_to_json(payment, service_index, audience, args.timezone) for payment in payments]

    if args.json:
        print(json.dumps(rows, indent=2))
        return

    print_table(
        "Payments",
        ["Payment", "Partner", "Week", "Status", "Total", "Actions"],
        [
            [
                row["id"] or "—",
                row["partner_name"] or row["partner_id"] or "—",
                row["week_key"] or "—",
                row["display_status"],
                f"${row['total_cents'] / 100:,.2f}",
                describe_actions(row["actions"]),
            ]
            for row in rows
        ],
        numeric=["Total"],
    )


if __name__ == "__main__":
    main()
