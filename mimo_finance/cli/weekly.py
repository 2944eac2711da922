"""
CLI Entry Point: mimo-weekly

Build weekly finance reports (partner totals, client breakdown, payment
statuses) from exported payment and service records.
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any

from mimo_finance.aggregator import build_partner_directory
from mimo_finance.business_calendar import BusinessWeek, week_containing, weeks_intersecting_month
from mimo_finance.config import FinanceSettings, load_settings, override_settings
from mimo_finance.core import normalize_list
from mimo_finance.lifecycle import Audience
from mimo_finance.report import build_weekly_report, client_rows, report_to_markdown
from mimo_finance.utils.console import print_step, print_success, print_table, print_warning
from mimo_finance.utils.contracts import ContractError, validate_output, validate_records

CLIENT_CSV_FIELDS = ["week_key", "client_key", "client", "services", "total", "service_ids"]


def read_records(path: Path) -> list[Any]:
    with path.open("r", encoding="utf-8") as handle:
        return normalize_list(json.load(handle))


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def write_markdown(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def write_clients_csv(path: Path, rows: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        path.write_text("", encoding="utf-8")
        return

    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CLIENT_CSV_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def select_weeks(args: argparse.Namespace, settings: FinanceSettings) -> list[BusinessWeek]:
    if args.month:
        return weeks_intersecting_month(args.month, settings.timezone, settings.week_start_dow)
    week = week_containing(args.week, settings.timezone, settings.week_start_dow)
    if week is None:
        raise ValueError(f"Could not read --week date: {args.week}")
    return [week]


def resolve_settings(args: argparse.Namespace) -> FinanceSettings:
    settings = load_settings(args.settings) if args.settings else FinanceSettings()
    return override_settings(
        settings,
        timezone=args.timezone,
        fuzzy_threshold=args.fuzzy_threshold,
        use_initial_fallback=False if args.no_initial_fallback else None,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Build weekly finance reports from payment and service exports.")
    parser.add_argument("--payments", type=Path, required=True, help="Payments JSON (list or items/data envelope).")
    parser.add_argument("--services", type=Path, required=True, help="Services JSON (list or items/data envelope).")
    parser.add_argument("--users", type=Path, default=None, help="Optional users JSON for partner names.")
    period = parser.add_mutually_exclusive_group(required=True)
    period.add_argument("--week", default=None, help="Any date inside the business week to report.")
    period.add_argument("--month", default=None, help="YYYY-MM; one report per week starting in the month.")
    parser.add_argument("--partner-id", default=None, help="Build the partner-facing view for this partner.")
    parser.add_argument("--timezone", default=None, help="IANA time zone for week bucketing.")
    parser.add_argument("--settings", type=Path, default=None, help="Finance settings JSON.")
    parser.add_argument("--merge-similar", action="store_true", help="Merge near-duplicate client names.")
    parser.add_argument("--fuzzy-threshold", type=float, default=None, help="Similarity needed to merge names.")
    parser.add_argument(
        "--no-initial-fallback",
        action="store_true",
        help="Do not merge names on matching last name and first initial alone.",
    )
    parser.add_argument("--report-json-out", type=Path, default=None, help="JSON output path.")
    parser.add_argument("--report-md-out", type=Path, default=None, help="Markdown output path.")
    parser.add_argument("--clients-csv-out", type=Path, default=None, help="CSV output path for client rows.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING).")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))

    for path in (args.payments, args.services, args.users):
        if path is not None and not path.exists():
            sys.exit(f"Error: Input file not found: {path}")

    try:
        settings = resolve_settings(args)
        weeks = select_weeks(args, settings)
    except (ContractError, ValueError) as e:
        sys.exit(f"Invalid settings: {e}")

    payments = read_records(args.payments)
    services = read_records(args.services)
    directory = build_partner_directory(read_records(args.users)) if args.users else None

    for problem in validate_records(payments, "payment_record") + validate_records(services, "service_record"):
        print_warning(problem)

    audience = Audience.PARTNER if args.partner_id else Audience.ADMIN
    label = args.month or weeks[0].key
    json_out = args.report_json_out or Path(f"reports/weekly_report_{label}.json")
    md_out = args.report_md_out or Path(f"reports/weekly_report_{label}.md")

    reports: list[dict[str, Any]] = []
    for week in weeks:
        print_step(f"Week {week.key} ({week.label})")
        report = build_weekly_report(
            payments,
            services,
            week,
            directory=directory,
            audience=audience,
            partner_id=args.partner_id,
            settings=settings,
            merge_similar=args.merge_similar,
        )
        try:
            validate_output(report, "weekly_report", mode="FILING")
        except ContractError as e:
            sys.exit(f"Error building report: {e}")

        summary = report["summary"]
        print_table(
            f"Clients {week.key}",
            ["Client", "Services", "Total"],
            [
                [client["display_name"], str(client["service_count"]), f"${client['total_cents'] / 100:,.2f}"]
                for client in report["clients"]
            ],
            numeric=["Services", "Total"],
        )
        print(f"Total: ${summary['total_cents'] / 100:,.2f}  Open: ${summary['open_cents'] / 100:,.2f}")
        for warning in report["warnings"]:
            print_warning(warning)
        reports.append(report)

    if args.month:
        write_json(json_out, {"month": args.month, "weeks": reports})
    else:
        write_json(json_out, reports[0])
    write_markdown(md_out, "\n".join(report_to_markdown(report) for report in reports))
    if args.clients_csv_out:
        write_clients_csv(args.clients_csv_out, [row for report in reports for row in client_rows(report)])

    print_success(f"Wrote {len(reports)} weekly report(s) to {json_out} and {md_out}")


if __name__ == "__main__":
    main()
