from mimo_finance.core import (
    NoteEntry,
    Payment,
    Service,
    as_decimal,
    client_name,
    format_money,
    normalize_list,
    normalize_payment,
    normalize_service,
    parse_instant,
    record_id,
    service_type_label,
    to_cents,
)
from mimo_finance.business_calendar import (
    BusinessWeek,
    anchor_month_for_range,
    is_within,
    month_key,
    week_containing,
    week_key,
    week_label,
    weeks_around,
    weeks_intersecting_month,
)
from mimo_finance.lifecycle import (
    Audience,
    LegalActions,
    PaymentStatus,
    check_transition,
    display_status,
    filter_visible_to_partner,
    is_modifiable,
    is_visible_to_partner,
    legal_actions,
    parse_status,
)
from mimo_finance.fuzzy import (
    FuzzySettings,
    cluster_names,
    meets_threshold,
    name_key,
    normalize_name,
    same_last_and_initial,
    similarity,
    title_case,
)
from mimo_finance.reconciler import (
    ServiceLink,
    build_payment_index,
    build_service_index,
    can_link_service,
    eligible_services,
    resolve_service_lines,
    service_payment_statuses,
)
from mimo_finance.aggregator import (
    ClientSummary,
    PartnerSummary,
    earned_in_month,
    earned_in_week,
    line_total,
    paid_in_month,
    partner_payment_rankings,
    partner_scoped_payments,
    partner_service_rankings,
    partner_wallet_metrics,
    payment_amount,
    payments_for_week,
    resolve_partner_name,
    service_dedupe_key,
    status_board,
    week_totals,
    weekly_client_summary,
)
from mimo_finance.config import FinanceSettings, load_settings
from mimo_finance.report import build_weekly_report, report_to_markdown

__all__ = [
    "Audience",
    "BusinessWeek",
    "ClientSummary",
    "FinanceSettings",
    "FuzzySettings",
    "LegalActions",
    "NoteEntry",
    "PartnerSummary",
    "Payment",
    "PaymentStatus",
    "Service",
    "ServiceLink",
    "anchor_month_for_range",
    "as_decimal",
    "build_payment_index",
    "build_service_index",
    "build_weekly_report",
    "can_link_service",
    "check_transition",
    "client_name",
    "cluster_names",
    "display_status",
    "earned_in_month",
    "earned_in_week",
    "eligible_services",
    "filter_visible_to_partner",
    "format_money",
    "is_modifiable",
    "is_visible_to_partner",
    "is_within",
    "legal_actions",
    "line_total",
    "load_settings",
    "meets_threshold",
    "month_key",
    "name_key",
    "normalize_list",
    "normalize_name",
    "normalize_payment",
    "normalize_service",
    "paid_in_month",
    "parse_instant",
    "parse_status",
    "partner_payment_rankings",
    "partner_scoped_payments",
    "partner_service_rankings",
    "partner_wallet_metrics",
    "payment_amount",
    "payments_for_week",
    "record_id",
    "report_to_markdown",
    "resolve_partner_name",
    "resolve_service_lines",
    "same_last_and_initial",
    "service_dedupe_key",
    "service_payment_statuses",
    "service_type_label",
    "similarity",
    "status_board",
    "title_case",
    "to_cents",
    "week_containing",
    "week_key",
    "week_label",
    "week_totals",
    "weekly_client_summary",
    "weeks_around",
    "weeks_intersecting_month",
]
