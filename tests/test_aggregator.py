import pytest
from decimal import Decimal

from mimo_finance.aggregator import (
    UNKNOWN_CLIENT,
    UNKNOWN_PARTNER,
    build_partner_directory,
    earned_in_month,
    earned_in_week,
    line_total,
    paid_in_month,
    partner_payment_rankings,
    partner_scoped_payments,
    partner_service_rankings,
    partner_wallet_metrics,
    payment_amount,
    payment_week_key,
    period_month,
    resolve_partner_name,
    service_dedupe_key,
    status_board,
    week_totals,
    weekly_client_summary,
)
from mimo_finance.business_calendar import week_containing
from mimo_finance.core import normalize_payment, normalize_service
from mimo_finance.lifecycle import PaymentStatus
from mimo_finance.reconciler import resolve_service_lines


@pytest.fixture
def two_lines(service_index):
    return resolve_service_lines({"serviceIds": ["s1", "s2"]}, service_index)


@pytest.mark.unit
def test_line_total_applies_drafts(two_lines):
    assert line_total({}, two_lines) == Decimal("80")
    assert line_total({}, two_lines, drafts={"s1": "60", "s2": None}) == Decimal("90")


@pytest.mark.unit
def test_payment_amount_precedence(two_lines):
    stored = {"serviceIds": ["s1", "s2"], "total": 100}
    assert payment_amount(stored, two_lines) == Decimal("100")
    assert payment_amount(stored, two_lines, drafts={"s1": 60}) == Decimal("90")
    assert payment_amount({"serviceIds": ["s1", "s2"], "total": 0}, two_lines) == Decimal("80")
    assert payment_amount({"total": None}, []) == Decimal("0")


@pytest.mark.unit
def test_partner_directory_and_name_resolution(sample_dataset):
    directory = build_partner_directory(sample_dataset["users"])
    assert directory == {"p1": "Ana Lima", "p2": "Bruno Costa"}

    inline = normalize_payment({"partnerId": "p1", "partnerName": "Ana L."})
    assert resolve_partner_name(inline, directory) == "Ana L."
    assert resolve_partner_name(normalize_payment({"partnerId": "p1"}), directory) == "Ana Lima"
    assert resolve_partner_name(normalize_payment({"partnerId": "zz"}), directory) == UNKNOWN_PARTNER


@pytest.mark.unit
def test_partner_service_rankings(sample_services, sample_dataset):
    directory = build_partner_directory(sample_dataset["users"])
    ranking = partner_service_rankings(sample_services, directory)
    assert [(r.partner_id, r.display_name, r.count, r.total) for r in ranking] == [
        ("p1", "Ana Lima", 2, Decimal("80")),
        ("p2", "Bruno Costa", 2, Decimal("70.50")),
    ]
    assert len(partner_service_rankings(sample_services, directory, limit=1)) == 1


@pytest.mark.unit
def test_partner_name_last_write_wins():
    services = [
        {"id": "a", "partnerId": "p", "partnerName": "Old Name"},
        {"id": "b", "partnerId": "p", "partnerName": "New Name"},
        {"id": "c", "partnerId": "p"},
    ]
    ranking = partner_service_rankings(services)
    assert ranking[0].display_name == "New Name"
    assert ranking[0].count == 3


@pytest.mark.unit
def test_partner_rankings_ties_keep_input_order():
    services = [
        {"id": "1", "partnerId": "b", "finalValue": 10},
        {"id": "2", "partnerId": "a", "finalValue": 10},
        {"id": "3", "partnerId": "c", "finalValue": 20},
    ]
    assert [r.partner_id for r in partner_service_rankings(services)] == ["c", "b", "a"]


@pytest.mark.unit
def test_partner_payment_rankings(sample_payments, service_index):
    ranking = partner_payment_rankings(sample_payments, service_index=service_index)
    assert [(r.partner_id, r.total) for r in ranking] == [("p2", Decimal("190.5")), ("p1", Decimal("80"))]
    assert ranking[0].display_name == "Bruno Costa"
    assert ranking[0].last_status is PaymentStatus.APPROVED
    assert ranking[1].display_name == UNKNOWN_PARTNER


@pytest.mark.unit
def test_weekly_client_summary(sample_payments, service_index, june_week):
    clients = weekly_client_summary(sample_payments, service_index, june_week)
    assert [(c.display_name, c.count, c.total) for c in clients] == [
        ("Jose Amora", 2, Decimal("80")),
        ("Mary Stone", 1, Decimal("45.5")),
    ]
    assert clients[0].key == "amora|j"


@pytest.mark.unit
def test_weekly_client_summary_counts_shared_service_once(june_week):
    copy = {"id": "s1", "firstName": "Ana", "lastName": "Reis", "finalValue": 40}
    anonymous = {"serviceDate": "2024-06-12", "serviceType": "DELIVERY", "finalValue": 5}
    payments = [
        {"id": "a", "weekStart": "2024-06-12", "services": [copy, anonymous]},
        {"id": "b", "weekStart": "2024-06-13", "services": [dict(copy), dict(anonymous)]},
    ]
    clients = weekly_client_summary(payments, {}, june_week)
    assert [(c.key, c.total) for c in clients] == [
        ("reis|a", Decimal("40")),
        ("unknown:|2024-06-12|delivery|5", Decimal("5")),
    ]
    assert clients[1].display_name == UNKNOWN_CLIENT


@pytest.mark.unit
def test_weekly_client_summary_merge_similar(june_week):
    payments = [
        {
            "id": "a",
            "weekStart": "2024-06-12",
            "services": [
                {"id": "1", "firstName": "Katherine", "lastName": "Jones", "finalValue": 10},
                {"id": "2", "firstName": "Catherine", "lastName": "Jones", "finalValue": 15},
            ],
        }
    ]
    assert len(weekly_client_summary(payments, {}, june_week)) == 2
    merged = weekly_client_summary(payments, {}, june_week, merge_similar=True)
    assert len(merged) == 1
    assert merged[0].total == Decimal("25")
    assert merged[0].count == 2


@pytest.mark.unit
def test_service_dedupe_key():
    assert service_dedupe_key({"id": "s1"}) == "s1"
    service = normalize_service(
        {"firstName": "José", "lastName": "Amora", "serviceDate": "2024-06-12T09:00:00", "finalValue": "12.50"}
    )
    assert service_dedupe_key(service) == "jose amora|2024-06-12||12.5"


@pytest.mark.unit
def test_earned_and_paid_are_distinct():
    payment = {"id": "x", "weekStart": "2024-06-26", "paidAt": "2024-07-02T12:00:00", "status": "PAID"}
    assert earned_in_month(payment, "2024-06")
    assert not earned_in_month(payment, "2024-07")
    assert paid_in_month(payment, "2024-07")
    assert not paid_in_month(payment, "2024-06")
    assert paid_in_month({"weekStart": "2024-06-26"}, "2024-06")


@pytest.mark.unit
def test_week_key_priority_week_start_then_stored_key_then_created_at(june_week):
    assert earned_in_week({"createdAt": "2024-06-15T09:00:00"}, june_week)
    assert not earned_in_week({"createdAt": "bad"}, june_week)
    assert earned_in_week({"weekKey": "2024-W24", "createdAt": "2024-07-01"}, june_week)
    stale = {"weekKey": "2024-W20", "weekStart": "2024-06-12T00:00:00"}
    assert payment_week_key(stale) == "2024-W24"
    assert earned_in_week(stale, june_week)


@pytest.mark.unit
def test_period_month():
    assert period_month({"weekStart": "2024-07-31", "weekEnd": "2024-08-06"}) == "2024-08"
    assert period_month({"createdAt": "2024-07-31"}) == "2024-07"


@pytest.mark.unit
def test_partner_scope_hides_unshared():
    payments = [
        {"id": "a", "partnerId": "p", "status": "PENDING"},
        {"id": "b", "partnerId": "p", "status": "SHARED"},
        {"id": "c", "partnerId": "q", "status": "SHARED"},
        {"id": "d", "partnerId": "p", "status": "CREATING"},
    ]
    scoped = partner_scoped_payments(payments, "p")
    assert [p.id for p in scoped] == ["b"]
    assert all(p.status not in (PaymentStatus.CREATING, PaymentStatus.PENDING) for p in scoped)


@pytest.mark.unit
def test_partner_wallet_metrics(sample_payments, service_index):
    metrics = partner_wallet_metrics(
        sample_payments, "p2", reference="2024-06-14T12:00:00", service_index=service_index
    )
    assert metrics.week_total == Decimal("120")
    assert metrics.month_total == Decimal("145")
    assert metrics.year_total == Decimal("145")
    assert metrics.awaiting_count == 0

    metrics = partner_wallet_metrics(sample_payments, "p1", reference="2024-06-14", service_index=service_index)
    assert metrics.week_total == Decimal("80")
    assert metrics.awaiting_count == 1


@pytest.mark.unit
def test_partner_wallet_metrics_rejects_bad_reference(sample_payments):
    with pytest.raises(ValueError):
        partner_wallet_metrics(sample_payments, "p1", reference="not a date")


@pytest.mark.unit
def test_status_board(sample_payments):
    payments = sample_payments + [{"id": "undated", "status": "APPROVED"}]
    june = status_board(payments, "2024-06")
    assert [p.id for p in june.approved] == ["pay3", "undated"]
    assert [p.id for p in june.shared] == ["pay1"]
    assert june.paid == []

    july = status_board(payments, "2024-07")
    assert [p.id for p in july.paid] == ["pay4"]
    assert [p.id for p in july.approved] == ["undated"]


@pytest.mark.unit
def test_week_totals(sample_payments, service_index, june_week):
    totals = week_totals(sample_payments, june_week, service_index)
    assert totals.count == 3
    assert totals.total == Decimal("245.5")
    assert totals.open_amount == Decimal("245.5")
    assert totals.paid_amount == Decimal("0")

    next_week = week_containing("2024-06-19")
    totals = week_totals(sample_payments, next_week, service_index)
    assert totals.paid_amount == Decimal("25")
    assert totals.open_amount == Decimal("0")


@pytest.mark.unit
def test_malformed_payment_entry_does_not_break_week_totals(june_week):
    payments = [None, {"id": "p1", "weekStart": "2024-06-12", "total": 10, "status": "SHARED"}]
    totals = week_totals(payments, june_week)
    assert totals.count == 1
    assert totals.total == Decimal("10")
    assert totals.open_amount == Decimal("10")
