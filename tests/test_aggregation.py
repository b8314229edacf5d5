"""
Aggregation engine tests: per-project and portfolio totals, monthly trend,
receivables aging, pending payments, running totals and dashboard extras.
"""

from datetime import date, datetime, timedelta

import pytest

import aggregation_core as agg
from entities_core import ActionItem, Milestone, Project, Quotation

TODAY = date(2025, 3, 1)


class TestClassification:
    @pytest.mark.parametrize("tx_type", ["bill_sent", "invoice"])
    def test_billed_types(self, tx_type):
        assert agg.classify_transaction(tx_type) is agg.Direction.BILLED

    @pytest.mark.parametrize("tx_type", ["payment_received", "advance", "by_hand"])
    def test_received_types(self, tx_type):
        assert agg.classify_transaction(tx_type) is agg.Direction.RECEIVED

    @pytest.mark.parametrize("tx_type", ["credit_note", "refund"])
    def test_credited_types(self, tx_type):
        assert agg.classify_transaction(tx_type) is agg.Direction.CREDITED

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Unknown transaction type"):
            agg.classify_transaction("gift")


class TestProjectTotals:
    def test_no_transactions_pending_is_total_value(self, make_project):
        project = make_project(total_value=150000)
        totals = agg.project_totals(project, [])
        assert totals.pending == 150000
        assert totals.total_received == 0

    def test_scenario_partial_payment(self, make_project, make_tx):
        project = make_project(total_value=150000)
        totals = agg.project_totals(project, [make_tx("payment_received", 50000)])

        assert totals.total_billed == 150000
        assert totals.total_received == 50000
        assert totals.pending == 100000

    def test_identity_holds_for_mixed_types(self, make_project, make_tx):
        project = make_project(total_value=100000)
        txns = [
            make_tx("invoice", 20000),
            make_tx("payment_received", 30000),
            make_tx("advance", 10000),
            make_tx("credit_note", 5000),
            make_tx("refund", 1000),
        ]
        totals = agg.project_totals(project, txns)

        assert totals.total_billed == 120000
        assert totals.total_received == 40000
        assert totals.total_credits == 6000
        assert totals.total_billed - totals.total_received - totals.total_credits == totals.pending
        assert totals.pending == 74000

    def test_other_projects_ignored(self, make_project, make_tx):
        project = make_project(id="p1", total_value=1000)
        txns = [make_tx("payment_received", 400, project_id="p2")]
        assert agg.project_totals(project, txns).pending == 1000

    def test_contract_value_can_be_left_out(self, make_project, make_tx):
        project = make_project(total_value=100000)
        totals = agg.project_totals(project, [make_tx("bill_sent", 40000)], include_contract_value=False)
        assert totals.total_billed == 40000
        assert totals.pending == 40000

    def test_fully_paid_bill_has_nothing_pending(self, make_project, make_tx):
        project = make_project(total_value=0)
        txns = [
            make_tx("payment_received", 40000, on="2024-12-15"),
            make_tx("bill_sent", 40000, on="2024-12-01"),
        ]
        assert agg.project_totals(project, txns).pending == 0
        assert agg.pending_payments([project], txns, today=TODAY) == []

    def test_null_amount_counts_as_zero(self, make_project, make_tx):
        project = make_project(total_value=500)
        assert agg.project_totals(project, [make_tx("payment_received", None)]).pending == 500


class TestProjectSummaries:
    def test_balance_and_received(self, make_project, make_tx):
        projects = [make_project(id="p1", total_value=240000), make_project(id="p2", total_value=0)]
        txns = [
            make_tx("payment_received", 200000, project_id="p1"),
            make_tx("bill_sent", 40000, project_id="p1"),
        ]
        first, second = agg.summarize_projects(projects, txns)

        assert first.received == 200000
        assert first.balance == 40000
        assert first.transaction_count == 2
        assert first.collection_rate == pytest.approx(200000 / 240000 * 100)
        assert second.balance == 0
        assert second.collection_rate == 0

    def test_summary_exposes_project_fields(self, make_project):
        summary = agg.summarize_projects([make_project(name="4C", client_name="4C Client")], [])[0]
        assert summary.name == "4C"
        assert summary.client_name == "4C Client"
        assert summary.status == "pending"

    def test_project_name_for_missing_project(self, make_project):
        assert agg.project_name_for("nope", [make_project()]) == "Unknown Project"


class TestPortfolioTotals:
    def test_sample_portfolio(self, make_project, make_tx):
        projects = [
            make_project(id="linkist", total_value=240000),
            make_project(id="neuro", total_value=275000),
            make_project(id="4c", total_value=150000),
            make_project(id="headz", total_value=0),
            make_project(id="various", total_value=280000),
        ]
        txns = [
            make_tx("payment_received", 200000, project_id="linkist"),
            make_tx("bill_sent", 40000, project_id="linkist"),
            make_tx("payment_received", 110000, project_id="neuro"),
            make_tx("payment_received", 50000, project_id="4c"),
            make_tx("by_hand", 280000, project_id="various"),
        ]
        totals = agg.portfolio_totals(projects, txns)

        assert totals.total_billed == 945000
        assert totals.total_received == 640000
        assert totals.pending_receivable == 305000
        assert totals.collection_rate == pytest.approx(640000 / 945000 * 100)
        assert totals.project_count == 5

    def test_credits_are_not_received(self, make_project, make_tx):
        totals = agg.portfolio_totals([make_project(total_value=1000)], [make_tx("credit_note", 300)])
        assert totals.total_received == 0

    def test_collection_rate_zero_value(self):
        assert agg.collection_rate(1000, 0) == 0.0
        assert agg.collection_rate(0, 100) == 0.0

    def test_collection_rate_never_negative(self, make_project):
        assert agg.portfolio_totals([make_project(total_value=0)], []).collection_rate >= 0


class TestMonthlyTrend:
    def test_bill_and_payment_in_separate_months(self, make_tx):
        txns = [
            make_tx("bill_sent", 110000, on="2024-10-05"),
            make_tx("payment_received", 110000, on="2024-11-20"),
        ]
        buckets = agg.monthly_trend(txns)

        assert [(b.month, b.billed, b.received) for b in buckets] == [
            ("2024-10", 110000, 0),
            ("2024-11", 0, 110000),
        ]

    def test_keeps_last_twelve_months(self, make_tx):
        txns = []
        for offset in range(14):
            year, month = divmod(10 + offset, 12)  # 2023-11 onwards
            txns.append(make_tx("invoice", 100, on=date(2023 + year, month + 1, 1)))

        buckets = agg.monthly_trend(txns)
        assert len(buckets) == 12
        assert buckets[0].month == "2024-01"
        assert buckets[-1].month == "2024-12"
        assert len(agg.monthly_trend(txns, limit=None)) == 14

    def test_credits_and_undated_are_left_out(self, make_tx):
        undated = make_tx("invoice", 999)
        undated.date = None
        buckets = agg.monthly_trend([make_tx("refund", 500, on="2024-10-01"), undated])

        assert len(buckets) == 1
        assert buckets[0].billed == 0 and buckets[0].received == 0

    def test_label(self):
        assert agg.MonthlyBucket(month="2024-10").label == "Oct 2024"

    def test_frame_columns(self, make_tx):
        df = agg.monthly_trend_frame([make_tx("invoice", 100, on="2024-10-05")])
        assert list(df.columns) == ["month", "label", "billed", "received"]
        assert df.iloc[0]["billed"] == 100

    def test_empty_frame(self):
        assert agg.monthly_trend_frame([]).empty


class TestAging:
    def test_sixty_five_days_is_overdue(self, make_project, make_tx):
        project = make_project(total_value=0)
        invoice = make_tx("invoice", 27500, on=TODAY - timedelta(days=65))

        report = agg.receivables_aging([project], [invoice], today=TODAY)

        assert report.buckets["61-90"].amount == 27500
        assert report.buckets["61-90"].count == 1
        assert report.items[0].urgency == "overdue"
        assert report.items[0].aging_bucket == "61-90"

    @pytest.mark.parametrize("days,bucket", [
        (0, "0-30"), (30, "0-30"), (31, "31-60"), (60, "31-60"),
        (61, "61-90"), (90, "61-90"), (91, "90+"), (None, "no_invoice"),
    ])
    def test_bucket_boundaries(self, days, bucket):
        assert agg.aging_bucket_for(days) == bucket

    @pytest.mark.parametrize("days,label", [
        (0, "recent"), (14, "recent"), (15, "normal"), (30, "normal"),
        (31, "follow_up"), (60, "follow_up"), (61, "overdue"), (None, "no_invoice"),
    ])
    def test_urgency_boundaries(self, days, label):
        assert agg.urgency_label(days) == label

    def test_project_without_invoice_reported_apart(self, make_project, make_tx):
        project = make_project(total_value=150000)
        report = agg.receivables_aging([project], [make_tx("payment_received", 50000)], today=TODAY)

        assert report.no_invoice.amount == 100000
        assert report.no_invoice.count == 1
        assert all(b.amount == 0 for b in report.buckets.values())
        assert report.total_pending == 100000

    def test_future_invoice_lands_in_first_bucket(self, make_project, make_tx):
        invoice = make_tx("invoice", 1000, on=TODAY + timedelta(days=5))
        report = agg.receivables_aging([make_project()], [invoice], today=TODAY)
        assert report.buckets["0-30"].amount == 1000

    def test_rows_in_display_order(self, make_project):
        rows = agg.receivables_aging([make_project()], [], today=TODAY).as_rows()
        assert [r["range"] for r in rows] == ["0-30", "31-60", "61-90", "90+", "no_invoice"]

    def test_latest_invoice_tie_goes_to_highest_id(self, make_tx):
        same_day = "2024-12-01"
        txns = [
            make_tx("invoice", 10, on=same_day, id="a"),
            make_tx("bill_sent", 20, on=same_day, id="b"),
            make_tx("payment_received", 30, on="2024-12-20", id="z"),
        ]
        assert agg.latest_invoice(txns).id == "b"

    def test_latest_invoice_tie_compares_ids_as_strings(self, make_tx):
        txns = [
            make_tx("invoice", 10, on="2024-12-01", id="t10"),
            make_tx("invoice", 20, on="2024-12-01", id="t9"),
        ]
        assert agg.latest_invoice(txns).id == "t9"

    def test_latest_invoice_none(self, make_tx):
        assert agg.latest_invoice([make_tx("payment_received", 10)]) is None


class TestPendingPayments:
    @pytest.fixture
    def portfolio(self, make_project, make_tx):
        projects = [
            make_project(id="a", name="A", total_value=0),
            make_project(id="b", name="B", total_value=0),
            make_project(id="c", name="C", total_value=5000),
        ]
        txns = [
            make_tx("invoice", 10000, on=TODAY - timedelta(days=10), project_id="a"),
            make_tx("invoice", 3000, on=TODAY - timedelta(days=50), project_id="b"),
        ]
        return projects, txns

    def test_sorted_by_amount(self, portfolio):
        items = agg.pending_payments(*portfolio, today=TODAY, sort_by="amount")
        assert [i.name for i in items] == ["A", "C", "B"]

    def test_sorted_by_days(self, portfolio):
        items = agg.pending_payments(*portfolio, today=TODAY, sort_by="days")
        assert [i.name for i in items] == ["B", "A", "C"]
        assert items[0].days_since_invoice == 50
        assert items[-1].days_since_invoice is None

    def test_unknown_sort_raises(self, portfolio):
        with pytest.raises(ValueError):
            agg.pending_payments(*portfolio, today=TODAY, sort_by="name")

    def test_breakdown_and_paid_percentage(self, make_project, make_tx):
        txns = [
            make_tx("bill_sent", 40000, on="2024-12-01"),
            make_tx("payment_received", 10000, on="2024-12-10"),
            make_tx("credit_note", 5000, on="2024-12-11"),
        ]
        item = agg.pending_payments([make_project(total_value=0)], txns, today=TODAY)[0]

        assert item.pending == 25000
        assert len(item.invoices) == 1 and len(item.payments) == 1 and len(item.credits) == 1
        assert item.last_invoice_date == date(2024, 12, 1)
        assert item.paid_percentage == 25.0


class TestRunningTotals:
    def test_newest_first_balances(self, make_tx):
        rows = agg.running_totals([
            make_tx("payment_received", 30000, on="2024-12-15"),
            make_tx("bill_sent", 50000, on="2024-12-01"),
        ])
        assert [r.running_total for r in rows] == [-20000, -50000]

    def test_credits_reduce_what_is_owed(self, make_tx):
        rows = agg.running_totals([
            make_tx("credit_note", 5000, on="2024-12-20"),
            make_tx("invoice", 20000, on="2024-12-01"),
        ])
        assert rows[0].running_total == -15000

    def test_empty(self):
        assert agg.running_totals([]) == []

    def test_first_row_is_net_of_everything(self, make_tx):
        txns = [make_tx("invoice", 100) for _ in range(50)] + [make_tx("advance", 30) for _ in range(50)]
        rows = agg.running_totals(txns)
        assert rows[0].running_total == 50 * 30 - 50 * 100
        assert rows[-1].running_total == 30


class TestDashboardExtras:
    def test_recent_transactions_by_creation(self, make_tx):
        old = make_tx("invoice", 1, created_at=datetime(2024, 1, 1))
        new = make_tx("invoice", 2, created_at=datetime(2024, 6, 1))
        missing = make_tx("invoice", 3)
        assert agg.recent_transactions([old, missing, new], limit=2) == [new, old]

    def test_quotation_summary(self):
        quotes = [
            Quotation(id="1", quote_date=TODAY, amount=100, description="a", status="sent"),
            Quotation(id="2", quote_date=TODAY, amount=200, description="b", status="accepted"),
            Quotation(id="3", quote_date=TODAY, amount=50, description="c", status="rejected"),
            Quotation(id="4", quote_date=TODAY, amount=30, description="d", status="sent"),
        ]
        summary = agg.quotation_summary(quotes)

        assert summary.total_quoted == 380
        assert summary.total_accepted == 200
        assert summary.total_awaiting == 130
        assert summary.count_by_status["sent"] == 2
        assert summary.acceptance_rate == 50.0

    def test_empty_quotation_summary(self):
        summary = agg.quotation_summary([])
        assert summary.total_quoted == 0
        assert summary.acceptance_rate == 0.0

    def test_milestone_amount_from_percentage(self):
        project = Project(id="n", name="Neuro", total_value=275000)
        milestone = Milestone(id="m", project_id="n", name="M3", percentage=30)
        assert agg.milestone_amount(milestone, project) == 82500
        assert agg.milestone_amount(milestone) == 0.0

    def test_milestone_progress(self):
        project = Project(id="n", name="Neuro", total_value=275000)
        milestones = [
            Milestone(id="1", project_id="n", name="M1", percentage=40, amount=110000, status="paid"),
            Milestone(id="2", project_id="n", name="M2", percentage=20, amount=55000),
            Milestone(id="3", project_id="n", name="M3", percentage=30, amount=82500),
            Milestone(id="4", project_id="n", name="M4", percentage=10),
        ]
        progress = agg.milestone_progress(milestones, project)

        assert progress.total == 4
        assert progress.paid == 1
        assert progress.pending == 3
        assert progress.amount_paid == 110000
        assert progress.amount_outstanding == 165000
        assert progress.completion_percentage == 25.0

    def test_open_action_items(self):
        items = [
            ActionItem(id="1", description="undated"),
            ActionItem(id="2", description="late", due_date=date(2025, 1, 15)),
            ActionItem(id="3", description="done", due_date=date(2025, 1, 1), status="done"),
            ActionItem(id="4", description="soon", due_date=date(2025, 3, 10)),
        ]
        open_items = agg.open_action_items(items, today=TODAY)

        assert [o.item.id for o in open_items] == ["2", "4", "1"]
        assert [o.overdue for o in open_items] == [True, False, False]
