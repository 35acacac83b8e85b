"""
Test suite for reporting

Tests outstanding and past-due totals with unearned fees, collected cash by
period, dashboard metrics and chart segments, and the per-company summary.
"""

from decimal import Decimal
from datetime import datetime, timezone, date

from factoring_desk.directory import SisterCompany
from factoring_desk.payments import Payment, PaymentType, TransactionType
from factoring_desk.schedule import DateRange
from factoring_desk.classifier import classify_installments
from factoring_desk.closures import close_installment
from factoring_desk.reporting import (
    CompanySummaryFilter, fees_earned, outstanding_with_fees, collected_amount,
    aggregate_dashboard_metrics, dashboard_chart, apportioned_fees,
    summarize_by_company
)


def company(name):
    now = datetime.now(timezone.utc)
    return SisterCompany(id=name.lower().replace(" ", "-"), created_at=now, updated_at=now, name=name)


def fuel_payment(amount='500', date_paid=date(2024, 1, 5)):
    now = datetime.now(timezone.utc)
    return Payment(
        id="fuel-1",
        created_at=now,
        updated_at=now,
        company_name="Fuel Co",
        payment_type=PaymentType.FUEL,
        payment_amount=Decimal(amount),
        transaction_type=TransactionType.WIRE,
        bank_confirmation_number="W-9",
        date_paid=date_paid
    )


def closed_first(make_loan, make_close_data):
    """Loan L001 with installment 1 paid on 2024-01-02, and that payment"""
    loan = make_loan()
    installment = classify_installments(loan, date(2024, 1, 2)).get(1)
    result = close_installment(loan, installment, make_close_data(), [])
    return result.updated_loan, result.new_payment


class TestOutstanding:
    """Test outstanding balances with fees"""

    def test_no_payments(self, make_loan):
        """Test an untouched loan owes principal plus all fees"""
        assert outstanding_with_fees(make_loan(), []) == Decimal('15750')

    def test_after_one_installment(self, make_loan, make_close_data):
        """Test principal and earned fees both come off"""
        loan, payment = closed_first(make_loan, make_close_data)

        assert fees_earned(loan, [payment]) == Decimal('50')
        assert outstanding_with_fees(loan, [payment]) == Decimal('14700')

    def test_other_loans_fees_ignored(self, make_loan, make_close_data):
        """Test fees earned on another loan do not reduce this one"""
        _, payment = closed_first(make_loan, make_close_data)
        other = make_loan(id="loan-2", loan_id="L002")

        assert outstanding_with_fees(other, [payment]) == Decimal('15750')

    def test_past_due_only_late_loans(self, make_loan):
        """Test only loans with missed installments count as past due"""
        late = make_loan()
        current = make_loan(id="loan-2", loan_id="L002", first_installment_date=date(2024, 1, 15))

        metrics = aggregate_dashboard_metrics([late, current], [], today=date(2024, 1, 17))
        assert metrics.total_past_due == Decimal('15750')


class TestCollected:
    """Test cash collected"""

    def test_collected_in_range(self, make_loan, make_close_data):
        """Test loan payments inside the period are summed"""
        _, payment = closed_first(make_loan, make_close_data)
        january = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31))

        assert collected_amount([payment, fuel_payment()], january) == Decimal('1020')

    def test_collected_outside_range(self, make_loan, make_close_data):
        """Test payments outside the period are excluded"""
        _, payment = closed_first(make_loan, make_close_data)
        february = DateRange(start=date(2024, 2, 1), end=date(2024, 2, 29))

        assert collected_amount([payment], february) == Decimal('0')

    def test_collected_without_range(self, make_loan, make_close_data):
        """Test an open period counts every loan payment"""
        _, payment = closed_first(make_loan, make_close_data)
        assert collected_amount([payment, fuel_payment()]) == Decimal('1020')


class TestDashboardMetrics:
    """Test dashboard headline figures"""

    def test_metrics_with_missed_installments(self, make_loan):
        """Test a late loan counts fully as past due"""
        metrics = aggregate_dashboard_metrics([make_loan()], [], today=date(2024, 1, 17))

        assert metrics.total_outstanding == Decimal('15750')
        assert metrics.total_past_due == Decimal('15750')
        assert metrics.collected_amount == Decimal('0')
        assert metrics.active_loan_count == 1
        assert metrics.due_this_week_amount == Decimal('2100')

    def test_metrics_after_payment(self, make_loan, make_close_data):
        """Test figures for a loan that is up to date"""
        loan, payment = closed_first(make_loan, make_close_data)
        metrics = aggregate_dashboard_metrics([loan], [payment], today=date(2024, 1, 2))

        assert metrics.total_outstanding == Decimal('14700')
        assert metrics.total_past_due == Decimal('0')
        assert metrics.collected_amount == Decimal('1020')
        assert metrics.due_this_week_amount == Decimal('1050')

    def test_inactive_loans(self, make_loan):
        """Test finished loans are not active and have nothing due"""
        finished = make_loan(installments_left=0, open_balance=Decimal('0'))
        metrics = aggregate_dashboard_metrics([finished], [], today=date(2024, 1, 2))

        assert metrics.active_loan_count == 0
        assert metrics.due_this_week_amount == Decimal('0')

    def test_chart_segments(self, make_loan, make_close_data):
        """Test the chart breakdown"""
        loan, payment = closed_first(make_loan, make_close_data)
        metrics = aggregate_dashboard_metrics([loan], [payment], today=date(2024, 1, 2))

        segments = {segment.label: segment.value for segment in dashboard_chart(metrics)}
        assert segments == {
            "Collected": Decimal('1020'),
            "Due This Week": Decimal('1050'),
            "Current": Decimal('13650'),
        }

    def test_chart_drops_empty_segments(self, make_loan):
        """Test segments with no value are left out"""
        metrics = aggregate_dashboard_metrics([make_loan()], [], today=date(2024, 1, 17))

        labels = [segment.label for segment in dashboard_chart(metrics)]
        assert labels == ["Past Due", "Due This Week"]


class TestCompanySummary:
    """Test per-company paid and overdue totals"""

    def setup_method(self):
        self.companies = [company("Fuel Co"), company("Sister Co"), company("Idle Co")]

    def test_paid_and_overdue(self, make_loan, make_close_data):
        """Test payment receivers and loan providers are both summarized"""
        loan, payment = closed_first(make_loan, make_close_data)
        summaries = {s.company_name: s for s in summarize_by_company([loan], [payment], self.companies)}

        assert set(summaries) == {"Fuel Co", "Sister Co"}

        fuel = summaries["Fuel Co"]
        assert fuel.total_paid_amount == Decimal('1020')
        assert fuel.payment_count == 1
        assert fuel.total_overdue_amount == Decimal('0')
        assert fuel.total_factoring_fees == Decimal('450') * (Decimal('1020') / Decimal('1050'))
        assert [line.loan_id for line in fuel.loans] == ["L001"]

        sister = summaries["Sister Co"]
        assert sister.total_overdue_amount == Decimal('14000')
        assert sister.overdue_count == 1
        assert sister.total_paid_amount == Decimal('0')

    def test_apportioned_fees(self, make_loan):
        """Test whole fees scale with the payment to installment ratio"""
        loan = make_loan()
        payment = fuel_payment(amount='2100')
        payment.payment_type = PaymentType.LOAN

        factoring, provider = apportioned_fees(loan, payment)
        assert factoring == Decimal('900')
        assert provider == Decimal('600')

    def test_client_filter(self, make_loan, make_close_data):
        """Test a client filter with no matching loans yields nothing"""
        loan, payment = closed_first(make_loan, make_close_data)
        filters = CompanySummaryFilter(client_name="Somebody Else")

        assert summarize_by_company([loan], [payment], self.companies, filters) == []

    def test_date_filter(self, make_loan, make_close_data):
        """Test the period narrows payments but not overdue balances"""
        loan, payment = closed_first(make_loan, make_close_data)
        filters = CompanySummaryFilter(
            date_range=DateRange(start=date(2024, 2, 1), end=date(2024, 2, 29))
        )
        summaries = summarize_by_company([loan], [payment], self.companies, filters)

        assert [s.company_name for s in summaries] == ["Sister Co"]

    def test_company_filter(self, make_loan, make_close_data):
        """Test a company filter restricts both sides"""
        loan, payment = closed_first(make_loan, make_close_data)
        filters = CompanySummaryFilter(company_name="Fuel Co")
        summaries = summarize_by_company([loan], [payment], self.companies, filters)

        assert [s.company_name for s in summaries] == ["Fuel Co"]
        assert summaries[0].total_overdue_amount == Decimal('0')

    def test_fully_paid_loan_not_overdue(self, make_loan):
        """Test loans with no open balance are not counted as overdue"""
        loan = make_loan(open_balance=Decimal('0'), installments_left=0)
        assert summarize_by_company([loan], [], self.companies) == []
