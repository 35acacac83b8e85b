"""
Reporting Module

Read-only rollups over loans and payments: dashboard metrics, the dashboard
chart breakdown and the per-company summary. Every function here is pure:
results depend only on the arguments passed in.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .money import ZERO, sum_amounts
from .loans import Loan
from .payments import Payment, PaymentType
from .schedule import DateLike, DateRange, normalize_date
from .classifier import DEFAULT_GRACE_PERIOD_DAYS, classify_installments


def _loan_payments_by_loan(payments: Iterable[Payment]) -> Dict[str, List[Payment]]:
    grouped: Dict[str, List[Payment]] = {}
    for payment in payments:
        if payment.is_loan_payment and payment.loan_id:
            grouped.setdefault(payment.loan_id, []).append(payment)
    return grouped


def fees_earned(loan: Loan, payments: Iterable[Payment]) -> Decimal:
    """Factoring and sister company fees already collected on a loan"""
    return sum_amounts(
        payment.fees_earned for payment in payments
        if payment.is_loan_payment and payment.loan_id == loan.loan_id
    )


def outstanding_with_fees(loan: Loan, payments: Iterable[Payment]) -> Decimal:
    """Open principal plus the fees not yet earned, which never go below zero"""
    unearned = max(ZERO, loan.total_fees - fees_earned(loan, payments))
    return loan.open_balance + unearned


def collected_amount(payments: Iterable[Payment],
                     date_range: Optional[DateRange] = None) -> Decimal:
    """Cash collected on loan payments dated within the range"""
    return sum_amounts(
        payment.payment_amount for payment in payments
        if payment.payment_type == PaymentType.LOAN
        and (date_range is None or date_range.contains(payment.date_paid))
    )


@dataclass
class DashboardMetrics:
    total_outstanding: Decimal
    total_past_due: Decimal
    collected_amount: Decimal
    active_loan_count: int
    due_this_week_amount: Decimal


def aggregate_dashboard_metrics(
    loans: Iterable[Loan],
    payments: Iterable[Payment],
    date_range: Optional[DateRange] = None,
    today: Optional[DateLike] = None,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> DashboardMetrics:
    """
    Compute the dashboard headline figures

    Args:
        loans: Loans in the portfolio
        payments: All recorded payments
        date_range: Period for collected_amount; open when None
        today: Reference date for classification
        grace_period_days: Days past due before an installment counts as missed

    Returns:
        DashboardMetrics. total_outstanding and total_past_due include unearned
        fees; due_this_week_amount is principal plus fee shares of installments
        due this week on active loans.
    """
    loans = list(loans)
    payments = list(payments)
    today = normalize_date(today or date.today())
    by_loan = _loan_payments_by_loan(payments)

    total_outstanding = ZERO
    total_past_due = ZERO
    due_this_week = ZERO
    active = 0

    for loan in loans:
        outstanding = outstanding_with_fees(loan, by_loan.get(loan.loan_id, []))
        total_outstanding += outstanding

        classification = classify_installments(loan, today, grace_period_days)
        if classification.missed:
            total_past_due += outstanding
        if loan.is_active:
            active += 1
            due_this_week += sum_amounts(i.total_due for i in classification.due_this_week)

    return DashboardMetrics(
        total_outstanding=total_outstanding,
        total_past_due=total_past_due,
        collected_amount=collected_amount(payments, date_range),
        active_loan_count=active,
        due_this_week_amount=due_this_week
    )


@dataclass
class ChartSegment:
    label: str
    value: Decimal


def dashboard_chart(metrics: DashboardMetrics) -> List[ChartSegment]:
    """
    Portfolio breakdown for the dashboard chart

    Current is whatever is outstanding beyond past-due and due-this-week
    amounts. Segments with no value are left out.
    """
    current = max(
        ZERO,
        metrics.total_outstanding - metrics.total_past_due - metrics.due_this_week_amount
    )
    segments = [
        ChartSegment("Collected", metrics.collected_amount),
        ChartSegment("Past Due", metrics.total_past_due),
        ChartSegment("Due This Week", metrics.due_this_week_amount),
        ChartSegment("Current", current),
    ]
    return [segment for segment in segments if segment.value > ZERO]


# Company summary

@dataclass
class CompanySummaryFilter:
    """Narrows a company summary; None means no restriction"""
    date_range: Optional[DateRange] = None
    client_name: Optional[str] = None
    company_name: Optional[str] = None


@dataclass
class CompanyLoanLine:
    loan_id: str
    client_name: str
    paid_amount: Decimal = ZERO
    overdue_amount: Decimal = ZERO
    factoring_fees: Decimal = ZERO
    loan_provider_fees: Decimal = ZERO
    installments_left: int = 0
    open_balance: Decimal = ZERO


@dataclass
class CompanySummary:
    company_name: str
    total_paid_amount: Decimal = ZERO
    total_overdue_amount: Decimal = ZERO
    total_factoring_fees: Decimal = ZERO
    total_loan_provider_fees: Decimal = ZERO
    payment_count: int = 0
    overdue_count: int = 0
    loans: List[CompanyLoanLine] = field(default_factory=list)

    def line_for(self, loan: Loan) -> CompanyLoanLine:
        for line in self.loans:
            if line.loan_id == loan.loan_id:
                return line
        line = CompanyLoanLine(
            loan_id=loan.loan_id,
            client_name=loan.client_name,
            installments_left=loan.installments_left,
            open_balance=loan.open_balance
        )
        self.loans.append(line)
        return line


def apportioned_fees(loan: Loan, payment: Payment) -> Tuple[Decimal, Decimal]:
    """
    Fee shares attributable to one payment

    Each whole fee is scaled by the ratio of the payment to one gross
    installment.
    """
    if loan.installment_amount <= ZERO:
        return ZERO, ZERO
    ratio = payment.payment_amount / loan.installment_amount
    return loan.factoring_fee * ratio, loan.loan_provider_fee * ratio


def summarize_by_company(
    loans: Iterable[Loan],
    payments: Iterable[Payment],
    companies: Iterable,
    filters: Optional[CompanySummaryFilter] = None
) -> List[CompanySummary]:
    """
    Paid and overdue totals per company

    Paid amounts come from loan payments received by the company; overdue
    amounts are the open balances of loans the company provided. Companies
    with neither are omitted.
    """
    filters = filters or CompanySummaryFilter()
    loans = list(loans)
    loans_by_id = {loan.loan_id: loan for loan in loans}

    summaries: Dict[str, CompanySummary] = {}
    for company in companies:
        summaries.setdefault(company.name, CompanySummary(company_name=company.name))

    for payment in payments:
        if filters.date_range and not filters.date_range.contains(payment.date_paid):
            continue
        if filters.company_name and payment.company_name != filters.company_name:
            continue
        if not payment.is_loan_payment or not payment.loan_id:
            continue
        loan = loans_by_id.get(payment.loan_id)
        if loan is None:
            continue
        if filters.client_name and loan.client_name != filters.client_name:
            continue
        summary = summaries.get(payment.company_name)
        if summary is None:
            continue

        factoring_share, provider_share = apportioned_fees(loan, payment)
        summary.total_paid_amount += payment.payment_amount
        summary.payment_count += 1
        summary.total_factoring_fees += factoring_share
        summary.total_loan_provider_fees += provider_share

        line = summary.line_for(loan)
        line.paid_amount += payment.payment_amount
        line.factoring_fees += factoring_share
        line.loan_provider_fees += provider_share

    for loan in loans:
        if filters.client_name and loan.client_name != filters.client_name:
            continue
        if filters.company_name and loan.loan_provider != filters.company_name:
            continue
        summary = summaries.get(loan.loan_provider)
        if summary is None or loan.open_balance <= ZERO:
            continue
        summary.total_overdue_amount += loan.open_balance
        summary.overdue_count += 1
        summary.line_for(loan).overdue_amount = loan.open_balance

    return [
        summary for summary in summaries.values()
        if summary.total_paid_amount > ZERO or summary.total_overdue_amount > ZERO
    ]
