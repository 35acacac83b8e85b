"""
Installment Classifier

Combines a loan's weekly schedule with its closure ledger and places every
installment in exactly one status as of a given day. All collection screens
(missed, due this week, closed, portfolio groupings) read from this one
classification.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from enum import Enum

from .money import ZERO, sum_amounts
from .loans import Loan, ClosureType
from .directory import DEFAULT_ACCOUNT_EXECUTIVE
from .schedule import DateLike, calculate_schedule, normalize_date, week_rolled_over

DEFAULT_GRACE_PERIOD_DAYS = 7


class InstallmentKind(Enum):
    """Which collection view an installment belongs to"""
    UPCOMING = "upcoming"
    MISSED = "missed"
    CLOSED = "closed"


class InstallmentStatus(Enum):
    CLOSED = "closed"
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_THIS_WEEK = "due_this_week"
    DUE_FUTURE = "due_future"


KIND_BY_STATUS = {
    InstallmentStatus.CLOSED: InstallmentKind.CLOSED,
    InstallmentStatus.OVERDUE: InstallmentKind.MISSED,
    InstallmentStatus.DUE_TODAY: InstallmentKind.UPCOMING,
    InstallmentStatus.DUE_THIS_WEEK: InstallmentKind.UPCOMING,
    InstallmentStatus.DUE_FUTURE: InstallmentKind.UPCOMING,
}


@dataclass(frozen=True)
class ClassifiedInstallment:
    """
    One schedule position with its status.

    amount is the principal share only; the fee shares are reported beside it
    and are always additive.
    """
    installment_number: int
    due_date: date
    days_since_due: int
    status: InstallmentStatus
    amount: Decimal
    factoring_fee: Decimal
    loan_provider_fee: Decimal
    is_next: bool = False
    is_partial: bool = False
    remaining_amount: Decimal = ZERO
    closure_type: Optional[ClosureType] = None

    @property
    def kind(self) -> InstallmentKind:
        return KIND_BY_STATUS[self.status]

    @property
    def total_due(self) -> Decimal:
        """Principal plus both fee shares"""
        return self.amount + self.factoring_fee + self.loan_provider_fee

    @property
    def days_past_due(self) -> int:
        return max(0, self.days_since_due)


@dataclass
class InstallmentClassification:
    """Every installment of one loan, classified as of a given day"""
    loan_id: str
    today: date
    installments: List[ClassifiedInstallment] = field(default_factory=list)

    def _with_status(self, *statuses: InstallmentStatus) -> List[ClassifiedInstallment]:
        return [i for i in self.installments if i.status in statuses]

    @property
    def missed(self) -> List[ClassifiedInstallment]:
        return self._with_status(InstallmentStatus.OVERDUE)

    @property
    def closed(self) -> List[ClassifiedInstallment]:
        return self._with_status(InstallmentStatus.CLOSED)

    @property
    def upcoming(self) -> List[ClassifiedInstallment]:
        """Open installments that are not missed, by due date"""
        return self._with_status(InstallmentStatus.DUE_TODAY,
                                 InstallmentStatus.DUE_THIS_WEEK,
                                 InstallmentStatus.DUE_FUTURE)

    @property
    def due_this_week(self) -> List[ClassifiedInstallment]:
        """Due today, due within the next week, or still inside the grace window"""
        return self._with_status(InstallmentStatus.DUE_TODAY, InstallmentStatus.DUE_THIS_WEEK)

    @property
    def partial(self) -> List[ClassifiedInstallment]:
        """Closed installments that still have principal owing"""
        return [i for i in self.closed if i.is_partial and i.remaining_amount > ZERO]

    @property
    def next_installment(self) -> Optional[ClassifiedInstallment]:
        for installment in self.installments:
            if installment.is_next:
                return installment
        return None

    def get(self, installment_number: int) -> Optional[ClassifiedInstallment]:
        for installment in self.installments:
            if installment.installment_number == installment_number:
                return installment
        return None


def _open_status(days_since_due: int, due_date: date, today: date,
                 grace_period_days: int) -> InstallmentStatus:
    if days_since_due == 0:
        return InstallmentStatus.DUE_TODAY
    if days_since_due < 0:
        if -days_since_due <= grace_period_days:
            return InstallmentStatus.DUE_THIS_WEEK
        return InstallmentStatus.DUE_FUTURE
    # Past due: missed once the grace window ends or the week rolls over
    if days_since_due > grace_period_days or week_rolled_over(due_date, today):
        return InstallmentStatus.OVERDUE
    return InstallmentStatus.DUE_THIS_WEEK


def classify_installments(
    loan: Loan,
    today: Optional[DateLike] = None,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> InstallmentClassification:
    """
    Classify every installment of a loan.

    An installment with any closure record, partial or full, is CLOSED and is
    never reported as missed or upcoming. Partial closures expose the
    principal still owed through remaining_amount.
    """
    today = normalize_date(today or date.today())
    principal = loan.principal_per_installment
    factoring_share = loan.factoring_fee_per_installment
    provider_share = loan.provider_fee_per_installment

    classification = InstallmentClassification(loan_id=loan.loan_id, today=today)
    next_marked = False

    for entry in calculate_schedule(loan.first_installment_date, loan.total_installments, today):
        latest = loan.latest_closure(entry.installment_number)
        if latest is not None:
            classification.installments.append(ClassifiedInstallment(
                installment_number=entry.installment_number,
                due_date=entry.due_date,
                days_since_due=entry.days_since_due,
                status=InstallmentStatus.CLOSED,
                amount=principal,
                factoring_fee=factoring_share,
                loan_provider_fee=provider_share,
                is_partial=latest.is_partial,
                remaining_amount=latest.remaining_amount if latest.is_partial else ZERO,
                closure_type=latest.closure_type
            ))
            continue

        status = _open_status(entry.days_since_due, entry.due_date, today, grace_period_days)
        is_next = not next_marked and entry.days_since_due <= 0
        if is_next:
            next_marked = True

        classification.installments.append(ClassifiedInstallment(
            installment_number=entry.installment_number,
            due_date=entry.due_date,
            days_since_due=entry.days_since_due,
            status=status,
            amount=principal,
            factoring_fee=factoring_share,
            loan_provider_fee=provider_share,
            is_next=is_next
        ))

    return classification


def has_missed_installments(loan: Loan, today: Optional[DateLike] = None,
                            grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS) -> bool:
    return bool(classify_installments(loan, today, grace_period_days).missed)


# Portfolio views

@dataclass
class LoanDueThisWeek:
    """A loan with installments due this week"""
    loan: Loan
    installments: List[ClassifiedInstallment]
    account_executive: str

    @property
    def total_amount(self) -> Decimal:
        return sum_amounts(i.total_due for i in self.installments)

    @property
    def earliest_due_date(self) -> date:
        return min(i.due_date for i in self.installments)


@dataclass
class PastDueLoan:
    """A loan with missed installments"""
    loan: Loan
    missed_installments: List[ClassifiedInstallment]
    account_executive: str

    @property
    def total_missed_amount(self) -> Decimal:
        return sum_amounts(i.total_due for i in self.missed_installments)

    @property
    def total_missed_count(self) -> int:
        return len(self.missed_installments)

    @property
    def max_days_past(self) -> int:
        return max(i.days_past_due for i in self.missed_installments)


def _account_executives(clients: Iterable) -> Dict[str, str]:
    return {
        client.name: client.account_executive
        for client in clients if client.account_executive
    }


def loans_due_this_week(
    loans: Iterable[Loan],
    clients: Iterable = (),
    today: Optional[DateLike] = None,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> List[LoanDueThisWeek]:
    """
    Active loans with installments due this week, earliest due date first
    """
    executives = _account_executives(clients)
    groups = []
    for loan in loans:
        if not loan.is_active:
            continue
        due = classify_installments(loan, today, grace_period_days).due_this_week
        if due:
            groups.append(LoanDueThisWeek(
                loan=loan,
                installments=due,
                account_executive=executives.get(loan.client_name, DEFAULT_ACCOUNT_EXECUTIVE)
            ))
    groups.sort(key=lambda group: group.earliest_due_date)
    return groups


def past_due_loans(
    loans: Iterable[Loan],
    clients: Iterable = (),
    today: Optional[DateLike] = None,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> List[PastDueLoan]:
    """
    Active loans with missed installments, most days past due first
    """
    executives = _account_executives(clients)
    groups = []
    for loan in loans:
        if not loan.is_active:
            continue
        missed = classify_installments(loan, today, grace_period_days).missed
        if missed:
            groups.append(PastDueLoan(
                loan=loan,
                missed_installments=missed,
                account_executive=executives.get(loan.client_name, DEFAULT_ACCOUNT_EXECUTIVE)
            ))
    groups.sort(key=lambda group: group.max_days_past, reverse=True)
    return groups


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_days_readable(days: int) -> str:
    """
    Render a day count for collection screens, e.g. "2 weeks 3 days".

    Months count as 30 days and years as 365.
    """
    if days < 7:
        return _plural(days, "day")
    if days < 30:
        weeks, rest = divmod(days, 7)
        parts = [_plural(weeks, "week")]
        if rest:
            parts.append(_plural(rest, "day"))
        return " ".join(parts)
    if days < 365:
        months, rest = divmod(days, 30)
        weeks, rest = divmod(rest, 7)
        parts = [_plural(months, "month")]
        if weeks:
            parts.append(_plural(weeks, "week"))
        if rest:
            parts.append(_plural(rest, "day"))
        return " ".join(parts)
    years, rest = divmod(days, 365)
    months, rest = divmod(rest, 30)
    parts = [_plural(years, "year")]
    if months or rest:
        parts.append(_plural(months, "month"))
    if rest:
        parts.append(_plural(rest, "day"))
    return " ".join(parts)
