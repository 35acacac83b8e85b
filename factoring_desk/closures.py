"""
Installment Closure Processor

Closing an installment is the desk's core write. The pure functions here
validate a proposed payment, split it into principal and fees, recompute the
loan's cached counters from its ledger and return the new payment and the
updated loan without touching storage. InstallmentCloser wraps them with
per-loan locking and commits both records together.

Accounting rule: the posted payment amount is principal plus the sister
company fee. The factoring fee is carried on the payment as revenue earned and
is never added into the cash total.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional
from enum import Enum
import threading
import uuid

from .money import ZERO, CENT, to_decimal, amounts_match, format_currency
from .loans import Loan, LoanRepository, ClosedInstallment, ClosureType
from .payments import Payment, PaymentRepository, PaymentType, TransactionType
from .schedule import due_date_for
from .classifier import ClassifiedInstallment, classify_installments
from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .logging_config import get_logger, log_action

logger = get_logger("factoring_desk.closures")

DEFAULT_COMPANY_NAME = "Fuel Co"


class CloseErrorCode(Enum):
    """Failure codes returned by a closure attempt"""
    INVALID_AMOUNT = "INVALID_AMOUNT"
    LOAN_FULLY_PAID = "LOAN_FULLY_PAID"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INSTALLMENT_ALREADY_CLOSED = "INSTALLMENT_ALREADY_CLOSED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


@dataclass
class CloseInstallmentData:
    """What staff enter to close an installment"""
    payment_amount: Decimal                 # Principal only
    factoring_fee: Decimal = ZERO
    sister_company_fee: Decimal = ZERO
    payment_date: Optional[date] = None
    transaction_type: Optional[TransactionType] = None
    bank_confirmation_number: str = ""
    company_name: str = ""
    notes: Optional[str] = None

    def __post_init__(self):
        self.payment_amount = to_decimal(self.payment_amount)
        self.factoring_fee = to_decimal(self.factoring_fee)
        self.sister_company_fee = to_decimal(self.sister_company_fee)


@dataclass
class ManualClosureData:
    """Administrative closure with no money moved"""
    installment_number: int
    closed_date: date
    due_date: Optional[date] = None         # Derived from the schedule when omitted
    note: Optional[str] = None


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class CloseInstallmentResult:
    """
    Outcome of a closure attempt.

    On success new_payment and updated_loan are set and nothing has been
    persisted yet. On failure error carries the code and errors any field
    messages.
    """
    success: bool
    message: str
    new_payment: Optional[Payment] = None
    updated_loan: Optional[Loan] = None
    error: Optional[CloseErrorCode] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, code: CloseErrorCode, message: str,
                errors: Optional[List[str]] = None) -> 'CloseInstallmentResult':
        return cls(success=False, message=message, error=code, errors=errors or [])


@dataclass
class CanCloseResult:
    can_close: bool
    reason: Optional[str] = None


def validate_close_installment_data(data: CloseInstallmentData) -> ValidationResult:
    """Check required fields and fee signs, collecting every problem"""
    errors = []

    if not data.payment_amount or data.payment_amount <= ZERO:
        errors.append('Payment amount is required and must be greater than 0')
    if not data.payment_date:
        errors.append('Payment date is required')
    if not data.transaction_type:
        errors.append('Transaction type is required')
    if not data.bank_confirmation_number:
        errors.append('Bank confirmation number is required')
    if not data.company_name:
        errors.append('Company name is required')
    if data.factoring_fee < ZERO:
        errors.append('Factoring fee cannot be negative')
    if data.sister_company_fee < ZERO:
        errors.append('Sister company fee cannot be negative')

    return ValidationResult(is_valid=not errors, errors=errors)


def can_close_installment(loan: Loan) -> CanCloseResult:
    if loan.installments_left <= 0:
        return CanCloseResult(can_close=False, reason='Loan is already fully paid')
    return CanCloseResult(can_close=True)


def amount_due_for(loan: Loan, installment_number: int) -> Decimal:
    """
    Suggested principal when closing an installment.

    Topping off a partial closure suggests what its latest record left
    remaining; any other installment suggests the full principal share.
    """
    outstanding = loan.outstanding_partial(installment_number)
    if outstanding > ZERO:
        return outstanding
    return loan.principal_per_installment


def principal_paid(loan: Loan, payments: Iterable[Payment]) -> Decimal:
    """Principal already collected on a loan across its loan payments"""
    total = ZERO
    for payment in payments:
        if payment.is_loan_payment and payment.loan_id == loan.loan_id:
            total += payment.principal_amount
    return total


def count_installments_left(total_installments: int,
                            records: Iterable[ClosedInstallment]) -> int:
    paid = sum(1 for record in records if record.settles_installment)
    return max(0, total_installments - paid)


def _amounts_summary(data: CloseInstallmentData, total_collected: Decimal) -> str:
    return (
        f"Principal: {format_currency(data.payment_amount)}, "
        f"Sister Company Fee: {format_currency(data.sister_company_fee)}, "
        f"Factoring Fee: {format_currency(data.factoring_fee)}. "
        f"Total collected: {format_currency(total_collected)}."
    )


def close_installment(
    loan: Loan,
    installment: Any,
    close_data: CloseInstallmentData,
    existing_payments: Iterable[Payment],
    tolerance: Decimal = CENT
) -> CloseInstallmentResult:
    """
    Close one installment with a payment.

    Args:
        loan: Loan being collected
        installment: Anything with installment_number and due_date, such as a
            ClassifiedInstallment or ScheduleEntry
        close_data: Entered payment details
        existing_payments: Payments already recorded; only this loan's loan
            payments count toward principal paid
        tolerance: Largest shortfall or excess still treated as exact

    Returns:
        CloseInstallmentResult. Never raises.
    """
    try:
        if close_data.payment_amount <= ZERO:
            return CloseInstallmentResult.failure(
                CloseErrorCode.INVALID_AMOUNT, 'Payment amount must be greater than 0'
            )

        eligibility = can_close_installment(loan)
        if not eligibility.can_close:
            return CloseInstallmentResult.failure(
                CloseErrorCode.LOAN_FULLY_PAID, eligibility.reason
            )

        validation = validate_close_installment_data(close_data)
        if not validation.is_valid:
            return CloseInstallmentResult.failure(
                CloseErrorCode.VALIDATION_ERROR,
                'Please correct the following errors: ' + '; '.join(validation.errors),
                validation.errors
            )

        number = installment.installment_number
        due = installment.due_date
        entered = close_data.payment_amount
        posted_amount = entered + close_data.sister_company_fee

        total_principal = principal_paid(loan, existing_payments) + entered
        open_balance = max(ZERO, loan.loan_amount - total_principal)

        share = loan.principal_per_installment
        is_partial = share - entered > tolerance
        remaining = share - entered if is_partial else ZERO

        now = datetime.now(timezone.utc)
        payment = Payment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            company_name=close_data.company_name,
            payment_type=PaymentType.LOAN,
            payment_amount=posted_amount,
            transaction_type=close_data.transaction_type,
            bank_confirmation_number=close_data.bank_confirmation_number,
            date_paid=close_data.payment_date,
            loan_id=loan.loan_id,
            client_name=loan.client_name,
            installment_number=number,
            notes=close_data.notes or f"Installment #{number} payment - Due Date: {due.isoformat()}",
            factoring_fee=close_data.factoring_fee,
            sister_company_fee=close_data.sister_company_fee
        )

        record = ClosedInstallment(
            installment_number=number,
            due_date=due,
            closed_date=close_data.payment_date,
            amount=loan.principal_per_installment,
            payment_amount=posted_amount,
            payment_id=payment.id,
            closure_type=ClosureType.PAYMENT,
            is_partial=is_partial,
            remaining_amount=remaining,
            note='Partial payment' if is_partial else None
        )
        records = list(loan.closed_installments) + [record]

        updated_loan = replace(
            loan,
            open_balance=open_balance,
            installments_left=count_installments_left(loan.total_installments, records),
            closed_installments=records,
            updated_at=now
        )

        total_collected = posted_amount + close_data.factoring_fee
        summary = _amounts_summary(close_data, total_collected)
        if is_partial:
            message = (f"Partial payment recorded for Installment #{number}. {summary} "
                       f"Installment marked as closed with {format_currency(remaining)} remaining.")
        elif amounts_match(entered, share, tolerance):
            message = f"Installment #{number} successfully closed. {summary}"
        else:
            message = (f"Installment #{number} closed with overpayment. {summary} "
                       f"Excess principal of {format_currency(entered - share)} "
                       f"will be applied to future installments.")

        return CloseInstallmentResult(
            success=True,
            message=message,
            new_payment=payment,
            updated_loan=updated_loan
        )

    except Exception:
        logger.exception("Unexpected failure closing installment for loan %s",
                         getattr(loan, 'loan_id', None))
        return CloseInstallmentResult.failure(
            CloseErrorCode.UNEXPECTED_ERROR,
            'An unexpected error occurred while closing the installment'
        )


def manual_close_installment(loan: Loan, manual_data: ManualClosureData) -> Loan:
    """
    Mark an installment settled without a payment.

    Only the ledger changes: open_balance and installments_left are carried
    over untouched.

    Raises:
        ValueError: If the installment number is outside the schedule
    """
    number = manual_data.installment_number
    if not 1 <= number <= loan.total_installments:
        raise ValueError(
            f"Installment #{number} is outside the schedule of loan {loan.loan_id}"
        )

    record = ClosedInstallment(
        installment_number=number,
        due_date=manual_data.due_date or due_date_for(loan.first_installment_date, number),
        closed_date=manual_data.closed_date,
        amount=loan.principal_per_installment,
        payment_amount=ZERO,
        payment_id='',
        closure_type=ClosureType.MANUAL,
        is_partial=False,
        remaining_amount=ZERO,
        note=manual_data.note
    )
    return replace(
        loan,
        closed_installments=list(loan.closed_installments) + [record],
        updated_at=datetime.now(timezone.utc)
    )


class InstallmentCloser:
    """
    Closure service over the loan and payment repositories.

    One closure per loan is in flight at a time; the loan update and the new
    payment are committed in a single storage transaction only after the
    computation succeeded.
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        grace_period_days: int = 7,
        amount_tolerance: Decimal = CENT,
        default_company_name: str = DEFAULT_COMPANY_NAME
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.grace_period_days = grace_period_days
        self.amount_tolerance = to_decimal(amount_tolerance)
        self.default_company_name = default_company_name
        self.loans = LoanRepository(storage)
        self.payments = PaymentRepository(storage)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, loan_id: str) -> threading.Lock:
        with self._locks_guard:
            if loan_id not in self._locks:
                self._locks[loan_id] = threading.Lock()
            return self._locks[loan_id]

    def _require_loan(self, loan_id: str) -> Loan:
        loan = self.loans.get(loan_id)
        if not loan:
            raise ValueError(f"Loan {loan_id} not found")
        return loan

    def _installment(self, loan: Loan, installment_number: int,
                     today: Optional[date]) -> ClassifiedInstallment:
        installment = classify_installments(loan, today, self.grace_period_days).get(
            installment_number
        )
        if installment is None:
            raise ValueError(
                f"Installment #{installment_number} is outside the schedule of loan {loan.loan_id}"
            )
        return installment

    def can_close(self, loan: Loan) -> CanCloseResult:
        return can_close_installment(loan)

    def close_defaults(self, loan_id: str, installment_number: int,
                       today: Optional[date] = None) -> CloseInstallmentData:
        """
        Suggested form values for closing an installment

        Principal defaults to the installment's share, or to what is left of it
        when topping off a partial closure. Fees default to their
        per-installment shares.
        """
        loan = self._require_loan(loan_id)
        self._installment(loan, installment_number, today)
        return CloseInstallmentData(
            payment_amount=amount_due_for(loan, installment_number),
            factoring_fee=loan.factoring_fee_per_installment,
            sister_company_fee=loan.provider_fee_per_installment,
            payment_date=today or date.today(),
            transaction_type=TransactionType.ACH,
            company_name=self.default_company_name
        )

    def close(self, loan_id: str, installment_number: int,
              close_data: CloseInstallmentData,
              today: Optional[date] = None) -> CloseInstallmentResult:
        """
        Close an installment and commit the payment and loan together

        Raises:
            ValueError: If the loan does not exist or the installment is outside
                its schedule
        """
        with self._lock_for(loan_id):
            loan = self._require_loan(loan_id)
            installment = self._installment(loan, installment_number, today)

            # invalid amount and fully paid loan are reported first
            latest = loan.latest_closure(installment_number)
            already_closed = (
                latest is not None and latest.settles_installment
                and close_data.payment_amount > ZERO
                and can_close_installment(loan).can_close
            )
            if already_closed:
                result = CloseInstallmentResult.failure(
                    CloseErrorCode.INSTALLMENT_ALREADY_CLOSED,
                    f"Installment #{installment_number} is already closed"
                )
            else:
                result = close_installment(
                    loan, installment, close_data,
                    self.payments.list_for_loan(loan.loan_id),
                    tolerance=self.amount_tolerance
                )

            if not result.success:
                log_action(
                    logger, "warning", f"Closure rejected: {result.message}",
                    action="close_installment", loan_id=loan.loan_id,
                    extra={"installment_number": installment_number,
                           "error": result.error.value if result.error else None}
                )
                return result

            try:
                with self.storage.atomic():
                    self.loans.update(result.updated_loan)
                    self.payments.append(result.new_payment)
            except Exception:
                logger.exception("Failed to commit closure for loan %s", loan.loan_id)
                return CloseInstallmentResult.failure(
                    CloseErrorCode.UNEXPECTED_ERROR,
                    'An unexpected error occurred while closing the installment'
                )

        record = result.updated_loan.closed_installments[-1]
        self.audit_trail.log_event(
            event_type=AuditEventType.INSTALLMENT_CLOSED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "loan_id": loan.loan_id,
                "installment_number": installment_number,
                "payment_id": result.new_payment.id,
                "payment_amount": result.new_payment.payment_amount,
                "factoring_fee": result.new_payment.factoring_fee,
                "is_partial": record.is_partial,
                "remaining_amount": record.remaining_amount,
                "open_balance": result.updated_loan.open_balance,
                "installments_left": result.updated_loan.installments_left
            }
        )
        log_action(
            logger, "info", result.message,
            action="close_installment", loan_id=loan.loan_id,
            extra={
                "installment_number": installment_number,
                "payment_id": result.new_payment.id,
                "open_balance": str(result.updated_loan.open_balance),
                "installments_left": result.updated_loan.installments_left
            }
        )
        return result

    def manual_close(self, loan_id: str, manual_data: ManualClosureData,
                     confirmed: bool = False) -> Loan:
        """
        Record an administrative closure

        Manual closures bypass financial tracking, so the caller must pass
        confirmed=True after the user has explicitly agreed.

        Raises:
            ValueError: If not confirmed, the loan is missing or the installment
                is outside the schedule
        """
        if not confirmed:
            raise ValueError("Manual closure must be explicitly confirmed")

        with self._lock_for(loan_id):
            loan = self._require_loan(loan_id)
            updated = manual_close_installment(loan, manual_data)
            with self.storage.atomic():
                self.loans.update(updated)

        self.audit_trail.log_event(
            event_type=AuditEventType.INSTALLMENT_MANUALLY_CLOSED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "loan_id": loan.loan_id,
                "installment_number": manual_data.installment_number,
                "closed_date": manual_data.closed_date,
                "note": manual_data.note
            }
        )
        log_action(
            logger, "info",
            f"Installment #{manual_data.installment_number} manually closed",
            action="manual_close_installment", loan_id=loan.loan_id
        )
        return updated
