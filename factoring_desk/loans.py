"""
Loan Module

Factoring advances repaid in weekly installments. A loan carries its own
closure ledger (closed_installments), which is the source of truth for which
installments are settled. open_balance and installments_left are cached
counters kept consistent with that ledger by the closure processor.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .money import ZERO, to_decimal
from .storage import StorageInterface, StorageRecord, to_jsonable
from .repositories import Repository
from .schedule import ScheduleEntry, calculate_schedule
from .payments import PaymentRepository
from .audit import AuditTrail, AuditEventType


class ClosureType(Enum):
    """How an installment was closed"""
    PAYMENT = "payment"   # Closed by a recorded payment
    MANUAL = "manual"     # Marked settled administratively, no money moved


@dataclass
class ClosedInstallment:
    """One closure record in a loan's ledger"""
    installment_number: int
    due_date: date
    closed_date: date
    amount: Decimal                     # Principal share of the installment
    payment_amount: Decimal             # Posted amount (principal + provider fee); 0 for manual
    payment_id: str                     # Originating payment, '' for manual closures
    closure_type: ClosureType
    is_partial: bool = False
    remaining_amount: Decimal = ZERO    # Principal still owed when partial
    note: Optional[str] = None

    def __post_init__(self):
        if self.installment_number < 1:
            raise ValueError("Installment number must be 1 or greater")
        self.amount = to_decimal(self.amount)
        self.payment_amount = to_decimal(self.payment_amount)
        self.remaining_amount = to_decimal(self.remaining_amount)

    @property
    def settles_installment(self) -> bool:
        """A record counts toward installments paid unless it leaves principal owing"""
        return not self.is_partial or self.remaining_amount == ZERO

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable({
            'installment_number': self.installment_number,
            'due_date': self.due_date,
            'closed_date': self.closed_date,
            'amount': self.amount,
            'payment_amount': self.payment_amount,
            'payment_id': self.payment_id,
            'closure_type': self.closure_type,
            'is_partial': self.is_partial,
            'remaining_amount': self.remaining_amount,
            'note': self.note
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClosedInstallment':
        return cls(
            installment_number=int(data['installment_number']),
            due_date=date.fromisoformat(data['due_date']),
            closed_date=date.fromisoformat(data['closed_date']),
            amount=Decimal(data['amount']),
            payment_amount=Decimal(data['payment_amount']),
            payment_id=data.get('payment_id') or '',
            closure_type=ClosureType(data['closure_type']),
            is_partial=bool(data.get('is_partial', False)),
            remaining_amount=Decimal(data.get('remaining_amount') or '0'),
            note=data.get('note')
        )


@dataclass
class Loan(StorageRecord):
    """Factoring advance with its closure ledger"""
    loan_id: str                        # Human identifier, e.g. "L000"
    client_name: str
    loan_provider: str                  # Sister company that provided the advance
    loan_amount: Decimal
    total_installments: int
    installments_left: int
    open_balance: Decimal
    installment_amount: Decimal         # Gross weekly amount (principal + fees) / installments
    factoring_fee: Decimal              # Collector's fee for the whole loan
    loan_provider_fee: Decimal          # Sister company fee for the whole loan
    loan_date: date
    first_installment_date: date
    closed_installments: List[ClosedInstallment] = field(default_factory=list)
    account_executive: Optional[str] = None

    def __post_init__(self):
        for name in ('loan_amount', 'open_balance', 'installment_amount',
                     'factoring_fee', 'loan_provider_fee'):
            setattr(self, name, to_decimal(getattr(self, name)))

    @property
    def principal_per_installment(self) -> Decimal:
        return self.loan_amount / Decimal(self.total_installments)

    @property
    def factoring_fee_per_installment(self) -> Decimal:
        return self.factoring_fee / Decimal(self.total_installments)

    @property
    def provider_fee_per_installment(self) -> Decimal:
        return self.loan_provider_fee / Decimal(self.total_installments)

    @property
    def total_fees(self) -> Decimal:
        return self.factoring_fee + self.loan_provider_fee

    @property
    def is_active(self) -> bool:
        """A loan stays on the collection screens while installments remain"""
        return self.installments_left > 0

    @property
    def installments_paid(self) -> int:
        return sum(1 for record in self.closed_installments if record.settles_installment)

    def closed_numbers(self) -> set:
        """Installment numbers with at least one closure record"""
        return {record.installment_number for record in self.closed_installments}

    def is_installment_closed(self, installment_number: int) -> bool:
        return any(record.installment_number == installment_number
                   for record in self.closed_installments)

    def latest_closure(self, installment_number: int) -> Optional[ClosedInstallment]:
        """Most recent closure record for an installment number"""
        latest = None
        for record in self.closed_installments:
            if record.installment_number == installment_number:
                latest = record
        return latest

    def outstanding_partial(self, installment_number: int) -> Decimal:
        """Principal still owed on a partially closed installment, zero otherwise"""
        latest = self.latest_closure(installment_number)
        if latest and latest.is_partial:
            return latest.remaining_amount
        return ZERO

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['closed_installments'] = [record.to_dict() for record in self.closed_installments]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = cls.parse_timestamps(data)
        return cls(
            id=data['id'],
            created_at=data['created_at'],
            updated_at=data['updated_at'],
            loan_id=data['loan_id'],
            client_name=data['client_name'],
            loan_provider=data['loan_provider'],
            loan_amount=Decimal(data['loan_amount']),
            total_installments=int(data['total_installments']),
            installments_left=int(data['installments_left']),
            open_balance=Decimal(data['open_balance']),
            installment_amount=Decimal(data['installment_amount']),
            factoring_fee=Decimal(data['factoring_fee']),
            loan_provider_fee=Decimal(data['loan_provider_fee']),
            loan_date=date.fromisoformat(data['loan_date']),
            first_installment_date=date.fromisoformat(data['first_installment_date']),
            closed_installments=[
                ClosedInstallment.from_dict(record)
                for record in data.get('closed_installments', [])
            ],
            account_executive=data.get('account_executive')
        )


class LoanRepository(Repository[Loan]):
    """Loans keyed by internal id, with lookups by human loan id and client"""

    def __init__(self, storage: StorageInterface, table: str = "loans"):
        super().__init__(storage, table, Loan.to_dict, Loan.from_dict)

    def get_by_loan_id(self, loan_id: str) -> Optional[Loan]:
        matches = self.find(loan_id=loan_id)
        return matches[0] if matches else None

    def list_for_client(self, client_name: str) -> List[Loan]:
        return self.find(client_name=client_name)


# Fields that can be edited at any time without touching the ledger
DESCRIPTIVE_FIELDS = {
    'loan_id', 'client_name', 'loan_provider', 'loan_date', 'account_executive'
}

# Fields that define the schedule and balances; editable only while the ledger is empty
FINANCIAL_FIELDS = {
    'loan_amount', 'total_installments', 'factoring_fee', 'loan_provider_fee',
    'first_installment_date'
}


def gross_installment_amount(loan_amount: Decimal, factoring_fee: Decimal,
                             loan_provider_fee: Decimal, total_installments: int) -> Decimal:
    """Weekly amount a client owes: principal plus both fees, spread evenly"""
    return (loan_amount + factoring_fee + loan_provider_fee) / Decimal(total_installments)


class LoanManager:
    """
    Manages loan entry, edits, and lookups.

    Balance-affecting changes after origination go through the closure
    processor; this manager only handles pure data edits.
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.loans = LoanRepository(storage)
        self.payments = PaymentRepository(storage)

    def create_loan(
        self,
        loan_id: str,
        client_name: str,
        loan_provider: str,
        loan_amount: Decimal,
        total_installments: int,
        loan_date: date,
        first_installment_date: date,
        factoring_fee: Decimal = ZERO,
        loan_provider_fee: Decimal = ZERO,
        account_executive: Optional[str] = None
    ) -> Loan:
        """
        Enter a new loan

        Returns:
            Created Loan with a full balance and no closures

        Raises:
            ValueError: On invalid terms or a duplicate loan id
        """
        loan_amount = to_decimal(loan_amount)
        factoring_fee = to_decimal(factoring_fee)
        loan_provider_fee = to_decimal(loan_provider_fee)
        self._validate_terms(loan_id, client_name, loan_amount, total_installments,
                             factoring_fee, loan_provider_fee)

        if self.loans.get_by_loan_id(loan_id):
            raise ValueError(f"Loan {loan_id} already exists")

        now = datetime.now(timezone.utc)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan_id,
            client_name=client_name,
            loan_provider=loan_provider,
            loan_amount=loan_amount,
            total_installments=total_installments,
            installments_left=total_installments,
            open_balance=loan_amount,
            installment_amount=gross_installment_amount(
                loan_amount, factoring_fee, loan_provider_fee, total_installments
            ),
            factoring_fee=factoring_fee,
            loan_provider_fee=loan_provider_fee,
            loan_date=loan_date,
            first_installment_date=first_installment_date,
            account_executive=account_executive
        )
        self.loans.append(loan)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "loan_id": loan_id,
                "client_name": client_name,
                "loan_provider": loan_provider,
                "loan_amount": loan_amount,
                "total_installments": total_installments,
                "first_installment_date": first_installment_date
            }
        )
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by internal ID"""
        return self.loans.get(loan_id)

    def get_loan_by_loan_id(self, loan_id: str) -> Optional[Loan]:
        """Get loan by its human identifier"""
        return self.loans.get_by_loan_id(loan_id)

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan:
            raise ValueError(f"Loan {loan_id} not found")
        return loan

    def list_loans(self) -> List[Loan]:
        return self.loans.list()

    def get_loans_by_client(self, client_name: str) -> List[Loan]:
        return self.loans.list_for_client(client_name)

    def update_loan(self, record_id: str, **updates: Any) -> Loan:
        """
        Edit a loan's data

        Descriptive fields can always change. Financial terms can change only
        while no installment has been closed; the cached counters and gross
        installment amount are re-derived from the new terms.

        Raises:
            ValueError: If the loan is missing, a field is unknown, or financial
                terms are edited after closures exist
        """
        loan = self.require_loan(record_id)

        unknown = set(updates) - DESCRIPTIVE_FIELDS - FINANCIAL_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        financial = set(updates) & FINANCIAL_FIELDS
        if financial and loan.closed_installments:
            raise ValueError(
                f"Loan {loan.loan_id} has closed installments; financial terms are locked"
            )

        if 'loan_id' in updates and not updates['loan_id']:
            raise ValueError("Loan ID is required")
        new_loan_id = updates.get('loan_id')
        if new_loan_id and new_loan_id != loan.loan_id:
            existing = self.loans.get_by_loan_id(new_loan_id)
            if existing and existing.id != loan.id:
                raise ValueError(f"Loan {new_loan_id} already exists")

        for name in ('loan_amount', 'factoring_fee', 'loan_provider_fee'):
            if name in updates:
                updates[name] = to_decimal(updates[name])

        updated = replace(loan, **updates)
        if financial:
            self._validate_terms(updated.loan_id, updated.client_name, updated.loan_amount,
                                 updated.total_installments, updated.factoring_fee,
                                 updated.loan_provider_fee)
            updated.installments_left = updated.total_installments
            updated.open_balance = updated.loan_amount
            updated.installment_amount = gross_installment_amount(
                updated.loan_amount, updated.factoring_fee,
                updated.loan_provider_fee, updated.total_installments
            )
        updated.updated_at = datetime.now(timezone.utc)

        with self.storage.atomic():
            self.loans.update(updated)
            if updated.loan_id != loan.loan_id:
                # payments reference their loan by its human id
                for payment in self.payments.find(loan_id=loan.loan_id):
                    self.payments.update(replace(payment, loan_id=updated.loan_id))

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_UPDATED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={"fields": sorted(updates), "loan_id": updated.loan_id}
        )
        return updated

    def delete_loan(self, loan_id: str) -> bool:
        """Delete a loan and its ledger. Payments referencing it are kept."""
        loan = self.get_loan(loan_id)
        if not loan:
            return False
        self.loans.delete(loan_id)
        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_DELETED,
            entity_type="loan",
            entity_id=loan_id,
            metadata={
                "loan_id": loan.loan_id,
                "closed_installments": len(loan.closed_installments)
            }
        )
        return True

    def get_schedule(self, loan_id: str, today: Optional[date] = None) -> List[ScheduleEntry]:
        """Weekly due-date schedule for a loan"""
        loan = self.require_loan(loan_id)
        return calculate_schedule(loan.first_installment_date, loan.total_installments, today)

    def get_classification(self, loan_id: str, today: Optional[date] = None):
        """Classify a loan's installments as of today"""
        from .classifier import classify_installments
        return classify_installments(self.require_loan(loan_id), today)

    @staticmethod
    def _validate_terms(loan_id: str, client_name: str, loan_amount: Decimal,
                        total_installments: int, factoring_fee: Decimal,
                        loan_provider_fee: Decimal) -> None:
        if not loan_id:
            raise ValueError("Loan ID is required")
        if not client_name:
            raise ValueError("Client name is required")
        if loan_amount <= ZERO:
            raise ValueError("Loan amount must be greater than 0")
        if int(total_installments) < 1:
            raise ValueError("Total installments must be at least 1")
        if factoring_fee < ZERO or loan_provider_fee < ZERO:
            raise ValueError("Fees cannot be negative")
