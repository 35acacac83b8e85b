"""
Payment Module

Cash movements recorded by the desk. Loan payments are collections against an
installment and are created only by the closure processor; every other payment
type is an outgoing disbursement entered directly.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .money import ZERO, to_decimal
from .storage import StorageInterface, StorageRecord
from .repositories import Repository
from .audit import AuditTrail, AuditEventType


class PaymentType(Enum):
    """Payment categories"""
    LOAN = "Loan"               # Collection against a loan installment
    FUEL = "Fuel"
    EQUIPMENT = "Equipment"
    BJK_FUEL = "BJK Fuel"
    TDX = "TDX"
    ADDITIONAL = "Additional"


class TransactionType(Enum):
    """Bank rails a payment moved over"""
    ACH = "ACH"
    WIRE = "Wire"


@dataclass
class Payment(StorageRecord):
    """
    A recorded payment.

    For loan payments payment_amount is principal plus the sister company fee;
    the factoring fee is carried alongside as revenue and never added to the
    cash total.
    """
    company_name: str
    payment_type: PaymentType
    payment_amount: Decimal
    transaction_type: TransactionType
    bank_confirmation_number: str
    date_paid: date
    loan_id: Optional[str] = None           # Human loan id, loan payments only
    client_name: Optional[str] = None
    installment_number: Optional[int] = None
    notes: Optional[str] = None
    factoring_fee: Decimal = ZERO
    sister_company_fee: Decimal = ZERO

    def __post_init__(self):
        self.payment_amount = to_decimal(self.payment_amount)
        self.factoring_fee = to_decimal(self.factoring_fee)
        self.sister_company_fee = to_decimal(self.sister_company_fee)

    @property
    def is_loan_payment(self) -> bool:
        return self.payment_type == PaymentType.LOAN

    @property
    def principal_amount(self) -> Decimal:
        """Principal carried by this payment, never negative"""
        return max(ZERO, self.payment_amount - self.sister_company_fee)

    @property
    def fees_earned(self) -> Decimal:
        return self.factoring_fee + self.sister_company_fee

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        data = cls.parse_timestamps(data)
        installment_number = data.get('installment_number')
        return cls(
            id=data['id'],
            created_at=data['created_at'],
            updated_at=data['updated_at'],
            company_name=data['company_name'],
            payment_type=PaymentType(data['payment_type']),
            payment_amount=Decimal(data['payment_amount']),
            transaction_type=TransactionType(data['transaction_type']),
            bank_confirmation_number=data['bank_confirmation_number'],
            date_paid=date.fromisoformat(data['date_paid']),
            loan_id=data.get('loan_id'),
            client_name=data.get('client_name'),
            installment_number=int(installment_number) if installment_number is not None else None,
            notes=data.get('notes'),
            factoring_fee=Decimal(data.get('factoring_fee') or '0'),
            sister_company_fee=Decimal(data.get('sister_company_fee') or '0')
        )


class PaymentRepository(Repository[Payment]):
    """Payments, indexed by loan, company and date"""

    def __init__(self, storage: StorageInterface, table: str = "payments"):
        super().__init__(storage, table, Payment.to_dict, Payment.from_dict)

    def list_for_loan(self, loan_id: str) -> List[Payment]:
        """Loan payments collected against one loan, in recording order"""
        return self.find(loan_id=loan_id, payment_type=PaymentType.LOAN.value)

    def list_for_company(self, company_name: str) -> List[Payment]:
        return self.find(company_name=company_name)

    def list_between(self, start: Optional[date] = None,
                     end: Optional[date] = None) -> List[Payment]:
        """Payments dated within [start, end]; either bound may be open"""
        return [
            payment for payment in self.list()
            if (start is None or payment.date_paid >= start)
            and (end is None or payment.date_paid <= end)
        ]


# Payment fields that can be corrected after entry
EDITABLE_FIELDS = {
    'company_name', 'transaction_type', 'bank_confirmation_number', 'date_paid', 'notes'
}


class PaymentManager:
    """
    Manages direct payment entry and payment lookups
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.payments = PaymentRepository(storage)

    def record_payment(
        self,
        company_name: str,
        payment_type: PaymentType,
        payment_amount: Decimal,
        transaction_type: TransactionType,
        bank_confirmation_number: str,
        date_paid: date,
        client_name: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Payment:
        """
        Record an outgoing payment (fuel, equipment, etc.)

        Raises:
            ValueError: For loan payments, which must be posted by closing an
                installment, or for invalid amounts and missing fields
        """
        if payment_type == PaymentType.LOAN:
            raise ValueError("Loan payments must be recorded by closing an installment")

        payment_amount = to_decimal(payment_amount)
        if payment_amount <= ZERO:
            raise ValueError("Payment amount must be greater than 0")
        if not company_name:
            raise ValueError("Company name is required")
        if not bank_confirmation_number:
            raise ValueError("Bank confirmation number is required")

        now = datetime.now(timezone.utc)
        payment = Payment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            company_name=company_name,
            payment_type=payment_type,
            payment_amount=payment_amount,
            transaction_type=transaction_type,
            bank_confirmation_number=bank_confirmation_number,
            date_paid=date_paid,
            client_name=client_name,
            notes=notes
        )
        self.payments.append(payment)

        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id=payment.id,
            metadata={
                "company_name": company_name,
                "payment_type": payment_type,
                "payment_amount": payment_amount,
                "transaction_type": transaction_type
            }
        )
        return payment

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        return self.payments.get(payment_id)

    def list_payments(self, start: Optional[date] = None,
                      end: Optional[date] = None,
                      payment_type: Optional[PaymentType] = None) -> List[Payment]:
        """List payments, optionally by date range and type"""
        payments = self.payments.list_between(start, end)
        if payment_type is not None:
            payments = [p for p in payments if p.payment_type == payment_type]
        return payments

    def get_payments_by_loan(self, loan_id: str) -> List[Payment]:
        return self.payments.list_for_loan(loan_id)

    def get_payments_by_company(self, company_name: str) -> List[Payment]:
        return self.payments.list_for_company(company_name)

    def update_payment(self, payment_id: str, **updates: Any) -> Payment:
        """
        Correct a payment's descriptive fields

        Amounts are part of a loan's reconciliation and cannot be edited here.
        """
        payment = self.get_payment(payment_id)
        if not payment:
            raise ValueError(f"Payment {payment_id} not found")

        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        updated = replace(payment, **updates)
        updated.updated_at = datetime.now(timezone.utc)
        self.payments.update(updated)

        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_UPDATED,
            entity_type="payment",
            entity_id=payment_id,
            metadata={"fields": sorted(updates)}
        )
        return updated

    def delete_payment(self, payment_id: str) -> bool:
        """
        Delete an outgoing payment

        Raises:
            ValueError: For loan payments, which back a closure record
        """
        payment = self.get_payment(payment_id)
        if not payment:
            return False
        if payment.is_loan_payment:
            raise ValueError("Loan payments back a closed installment and cannot be deleted")

        self.payments.delete(payment_id)
        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_DELETED,
            entity_type="payment",
            entity_id=payment_id,
            metadata={
                "company_name": payment.company_name,
                "payment_amount": payment.payment_amount
            }
        )
        return True
