"""
Pydantic schemas for API requests and responses

Amounts travel as decimal strings and dates as ISO strings in both directions.
"""

from decimal import Decimal
from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..money import to_decimal, round_cents
from ..loans import Loan, ClosedInstallment
from ..payments import Payment, TransactionType
from ..directory import Client, SisterCompany
from ..users import User, UserRole
from ..classifier import (
    ClassifiedInstallment, InstallmentClassification, LoanDueThisWeek, PastDueLoan
)
from ..closures import CloseInstallmentData, CloseInstallmentResult, ManualClosureData
from ..reporting import DashboardMetrics, ChartSegment, CompanySummary
from ..schedule import ScheduleEntry


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse an optional ISO date string"""
    if not value:
        return None
    return date.fromisoformat(value)


def money(value: Decimal) -> str:
    """Render an amount for a response, rounded to cents"""
    return str(round_cents(value))


def drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


# Loan schemas
class CreateLoanRequest(BaseModel):
    loan_id: str = Field(..., description="Human loan identifier, e.g. L001")
    client_name: str
    loan_provider: str = Field(..., description="Sister company providing the loan")
    loan_amount: str = Field(..., description="Principal as decimal string")
    total_installments: int = Field(..., gt=0)
    loan_date: str  # ISO date string
    first_installment_date: str  # ISO date string
    factoring_fee: str = "0"
    loan_provider_fee: str = "0"
    account_executive: Optional[str] = None


class UpdateLoanRequest(BaseModel):
    loan_id: Optional[str] = None
    client_name: Optional[str] = None
    loan_provider: Optional[str] = None
    loan_date: Optional[str] = None
    account_executive: Optional[str] = None
    loan_amount: Optional[str] = None
    total_installments: Optional[int] = None
    factoring_fee: Optional[str] = None
    loan_provider_fee: Optional[str] = None
    first_installment_date: Optional[str] = None

    def to_updates(self) -> Dict[str, Any]:
        updates = drop_none({
            'loan_id': self.loan_id,
            'client_name': self.client_name,
            'loan_provider': self.loan_provider,
            'loan_date': parse_date(self.loan_date),
            'account_executive': self.account_executive,
            'loan_amount': self.loan_amount,
            'total_installments': self.total_installments,
            'factoring_fee': self.factoring_fee,
            'loan_provider_fee': self.loan_provider_fee,
            'first_installment_date': parse_date(self.first_installment_date),
        })
        for key in ('loan_amount', 'factoring_fee', 'loan_provider_fee'):
            if key in updates:
                updates[key] = to_decimal(updates[key])
        return updates


class CloseInstallmentRequest(BaseModel):
    payment_amount: str = Field(..., description="Principal collected, decimal string")
    factoring_fee: str = "0"
    sister_company_fee: str = "0"
    payment_date: Optional[str] = None  # ISO date string
    transaction_type: Optional[str] = Field(None, description="ACH or Wire")
    bank_confirmation_number: str = ""
    company_name: str = ""
    notes: Optional[str] = None

    def to_close_data(self) -> CloseInstallmentData:
        return CloseInstallmentData(
            payment_amount=to_decimal(self.payment_amount),
            factoring_fee=to_decimal(self.factoring_fee),
            sister_company_fee=to_decimal(self.sister_company_fee),
            payment_date=parse_date(self.payment_date),
            transaction_type=TransactionType(self.transaction_type) if self.transaction_type else None,
            bank_confirmation_number=self.bank_confirmation_number,
            company_name=self.company_name,
            notes=self.notes
        )


class ManualCloseRequest(BaseModel):
    installment_number: int = Field(..., gt=0)
    closed_date: str  # ISO date string
    due_date: Optional[str] = None
    note: Optional[str] = None
    confirmed: bool = Field(False, description="Must be true; manual closures move no money")

    def to_manual_data(self) -> ManualClosureData:
        return ManualClosureData(
            installment_number=self.installment_number,
            closed_date=parse_date(self.closed_date),
            due_date=parse_date(self.due_date),
            note=self.note
        )


# Payment schemas
class RecordPaymentRequest(BaseModel):
    company_name: str
    payment_type: str = Field(..., description="Fuel, Equipment, BJK Fuel, TDX or Additional")
    payment_amount: str
    transaction_type: str = Field(..., description="ACH or Wire")
    bank_confirmation_number: str
    date_paid: str  # ISO date string
    client_name: Optional[str] = None
    notes: Optional[str] = None


class UpdatePaymentRequest(BaseModel):
    company_name: Optional[str] = None
    transaction_type: Optional[str] = None
    bank_confirmation_number: Optional[str] = None
    date_paid: Optional[str] = None
    notes: Optional[str] = None

    def to_updates(self) -> Dict[str, Any]:
        return drop_none({
            'company_name': self.company_name,
            'transaction_type': TransactionType(self.transaction_type) if self.transaction_type else None,
            'bank_confirmation_number': self.bank_confirmation_number,
            'date_paid': parse_date(self.date_paid),
            'notes': self.notes,
        })


# Directory schemas
class CreateClientRequest(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    account_executive: Optional[str] = None


class UpdateClientRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    account_executive: Optional[str] = None


class CreateSisterCompanyRequest(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class UpdateSisterCompanyRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# User schemas
class CreateUserRequest(BaseModel):
    name: str
    email: str
    role: str = Field("collector", description="admin, manager, account_executive or collector")
    phone: Optional[str] = None


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None

    def to_updates(self) -> Dict[str, Any]:
        return drop_none({
            'name': self.name,
            'email': self.email,
            'role': UserRole(self.role) if self.role else None,
            'phone': self.phone,
        })


class AssignClientRequest(BaseModel):
    client_id: str


# Response builders

def closure_response(record: ClosedInstallment) -> Dict[str, Any]:
    return {
        "installment_number": record.installment_number,
        "due_date": record.due_date.isoformat(),
        "closed_date": record.closed_date.isoformat(),
        "amount": money(record.amount),
        "payment_amount": money(record.payment_amount),
        "payment_id": record.payment_id,
        "closure_type": record.closure_type.value,
        "is_partial": record.is_partial,
        "remaining_amount": money(record.remaining_amount),
        "note": record.note
    }


def loan_response(loan: Loan) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "loan_id": loan.loan_id,
        "client_name": loan.client_name,
        "loan_provider": loan.loan_provider,
        "loan_amount": money(loan.loan_amount),
        "total_installments": loan.total_installments,
        "installments_left": loan.installments_left,
        "installments_paid": loan.installments_paid,
        "open_balance": money(loan.open_balance),
        "installment_amount": money(loan.installment_amount),
        "factoring_fee": money(loan.factoring_fee),
        "loan_provider_fee": money(loan.loan_provider_fee),
        "loan_date": loan.loan_date.isoformat(),
        "first_installment_date": loan.first_installment_date.isoformat(),
        "account_executive": loan.account_executive,
        "closed_installments": [closure_response(r) for r in loan.closed_installments],
        "created_at": loan.created_at.isoformat()
    }


def payment_response(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "company_name": payment.company_name,
        "payment_type": payment.payment_type.value,
        "loan_id": payment.loan_id,
        "client_name": payment.client_name,
        "installment_number": payment.installment_number,
        "payment_amount": money(payment.payment_amount),
        "transaction_type": payment.transaction_type.value,
        "bank_confirmation_number": payment.bank_confirmation_number,
        "date_paid": payment.date_paid.isoformat(),
        "notes": payment.notes,
        "factoring_fee": money(payment.factoring_fee),
        "sister_company_fee": money(payment.sister_company_fee),
        "created_at": payment.created_at.isoformat()
    }


def client_response(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "address": client.address,
        "account_executive": client.account_executive,
        "created_at": client.created_at.isoformat()
    }


def sister_company_response(company: SisterCompany) -> Dict[str, Any]:
    return {
        "id": company.id,
        "name": company.name,
        "email": company.email,
        "phone": company.phone,
        "created_at": company.created_at.isoformat()
    }


def user_response(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "phone": user.phone,
        "assigned_clients": list(user.assigned_clients),
        "created_at": user.created_at.isoformat()
    }


def schedule_response(entry: ScheduleEntry) -> Dict[str, Any]:
    return {
        "installment_number": entry.installment_number,
        "due_date": entry.due_date.isoformat(),
        "days_since_due": entry.days_since_due
    }


def installment_response(installment: ClassifiedInstallment) -> Dict[str, Any]:
    return {
        "installment_number": installment.installment_number,
        "due_date": installment.due_date.isoformat(),
        "days_since_due": installment.days_since_due,
        "kind": installment.kind.value,
        "status": installment.status.value,
        "is_next": installment.is_next,
        "amount": money(installment.amount),
        "factoring_fee": money(installment.factoring_fee),
        "loan_provider_fee": money(installment.loan_provider_fee),
        "total_due": money(installment.total_due),
        "is_partial": installment.is_partial,
        "remaining_amount": money(installment.remaining_amount),
        "closure_type": installment.closure_type.value if installment.closure_type else None
    }


def classification_response(classification: InstallmentClassification) -> Dict[str, Any]:
    return {
        "loan_id": classification.loan_id,
        "today": classification.today.isoformat(),
        "installments": [installment_response(i) for i in classification.installments],
        "missed": [i.installment_number for i in classification.missed],
        "due_this_week": [i.installment_number for i in classification.due_this_week],
        "upcoming": [i.installment_number for i in classification.upcoming],
        "closed": [i.installment_number for i in classification.closed]
    }


def close_result_response(result: CloseInstallmentResult) -> Dict[str, Any]:
    return {
        "success": result.success,
        "message": result.message,
        "error": result.error.value if result.error else None,
        "errors": result.errors,
        "payment": payment_response(result.new_payment) if result.new_payment else None,
        "loan": loan_response(result.updated_loan) if result.updated_loan else None
    }


def close_defaults_response(data: CloseInstallmentData) -> Dict[str, Any]:
    return {
        "payment_amount": money(data.payment_amount),
        "factoring_fee": money(data.factoring_fee),
        "sister_company_fee": money(data.sister_company_fee),
        "payment_date": data.payment_date.isoformat() if data.payment_date else None,
        "transaction_type": data.transaction_type.value if data.transaction_type else None,
        "bank_confirmation_number": data.bank_confirmation_number,
        "company_name": data.company_name
    }


def metrics_response(metrics: DashboardMetrics) -> Dict[str, Any]:
    return {
        "total_outstanding": money(metrics.total_outstanding),
        "total_past_due": money(metrics.total_past_due),
        "collected_amount": money(metrics.collected_amount),
        "active_loan_count": metrics.active_loan_count,
        "due_this_week_amount": money(metrics.due_this_week_amount)
    }


def chart_response(segments: List[ChartSegment]) -> List[Dict[str, Any]]:
    return [{"label": s.label, "value": money(s.value)} for s in segments]


def due_this_week_response(group: LoanDueThisWeek) -> Dict[str, Any]:
    return {
        "loan": loan_response(group.loan),
        "account_executive": group.account_executive,
        "total_amount": money(group.total_amount),
        "installments": [installment_response(i) for i in group.installments]
    }


def past_due_response(group: PastDueLoan) -> Dict[str, Any]:
    return {
        "loan": loan_response(group.loan),
        "account_executive": group.account_executive,
        "total_missed_amount": money(group.total_missed_amount),
        "total_missed_count": group.total_missed_count,
        "max_days_past": group.max_days_past,
        "missed_installments": [installment_response(i) for i in group.missed_installments]
    }


def company_summary_response(summary: CompanySummary) -> Dict[str, Any]:
    return {
        "company_name": summary.company_name,
        "total_paid_amount": money(summary.total_paid_amount),
        "total_overdue_amount": money(summary.total_overdue_amount),
        "total_factoring_fees": money(summary.total_factoring_fees),
        "total_loan_provider_fees": money(summary.total_loan_provider_fees),
        "payment_count": summary.payment_count,
        "overdue_count": summary.overdue_count,
        "loans": [
            {
                "loan_id": line.loan_id,
                "client_name": line.client_name,
                "paid_amount": money(line.paid_amount),
                "overdue_amount": money(line.overdue_amount),
                "factoring_fees": money(line.factoring_fees),
                "loan_provider_fees": money(line.loan_provider_fees),
                "installments_left": line.installments_left,
                "open_balance": money(line.open_balance)
            }
            for line in summary.loans
        ]
    }
