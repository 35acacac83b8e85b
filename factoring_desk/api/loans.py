"""
Loan endpoints: entry, edits, schedule, classification and installment closure
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .system import FactoringSystem, get_factoring_system
from .schemas import (
    CreateLoanRequest, UpdateLoanRequest, CloseInstallmentRequest, ManualCloseRequest,
    parse_date, loan_response, schedule_response, classification_response,
    close_result_response, close_defaults_response, payment_response
)
from ..money import to_decimal
from ..classifier import classify_installments


router = APIRouter()


def _get_loan_or_404(system: FactoringSystem, loan_id: str):
    loan = system.loan_manager.get_loan(loan_id)
    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")
    return loan


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Enter a new loan"""
    try:
        loan = system.loan_manager.create_loan(
            loan_id=request.loan_id,
            client_name=request.client_name,
            loan_provider=request.loan_provider,
            loan_amount=to_decimal(request.loan_amount),
            total_installments=request.total_installments,
            loan_date=parse_date(request.loan_date),
            first_installment_date=parse_date(request.first_installment_date),
            factoring_fee=to_decimal(request.factoring_fee),
            loan_provider_fee=to_decimal(request.loan_provider_fee),
            account_executive=request.account_executive
        )
        return loan_response(loan)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
async def list_loans(
    client_name: Optional[str] = None,
    active_only: bool = False,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """List loans, optionally for one client or only those still collecting"""
    if client_name:
        loans = system.loan_manager.get_loans_by_client(client_name)
    else:
        loans = system.loan_manager.list_loans()
    if active_only:
        loans = [loan for loan in loans if loan.is_active]
    return {"loans": [loan_response(loan) for loan in loans], "count": len(loans)}


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Get loan details with its closure ledger"""
    return loan_response(_get_loan_or_404(system, loan_id))


@router.patch("/{loan_id}")
async def update_loan(
    loan_id: str,
    request: UpdateLoanRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Edit loan data"""
    _get_loan_or_404(system, loan_id)
    try:
        loan = system.loan_manager.update_loan(loan_id, **request.to_updates())
        return loan_response(loan)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{loan_id}")
async def delete_loan(
    loan_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Delete a loan"""
    if not system.loan_manager.delete_loan(loan_id):
        raise HTTPException(status_code=404, detail="Loan not found")
    return {"message": "Loan deleted successfully"}


@router.get("/{loan_id}/schedule")
async def get_loan_schedule(
    loan_id: str,
    today: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Weekly due-date schedule"""
    _get_loan_or_404(system, loan_id)
    try:
        schedule = system.loan_manager.get_schedule(loan_id, parse_date(today))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"loan_id": loan_id, "schedule": [schedule_response(entry) for entry in schedule]}


@router.get("/{loan_id}/classification")
async def get_loan_classification(
    loan_id: str,
    today: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Installments classified as missed, due this week, upcoming or closed"""
    loan = _get_loan_or_404(system, loan_id)
    try:
        reference = parse_date(today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    classification = classify_installments(loan, reference, system.grace_period_days)
    return classification_response(classification)


@router.get("/{loan_id}/payments")
async def get_loan_payments(
    loan_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Payments collected against a loan"""
    loan = _get_loan_or_404(system, loan_id)
    payments = system.payment_manager.get_payments_by_loan(loan.loan_id)
    return {"payments": [payment_response(p) for p in payments], "count": len(payments)}


@router.get("/{loan_id}/installments/{installment_number}/close-defaults")
async def get_close_defaults(
    loan_id: str,
    installment_number: int,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Suggested values for the close-installment form"""
    loan = _get_loan_or_404(system, loan_id)
    eligibility = system.closer.can_close(loan)
    try:
        defaults = system.closer.close_defaults(loan_id, installment_number)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = close_defaults_response(defaults)
    response["can_close"] = eligibility.can_close
    response["reason"] = eligibility.reason
    return response


@router.post("/{loan_id}/installments/{installment_number}/close")
async def close_installment(
    loan_id: str,
    installment_number: int,
    request: CloseInstallmentRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Close an installment with a payment"""
    _get_loan_or_404(system, loan_id)
    try:
        result = system.closer.close(loan_id, installment_number, request.to_close_data())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.success:
        raise HTTPException(status_code=400, detail=close_result_response(result))
    return close_result_response(result)


@router.post("/{loan_id}/manual-close")
async def manual_close_installment(
    loan_id: str,
    request: ManualCloseRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Mark an installment settled without recording a payment"""
    _get_loan_or_404(system, loan_id)
    try:
        loan = system.closer.manual_close(
            loan_id, request.to_manual_data(), confirmed=request.confirmed
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "message": f"Installment #{request.installment_number} manually closed",
        "loan": loan_response(loan)
    }
