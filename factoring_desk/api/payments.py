"""
Payment endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .system import FactoringSystem, get_factoring_system
from .schemas import RecordPaymentRequest, UpdatePaymentRequest, parse_date, payment_response
from ..money import to_decimal
from ..payments import PaymentType, TransactionType


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_payment(
    request: RecordPaymentRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Record an outgoing payment; loan payments are posted by closing an installment"""
    try:
        payment = system.payment_manager.record_payment(
            company_name=request.company_name,
            payment_type=PaymentType(request.payment_type),
            payment_amount=to_decimal(request.payment_amount),
            transaction_type=TransactionType(request.transaction_type),
            bank_confirmation_number=request.bank_confirmation_number,
            date_paid=parse_date(request.date_paid),
            client_name=request.client_name,
            notes=request.notes
        )
        return payment_response(payment)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
async def list_payments(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    payment_type: Optional[str] = None,
    company_name: Optional[str] = None,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """List payments with optional date, type and company filters"""
    try:
        payments = system.payment_manager.list_payments(
            start=parse_date(date_from),
            end=parse_date(date_to),
            payment_type=PaymentType(payment_type) if payment_type else None
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if company_name:
        payments = [p for p in payments if p.company_name == company_name]
    return {"payments": [payment_response(p) for p in payments], "count": len(payments)}


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Get payment details"""
    payment = system.payment_manager.get_payment(payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment_response(payment)


@router.patch("/{payment_id}")
async def update_payment(
    payment_id: str,
    request: UpdatePaymentRequest,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Correct a payment's descriptive fields"""
    if not system.payment_manager.get_payment(payment_id):
        raise HTTPException(status_code=404, detail="Payment not found")
    try:
        payment = system.payment_manager.update_payment(payment_id, **request.to_updates())
        return payment_response(payment)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{payment_id}")
async def delete_payment(
    payment_id: str,
    system: FactoringSystem = Depends(get_factoring_system)
):
    """Delete an outgoing payment"""
    try:
        deleted = system.payment_manager.delete_payment(payment_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail="Payment not found")
    return {"message": "Payment deleted successfully"}
