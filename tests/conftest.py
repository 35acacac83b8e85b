"""
Shared fixtures for the factoring desk test suite
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, date

from factoring_desk.loans import Loan
from factoring_desk.payments import TransactionType
from factoring_desk.closures import CloseInstallmentData


@pytest.fixture
def make_loan():
    """
    Factory for a 15000 loan over 15 weekly installments starting Monday
    2024-01-01, with 450 factoring and 300 provider fees (1000 principal,
    30 and 20 fees per installment).
    """
    def factory(**overrides):
        now = datetime.now(timezone.utc)
        values = dict(
            id="loan-1",
            created_at=now,
            updated_at=now,
            loan_id="L001",
            client_name="Acme Trucking",
            loan_provider="Sister Co",
            loan_amount=Decimal('15000'),
            total_installments=15,
            installments_left=15,
            open_balance=Decimal('15000'),
            installment_amount=Decimal('1050'),
            factoring_fee=Decimal('450'),
            loan_provider_fee=Decimal('300'),
            loan_date=date(2023, 12, 20),
            first_installment_date=date(2024, 1, 1)
        )
        values.update(overrides)
        return Loan(**values)
    return factory


@pytest.fixture
def make_close_data():
    """Factory for valid close-installment form data"""
    def factory(**overrides):
        values = dict(
            payment_amount=Decimal('1000'),
            factoring_fee=Decimal('30'),
            sister_company_fee=Decimal('20'),
            payment_date=date(2024, 1, 2),
            transaction_type=TransactionType.ACH,
            bank_confirmation_number="CONF-001",
            company_name="Fuel Co"
        )
        values.update(overrides)
        return CloseInstallmentData(**values)
    return factory
