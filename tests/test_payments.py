"""
Test suite for payment management

Tests direct entry of outgoing payments, lookups by date, type and company,
and the restrictions on editing and deleting loan payments.
"""

import pytest
from decimal import Decimal
from datetime import date

from factoring_desk.storage import InMemoryStorage
from factoring_desk.audit import AuditTrail, AuditEventType
from factoring_desk.payments import PaymentManager, PaymentType, TransactionType
from factoring_desk.classifier import classify_installments
from factoring_desk.closures import close_installment


class TestPaymentModel:
    """Test payment amount breakdowns"""

    def test_loan_payment_breakdown(self, make_loan, make_close_data):
        """Test principal and fees carried by a loan payment"""
        loan = make_loan()
        payment = close_installment(
            loan, classify_installments(loan, date(2024, 1, 2)).get(1), make_close_data(), []
        ).new_payment

        assert payment.is_loan_payment
        assert payment.principal_amount == Decimal('1000')
        assert payment.fees_earned == Decimal('50')


class TestPaymentManager:
    """Test PaymentManager functionality"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
        self.manager = PaymentManager(self.storage, self.audit)

    def record(self, **overrides):
        values = dict(
            company_name="Fuel Co",
            payment_type=PaymentType.FUEL,
            payment_amount=Decimal('2500'),
            transaction_type=TransactionType.WIRE,
            bank_confirmation_number="W-100",
            date_paid=date(2024, 1, 5)
        )
        values.update(overrides)
        return self.manager.record_payment(**values)

    def test_record_payment(self):
        """Test recording a fuel payment"""
        payment = self.record(client_name="Acme Trucking", notes="Weekly fuel")

        assert payment.payment_amount == Decimal('2500')
        assert payment.loan_id is None
        assert self.manager.get_payment(payment.id).notes == "Weekly fuel"
        assert len(self.audit.get_events_by_type(AuditEventType.PAYMENT_RECORDED)) == 1

    def test_loan_type_rejected(self):
        """Test loan payments cannot be entered directly"""
        with pytest.raises(ValueError, match="closing an installment"):
            self.record(payment_type=PaymentType.LOAN)

    @pytest.mark.parametrize("overrides,message", [
        ({"payment_amount": Decimal('0')}, "Payment amount must be greater than 0"),
        ({"company_name": ""}, "Company name is required"),
        ({"bank_confirmation_number": ""}, "Bank confirmation number is required"),
    ])
    def test_invalid_payment(self, overrides, message):
        """Test required fields"""
        with pytest.raises(ValueError, match=message):
            self.record(**overrides)

    def test_list_by_date_and_type(self):
        """Test date range bounds are inclusive and type filters apply"""
        self.record(date_paid=date(2024, 1, 1))
        self.record(date_paid=date(2024, 1, 31), payment_type=PaymentType.EQUIPMENT)
        self.record(date_paid=date(2024, 2, 1))

        january = self.manager.list_payments(date(2024, 1, 1), date(2024, 1, 31))
        assert len(january) == 2
        equipment = self.manager.list_payments(payment_type=PaymentType.EQUIPMENT)
        assert [p.date_paid for p in equipment] == [date(2024, 1, 31)]
        assert len(self.manager.list_payments()) == 3

    def test_by_company(self):
        """Test lookup by receiving company"""
        self.record()
        self.record(company_name="BJK Fuel", payment_type=PaymentType.BJK_FUEL)

        assert len(self.manager.get_payments_by_company("BJK Fuel")) == 1

    def test_by_loan(self, make_loan, make_close_data):
        """Test loan lookups only return loan payments"""
        loan = make_loan()
        payment = close_installment(
            loan, classify_installments(loan, date(2024, 1, 2)).get(1), make_close_data(), []
        ).new_payment
        self.manager.payments.append(payment)
        self.record()

        assert [p.id for p in self.manager.get_payments_by_loan("L001")] == [payment.id]

    def test_update_payment(self):
        """Test correcting descriptive fields"""
        payment = self.record()
        updated = self.manager.update_payment(payment.id, bank_confirmation_number="W-101",
                                              transaction_type=TransactionType.ACH)

        assert updated.bank_confirmation_number == "W-101"
        assert self.manager.get_payment(payment.id).transaction_type == TransactionType.ACH

    def test_amount_not_editable(self):
        """Test amounts cannot be changed after entry"""
        payment = self.record()
        with pytest.raises(ValueError, match="Cannot update fields: payment_amount"):
            self.manager.update_payment(payment.id, payment_amount=Decimal('1'))

    def test_update_missing(self):
        """Test updating an unknown payment"""
        with pytest.raises(ValueError, match="not found"):
            self.manager.update_payment("missing", notes="x")

    def test_delete_payment(self):
        """Test deleting an outgoing payment"""
        payment = self.record()

        assert self.manager.delete_payment(payment.id)
        assert self.manager.get_payment(payment.id) is None
        assert not self.manager.delete_payment(payment.id)

    def test_loan_payment_not_deletable(self, make_loan, make_close_data):
        """Test loan payments backing a closure cannot be deleted"""
        loan = make_loan()
        payment = close_installment(
            loan, classify_installments(loan, date(2024, 1, 2)).get(1), make_close_data(), []
        ).new_payment
        self.manager.payments.append(payment)

        with pytest.raises(ValueError, match="cannot be deleted"):
            self.manager.delete_payment(payment.id)
