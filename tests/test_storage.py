"""
Tests for the storage backend, transactions and repositories
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, date
from enum import Enum

from factoring_desk.storage import InMemoryStorage, to_jsonable
from factoring_desk.loans import LoanRepository, ClosedInstallment, ClosureType


test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


class Color(Enum):
    RED = "red"


class TestInMemoryStorage:
    """Test basic storage operations"""

    def test_basic_operations(self):
        """Test basic CRUD operations with InMemoryStorage"""
        storage = InMemoryStorage()

        # Test save and load
        storage.save("test_table", "record_1", test_data)
        assert storage.load("test_table", "record_1") == test_data

        # Test exists
        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")

        # Test load_all and find
        storage.save("test_table", "record_2", {"id": "record_2", "data": "test"})
        assert len(storage.load_all("test_table")) == 2
        results = storage.find("test_table", {"id": "test_001"})
        assert [r["id"] for r in results] == ["test_001"]

        # Test count and delete
        assert storage.count("test_table") == 2
        assert storage.delete("test_table", "record_1")
        assert not storage.delete("test_table", "record_1")
        assert storage.count("test_table") == 1

    def test_load_returns_copies(self):
        """Test mutating a loaded record does not change the store"""
        storage = InMemoryStorage()
        storage.save("t", "1", {"id": "1", "items": [1, 2]})

        loaded = storage.load("t", "1")
        loaded["items"].append(3)

        assert storage.load("t", "1")["items"] == [1, 2]

    def test_load_all_keeps_insertion_order(self):
        """Test records come back in the order they were first saved"""
        storage = InMemoryStorage()
        for record_id in ("c", "a", "b"):
            storage.save("t", record_id, {"id": record_id})
        assert [r["id"] for r in storage.load_all("t")] == ["c", "a", "b"]

    def test_clear_table(self):
        """Test clearing a table"""
        storage = InMemoryStorage()
        storage.save("t", "1", {"id": "1"})
        storage.clear_table("t")
        assert storage.count("t") == 0

    def test_missing_record(self):
        """Test loading an unknown id"""
        assert InMemoryStorage().load("t", "nope") is None


class TestTransactions:
    """Test snapshot transactions"""

    def test_commit(self):
        """Test changes inside atomic() are kept"""
        storage = InMemoryStorage()
        with storage.atomic():
            storage.save("t", "1", {"id": "1"})
        assert storage.exists("t", "1")

    def test_rollback_on_error(self):
        """Test an exception inside atomic() undoes every change"""
        storage = InMemoryStorage()
        storage.save("t", "keep", {"id": "keep", "value": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("t", "keep", {"id": "keep", "value": 2})
                storage.save("t", "new", {"id": "new"})
                raise RuntimeError("boom")

        assert storage.load("t", "keep")["value"] == 1
        assert not storage.exists("t", "new")

    def test_nested_atomic_joins_outer(self):
        """Test an inner block rolls back with the outer transaction"""
        storage = InMemoryStorage()

        with pytest.raises(ValueError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("t", "inner", {"id": "inner"})
                raise ValueError("outer failure")

        assert not storage.exists("t", "inner")


class TestJsonable:
    """Test value conversion for storage"""

    def test_conversions(self):
        """Test Decimal, date, Enum and nested values"""
        value = {
            "amount": Decimal('10.50'),
            "due": date(2024, 1, 1),
            "color": Color.RED,
            "items": [Decimal('1'), {"inner": date(2024, 2, 1)}]
        }
        assert to_jsonable(value) == {
            "amount": "10.50",
            "due": "2024-01-01",
            "color": "red",
            "items": ["1", {"inner": "2024-02-01"}]
        }


class TestRepository:
    """Test typed repository access"""

    def test_loan_round_trip(self, make_loan):
        """Test a loan with ledger records survives storage"""
        record = ClosedInstallment(
            installment_number=1, due_date=date(2024, 1, 1), closed_date=date(2024, 1, 2),
            amount=Decimal('1000'), payment_amount=Decimal('420'), payment_id="p-1",
            closure_type=ClosureType.PAYMENT, is_partial=True, remaining_amount=Decimal('600'),
            note='Partial payment'
        )
        repository = LoanRepository(InMemoryStorage())
        repository.append(make_loan(closed_installments=[record], account_executive="Dana"))

        loaded = repository.get("loan-1")
        assert loaded.loan_amount == Decimal('15000')
        assert loaded.first_installment_date == date(2024, 1, 1)
        assert loaded.closed_installments == [record]
        assert loaded.account_executive == "Dana"

    def test_append_rejects_duplicate_id(self, make_loan):
        """Test ids are unique within a table"""
        repository = LoanRepository(InMemoryStorage())
        repository.append(make_loan())
        with pytest.raises(ValueError, match="already exists"):
            repository.append(make_loan())

    def test_update_requires_existing(self, make_loan):
        """Test updating an unknown record fails"""
        repository = LoanRepository(InMemoryStorage())
        with pytest.raises(ValueError, match="not found"):
            repository.update(make_loan())

    def test_find_by_field(self, make_loan):
        """Test lookups by stored field values"""
        repository = LoanRepository(InMemoryStorage())
        repository.append(make_loan())
        repository.append(make_loan(id="loan-2", loan_id="L002", client_name="Beta Freight"))

        assert repository.get_by_loan_id("L002").id == "loan-2"
        assert repository.get_by_loan_id("L404") is None
        assert [l.loan_id for l in repository.list_for_client("Acme Trucking")] == ["L001"]
        assert repository.count() == 2
