"""
Factoring desk system container and request dependency
"""

from typing import Optional

from ..storage import StorageInterface, InMemoryStorage
from ..audit import AuditTrail
from ..loans import LoanManager
from ..payments import PaymentManager
from ..directory import DirectoryManager
from ..users import UserManager
from ..closures import InstallmentCloser
from ..config import FactoringDeskConfig, get_config


class FactoringSystem:
    """All desk components wired to one storage backend"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[FactoringDeskConfig] = None):
        self.config = config or get_config()
        self.storage = storage or InMemoryStorage()

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.loan_manager = LoanManager(self.storage, self.audit_trail)
        self.payment_manager = PaymentManager(self.storage, self.audit_trail)
        self.directory_manager = DirectoryManager(self.storage, self.audit_trail)
        self.user_manager = UserManager(self.storage, self.audit_trail)
        self.closer = InstallmentCloser(
            self.storage,
            self.audit_trail,
            grace_period_days=self.config.grace_period_days,
            amount_tolerance=self.config.amount_tolerance,
            default_company_name=self.config.default_company_name
        )

    @property
    def grace_period_days(self) -> int:
        return self.config.grace_period_days


# Global system instance
factoring_system = FactoringSystem()


# Dependency to get the system
def get_factoring_system() -> FactoringSystem:
    return factoring_system
