"""
Directory Module

Clients the desk collects from and the sister companies that provide loans.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional
import uuid
import re

from .storage import StorageInterface, StorageRecord
from .repositories import Repository
from .audit import AuditTrail, AuditEventType

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

DEFAULT_ACCOUNT_EXECUTIVE = "Unassigned"


def _check_email(email: Optional[str]) -> None:
    if email and not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")


@dataclass
class Client(StorageRecord):
    """A borrower the desk collects installments from"""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    account_executive: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Client name is required")
        _check_email(self.email)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        return cls(**cls.parse_timestamps(data))


@dataclass
class SisterCompany(StorageRecord):
    """A loan provider; earns the sister company fee on each installment"""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Company name is required")
        _check_email(self.email)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SisterCompany':
        return cls(**cls.parse_timestamps(data))


class ClientRepository(Repository[Client]):

    def __init__(self, storage: StorageInterface, table: str = "clients"):
        super().__init__(storage, table, Client.to_dict, Client.from_dict)

    def get_by_name(self, name: str) -> Optional[Client]:
        matches = self.find(name=name)
        return matches[0] if matches else None


class SisterCompanyRepository(Repository[SisterCompany]):

    def __init__(self, storage: StorageInterface, table: str = "sister_companies"):
        super().__init__(storage, table, SisterCompany.to_dict, SisterCompany.from_dict)

    def get_by_name(self, name: str) -> Optional[SisterCompany]:
        matches = self.find(name=name)
        return matches[0] if matches else None


CLIENT_FIELDS = {'name', 'email', 'phone', 'address', 'account_executive'}
SISTER_COMPANY_FIELDS = {'name', 'email', 'phone'}


class DirectoryManager:
    """
    Manages clients and sister companies
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.clients = ClientRepository(storage)
        self.sister_companies = SisterCompanyRepository(storage)

    # Clients

    def create_client(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        account_executive: Optional[str] = None
    ) -> Client:
        """
        Create a client

        Raises:
            ValueError: If the name is missing, the email is malformed or a
                client with the same name exists
        """
        if name and self.clients.get_by_name(name):
            raise ValueError(f"Client {name} already exists")

        now = datetime.now(timezone.utc)
        client = Client(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            email=email,
            phone=phone,
            address=address,
            account_executive=account_executive
        )
        self.clients.append(client)

        self.audit_trail.log_event(
            event_type=AuditEventType.CLIENT_CREATED,
            entity_type="client",
            entity_id=client.id,
            metadata={"name": name, "account_executive": account_executive}
        )
        return client

    def get_client(self, client_id: str) -> Optional[Client]:
        return self.clients.get(client_id)

    def get_client_by_name(self, name: str) -> Optional[Client]:
        return self.clients.get_by_name(name)

    def list_clients(self) -> List[Client]:
        return self.clients.list()

    def account_executive_for(self, client_name: str) -> str:
        """Account executive responsible for a client, or 'Unassigned'"""
        client = self.clients.get_by_name(client_name)
        if client and client.account_executive:
            return client.account_executive
        return DEFAULT_ACCOUNT_EXECUTIVE

    def update_client(self, client_id: str, **updates: Any) -> Client:
        client = self.get_client(client_id)
        if not client:
            raise ValueError(f"Client {client_id} not found")
        self._check_fields(updates, CLIENT_FIELDS)

        new_name = updates.get('name')
        if new_name and new_name != client.name and self.clients.get_by_name(new_name):
            raise ValueError(f"Client {new_name} already exists")

        updated = replace(client, **updates)
        updated.updated_at = datetime.now(timezone.utc)
        self.clients.update(updated)

        self.audit_trail.log_event(
            event_type=AuditEventType.CLIENT_UPDATED,
            entity_type="client",
            entity_id=client_id,
            metadata={"fields": sorted(updates)}
        )
        return updated

    def delete_client(self, client_id: str) -> bool:
        client = self.get_client(client_id)
        if not client:
            return False
        self.clients.delete(client_id)
        self.audit_trail.log_event(
            event_type=AuditEventType.CLIENT_DELETED,
            entity_type="client",
            entity_id=client_id,
            metadata={"name": client.name}
        )
        return True

    # Sister companies

    def create_sister_company(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None
    ) -> SisterCompany:
        """Create a sister company (loan provider)"""
        if name and self.sister_companies.get_by_name(name):
            raise ValueError(f"Sister company {name} already exists")

        now = datetime.now(timezone.utc)
        company = SisterCompany(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            email=email,
            phone=phone
        )
        self.sister_companies.append(company)

        self.audit_trail.log_event(
            event_type=AuditEventType.SISTER_COMPANY_CREATED,
            entity_type="sister_company",
            entity_id=company.id,
            metadata={"name": name}
        )
        return company

    def get_sister_company(self, company_id: str) -> Optional[SisterCompany]:
        return self.sister_companies.get(company_id)

    def get_sister_company_by_name(self, name: str) -> Optional[SisterCompany]:
        return self.sister_companies.get_by_name(name)

    def list_sister_companies(self) -> List[SisterCompany]:
        return self.sister_companies.list()

    def update_sister_company(self, company_id: str, **updates: Any) -> SisterCompany:
        company = self.get_sister_company(company_id)
        if not company:
            raise ValueError(f"Sister company {company_id} not found")
        self._check_fields(updates, SISTER_COMPANY_FIELDS)

        new_name = updates.get('name')
        if new_name and new_name != company.name and self.sister_companies.get_by_name(new_name):
            raise ValueError(f"Sister company {new_name} already exists")

        updated = replace(company, **updates)
        updated.updated_at = datetime.now(timezone.utc)
        self.sister_companies.update(updated)

        self.audit_trail.log_event(
            event_type=AuditEventType.SISTER_COMPANY_UPDATED,
            entity_type="sister_company",
            entity_id=company_id,
            metadata={"fields": sorted(updates)}
        )
        return updated

    def delete_sister_company(self, company_id: str) -> bool:
        company = self.get_sister_company(company_id)
        if not company:
            return False
        self.sister_companies.delete(company_id)
        self.audit_trail.log_event(
            event_type=AuditEventType.SISTER_COMPANY_DELETED,
            entity_type="sister_company",
            entity_id=company_id,
            metadata={"name": company.name}
        )
        return True

    @staticmethod
    def _check_fields(updates: Dict[str, Any], allowed: set) -> None:
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
