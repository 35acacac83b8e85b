"""
Test suite for clients, sister companies and users
"""

import pytest

from factoring_desk.storage import InMemoryStorage
from factoring_desk.audit import AuditTrail, AuditEventType
from factoring_desk.directory import DirectoryManager
from factoring_desk.users import UserManager, UserRole


class TestClients:
    """Test client management"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
        self.manager = DirectoryManager(self.storage, self.audit)

    def test_create_client(self):
        """Test creating a client"""
        client = self.manager.create_client(
            name="Acme Trucking", email="ap@acme.example", phone="555-0100",
            account_executive="Dana"
        )

        assert self.manager.get_client(client.id).email == "ap@acme.example"
        assert self.manager.get_client_by_name("Acme Trucking").id == client.id
        assert len(self.audit.get_events_by_type(AuditEventType.CLIENT_CREATED)) == 1

    def test_name_required(self):
        """Test a client needs a name"""
        with pytest.raises(ValueError, match="Client name is required"):
            self.manager.create_client(name="")

    def test_invalid_email(self):
        """Test malformed emails are rejected"""
        with pytest.raises(ValueError, match="Invalid email format"):
            self.manager.create_client(name="Acme Trucking", email="not-an-email")

    def test_duplicate_name(self):
        """Test client names are unique"""
        self.manager.create_client(name="Acme Trucking")
        with pytest.raises(ValueError, match="Client Acme Trucking already exists"):
            self.manager.create_client(name="Acme Trucking")

    def test_update_client(self):
        """Test editing a client"""
        client = self.manager.create_client(name="Acme Trucking")
        updated = self.manager.update_client(client.id, account_executive="Dana")

        assert updated.account_executive == "Dana"
        assert self.manager.account_executive_for("Acme Trucking") == "Dana"

    def test_update_validates_email(self):
        """Test edits go through the same validation"""
        client = self.manager.create_client(name="Acme Trucking")
        with pytest.raises(ValueError, match="Invalid email format"):
            self.manager.update_client(client.id, email="bad")

    def test_update_unknown_field(self):
        """Test only client fields can be edited"""
        client = self.manager.create_client(name="Acme Trucking")
        with pytest.raises(ValueError, match="Cannot update fields: id"):
            self.manager.update_client(client.id, id="other")

    def test_account_executive_default(self):
        """Test unknown or unassigned clients map to Unassigned"""
        self.manager.create_client(name="Beta Freight")
        assert self.manager.account_executive_for("Beta Freight") == "Unassigned"
        assert self.manager.account_executive_for("Nobody") == "Unassigned"

    def test_delete_client(self):
        """Test deleting a client"""
        client = self.manager.create_client(name="Acme Trucking")

        assert self.manager.delete_client(client.id)
        assert self.manager.list_clients() == []
        assert not self.manager.delete_client(client.id)


class TestSisterCompanies:
    """Test sister company management"""

    def setup_method(self):
        self.manager = DirectoryManager(InMemoryStorage(), AuditTrail(InMemoryStorage()))

    def test_lifecycle(self):
        """Test create, rename and delete"""
        company = self.manager.create_sister_company(name="Sister Co", email="ops@sister.example")
        assert self.manager.get_sister_company_by_name("Sister Co").id == company.id

        renamed = self.manager.update_sister_company(company.id, name="Sister Capital")
        assert renamed.name == "Sister Capital"
        assert [c.name for c in self.manager.list_sister_companies()] == ["Sister Capital"]

        assert self.manager.delete_sister_company(company.id)
        assert self.manager.get_sister_company(company.id) is None

    def test_duplicate_name(self):
        """Test sister company names are unique"""
        self.manager.create_sister_company(name="Sister Co")
        with pytest.raises(ValueError, match="Sister company Sister Co already exists"):
            self.manager.create_sister_company(name="Sister Co")

    def test_update_missing(self):
        """Test updating an unknown company"""
        with pytest.raises(ValueError, match="not found"):
            self.manager.update_sister_company("missing", name="X")


class TestUsers:
    """Test user management and client assignment"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
        self.manager = UserManager(self.storage, self.audit)

    def test_create_user(self):
        """Test creating a user"""
        user = self.manager.create_user(name="Dana", email="dana@desk.example",
                                        role=UserRole.ACCOUNT_EXECUTIVE)

        stored = self.manager.get_user(user.id)
        assert stored.role == UserRole.ACCOUNT_EXECUTIVE
        assert stored.assigned_clients == []

    def test_default_role(self):
        """Test users are collectors unless stated"""
        assert self.manager.create_user(name="Sam", email="sam@desk.example").role == UserRole.COLLECTOR

    def test_duplicate_email(self):
        """Test emails are unique"""
        self.manager.create_user(name="Dana", email="dana@desk.example")
        with pytest.raises(ValueError, match="already exists"):
            self.manager.create_user(name="Other Dana", email="dana@desk.example")

    @pytest.mark.parametrize("name,email,message", [
        ("", "a@desk.example", "User name is required"),
        ("Dana", "", "User email is required"),
    ])
    def test_required_fields(self, name, email, message):
        """Test name and email are required"""
        with pytest.raises(ValueError, match=message):
            self.manager.create_user(name=name, email=email)

    def test_assign_and_remove_client(self):
        """Test client assignments"""
        user = self.manager.create_user(name="Dana", email="dana@desk.example")

        self.manager.assign_client(user.id, "client-1")
        self.manager.assign_client(user.id, "client-1")
        assert self.manager.get_user(user.id).assigned_clients == ["client-1"]

        self.manager.remove_client(user.id, "client-1")
        assert self.manager.get_user(user.id).assigned_clients == []

        with pytest.raises(ValueError, match="is not assigned"):
            self.manager.remove_client(user.id, "client-1")

    def test_update_user(self):
        """Test editing a user"""
        user = self.manager.create_user(name="Dana", email="dana@desk.example")
        updated = self.manager.update_user(user.id, role=UserRole.MANAGER, phone="555-0101")

        assert updated.role == UserRole.MANAGER
        assert self.manager.get_user(user.id).phone == "555-0101"

    def test_delete_user(self):
        """Test deleting a user"""
        user = self.manager.create_user(name="Dana", email="dana@desk.example")

        assert self.manager.delete_user(user.id)
        assert self.manager.list_users() == []
        assert len(self.audit.get_events_by_type(AuditEventType.USER_DELETED)) == 1
