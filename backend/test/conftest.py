import pytest
from datetime import datetime, timedelta, timezone

from dealflow.api.dependencies import COLLECTIONS
from dealflow.models.user import AdminIdentity, AthleteIdentity, BrandIdentity
from dealflow.services.application_ledger import ApplicationLedger
from dealflow.services.contract_state_machine import ContractStateMachine
from dealflow.services.conversion_coordinator import ConversionCoordinator
from dealflow.services.database_service import InMemoryDatabaseService
from dealflow.services.notification_service import NotificationService
from dealflow.services.repositories import (
    ApplicationRepository,
    ContractRepository,
    DealRepository,
    OpportunityRepository,
    ProfileDirectory,
    SignatureRepository,
)
from dealflow.services.workflow_facade import WorkflowFacade


class FakeClock:
    """Deterministic clock that tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def stores():
    return {key: InMemoryDatabaseService(name) for key, name in COLLECTIONS.items()}


@pytest.fixture
def opportunities(stores):
    return OpportunityRepository(stores["opportunities"])


@pytest.fixture
def deals(stores):
    return DealRepository(stores["deals"])


@pytest.fixture
def ledger(stores, opportunities, clock):
    return ApplicationLedger(ApplicationRepository(stores["applications"]), opportunities, clock=clock)


@pytest.fixture
def coordinator(ledger, opportunities, deals):
    return ConversionCoordinator(ledger, opportunities, deals)


@pytest.fixture
def contracts(stores, deals, clock):
    return ContractStateMachine(
        ContractRepository(stores["contracts"]), SignatureRepository(stores["signatures"]), deals, clock=clock
    )


@pytest.fixture
def profiles(stores):
    return ProfileDirectory(stores["users"])


@pytest.fixture
def workflow(ledger, coordinator, contracts, profiles):
    return WorkflowFacade(ledger, coordinator, contracts, profiles)


@pytest.fixture
def notifier(stores):
    return NotificationService(stores["notifications"])


@pytest.fixture
def athlete():
    return AthleteIdentity(id="athlete-1", email="jordan@school.edu", display_name="Jordan Miles")


@pytest.fixture
def brand():
    return BrandIdentity(id="brand-user-1", email="deals@acme.com", company_name="Acme Sports")


@pytest.fixture
def other_brand():
    return BrandIdentity(id="brand-user-2", email="team@rival.com", company_name="Rival Co")


@pytest.fixture
def admin():
    return AdminIdentity(id="admin-1", email="ops@dealflow.io")


def put_document(store: InMemoryDatabaseService, doc_id: str, data: dict) -> None:
    """Place a document straight into an in-memory collection"""
    now = datetime.now(timezone.utc)
    store._documents[doc_id] = {**data, "created_at": now, "updated_at": now}


def seed_marketplace(stores) -> None:
    """One open opportunity, one closed one, plus athlete and brand profiles"""
    put_document(stores["opportunities"], "opp-1", {
        "brand_id": "brand-user-1",
        "title": "Spring Social Campaign",
        "description": "Three posts promoting the spring line",
        "deal_type": "social_post",
        "compensation_amount": 5000,
        "compensation_type": "fixed",
        "status": "active",
    })
    put_document(stores["opportunities"], "opp-closed", {
        "brand_id": "brand-user-1",
        "title": "Closed Camp",
        "deal_type": "camp",
        "compensation_amount": 800,
        "status": "closed",
    })
    put_document(stores["users"], "athlete-1", {"display_name": "Jordan Miles", "email": "jordan@school.edu"})
    put_document(stores["users"], "brand-user-1", {"company_name": "Acme Sports", "email": "deals@acme.com"})


@pytest.fixture
def seeded(stores):
    seed_marketplace(stores)
    return stores
