from functools import lru_cache
from typing import Callable, NamedTuple, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError as PydanticValidationError
import logging

from ..config.settings import Settings, get_settings
from ..firebaseConfig import get_user_claims, verify_firebase_token
from ..models.user import Identity, identity_from_claims
from ..services.application_ledger import ApplicationLedger
from ..services.contract_state_machine import ContractStateMachine
from ..services.conversion_coordinator import ConversionCoordinator
from ..services.database_service import DatabaseService, InMemoryDatabaseService
from ..services.notification_service import NotificationService
from ..services.repositories import (
    ApplicationRepository,
    ContractRepository,
    DealRepository,
    OpportunityRepository,
    ProfileDirectory,
    SignatureRepository,
)
from ..services.workflow_facade import WorkflowFacade
from .exceptions import AuthenticationException, AuthorizationException

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Firestore collection names
COLLECTIONS = {
    "applications": "opportunity_applications",
    "opportunities": "opportunities",
    "deals": "deals",
    "contracts": "contracts",
    "signatures": "contract_signatures",
    "users": "users",
    "notifications": "notifications",
}


class WorkflowServices(NamedTuple):
    workflow: WorkflowFacade
    notifications: NotificationService
    stores: dict


def build_services(settings: Settings, collection_factory: Optional[Callable] = None) -> WorkflowServices:
    """Wire repositories and services over the configured storage backend"""
    if collection_factory is None:
        collection_factory = InMemoryDatabaseService if settings.uses_memory_storage() else DatabaseService
    stores = {key: collection_factory(name) for key, name in COLLECTIONS.items()}

    opportunities = OpportunityRepository(stores["opportunities"])
    deals = DealRepository(stores["deals"])
    ledger = ApplicationLedger(ApplicationRepository(stores["applications"]), opportunities)
    coordinator = ConversionCoordinator(ledger, opportunities, deals)
    contracts = ContractStateMachine(ContractRepository(stores["contracts"]),
                                     SignatureRepository(stores["signatures"]), deals)
    claims_lookup = None if settings.uses_memory_storage() else get_user_claims
    profiles = ProfileDirectory(stores["users"], claims_lookup=claims_lookup)

    workflow = WorkflowFacade(
        ledger, coordinator, contracts, profiles,
        void_on_decline=settings.void_on_decline,
        default_template_type=settings.default_template_type,
        default_term_months=settings.default_term_months,
    )
    notifications = NotificationService(stores["notifications"], config={"enabled": settings.notify_enabled})
    return WorkflowServices(workflow, notifications, stores)


@lru_cache()
def get_services() -> WorkflowServices:
    return build_services(get_settings())


def get_workflow() -> WorkflowFacade:
    return get_services().workflow


def get_notifier() -> NotificationService:
    return get_services().notifications


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Identity:
    """Get current authenticated identity from a Firebase ID token"""
    if credentials is None:
        raise AuthenticationException("Authentication required")

    try:
        claims = verify_firebase_token(credentials.credentials)
    except Exception as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise AuthenticationException()

    try:
        return identity_from_claims(claims)
    except PydanticValidationError:
        logger.warning(f"Token for {claims.get('uid')} carries no supported role")
        raise AuthorizationException("Your account role cannot use this service")
