from typing import NamedTuple, Optional
import logging

from ..models.application import Application, OPEN_APPLICATION_STATUSES
from ..models.deal import Deal
from ..models.opportunity import Opportunity
from .application_ledger import ApplicationLedger
from .database_service import DuplicateKeyError
from .exceptions import (
    AcceptFailedError,
    DealCreationFailedError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from .repositories import DealRepository, OpportunityRepository, deal_id_for

logger = logging.getLogger(__name__)

# Contract status -> (deal statuses it may move from, deal status it moves to)
DEAL_STATUS_ON_CONTRACT = {
    "fully_signed": ({"pending", "negotiating"}, "accepted"),
    "active": ({"pending", "negotiating", "accepted"}, "active"),
}


class AcceptOutcome(NamedTuple):
    application: Application
    opportunity: Opportunity
    deal: Deal


class ConversionCoordinator:
    """Turns an accepted Application into a Deal.

    Phase A (application -> accepted) and Phase B (deal insert) are two
    independent writes. When Phase B fails the application stays accepted
    and DealCreationFailedError is raised so the caller sees the gap.
    The deal id is derived from the application id, so retrying Phase B
    can never produce a second deal.
    """

    def __init__(self, ledger: ApplicationLedger, opportunities: OpportunityRepository, deals: DealRepository):
        self.ledger = ledger
        self.opportunities = opportunities
        self.deals = deals

    async def load(self, application_id: str):
        """Fetch the application together with its opportunity"""
        application = await self.ledger.get(application_id)
        opportunity = await self.opportunities.get(application.opportunity_id)
        if opportunity is None:
            raise NotFoundError("Opportunity", application.opportunity_id)
        return application, opportunity

    async def accept(self, application_id: str, reviewer_id: str) -> AcceptOutcome:
        application, opportunity = await self.load(application_id)
        if application.status not in OPEN_APPLICATION_STATUSES:
            raise InvalidTransitionError("application", application_id, application.status, "accept")

        # Phase A
        try:
            application = await self.ledger.mark_accepted(application_id, reviewer_id)
        except StorageError as e:
            logger.error(f"Failed to accept application {application_id}: {e}")
            raise AcceptFailedError(application_id, cause=e) from e

        # Phase B
        deal = Deal(
            id=deal_id_for(application.id),
            athlete_id=application.athlete_id,
            brand_id=opportunity.brand_id,
            opportunity_id=opportunity.id,
            title=opportunity.title,
            description=opportunity.description,
            deal_type=opportunity.deal_type,
            compensation_amount=opportunity.compensation_amount,
            compensation_type=opportunity.compensation_type or "fixed",
            status="pending",
            source_application_id=application.id,
        )
        try:
            await self.deals.insert(deal)
        except DuplicateKeyError:
            existing = await self.deals.get(deal.id)
            if existing is None:
                raise DealCreationFailedError(application_id)
            logger.info(f"Deal {deal.id} already exists for application {application_id}")
            deal = existing
        except StorageError as e:
            logger.error(
                f"Application {application_id} accepted but deal creation failed; "
                f"application left in status 'accepted' without a deal: {e}"
            )
            raise DealCreationFailedError(application_id, cause=e) from e

        logger.info(f"Application {application_id} converted to deal {deal.id}")
        return AcceptOutcome(application, opportunity, deal)

    async def reject(self, application_id: str, reviewer_id: str, reason: Optional[str] = None) -> Application:
        return await self.ledger.reject(application_id, reviewer_id, reason)

    async def on_contract_status(self, deal_id: str, contract_status: str) -> bool:
        """Advance the deal when its contract is fully signed or active"""
        rule = DEAL_STATUS_ON_CONTRACT.get(contract_status)
        if rule is None:
            return False
        from_statuses, target = rule
        moved = await self.deals.transition(deal_id, from_statuses, target)
        if moved:
            logger.info(f"Deal {deal_id} -> {target} (contract {contract_status})")
        return moved
