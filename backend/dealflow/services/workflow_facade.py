"""
Workflow facade.

The single entry point for callers of the application -> deal -> contract
pipeline. Every operation checks the acting identity, sequences the ledger,
the coordinator and the contract state machine, and returns a
WorkflowResult. Successful results carry the domain events the caller
should hand to the notifier; this module never notifies anyone itself.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional
import functools
import logging

from dateutil.relativedelta import relativedelta

from ..models.application import ApplicationCreate
from ..models.contract import (
    Contract,
    ContractDraftCreate,
    ContractOptions,
    ContractUpdate,
    SignaturePartyInput,
    SignContractRequest,
)
from ..models.deal import Deal
from ..models.events import DomainEvent
from ..models.opportunity import Opportunity
from ..models.user import AdminIdentity, AthleteIdentity, BrandIdentity, CurrentUser
from .application_ledger import ApplicationLedger
from .contract_state_machine import ContractStateMachine
from .contract_templates import default_clauses, template_for_deal_type
from .conversion_coordinator import DEAL_STATUS_ON_CONTRACT, ConversionCoordinator
from .exceptions import (
    ForbiddenError,
    NotFoundError,
    ServiceError,
    StorageError,
    UnauthorizedError,
)
from .repositories import ProfileDirectory

logger = logging.getLogger(__name__)


@dataclass
class WorkflowResult:
    """Outcome of a facade operation: ok with data and events, or an error"""
    ok: bool
    data: Any = None
    error: Optional[ServiceError] = None
    events: List[DomainEvent] = field(default_factory=list)

    @classmethod
    def success(cls, data: Any = None, events: Optional[List[DomainEvent]] = None) -> "WorkflowResult":
        return cls(ok=True, data=data, events=events or [])

    @classmethod
    def failure(cls, error: ServiceError) -> "WorkflowResult":
        return cls(ok=False, error=error)


def workflow_operation(func):
    """Turn ServiceError into a failed WorkflowResult; storage failures are logged"""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except StorageError as e:
            logger.error(f"{func.__name__} failed: {e.message}", exc_info=e.__cause__)
            return WorkflowResult.failure(e)
        except ServiceError as e:
            logger.info(f"{func.__name__} rejected: {e.error_code.value}: {e.message}")
            return WorkflowResult.failure(e)

    return wrapper


def _event(event_type: str, recipients: Iterable[Optional[str]], **payload) -> DomainEvent:
    unique = []
    for user_id in recipients:
        if user_id and user_id not in unique:
            unique.append(user_id)
    return DomainEvent(type=event_type, recipients=unique, payload=payload)


class WorkflowFacade:
    """Orchestrates application, deal and contract operations for an identity"""

    def __init__(self, ledger: ApplicationLedger, coordinator: ConversionCoordinator,
                 contracts: ContractStateMachine, profiles: ProfileDirectory,
                 void_on_decline: bool = True, default_template_type: str = "standard_endorsement",
                 default_term_months: int = 12):
        self.ledger = ledger
        self.coordinator = coordinator
        self.contracts = contracts
        self.profiles = profiles
        self.void_on_decline = void_on_decline
        self.default_template_type = default_template_type
        self.default_term_months = default_term_months

    # Applications

    @workflow_operation
    async def submit_application(self, user: Optional[CurrentUser], opportunity_id: str,
                                 details: Optional[ApplicationCreate] = None) -> WorkflowResult:
        athlete = self._require_athlete(user, "Only athletes can apply to opportunities")
        outcome = await self.ledger.apply(athlete.id, opportunity_id, details)
        opportunity = await self._opportunity(opportunity_id)

        event_type = "ApplicationResubmitted" if outcome.resubmitted else "ApplicationSubmitted"
        event = _event(event_type, [opportunity.brand_id],
                       application_id=outcome.application.id,
                       opportunity_id=opportunity_id,
                       athlete_id=athlete.id)
        return WorkflowResult.success(outcome.application, [event])

    @workflow_operation
    async def withdraw_application(self, user: Optional[CurrentUser], application_id: str) -> WorkflowResult:
        athlete = self._require_athlete(user, "Only the applicant can withdraw an application")
        application = await self.ledger.get(application_id)
        if application.athlete_id != athlete.id:
            raise ForbiddenError("Only the applicant can withdraw an application")

        application = await self.ledger.withdraw(application_id)
        opportunity = await self._opportunity(application.opportunity_id)
        event = _event("ApplicationWithdrawn", [opportunity.brand_id],
                       application_id=application.id, opportunity_id=application.opportunity_id)
        return WorkflowResult.success(application, [event])

    @workflow_operation
    async def review_application(self, user: Optional[CurrentUser], application_id: str) -> WorkflowResult:
        application, opportunity = await self.coordinator.load(application_id)
        brand = self._require_opportunity_brand(user, opportunity)

        application = await self.ledger.mark_under_review(application_id, brand.id)
        event = _event("ApplicationUnderReview", [application.athlete_id],
                       application_id=application.id, opportunity_id=opportunity.id)
        return WorkflowResult.success(application, [event])

    @workflow_operation
    async def accept_application(self, user: Optional[CurrentUser], application_id: str,
                                 options: Optional[ContractOptions] = None) -> WorkflowResult:
        """Accept, convert to a deal and draft its contract.

        A contract that cannot be drafted does not undo the accept: the
        result is still ok, contract_id is None and a ContractDraftFailed
        event tells the brand to draft it by hand.
        """
        _, opportunity = await self.coordinator.load(application_id)
        brand = self._require_opportunity_brand(user, opportunity)

        outcome = await self.coordinator.accept(application_id, brand.id)
        deal = outcome.deal
        owners = [deal.athlete_id, deal.brand_id]
        events = [
            _event("ApplicationAccepted", [deal.athlete_id],
                   application_id=outcome.application.id, opportunity_id=opportunity.id, deal_id=deal.id),
            _event("DealCreated", owners, deal_id=deal.id, application_id=outcome.application.id,
                   compensation_amount=deal.compensation_amount),
        ]

        contract_id = None
        try:
            contract = await self.contracts.create_draft(await self._draft_request(deal, options or ContractOptions()))
            contract_id = contract.id
            events.append(_event("ContractDrafted", owners, contract_id=contract.id, deal_id=deal.id))
        except ServiceError as e:
            logger.warning(f"Deal {deal.id} created but its contract could not be drafted: {e.message}")
            events.append(_event("ContractDraftFailed", [deal.brand_id], deal_id=deal.id,
                                 code=e.error_code.value, details=e.details))

        return WorkflowResult.success({
            "application": outcome.application,
            "deal_id": deal.id,
            "contract_id": contract_id,
        }, events)

    @workflow_operation
    async def reject_application(self, user: Optional[CurrentUser], application_id: str,
                                 reason: Optional[str] = None) -> WorkflowResult:
        _, opportunity = await self.coordinator.load(application_id)
        brand = self._require_opportunity_brand(user, opportunity)

        application = await self.coordinator.reject(application_id, brand.id, reason)
        event = _event("ApplicationRejected", [application.athlete_id],
                       application_id=application.id, opportunity_id=opportunity.id, reason=reason)
        return WorkflowResult.success(application, [event])

    @workflow_operation
    async def get_application(self, user: Optional[CurrentUser], application_id: str) -> WorkflowResult:
        application, opportunity = await self.coordinator.load(application_id)
        user = self._require_user(user)
        if not (isinstance(user, AdminIdentity) or user.id in (application.athlete_id, opportunity.brand_id)):
            raise ForbiddenError("You do not have access to this application")
        return WorkflowResult.success(application)

    @workflow_operation
    async def list_my_applications(self, user: Optional[CurrentUser]) -> WorkflowResult:
        athlete = self._require_athlete(user, "Only athletes have applications")
        return WorkflowResult.success(await self.ledger.list_for_athlete(athlete.id))

    @workflow_operation
    async def list_opportunity_applications(self, user: Optional[CurrentUser], opportunity_id: str) -> WorkflowResult:
        opportunity = await self._opportunity(opportunity_id)
        self._require_opportunity_brand(user, opportunity)
        return WorkflowResult.success(await self.ledger.list_for_opportunity(opportunity_id))

    @workflow_operation
    async def has_applied(self, user: Optional[CurrentUser], opportunity_id: str) -> WorkflowResult:
        athlete = self._require_athlete(user, "Only athletes can apply to opportunities")
        return WorkflowResult.success(await self.ledger.has_applied(athlete.id, opportunity_id))

    # Contracts

    @workflow_operation
    async def create_contract(self, user: Optional[CurrentUser], request: ContractDraftCreate) -> WorkflowResult:
        deal = await self._deal(request.deal_id)
        self._require_deal_brand(user, deal)

        contract = await self.contracts.create_draft(request)
        event = _event("ContractDrafted", [deal.athlete_id, deal.brand_id], contract_id=contract.id, deal_id=deal.id)
        return WorkflowResult.success(contract, [event])

    @workflow_operation
    async def update_contract(self, user: Optional[CurrentUser], contract_id: str,
                              request: ContractUpdate) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        self._require_deal_brand(user, deal)

        contract = await self.contracts.update_draft(contract_id, request)
        changed = sorted(request.model_dump(exclude_unset=True, exclude_none=True))
        event = _event("ContractUpdated", self._recipients(contract, deal),
                       contract_id=contract_id, deal_id=deal.id, fields=changed)
        return WorkflowResult.success(contract, [event])

    @workflow_operation
    async def send_contract(self, user: Optional[CurrentUser], contract_id: str) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        self._require_deal_brand(user, deal)

        contract = await self.contracts.send(contract_id)
        event = _event("ContractSent", self._recipients(contract, deal), contract_id=contract.id, deal_id=deal.id)
        return WorkflowResult.success(contract, [event])

    @workflow_operation
    async def sign_contract(self, user: Optional[CurrentUser], contract_id: str,
                            request: SignContractRequest) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        self._require_party(user, contract, deal, request.party_type)

        change = await self.contracts.sign(contract_id, request)
        signer = self._party_user_id(change.contract, deal, request.party_type)
        others = [r for r in self._recipients(change.contract, deal) if r != signer]
        events = [_event("ContractSigned", others, contract_id=contract_id, deal_id=deal.id,
                         party_type=request.party_type, status=change.contract.status)]
        events.extend(self._status_events(change.contract, change.previous_status, deal))
        await self._advance_deal(change.contract, deal)
        return WorkflowResult.success(change.contract, events)

    @workflow_operation
    async def decline_contract(self, user: Optional[CurrentUser], contract_id: str, party_type: str,
                               reason: Optional[str] = None) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        self._require_party(user, contract, deal, party_type)

        contract = await self.contracts.decline(contract_id, party_type, reason)
        recipients = self._recipients(contract, deal)
        events = [_event("ContractDeclined", recipients, contract_id=contract_id, deal_id=deal.id,
                         party_type=party_type, reason=reason)]

        if self.void_on_decline:
            void_reason = f"Declined by {party_type}" + (f": {reason}" if reason else "")
            contract = await self.contracts.void(contract_id, void_reason)
            events.append(_event("ContractVoided", recipients, contract_id=contract_id,
                                 deal_id=deal.id, reason=void_reason))
        return WorkflowResult.success(contract, events)

    @workflow_operation
    async def void_contract(self, user: Optional[CurrentUser], contract_id: str, reason: str) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        self._require_deal_brand(user, deal)

        contract = await self.contracts.void(contract_id, reason)
        event = _event("ContractVoided", self._recipients(contract, deal),
                       contract_id=contract_id, deal_id=deal.id, reason=reason)
        return WorkflowResult.success(contract, [event])

    @workflow_operation
    async def cancel_contract(self, user: Optional[CurrentUser], contract_id: str) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        user = self._require_user(user)
        if not (isinstance(user, AdminIdentity) or user.id in (deal.athlete_id, deal.brand_id)):
            raise ForbiddenError("Only the deal's athlete or brand can cancel its contract")

        contract = await self.contracts.cancel(contract_id)
        event = _event("ContractCancelled", self._recipients(contract, deal),
                       contract_id=contract_id, deal_id=deal.id, cancelled_by=user.id)
        return WorkflowResult.success(contract, [event])

    @workflow_operation
    async def get_contract(self, user: Optional[CurrentUser], contract_id: str) -> WorkflowResult:
        change = await self.contracts.refresh(contract_id)
        deal = await self._deal(change.contract.deal_id)
        self._require_contract_viewer(user, change.contract, deal)
        events = self._status_events(change.contract, change.previous_status, deal)
        await self._advance_deal(change.contract, deal)
        return WorkflowResult.success(change.contract, events)

    @workflow_operation
    async def contract_status(self, user: Optional[CurrentUser], contract_id: str) -> WorkflowResult:
        contract = await self.contracts.get(contract_id)
        deal = await self._deal(contract.deal_id)
        self._require_contract_viewer(user, contract, deal)
        return WorkflowResult.success(await self.contracts.status_summary(contract_id))

    @workflow_operation
    async def list_deal_contracts(self, user: Optional[CurrentUser], deal_id: str) -> WorkflowResult:
        deal = await self._deal(deal_id)
        user = self._require_user(user)
        if not (isinstance(user, AdminIdentity) or user.id in (deal.athlete_id, deal.brand_id)):
            raise ForbiddenError("You do not have access to this deal")
        return WorkflowResult.success(await self.contracts.list_for_deal(deal_id))

    @workflow_operation
    async def list_my_contracts(self, user: Optional[CurrentUser],
                                statuses: Optional[Iterable[str]] = None) -> WorkflowResult:
        user = self._require_user(user)
        if isinstance(user, AthleteIdentity):
            party_type = "athlete"
        elif isinstance(user, BrandIdentity):
            party_type = "brand"
        else:
            raise ForbiddenError("Only athletes and brands have contracts")
        return WorkflowResult.success(await self.contracts.list_for_party(party_type, user.id, statuses or ()))

    # Helpers

    def _status_events(self, contract: Contract, previous_status: str, deal: Deal) -> List[DomainEvent]:
        """Events for a contract that moved to fully_signed or active"""
        if contract.status == previous_status or contract.status not in ("fully_signed", "active"):
            return []

        recipients = self._recipients(contract, deal)
        events = []
        if previous_status != "fully_signed":
            events.append(_event("ContractFullySigned", recipients, contract_id=contract.id, deal_id=deal.id))
        if contract.status == "active":
            events.append(_event("ContractActivated", recipients, contract_id=contract.id, deal_id=deal.id))
        return events

    async def _advance_deal(self, contract: Contract, deal: Deal) -> None:
        """Move the deal to match a fully signed or active contract.

        Safe to repeat: the deal only moves from the statuses the rule
        names. A failed write is logged and retried on the next read.
        """
        rule = DEAL_STATUS_ON_CONTRACT.get(contract.status)
        if rule is None or deal.status not in rule[0]:
            return
        try:
            await self.coordinator.on_contract_status(deal.id, contract.status)
        except ServiceError as e:
            logger.warning(f"Deal {deal.id} not advanced for contract {contract.id} ({contract.status}): {e.message}")

    async def _draft_request(self, deal: Deal, options: ContractOptions) -> ContractDraftCreate:
        athlete = await self.profiles.get_contact(deal.athlete_id)
        brand = await self.profiles.get_contact(deal.brand_id)

        parties = [
            SignaturePartyInput(party_type="athlete", user_id=deal.athlete_id,
                                name=athlete.name, email=athlete.email, title=athlete.title),
            SignaturePartyInput(party_type="brand", user_id=deal.brand_id,
                                name=brand.name, email=brand.email, title=brand.title),
        ]

        guardian = options.guardian
        if guardian is None and athlete.guardian is not None:
            guardian = SignaturePartyInput(party_type="guardian", name=athlete.guardian.name,
                                           email=athlete.guardian.email, title=athlete.guardian.title)
        if guardian is not None:
            parties.append(guardian.model_copy(update={"party_type": "guardian"}))
        if options.witness is not None:
            parties.append(options.witness.model_copy(update={"party_type": "witness"}))

        template_type = options.template_type or template_for_deal_type(deal.deal_type, self.default_template_type)
        expiration_date = options.expiration_date
        if expiration_date is None and options.effective_date is not None:
            expiration_date = options.effective_date + relativedelta(months=self.default_term_months)

        return ContractDraftCreate(
            deal_id=deal.id,
            template_type=template_type,
            title=deal.title,
            description=deal.description,
            effective_date=options.effective_date,
            expiration_date=expiration_date,
            compensation_amount=deal.compensation_amount,
            compensation_terms=options.compensation_terms,
            deliverables_summary=options.deliverables_summary,
            clauses=options.clauses if options.clauses is not None else default_clauses(template_type),
            parties=parties,
            requires_guardian_signature=guardian is not None,
            requires_witness=options.witness is not None,
        )

    async def _opportunity(self, opportunity_id: str) -> Opportunity:
        opportunity = await self.coordinator.opportunities.get(opportunity_id)
        if opportunity is None:
            raise NotFoundError("Opportunity", opportunity_id)
        return opportunity

    async def _deal(self, deal_id: str) -> Deal:
        deal = await self.coordinator.deals.get(deal_id)
        if deal is None:
            raise NotFoundError("Deal", deal_id)
        return deal

    @staticmethod
    def _require_user(user: Optional[CurrentUser]) -> CurrentUser:
        if user is None:
            raise UnauthorizedError()
        return user

    def _require_athlete(self, user: Optional[CurrentUser], message: str) -> AthleteIdentity:
        user = self._require_user(user)
        if not isinstance(user, AthleteIdentity):
            raise ForbiddenError(message)
        return user

    def _require_opportunity_brand(self, user: Optional[CurrentUser], opportunity: Opportunity) -> BrandIdentity:
        user = self._require_user(user)
        if not isinstance(user, BrandIdentity) or user.id != opportunity.brand_id:
            raise ForbiddenError("Only the brand that posted this opportunity can do that")
        return user

    def _require_deal_brand(self, user: Optional[CurrentUser], deal: Deal) -> CurrentUser:
        user = self._require_user(user)
        if isinstance(user, AdminIdentity):
            return user
        if not isinstance(user, BrandIdentity) or user.id != deal.brand_id:
            raise ForbiddenError("Only the deal's brand can manage its contract")
        return user

    def _require_party(self, user: Optional[CurrentUser], contract: Contract, deal: Deal, party_type: str) -> None:
        user = self._require_user(user)
        if party_type == "athlete":
            allowed = isinstance(user, AthleteIdentity) and user.id == deal.athlete_id
        elif party_type == "brand":
            allowed = isinstance(user, BrandIdentity) and user.id == deal.brand_id
        else:
            party = contract.party(party_type)
            if party is None:
                raise NotFoundError("Signature party", f"{contract.id}/{party_type}")
            allowed = (party.user_id is not None and party.user_id == user.id) or (
                user.email is not None and party.email.lower() == user.email.lower()
            )
        if not allowed:
            raise ForbiddenError(f"You cannot act as the {party_type} on this contract")

    def _require_contract_viewer(self, user: Optional[CurrentUser], contract: Contract, deal: Deal) -> None:
        user = self._require_user(user)
        if isinstance(user, AdminIdentity) or user.id in (deal.athlete_id, deal.brand_id):
            return
        for party in contract.parties:
            if party.user_id == user.id or (user.email and party.email.lower() == user.email.lower()):
                return
        raise ForbiddenError("You do not have access to this contract")

    @staticmethod
    def _party_user_id(contract: Contract, deal: Deal, party_type: str) -> Optional[str]:
        if party_type == "athlete":
            return deal.athlete_id
        if party_type == "brand":
            return deal.brand_id
        party = contract.party(party_type)
        return party.user_id if party else None

    @staticmethod
    def _recipients(contract: Contract, deal: Deal) -> List[str]:
        recipients = [deal.athlete_id, deal.brand_id]
        recipients.extend(p.user_id for p in contract.parties if p.user_id)
        return list(dict.fromkeys(recipients))
