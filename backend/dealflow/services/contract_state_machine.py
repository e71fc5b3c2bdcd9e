"""
Contract state machine.

Status is a pure function of the contract flags and its current signature
set (see derive_status), so concurrent signers from different sessions can
sign in any order: each one re-derives from the full set and writes the
result with a compare-and-set on the stored status, retrying on conflict.
Only the per-party signature row needs serialising (pending -> signed).
"""

from datetime import date, datetime
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Set
import logging
import re

from ..models.base import utc_now
from ..models.contract import (
    Contract,
    ContractClause,
    ContractDraftCreate,
    ContractStatusSummary,
    ContractUpdate,
    SIGNABLE_CONTRACT_STATUSES,
    SignatureParty,
    SignatureSummary,
    SignContractRequest,
    TERMINAL_CONTRACT_STATUSES,
)
from .contract_templates import default_clauses
from .exceptions import (
    AlreadyActedError,
    InvalidTransitionError,
    NotFoundError,
    NotSignableError,
    StorageError,
    ValidationError,
)
from .repositories import ContractRepository, DealRepository, SignatureRepository, signature_id_for

logger = logging.getLogger(__name__)

ALL_CONTRACT_STATUSES = frozenset({
    "draft", "pending_signature", "partially_signed", "fully_signed",
    "active", "expired", "cancelled", "voided",
})
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_STATUS_WRITE_ATTEMPTS = 5
EDITABLE_CONTRACT_STATUSES = frozenset({"draft", "pending_signature"})


def required_party_types(requires_guardian_signature: bool, requires_witness: bool) -> Set[str]:
    required = {"athlete", "brand"}
    if requires_guardian_signature:
        required.add("guardian")
    if requires_witness:
        required.add("witness")
    return required


def derive_status(contract: Contract, parties: Sequence[SignatureParty], now: datetime) -> str:
    """Map a contract and its signature set to the contract status.

    Terminal and expired contracts keep their status. Anything else past its
    expiration date is expired. Otherwise the status follows the number of
    required parties that have signed.
    """
    if contract.status in TERMINAL_CONTRACT_STATUSES or contract.status == "expired":
        return contract.status

    today = now.date()
    if contract.expiration_date is not None and today > contract.expiration_date:
        return "expired"

    sent = contract.sent_at is not None or any(p.signature_status != "pending" for p in parties)
    if not sent:
        return "draft"

    required = required_party_types(contract.requires_guardian_signature, contract.requires_witness)
    signed_count = len({
        p.party_type for p in parties
        if p.party_type in required and p.signature_status == "signed"
    })

    if signed_count == 0:
        return "pending_signature"
    if signed_count < len(required):
        return "partially_signed"
    if contract.effective_date is not None and contract.effective_date <= today:
        return "active"
    return "fully_signed"


def draft_violations(clauses: Sequence[ContractClause], parties: Sequence, *,
                     requires_guardian_signature: bool, requires_witness: bool,
                     effective_date: Optional[date] = None, expiration_date: Optional[date] = None,
                     compensation_amount: Optional[float] = None) -> List[str]:
    """Every rule a contract violates before it may leave draft."""
    violations = []

    for clause in clauses:
        label = clause.title or f"#{clause.order}"
        if not (clause.title or "").strip():
            violations.append(f"Clause {label} must have a title")
        if clause.is_required and not (clause.content or "").strip():
            violations.append(f"Required clause '{label}' must have content")

    seen = set()
    for party in parties:
        if party.party_type in seen:
            violations.append(f"Only one {party.party_type} party is allowed")
        seen.add(party.party_type)
        if not (party.name or "").strip():
            violations.append(f"The {party.party_type} party must have a name")
        if not (party.email or "").strip():
            violations.append(f"The {party.party_type} party must have an email")
        elif not EMAIL_PATTERN.match(party.email.strip()):
            violations.append(f"The {party.party_type} party email is invalid")

    for party_type in ("athlete", "brand"):
        if party_type not in seen:
            violations.append(f"An {party_type} party is required" if party_type == "athlete"
                              else f"A {party_type} party is required")

    if requires_guardian_signature and "guardian" not in seen:
        violations.append("A guardian party is required when guardian signature is required")
    if not requires_guardian_signature and "guardian" in seen:
        violations.append("A guardian party is only allowed when guardian signature is required")
    if requires_witness and "witness" not in seen:
        violations.append("A witness party is required when a witness is required")
    if not requires_witness and "witness" in seen:
        violations.append("A witness party is only allowed when a witness is required")

    if effective_date and expiration_date and expiration_date < effective_date:
        violations.append("Expiration date cannot be before effective date")
    if compensation_amount is not None and compensation_amount < 0:
        violations.append("Compensation amount cannot be negative")

    return violations


class StatusChange(NamedTuple):
    contract: Contract
    previous_status: str


class ContractStateMachine:
    """Owns Contract and SignatureParty records."""

    def __init__(self, contracts: ContractRepository, signatures: SignatureRepository,
                 deals: DealRepository, clock: Callable[[], datetime] = utc_now):
        self.contracts = contracts
        self.signatures = signatures
        self.deals = deals
        self.clock = clock

    async def create_draft(self, request: ContractDraftCreate) -> Contract:
        """Create a draft contract and its signature rows.

        Once the new contract and its signature rows are stored, any earlier
        live contract for the same deal is voided.
        Raises ValidationError listing every violated rule; nothing is
        written in that case.
        """
        deal = await self.deals.get(request.deal_id)
        if deal is None:
            raise NotFoundError("Deal", request.deal_id)

        clauses = request.clauses if request.clauses is not None else default_clauses(request.template_type)
        clauses = sorted(clauses, key=lambda c: c.order)
        compensation_amount = (
            request.compensation_amount if request.compensation_amount is not None else deal.compensation_amount
        )

        violations = draft_violations(
            clauses, request.parties,
            requires_guardian_signature=request.requires_guardian_signature,
            requires_witness=request.requires_witness,
            effective_date=request.effective_date,
            expiration_date=request.expiration_date,
            compensation_amount=compensation_amount,
        )
        if violations:
            raise ValidationError(violations)

        contract = Contract(
            deal_id=deal.id,
            athlete_id=deal.athlete_id,
            brand_id=deal.brand_id,
            template_type=request.template_type,
            title=request.title or deal.title,
            description=request.description,
            effective_date=request.effective_date,
            expiration_date=request.expiration_date,
            compensation_amount=compensation_amount,
            compensation_terms=request.compensation_terms,
            deliverables_summary=request.deliverables_summary,
            clauses=clauses,
            custom_terms=request.custom_terms,
            requires_guardian_signature=request.requires_guardian_signature,
            requires_witness=request.requires_witness,
            status="draft",
        )
        parties = [
            SignatureParty(
                id=signature_id_for(contract.id, party.party_type),
                contract_id=contract.id,
                party_type=party.party_type,
                user_id=party.user_id,
                name=party.name.strip(),
                email=party.email.strip(),
                title=party.title,
            )
            for party in request.parties
        ]

        await self.contracts.insert(contract)
        try:
            await self.signatures.insert_many(parties)
        except StorageError:
            logger.error(f"Failed to create signature records for contract {contract.id}; removing contract")
            await self.signatures.delete_many(parties)
            await self.contracts.delete(contract.id)
            raise

        for previous in await self.contracts.list_for_deal(deal.id):
            if previous.id != contract.id and previous.status not in TERMINAL_CONTRACT_STATUSES:
                await self.void(previous.id, f"Superseded by contract {contract.id}")

        logger.info(f"Contract {contract.id} drafted for deal {deal.id}")
        contract.parties = parties
        return contract

    async def get(self, contract_id: str) -> Contract:
        """Get contract with parties; status is re-derived on read"""
        return (await self.refresh(contract_id)).contract

    async def refresh(self, contract_id: str) -> StatusChange:
        """Re-derive the status and persist it if it moved"""
        for _ in range(MAX_STATUS_WRITE_ATTEMPTS):
            contract = await self._load(contract_id)
            stored = contract.status
            derived = derive_status(contract, contract.parties, self.clock())
            if derived == stored:
                return StatusChange(contract, stored)

            changes = {"status": derived}
            if derived in ("fully_signed", "active") and contract.signed_at is None:
                changes["signed_at"] = self.clock()
            if await self.contracts.transition(contract_id, {stored}, changes):
                logger.info(f"Contract {contract_id}: {stored} -> {derived}")
                contract.status = derived
                contract.signed_at = changes.get("signed_at", contract.signed_at)
                return StatusChange(contract, stored)
        raise StorageError(f"derive status of contract {contract_id}",
                           cause=RuntimeError("status kept changing concurrently"))

    async def send(self, contract_id: str) -> Contract:
        """Move a draft to pending_signature"""
        contract = await self.get(contract_id)
        if contract.status != "draft":
            raise InvalidTransitionError("contract", contract_id, contract.status, "send")

        violations = draft_violations(
            contract.clauses, contract.parties,
            requires_guardian_signature=contract.requires_guardian_signature,
            requires_witness=contract.requires_witness,
            effective_date=contract.effective_date,
            expiration_date=contract.expiration_date,
            compensation_amount=contract.compensation_amount,
        )
        if violations:
            raise ValidationError(violations)

        sent = await self.contracts.transition(contract_id, {"draft"}, {
            "status": "pending_signature",
            "sent_at": self.clock(),
        })
        if not sent:
            current = await self.get(contract_id)
            raise InvalidTransitionError("contract", contract_id, current.status, "send")

        logger.info(f"Contract {contract_id} sent for signature")
        return await self.get(contract_id)

    async def update_draft(self, contract_id: str, request: ContractUpdate) -> Contract:
        """Edit terms, clauses or dates of a contract nobody has signed yet.

        The merged contract must pass the same checks as a new draft.
        """
        fields = request.model_dump(exclude_unset=True, exclude_none=True)
        if not fields:
            raise ValidationError("No contract fields to update")

        contract = await self.get(contract_id)
        if contract.status not in EDITABLE_CONTRACT_STATUSES:
            raise InvalidTransitionError("contract", contract_id, contract.status, "update")

        updated = Contract.model_validate({**contract.model_dump(), **fields})
        updated.clauses = sorted(updated.clauses, key=lambda c: c.order)
        violations = draft_violations(
            updated.clauses, updated.parties,
            requires_guardian_signature=updated.requires_guardian_signature,
            requires_witness=updated.requires_witness,
            effective_date=updated.effective_date,
            expiration_date=updated.expiration_date,
            compensation_amount=updated.compensation_amount,
        )
        if violations:
            raise ValidationError(violations)

        changes = updated.model_dump(mode="json", include=set(fields))
        if not await self.contracts.transition(contract_id, EDITABLE_CONTRACT_STATUSES, changes):
            current = await self._load(contract_id)
            raise InvalidTransitionError("contract", contract_id, current.status, "update")

        logger.info(f"Contract {contract_id} updated: {', '.join(sorted(fields))}")
        return await self.get(contract_id)

    async def sign(self, contract_id: str, request: SignContractRequest) -> StatusChange:
        """Record a signature and re-derive the contract status"""
        if not request.agreed_to_terms:
            raise ValidationError("You must agree to the terms to sign the contract")

        contract = await self.get(contract_id)
        party = self._party(contract, request.party_type)
        if party.signature_status != "pending":
            raise AlreadyActedError(contract_id, party.party_type, party.signature_status)
        if contract.status not in SIGNABLE_CONTRACT_STATUSES:
            raise NotSignableError(contract_id, contract.status)

        signed = await self.signatures.transition(contract_id, party.party_type, {"pending"}, {
            "signature_status": "signed",
            "signed_at": self.clock(),
            "signature_type": request.signature_type,
            "signature_data": request.signature_data,
            "signature_ip": request.ip_address,
        })
        if not signed:
            current = self._party(await self._load(contract_id), party.party_type)
            raise AlreadyActedError(contract_id, party.party_type, current.signature_status)

        logger.info(f"Contract {contract_id} signed by {party.party_type}")
        return await self.refresh(contract_id)

    async def decline(self, contract_id: str, party_type: str, reason: Optional[str] = None) -> Contract:
        """Record a decline. The contract status is left where it was."""
        contract = await self.get(contract_id)
        party = self._party(contract, party_type)
        if party.signature_status != "pending":
            raise AlreadyActedError(contract_id, party_type, party.signature_status)
        if contract.status not in SIGNABLE_CONTRACT_STATUSES:
            raise NotSignableError(contract_id, contract.status)

        declined = await self.signatures.transition(contract_id, party_type, {"pending"}, {
            "signature_status": "declined",
            "declined_at": self.clock(),
            "decline_reason": reason,
        })
        if not declined:
            current = self._party(await self._load(contract_id), party_type)
            raise AlreadyActedError(contract_id, party_type, current.signature_status)

        logger.info(f"Contract {contract_id} declined by {party_type}")
        return await self.get(contract_id)

    async def void(self, contract_id: str, reason: str) -> Contract:
        """Void a contract; terminal"""
        if not (reason or "").strip():
            raise ValidationError("A reason is required to void a contract")
        return await self._terminate(contract_id, "voided", "void", {
            "voided_at": self.clock(),
            "void_reason": reason.strip(),
        })

    async def cancel(self, contract_id: str) -> Contract:
        """Cancel a contract; terminal"""
        return await self._terminate(contract_id, "cancelled", "cancel", {"cancelled_at": self.clock()})

    async def status_summary(self, contract_id: str) -> ContractStatusSummary:
        contract = await self.get(contract_id)
        return ContractStatusSummary(
            contract_status=contract.status,
            signatures=[
                SignatureSummary(party_type=p.party_type, name=p.name,
                                 status=p.signature_status, signed_at=p.signed_at)
                for p in sorted(contract.parties, key=lambda p: p.party_type)
            ],
            all_signed=bool(contract.parties) and all(p.signature_status == "signed" for p in contract.parties),
            can_sign=contract.status in SIGNABLE_CONTRACT_STATUSES,
        )

    async def list_for_deal(self, deal_id: str) -> List[Contract]:
        contracts = await self.contracts.list_for_deal(deal_id)
        for contract in contracts:
            contract.parties = await self.signatures.list_for_contract(contract.id)
        return contracts

    async def list_for_party(self, party_type: str, user_id: str, statuses: Iterable[str] = ()) -> List[Contract]:
        """Contracts where the user is the deal's athlete or brand, newest first"""
        if party_type not in ("athlete", "brand"):
            raise ValidationError(f"Cannot list contracts for party type '{party_type}'")
        wanted = set(statuses)
        unknown = sorted(wanted - ALL_CONTRACT_STATUSES)
        if unknown:
            raise ValidationError([f"Unknown contract status '{status}'" for status in unknown])

        contracts = await self.contracts.list_by_party(f"{party_type}_id", user_id, sorted(wanted))
        for contract in contracts:
            contract.parties = await self.signatures.list_for_contract(contract.id)
        return contracts

    async def _terminate(self, contract_id: str, target: str, action: str, changes: dict) -> Contract:
        contract = await self._load(contract_id)
        if contract.status in TERMINAL_CONTRACT_STATUSES:
            raise InvalidTransitionError("contract", contract_id, contract.status, action)

        allowed = ALL_CONTRACT_STATUSES - TERMINAL_CONTRACT_STATUSES
        if not await self.contracts.transition(contract_id, allowed, {**changes, "status": target}):
            current = await self._load(contract_id)
            raise InvalidTransitionError("contract", contract_id, current.status, action)

        logger.info(f"Contract {contract_id}: {contract.status} -> {target}")
        return await self._load(contract_id)

    async def _load(self, contract_id: str) -> Contract:
        if not contract_id:
            raise ValidationError("Contract ID is required")
        contract = await self.contracts.get(contract_id)
        if contract is None:
            raise NotFoundError("Contract", contract_id)
        contract.parties = await self.signatures.list_for_contract(contract_id)
        return contract

    @staticmethod
    def _party(contract: Contract, party_type: str) -> SignatureParty:
        party = contract.party(party_type)
        if party is None:
            raise NotFoundError("Signature party", f"{contract.id}/{party_type}")
        return party
