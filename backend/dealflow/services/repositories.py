"""
Repositories for the workflow entities.

Each repository owns one collection and converts between stored documents
and pydantic models. Storage failures surface as StorageError; "no such
record" is always reported as None, never as an error.
"""

from typing import Any, Dict, Iterable, List, Optional
import logging
import uuid

from firebase_admin.firestore import FieldFilter

from ..models.application import Application
from ..models.contract import Contract, SignatureParty
from ..models.deal import Deal
from ..models.opportunity import Opportunity
from ..models.user import PartyContact
from .database_service import DatabaseError, DuplicateKeyError
from .exceptions import StorageError

logger = logging.getLogger(__name__)

_ID_NAMESPACE = uuid.UUID("6f1c2b8e-4a0d-4f57-9a43-1f5d0c3b7e21")


def application_id_for(athlete_id: str, opportunity_id: str) -> str:
    """Stable application id for an (athlete, opportunity) pair."""
    return str(uuid.uuid5(_ID_NAMESPACE, f"application:{athlete_id}:{opportunity_id}"))


def deal_id_for(application_id: str) -> str:
    """Stable deal id for the application a deal is converted from."""
    return str(uuid.uuid5(_ID_NAMESPACE, f"deal:{application_id}"))


def signature_id_for(contract_id: str, party_type: str) -> str:
    return f"{contract_id}_{party_type}"


class _Repository:
    """Shared storage-error translation"""

    resource = "record"

    def __init__(self, collection):
        self.collection = collection

    async def _call(self, operation: str, coro):
        try:
            return await coro
        except DuplicateKeyError:
            raise
        except DatabaseError as e:
            raise StorageError(f"{operation} {self.resource}", cause=e) from e


class ApplicationRepository(_Repository):
    resource = "application"

    async def get(self, application_id: str) -> Optional[Application]:
        doc = await self._call("get", self.collection.get_by_id(application_id))
        return Application.model_validate(doc) if doc else None

    async def find_by_pair(self, athlete_id: str, opportunity_id: str) -> Optional[Application]:
        return await self.get(application_id_for(athlete_id, opportunity_id))

    async def insert(self, application: Application) -> Application:
        """Create-only insert; raises DuplicateKeyError if the pair already has a row."""
        await self._call("insert", self.collection.create(application.to_document(), doc_id=application.id))
        return application

    async def transition(self, application_id: str, from_statuses: Iterable[str],
                         changes: Dict[str, Any]) -> bool:
        """Compare-and-set on status."""
        return await self._call(
            "update", self.collection.compare_and_set(application_id, "status", from_statuses, changes)
        )

    async def list_by(self, field: str, value: str, exclude_statuses: Iterable[str] = ()) -> List[Application]:
        filters = [FieldFilter(field, "==", value)]
        exclude = list(exclude_statuses)
        if exclude:
            filters.append(FieldFilter("status", "not-in", exclude))
        docs = await self._call("list", self.collection.query(filters, limit=1000))
        applications = [Application.model_validate(doc) for doc in docs]
        return sorted(applications, key=lambda a: a.submitted_at, reverse=True)


class OpportunityRepository(_Repository):
    resource = "opportunity"

    async def get(self, opportunity_id: str) -> Optional[Opportunity]:
        doc = await self._call("get", self.collection.get_by_id(opportunity_id))
        return Opportunity.model_validate(doc) if doc else None


class DealRepository(_Repository):
    resource = "deal"

    async def get(self, deal_id: str) -> Optional[Deal]:
        doc = await self._call("get", self.collection.get_by_id(deal_id))
        return Deal.model_validate(doc) if doc else None

    async def insert(self, deal: Deal) -> Deal:
        await self._call("insert", self.collection.create(deal.to_document(), doc_id=deal.id))
        return deal

    async def transition(self, deal_id: str, from_statuses: Iterable[str], status: str) -> bool:
        return await self._call(
            "update", self.collection.compare_and_set(deal_id, "status", from_statuses, {"status": status})
        )


class ContractRepository(_Repository):
    resource = "contract"

    async def get(self, contract_id: str) -> Optional[Contract]:
        doc = await self._call("get", self.collection.get_by_id(contract_id))
        return Contract.model_validate(doc) if doc else None

    async def insert(self, contract: Contract) -> Contract:
        await self._call("insert", self.collection.create(contract.to_document(), doc_id=contract.id))
        return contract

    async def transition(self, contract_id: str, from_statuses: Iterable[str],
                         changes: Dict[str, Any]) -> bool:
        return await self._call(
            "update", self.collection.compare_and_set(contract_id, "status", from_statuses, changes)
        )

    async def delete(self, contract_id: str) -> None:
        await self._call("delete", self.collection.delete(contract_id))

    async def list_for_deal(self, deal_id: str) -> List[Contract]:
        docs = await self._call("list", self.collection.query([FieldFilter("deal_id", "==", deal_id)], limit=1000))
        contracts = [Contract.model_validate(doc) for doc in docs]
        return sorted(contracts, key=lambda c: c.created_at, reverse=True)

    async def list_by_party(self, field: str, user_id: str, statuses: Iterable[str] = ()) -> List[Contract]:
        filters = [FieldFilter(field, "==", user_id)]
        wanted = list(statuses)
        if wanted:
            filters.append(FieldFilter("status", "in", wanted))
        docs = await self._call("list", self.collection.query(filters, limit=1000))
        contracts = [Contract.model_validate(doc) for doc in docs]
        return sorted(contracts, key=lambda c: c.created_at, reverse=True)


class SignatureRepository(_Repository):
    """Signature rows, one per (contract, party_type)"""

    resource = "signature"

    async def insert_many(self, parties: List[SignatureParty]) -> None:
        for party in parties:
            await self._call("insert", self.collection.create(party.to_document(), doc_id=party.id))

    async def delete_many(self, parties: List[SignatureParty]) -> None:
        for party in parties:
            await self._call("delete", self.collection.delete(party.id))

    async def list_for_contract(self, contract_id: str) -> List[SignatureParty]:
        docs = await self._call(
            "list", self.collection.query([FieldFilter("contract_id", "==", contract_id)], limit=10)
        )
        return [SignatureParty.model_validate(doc) for doc in docs]

    async def transition(self, contract_id: str, party_type: str, from_statuses: Iterable[str],
                         changes: Dict[str, Any]) -> bool:
        """Row-level compare-and-set on signature_status."""
        return await self._call(
            "update",
            self.collection.compare_and_set(
                signature_id_for(contract_id, party_type), "signature_status", from_statuses, changes
            ),
        )


class ProfileDirectory:
    """Looks up the contact details used to seat a user on a contract."""

    def __init__(self, collection=None, claims_lookup=None):
        self.collection = collection
        self.claims_lookup = claims_lookup

    async def get_contact(self, user_id: str) -> PartyContact:
        profile: Optional[Dict[str, Any]] = None
        try:
            if self.collection is not None:
                profile = await self.collection.get_by_id(user_id)
            if profile is None and self.claims_lookup is not None:
                profile = self.claims_lookup(user_id)
        except DatabaseError as e:
            raise StorageError("get profile", cause=e) from e

        if not profile:
            return PartyContact(user_id=user_id)

        guardian = None
        if profile.get("guardian_email") or profile.get("guardian_name"):
            guardian = PartyContact(
                name=profile.get("guardian_name"),
                email=profile.get("guardian_email"),
                title="Parent/Guardian",
            )
        return PartyContact(
            user_id=user_id,
            name=profile.get("display_name") or profile.get("company_name") or profile.get("name"),
            email=profile.get("email") or profile.get("contact_email"),
            title=profile.get("title"),
            guardian=guardian,
        )
