import pytest
from datetime import date
from unittest.mock import AsyncMock

from dealflow.models.application import ApplicationCreate
from dealflow.models.contract import (
    ContractDraftCreate,
    ContractOptions,
    ContractUpdate,
    SignaturePartyInput,
    SignContractRequest,
)
from dealflow.models.user import AthleteIdentity, BrandIdentity, DirectorIdentity
from dealflow.services.database_service import DatabaseError
from dealflow.services.exceptions import (
    DuplicateApplicationError,
    ForbiddenError,
    InvalidTransitionError,
    NotSignableError,
    StorageError,
    UnauthorizedError,
)
from dealflow.services.workflow_facade import WorkflowFacade


def _signature(party_type):
    return SignContractRequest(party_type=party_type, signature_data=f"/s/ {party_type}", agreed_to_terms=True)


def _event_types(result):
    return [event.type for event in result.events]


class TestWorkflowFacade:
    """Test cases for WorkflowFacade"""

    @pytest.fixture
    async def accepted(self, workflow, seeded, athlete, brand):
        """An accepted application with its deal and drafted contract"""
        application = (await workflow.submit_application(athlete, "opp-1")).data
        result = await workflow.accept_application(brand, application.id)
        assert result.ok, result.error
        return result.data

    @pytest.mark.asyncio
    async def test_end_to_end_application_to_signed_contract(self, workflow, seeded, athlete, brand, deals):
        """Test apply, accept, draft, send and both signatures"""
        submitted = await workflow.submit_application(athlete, "opp-1", ApplicationCreate(
            opportunity_id="opp-1", cover_letter="Big fan of the brand"
        ))
        assert submitted.ok
        assert _event_types(submitted) == ["ApplicationSubmitted"]
        assert submitted.events[0].recipients == ["brand-user-1"]

        accepted = await workflow.accept_application(brand, submitted.data.id)
        assert accepted.ok
        deal_id = accepted.data["deal_id"]
        assert (await deals.get(deal_id)).compensation_amount == 5000

        drafted = await workflow.create_contract(brand, ContractDraftCreate(
            deal_id=deal_id,
            template_type="social_media_campaign",
            parties=[
                SignaturePartyInput(party_type="athlete", name="Jordan Miles", email="jordan@school.edu"),
                SignaturePartyInput(party_type="brand", name="Acme Sports", email="deals@acme.com"),
            ],
        ))
        assert drafted.ok
        contract_id = drafted.data.id

        sent = await workflow.send_contract(brand, contract_id)
        assert sent.data.status == "pending_signature"

        athlete_signed = await workflow.sign_contract(athlete, contract_id, _signature("athlete"))
        assert athlete_signed.ok
        assert athlete_signed.data.status == "partially_signed"
        assert _event_types(athlete_signed) == ["ContractSigned"]

        brand_signed = await workflow.sign_contract(brand, contract_id, _signature("brand"))
        assert brand_signed.ok
        assert brand_signed.data.status == "fully_signed"
        assert _event_types(brand_signed) == ["ContractSigned", "ContractFullySigned"]
        assert (await deals.get(deal_id)).status == "accepted"

    @pytest.mark.asyncio
    async def test_submit_twice_is_duplicate(self, workflow, seeded, athlete):
        await workflow.submit_application(athlete, "opp-1")

        result = await workflow.submit_application(athlete, "opp-1")

        assert result.ok is False
        assert isinstance(result.error, DuplicateApplicationError)
        assert result.events == []

    @pytest.mark.asyncio
    async def test_resubmit_emits_resubmitted_event(self, workflow, seeded, athlete):
        first = (await workflow.submit_application(athlete, "opp-1")).data
        await workflow.withdraw_application(athlete, first.id)

        result = await workflow.submit_application(athlete, "opp-1")

        assert result.data.id == first.id
        assert _event_types(result) == ["ApplicationResubmitted"]

    @pytest.mark.asyncio
    async def test_submit_requires_identity(self, workflow, seeded):
        result = await workflow.submit_application(None, "opp-1")

        assert isinstance(result.error, UnauthorizedError)

    @pytest.mark.asyncio
    async def test_brand_cannot_apply(self, workflow, seeded, brand):
        result = await workflow.submit_application(brand, "opp-1")

        assert isinstance(result.error, ForbiddenError)

    @pytest.mark.asyncio
    async def test_only_applicant_can_withdraw(self, workflow, seeded, athlete):
        application = (await workflow.submit_application(athlete, "opp-1")).data
        someone_else = AthleteIdentity(id="athlete-2")

        result = await workflow.withdraw_application(someone_else, application.id)

        assert isinstance(result.error, ForbiddenError)

    @pytest.mark.asyncio
    async def test_withdraw_after_accept_fails(self, workflow, seeded, athlete, accepted):
        result = await workflow.withdraw_application(athlete, accepted["application"].id)

        assert isinstance(result.error, InvalidTransitionError)

    @pytest.mark.asyncio
    async def test_only_posting_brand_can_accept(self, workflow, seeded, athlete, other_brand):
        application = (await workflow.submit_application(athlete, "opp-1")).data

        assert isinstance((await workflow.accept_application(other_brand, application.id)).error, ForbiddenError)
        assert isinstance((await workflow.accept_application(athlete, application.id)).error, ForbiddenError)
        assert isinstance((await workflow.reject_application(other_brand, application.id)).error, ForbiddenError)
        assert isinstance((await workflow.review_application(other_brand, application.id)).error, ForbiddenError)

    @pytest.mark.asyncio
    async def test_accept_drafts_contract_from_profiles(self, workflow, seeded, athlete, brand, contracts):
        application = (await workflow.submit_application(athlete, "opp-1")).data

        result = await workflow.accept_application(brand, application.id)

        assert result.ok
        assert _event_types(result) == ["ApplicationAccepted", "DealCreated", "ContractDrafted"]
        contract = await contracts.get(result.data["contract_id"])
        assert contract.deal_id == result.data["deal_id"]
        assert contract.template_type == "social_media_campaign"
        assert contract.status == "draft"
        assert contract.party("athlete").email == "jordan@school.edu"
        assert contract.party("brand").name == "Acme Sports"
        assert contract.requires_guardian_signature is False

    @pytest.mark.asyncio
    async def test_accept_with_guardian_on_profile(self, workflow, seeded, stores, athlete, brand, contracts):
        stores["users"]._documents["athlete-1"].update({"guardian_name": "Pat Miles", "guardian_email": "pat@example.com"})
        application = (await workflow.submit_application(athlete, "opp-1")).data

        result = await workflow.accept_application(brand, application.id)

        contract = await contracts.get(result.data["contract_id"])
        assert contract.requires_guardian_signature is True
        assert contract.party("guardian").email == "pat@example.com"

    @pytest.mark.asyncio
    async def test_accept_sets_default_term(self, workflow, seeded, athlete, brand, contracts):
        application = (await workflow.submit_application(athlete, "opp-1")).data

        result = await workflow.accept_application(brand, application.id, ContractOptions(
            effective_date=date(2026, 4, 1)
        ))

        contract = await contracts.get(result.data["contract_id"])
        assert contract.expiration_date == date(2027, 4, 1)

    @pytest.mark.asyncio
    async def test_accept_survives_contract_draft_failure(self, workflow, seeded, stores, athlete, brand, ledger):
        """Test a missing brand contact keeps the accept and reports the draft failure"""
        del stores["users"]._documents["brand-user-1"]
        application = (await workflow.submit_application(athlete, "opp-1")).data

        result = await workflow.accept_application(brand, application.id)

        assert result.ok
        assert result.data["contract_id"] is None
        assert result.data["deal_id"]
        assert _event_types(result) == ["ApplicationAccepted", "DealCreated", "ContractDraftFailed"]
        failed = result.events[-1]
        assert failed.recipients == ["brand-user-1"]
        assert "The brand party must have a name" in failed.payload["details"]["violations"]
        assert (await ledger.get(application.id)).status == "accepted"

    @pytest.mark.asyncio
    async def test_reject_notifies_athlete(self, workflow, seeded, athlete, brand):
        application = (await workflow.submit_application(athlete, "opp-1")).data

        result = await workflow.reject_application(brand, application.id, "Not a fit")

        assert result.data.status == "rejected"
        assert result.events[0].type == "ApplicationRejected"
        assert result.events[0].recipients == ["athlete-1"]
        assert result.events[0].payload["reason"] == "Not a fit"

    @pytest.mark.asyncio
    async def test_review_then_accept(self, workflow, seeded, athlete, brand):
        application = (await workflow.submit_application(athlete, "opp-1")).data

        reviewed = await workflow.review_application(brand, application.id)
        accepted = await workflow.accept_application(brand, application.id)

        assert reviewed.data.status == "under_review"
        assert accepted.ok

    @pytest.mark.asyncio
    async def test_sign_as_other_party_is_forbidden(self, workflow, athlete, brand, accepted):
        contract_id = accepted["contract_id"]
        await workflow.send_contract(brand, contract_id)

        result = await workflow.sign_contract(athlete, contract_id, _signature("brand"))

        assert isinstance(result.error, ForbiddenError)

    @pytest.mark.asyncio
    async def test_only_deal_brand_sends(self, workflow, athlete, other_brand, admin, accepted):
        contract_id = accepted["contract_id"]

        assert isinstance((await workflow.send_contract(athlete, contract_id)).error, ForbiddenError)
        assert isinstance((await workflow.send_contract(other_brand, contract_id)).error, ForbiddenError)
        assert (await workflow.send_contract(admin, contract_id)).ok

    @pytest.mark.asyncio
    async def test_guardian_signs_by_email(self, workflow, seeded, stores, athlete, brand):
        stores["users"]._documents["athlete-1"].update({"guardian_name": "Pat Miles", "guardian_email": "pat@example.com"})
        application = (await workflow.submit_application(athlete, "opp-1")).data
        contract_id = (await workflow.accept_application(brand, application.id)).data["contract_id"]
        await workflow.send_contract(brand, contract_id)
        await workflow.sign_contract(athlete, contract_id, _signature("athlete"))
        after_brand = await workflow.sign_contract(brand, contract_id, _signature("brand"))
        assert after_brand.data.status == "partially_signed"

        guardian = AthleteIdentity(id="parent-1", email="PAT@example.com")
        stranger = DirectorIdentity(id="director-1", email="ad@school.edu")

        assert isinstance((await workflow.sign_contract(stranger, contract_id, _signature("guardian"))).error,
                          ForbiddenError)
        result = await workflow.sign_contract(guardian, contract_id, _signature("guardian"))
        assert result.data.status == "fully_signed"

    @pytest.mark.asyncio
    async def test_activation_moves_deal_to_active(self, workflow, seeded, athlete, brand, deals):
        application = (await workflow.submit_application(athlete, "opp-1")).data
        accepted = (await workflow.accept_application(brand, application.id, ContractOptions(
            effective_date=date(2026, 3, 1)
        ))).data
        contract_id = accepted["contract_id"]
        await workflow.send_contract(brand, contract_id)
        await workflow.sign_contract(athlete, contract_id, _signature("athlete"))

        result = await workflow.sign_contract(brand, contract_id, _signature("brand"))

        assert result.data.status == "active"
        assert _event_types(result) == ["ContractSigned", "ContractFullySigned", "ContractActivated"]
        assert (await deals.get(accepted["deal_id"])).status == "active"

    @pytest.mark.asyncio
    async def test_deal_write_failure_does_not_fail_signature(self, workflow, athlete, brand, accepted, stores, deals):
        """Test a failed deal update still reports the signature and is repaired on the next read"""
        contract_id = accepted["contract_id"]
        await workflow.send_contract(brand, contract_id)
        await workflow.sign_contract(athlete, contract_id, _signature("athlete"))
        stores["deals"].compare_and_set = AsyncMock(side_effect=DatabaseError("deadline exceeded"))

        result = await workflow.sign_contract(brand, contract_id, _signature("brand"))

        assert result.ok
        assert result.data.status == "fully_signed"
        assert _event_types(result) == ["ContractSigned", "ContractFullySigned"]
        assert (await deals.get(accepted["deal_id"])).status == "pending"

        del stores["deals"].compare_and_set
        fetched = await workflow.get_contract(athlete, contract_id)

        assert fetched.ok
        assert fetched.events == []
        assert (await deals.get(accepted["deal_id"])).status == "accepted"

    @pytest.mark.asyncio
    async def test_update_contract_by_deal_brand(self, workflow, athlete, brand, other_brand, accepted):
        contract_id = accepted["contract_id"]
        update = ContractUpdate(compensation_terms="Net 30", compensation_amount=5500)

        assert isinstance((await workflow.update_contract(athlete, contract_id, update)).error, ForbiddenError)
        assert isinstance((await workflow.update_contract(other_brand, contract_id, update)).error, ForbiddenError)

        result = await workflow.update_contract(brand, contract_id, update)

        assert result.ok
        assert result.data.compensation_amount == 5500
        assert result.data.compensation_terms == "Net 30"
        assert _event_types(result) == ["ContractUpdated"]
        assert result.events[0].payload["fields"] == ["compensation_amount", "compensation_terms"]
        assert "athlete-1" in result.events[0].recipients

    @pytest.mark.asyncio
    async def test_update_contract_after_signature(self, workflow, athlete, brand, accepted):
        contract_id = accepted["contract_id"]
        await workflow.send_contract(brand, contract_id)
        await workflow.sign_contract(athlete, contract_id, _signature("athlete"))

        result = await workflow.update_contract(brand, contract_id, ContractUpdate(compensation_amount=1))

        assert isinstance(result.error, InvalidTransitionError)

    @pytest.mark.asyncio
    async def test_list_my_contracts(self, workflow, athlete, brand, other_brand, admin, accepted):
        contract_id = accepted["contract_id"]

        athlete_contracts = await workflow.list_my_contracts(athlete)
        brand_drafts = await workflow.list_my_contracts(brand, ["draft"])
        brand_signed = await workflow.list_my_contracts(brand, ["fully_signed", "active"])

        assert [c.id for c in athlete_contracts.data] == [contract_id]
        assert [c.id for c in brand_drafts.data] == [contract_id]
        assert brand_signed.data == []
        assert (await workflow.list_my_contracts(other_brand)).data == []
        assert isinstance((await workflow.list_my_contracts(admin)).error, ForbiddenError)

    @pytest.mark.asyncio
    async def test_decline_voids_contract(self, workflow, athlete, brand, accepted):
        contract_id = accepted["contract_id"]
        await workflow.send_contract(brand, contract_id)

        result = await workflow.decline_contract(athlete, contract_id, "athlete", "Schedule conflict")

        assert result.ok
        assert result.data.status == "voided"
        assert result.data.void_reason == "Declined by athlete: Schedule conflict"
        assert _event_types(result) == ["ContractDeclined", "ContractVoided"]

        follow_up = await workflow.sign_contract(brand, contract_id, _signature("brand"))
        assert isinstance(follow_up.error, NotSignableError)

    @pytest.mark.asyncio
    async def test_decline_without_voiding(self, ledger, coordinator, contracts, profiles, seeded, athlete, brand):
        workflow = WorkflowFacade(ledger, coordinator, contracts, profiles, void_on_decline=False)
        application = (await workflow.submit_application(athlete, "opp-1")).data
        contract_id = (await workflow.accept_application(brand, application.id)).data["contract_id"]
        await workflow.send_contract(brand, contract_id)

        result = await workflow.decline_contract(brand, contract_id, "brand")

        assert result.data.status == "pending_signature"
        assert result.data.party("brand").signature_status == "declined"
        assert _event_types(result) == ["ContractDeclined"]

    @pytest.mark.asyncio
    async def test_cancel_by_either_owner(self, workflow, athlete, other_brand, accepted):
        contract_id = accepted["contract_id"]

        assert isinstance((await workflow.cancel_contract(other_brand, contract_id)).error, ForbiddenError)
        result = await workflow.cancel_contract(athlete, contract_id)
        assert result.data.status == "cancelled"
        assert result.events[0].payload["cancelled_by"] == "athlete-1"

    @pytest.mark.asyncio
    async def test_void_by_brand(self, workflow, athlete, brand, accepted):
        contract_id = accepted["contract_id"]

        assert isinstance((await workflow.void_contract(athlete, contract_id, "No")).error, ForbiddenError)
        result = await workflow.void_contract(brand, contract_id, "Wrong compensation")
        assert result.data.status == "voided"

    @pytest.mark.asyncio
    async def test_get_contract_visibility(self, workflow, athlete, other_brand, accepted):
        contract_id = accepted["contract_id"]

        assert (await workflow.get_contract(athlete, contract_id)).ok
        assert isinstance((await workflow.get_contract(other_brand, contract_id)).error, ForbiddenError)

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported_generically(self, workflow, seeded, athlete, stores):
        stores["applications"].get_by_id = AsyncMock(side_effect=DatabaseError("socket closed"))

        result = await workflow.submit_application(athlete, "opp-1")

        assert result.ok is False
        assert isinstance(result.error, StorageError)
        body = result.error.to_dict()
        assert body["code"] == "STORAGE_ERROR"
        assert "socket closed" not in body["message"]

    @pytest.mark.asyncio
    async def test_read_operations(self, workflow, seeded, athlete, brand):
        application = (await workflow.submit_application(athlete, "opp-1")).data

        mine = await workflow.list_my_applications(athlete)
        listed = await workflow.list_opportunity_applications(brand, "opp-1")
        status = await workflow.has_applied(athlete, "opp-1")
        fetched = await workflow.get_application(brand, application.id)

        assert [a.id for a in mine.data] == [application.id]
        assert [a.id for a in listed.data] == [application.id]
        assert status.data.applied is True
        assert fetched.data.id == application.id
        assert isinstance((await workflow.list_opportunity_applications(athlete, "opp-1")).error, ForbiddenError)
        assert isinstance((await workflow.get_application(BrandIdentity(id="brand-user-9"), application.id)).error,
                          ForbiddenError)
