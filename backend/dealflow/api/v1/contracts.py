"""
Contracts API endpoints

Drafting, sending, signing and terminating the contract attached to a deal.
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status

from ...models.contract import (
    ContractDraftCreate,
    ContractStatus,
    ContractTemplate,
    ContractUpdate,
    DeclineContractRequest,
    SignContractRequest,
    VoidContractRequest,
)
from ...models.user import Identity
from ...services.contract_templates import default_clauses
from ...services.notification_service import NotificationService
from ...services.workflow_facade import WorkflowFacade
from ..dependencies import get_current_user, get_notifier, get_workflow
from ..responses import data_response, workflow_response

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contract(
    draft: ContractDraftCreate,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Draft a contract for a deal; replaces any live contract of that deal"""
    result = await workflow.create_contract(current_user, draft)
    return workflow_response(result, background_tasks, notifier, status.HTTP_201_CREATED)


@router.get("")
async def list_deal_contracts(
    background_tasks: BackgroundTasks,
    deal_id: str = Query(..., min_length=1),
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.list_deal_contracts(current_user, deal_id)
    return workflow_response(result, background_tasks, notifier)


@router.get("/mine")
async def list_my_contracts(
    background_tasks: BackgroundTasks,
    statuses: Optional[List[ContractStatus]] = Query(None, alias="status"),
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Contracts where the caller is the athlete or the brand, optionally filtered by status"""
    result = await workflow.list_my_contracts(current_user, statuses)
    return workflow_response(result, background_tasks, notifier)


@router.get("/templates/{template_type}/clauses")
async def template_clauses(
    template_type: ContractTemplate,
    current_user: Identity = Depends(get_current_user)
):
    """Standard clause set for a template"""
    return data_response(default_clauses(template_type))


@router.get("/{contract_id}")
async def get_contract(
    contract_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.get_contract(current_user, contract_id)
    return workflow_response(result, background_tasks, notifier)


@router.patch("/{contract_id}")
async def update_contract(
    contract_id: str,
    update: ContractUpdate,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Edit terms while the contract is a draft or awaiting its first signature"""
    result = await workflow.update_contract(current_user, contract_id, update)
    return workflow_response(result, background_tasks, notifier)


@router.get("/{contract_id}/status")
async def contract_status(
    contract_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Signature summary: who signed, whether signing is still possible"""
    result = await workflow.contract_status(current_user, contract_id)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{contract_id}/send")
async def send_contract(
    contract_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.send_contract(current_user, contract_id)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{contract_id}/sign")
async def sign_contract(
    contract_id: str,
    signature: SignContractRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    if signature.ip_address is None and request.client is not None:
        signature = signature.model_copy(update={"ip_address": request.client.host})
    result = await workflow.sign_contract(current_user, contract_id, signature)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{contract_id}/decline")
async def decline_contract(
    contract_id: str,
    decline: DeclineContractRequest,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.decline_contract(current_user, contract_id, decline.party_type, decline.reason)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{contract_id}/void")
async def void_contract(
    contract_id: str,
    void: VoidContractRequest,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.void_contract(current_user, contract_id, void.reason)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{contract_id}/cancel")
async def cancel_contract(
    contract_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.cancel_contract(current_user, contract_id)
    return workflow_response(result, background_tasks, notifier)
