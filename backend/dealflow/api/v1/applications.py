"""
Applications API endpoints

Athletes apply to and withdraw from opportunities; the posting brand
reviews, accepts or rejects. Accepting converts the application into a
deal and drafts its contract.
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status

from ...models.application import ApplicationCreate, ApplicationReject
from ...models.contract import ContractOptions
from ...models.user import Identity
from ...services.notification_service import NotificationService
from ...services.workflow_facade import WorkflowFacade
from ..dependencies import get_current_user, get_notifier, get_workflow
from ..responses import workflow_response

router = APIRouter(prefix="/applications", tags=["applications"])
opportunity_router = APIRouter(prefix="/opportunities", tags=["applications"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_application(
    application: ApplicationCreate,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Apply to an opportunity, or resubmit a withdrawn application"""
    result = await workflow.submit_application(current_user, application.opportunity_id, application)
    return workflow_response(result, background_tasks, notifier, status.HTTP_201_CREATED)


@router.get("/mine")
async def list_my_applications(
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Applications submitted by the current athlete, newest first"""
    result = await workflow.list_my_applications(current_user)
    return workflow_response(result, background_tasks, notifier)


@router.get("/status")
async def application_status(
    background_tasks: BackgroundTasks,
    opportunity_id: str = Query(..., min_length=1),
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Whether the current athlete has applied to an opportunity"""
    result = await workflow.has_applied(current_user, opportunity_id)
    return workflow_response(result, background_tasks, notifier)


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.get_application(current_user, application_id)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{application_id}/withdraw")
async def withdraw_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    result = await workflow.withdraw_application(current_user, application_id)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{application_id}/review")
async def review_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Mark a pending application as under review"""
    result = await workflow.review_application(current_user, application_id)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{application_id}/accept")
async def accept_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    options: Optional[ContractOptions] = Body(default=None),
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Accept an application; returns the new deal id and the drafted contract id"""
    result = await workflow.accept_application(current_user, application_id, options)
    return workflow_response(result, background_tasks, notifier)


@router.post("/{application_id}/reject")
async def reject_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    rejection: Optional[ApplicationReject] = Body(default=None),
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    reason = rejection.reason if rejection else None
    result = await workflow.reject_application(current_user, application_id, reason)
    return workflow_response(result, background_tasks, notifier)


@opportunity_router.get("/{opportunity_id}/applications")
async def list_opportunity_applications(
    opportunity_id: str,
    background_tasks: BackgroundTasks,
    current_user: Identity = Depends(get_current_user),
    workflow: WorkflowFacade = Depends(get_workflow),
    notifier: NotificationService = Depends(get_notifier)
):
    """Non-withdrawn applications for one of the brand's opportunities"""
    result = await workflow.list_opportunity_applications(current_user, opportunity_id)
    return workflow_response(result, background_tasks, notifier)
