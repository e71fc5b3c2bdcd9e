from fastapi import BackgroundTasks, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..services.notification_service import NotificationService
from ..services.workflow_facade import WorkflowResult
from .exceptions import service_error_response


def workflow_response(result: WorkflowResult, background_tasks: BackgroundTasks,
                      notifier: NotificationService, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Render a facade result as `{data, error}` and schedule its notifications"""
    if not result.ok:
        return service_error_response(result.error)

    if result.events:
        background_tasks.add_task(notifier.dispatch_events, result.events)
    return JSONResponse(status_code=success_status, content={"data": jsonable_encoder(result.data), "error": None})


def data_response(data, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=success_status, content={"data": jsonable_encoder(data), "error": None})
