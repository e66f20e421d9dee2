# docsign/fields/router.py

"""
FastAPI router for recipient field mutations.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from docsign.audit_trail.schemas import RequestMetadata
from docsign.audit_trail.services import get_request_metadata
from docsign.core.db import get_session_factory
from docsign.fields.exceptions import FieldMutationException, UnauthorizedException, as_http_exception
from docsign.fields.schemas import FieldResponse, SignFieldRequest
from docsign.fields.services import FieldMutationService
from docsign.notifications.services import notification_service
from docsign.notifications.sinks import EventSink, get_event_sink
from docsign.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sign",
    tags=["Signing"],
    responses={404: {"description": "Not found"}},
)


@router.post("/{token}/fields/{field_id}", response_model=FieldResponse)
async def sign_field(
    token: str,
    field_id: int,
    request: SignFieldRequest,
    background_tasks: BackgroundTasks,
    request_metadata: RequestMetadata = Depends(get_request_metadata),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    sink: EventSink = Depends(get_event_sink),
    field_service: FieldMutationService = Depends(),
):
    """
    Insert a value into one of the recipient's fields
    """
    try:
        field = await field_service.insert_field(
            field_id, token, request.value,
            kind=request.kind, request_metadata=request_metadata,
        )
    except (FieldMutationException, UnauthorizedException) as e:
        raise as_http_exception(e) from e

    background_tasks.add_task(notification_service.dispatch_pending, session_factory, sink)
    return FieldResponse.model_validate(field)


@router.delete("/{token}/fields/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_field(
    token: str,
    field_id: int,
    background_tasks: BackgroundTasks,
    request_metadata: RequestMetadata = Depends(get_request_metadata),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    sink: EventSink = Depends(get_event_sink),
    field_service: FieldMutationService = Depends(),
):
    """
    Clear the value of one of the recipient's fields
    """
    try:
        await field_service.remove_field(field_id, token, request_metadata=request_metadata)
    except (FieldMutationException, UnauthorizedException) as e:
        raise as_http_exception(e) from e

    background_tasks.add_task(notification_service.dispatch_pending, session_factory, sink)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
