import logging

from fastapi import FastAPI, HTTPException, Depends, status
from fastapi.responses import Response

from ..config import settings
from ..execution.exceptions import (
    InvalidTransitionError,
    RowLimitError,
    SessionClosedError,
    UnknownFieldError,
    UnknownGroupError,
)
from ..execution.schemas.state_machine import TransitionMeta
from ..repositories.flow import FlowNotFoundError
from ..services.exceptions import SessionNotFoundError
from ..services.execution import ExecutionService
from .dependencies import get_execution_service
from .schemas import (
    ConfirmationAnswer,
    FieldValue,
    RowCountResponse,
    SessionResponse,
    StartExecutionRequest,
    TransitionResponse,
)

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="Flow Execution Engine")


# --- Error mapping ---

DOMAIN_ERRORS = (
    SessionNotFoundError,
    FlowNotFoundError,
    UnknownGroupError,
    UnknownFieldError,
    InvalidTransitionError,
    SessionClosedError,
    RowLimitError,
    IndexError,
)


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, (SessionNotFoundError, FlowNotFoundError, UnknownGroupError, UnknownFieldError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransitionError, SessionClosedError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (RowLimitError, IndexError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _transition_response(service: ExecutionService, session_id: str, meta: TransitionMeta) -> TransitionResponse:
    try:
        view = service.view(session_id)
    except SessionNotFoundError:
        # Closed while the processor call was in flight; meta is a DISCARD.
        view = None
    return TransitionResponse(
        transition=meta.transition_type.name,
        from_step=meta.from_step,
        to_step=meta.to_step,
        revisited=meta.revisited,
        errors=meta.errors,
        view=view,
    )


# --- Endpoints ---

@app.post(
    "/executions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED
)
def start_execution(
    request: StartExecutionRequest,
    service: ExecutionService = Depends(get_execution_service)
):
    """Opens a new execution session for a button."""
    try:
        driver = service.start(request.button_id, request.user_id)
    except FlowNotFoundError as e:
        raise _to_http(e)
    return SessionResponse(
        session_id=driver.session_id,
        button_id=driver.flow.button_id,
        title=driver.flow.title or driver.flow.name,
        view=service.view(driver.session_id),
    )


@app.get("/executions/{session_id}", response_model=SessionResponse)
def get_execution(
    session_id: str,
    service: ExecutionService = Depends(get_execution_service)
):
    """Current view of a session."""
    try:
        driver = service.get(session_id)
    except SessionNotFoundError as e:
        raise _to_http(e)
    return SessionResponse(
        session_id=driver.session_id,
        button_id=driver.flow.button_id,
        title=driver.flow.title or driver.flow.name,
        view=service.view(session_id),
    )


@app.delete("/executions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def close_execution(
    session_id: str,
    service: ExecutionService = Depends(get_execution_service)
):
    """
    Closes a session. Returns 204 No Content on success.
    """
    if not service.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    # For 204, we must explicitly return a Response object with no content
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/executions/{session_id}/fields/{field_key}", response_model=FieldValue)
def set_field(
    session_id: str,
    field_key: str,
    body: FieldValue,
    service: ExecutionService = Depends(get_execution_service)
):
    try:
        stored = service.get(session_id).set_field_value(field_key, body.value)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return FieldValue(value=stored)


@app.put(
    "/executions/{session_id}/arrays/{array_field_name}/rows/{row_index}/{field_key}",
    response_model=FieldValue,
)
def set_row_field(
    session_id: str,
    array_field_name: str,
    row_index: int,
    field_key: str,
    body: FieldValue,
    service: ExecutionService = Depends(get_execution_service)
):
    try:
        stored = service.get(session_id).set_row_value(array_field_name, row_index, field_key, body.value)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return FieldValue(value=stored)


@app.post("/executions/{session_id}/groups/{group_id}/rows", response_model=RowCountResponse)
def add_row(
    session_id: str,
    group_id: str,
    service: ExecutionService = Depends(get_execution_service)
):
    try:
        count = service.get(session_id).add_row(group_id)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return RowCountResponse(row_count=count)


@app.delete("/executions/{session_id}/groups/{group_id}/rows/{row_index}", response_model=RowCountResponse)
def remove_row(
    session_id: str,
    group_id: str,
    row_index: int,
    service: ExecutionService = Depends(get_execution_service)
):
    try:
        count = service.get(session_id).remove_row(group_id, row_index)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return RowCountResponse(row_count=count)


@app.post("/executions/{session_id}/submit", response_model=TransitionResponse)
async def submit(
    session_id: str,
    service: ExecutionService = Depends(get_execution_service)
):
    """Validates and submits the current step (Execute / Continue)."""
    try:
        meta = await service.submit(session_id)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return _transition_response(service, session_id, meta)


@app.post("/executions/{session_id}/confirmation", response_model=TransitionResponse)
async def answer_confirmation(
    session_id: str,
    body: ConfirmationAnswer,
    service: ExecutionService = Depends(get_execution_service)
):
    try:
        meta = await service.answer_confirmation(session_id, body.answer)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return _transition_response(service, session_id, meta)


@app.post("/executions/{session_id}/back", response_model=TransitionResponse)
def back(
    session_id: str,
    service: ExecutionService = Depends(get_execution_service)
):
    try:
        meta = service.back(session_id)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return _transition_response(service, session_id, meta)


@app.post("/executions/{session_id}/reset", response_model=TransitionResponse)
def reset(
    session_id: str,
    service: ExecutionService = Depends(get_execution_service)
):
    """Reset / Restart: back to the first step with fresh defaults."""
    try:
        meta = service.reset(session_id)
    except DOMAIN_ERRORS as e:
        raise _to_http(e)
    return _transition_response(service, session_id, meta)
