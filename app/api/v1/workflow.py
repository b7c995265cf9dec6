from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from app.conversation.manager import ConversationStateError
from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.schemas.workflow import ExportRequest, PaymentConfirmRequest, SignInRequest, WorkflowCreatedResponse
from app.services.resume_files import UploadRejected
from app.services.workflow_registry import UnknownWorkflowSession, WorkflowRegistry, get_registry
from app.workflow.controller import ResumeWorkflowController
from app.workflow.errors import InvalidStepTransition, WorkflowBusy, WorkflowConfigurationError, WorkflowError
from app.workflow.steps import presentation_for

router = APIRouter()


def raise_workflow_http_error(exc: Exception) -> None:
    if isinstance(exc, UploadRejected):
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    if isinstance(exc, (InvalidStepTransition, WorkflowBusy, ConversationStateError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, WorkflowConfigurationError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message) from exc
    if isinstance(exc, WorkflowError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    raise exc


def get_controller(session_id: str, registry: WorkflowRegistry = Depends(get_registry)) -> ResumeWorkflowController:
    try:
        return registry.get(session_id)
    except UnknownWorkflowSession as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow session not found.") from exc


def workflow_payload(controller: ResumeWorkflowController) -> dict[str, Any]:
    data = controller.snapshot()
    data["notifications"] = [
        {"title": n.title, "description": n.description, "variant": n.variant}
        for n in controller.notifications.drain()
    ]
    return data


@router.post("/workflow", response_model=WorkflowCreatedResponse, status_code=status.HTTP_201_CREATED)
@rate_limit()
async def create_workflow(request: Request, registry: WorkflowRegistry = Depends(get_registry)):
    _ = request
    session_id, controller = registry.create()
    presentation = presentation_for(controller.state.step)
    return WorkflowCreatedResponse(
        session_id=session_id,
        step=controller.state.step.value,
        title=presentation.title,
        icon=presentation.icon,
    )


@router.get("/workflow/{session_id}")
async def get_workflow(controller: ResumeWorkflowController = Depends(get_controller)):
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/upload")
@rate_limit()
async def upload_resume(
    request: Request,
    file: UploadFile = File(...),
    controller: ResumeWorkflowController = Depends(get_controller),
):
    _ = request
    limit = settings.upload_max_bytes
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(1024 * 64)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large. Maximum allowed size is {limit // (1024 * 1024)} MB.",
            )
        chunks.append(chunk)

    try:
        await controller.upload(file.filename, file.content_type, b"".join(chunks))
    except (UploadRejected, WorkflowError) as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/sign-in")
@rate_limit()
async def sign_in(
    request: Request,
    payload: SignInRequest,
    controller: ResumeWorkflowController = Depends(get_controller),
):
    _ = request
    try:
        await controller.sign_in(payload.credential)
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/parse/retry")
@rate_limit()
async def retry_parse(request: Request, controller: ResumeWorkflowController = Depends(get_controller)):
    _ = request
    try:
        await controller.retry_parse()
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/score/retry")
@rate_limit()
async def retry_score(request: Request, controller: ResumeWorkflowController = Depends(get_controller)):
    _ = request
    try:
        await controller.retry_score()
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/payment/confirm")
@rate_limit()
async def confirm_payment(
    request: Request,
    payload: PaymentConfirmRequest,
    controller: ResumeWorkflowController = Depends(get_controller),
):
    _ = request
    try:
        await controller.confirm_payment(payload.payment_intent_id)
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/rewrite/retry")
@rate_limit()
async def retry_rewrite(request: Request, controller: ResumeWorkflowController = Depends(get_controller)):
    _ = request
    try:
        await controller.retry_rewrite()
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/start-over")
async def start_over(controller: ResumeWorkflowController = Depends(get_controller)):
    try:
        await controller.start_over()
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/export")
async def export_resume(payload: ExportRequest, controller: ResumeWorkflowController = Depends(get_controller)):
    try:
        exported = controller.export_resume(payload.format, payload.edited_text)
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.delete("/workflow/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(session_id: str, registry: WorkflowRegistry = Depends(get_registry)):
    if not await registry.remove(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow session not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
