from fastapi import APIRouter, Depends, Request

from app.api.v1.workflow import get_controller, raise_workflow_http_error, workflow_payload
from app.conversation.manager import ConversationSessionManager, ConversationStateError
from app.core.rate_limit import rate_limit
from app.schemas.workflow import InterviewContinueRequest, InterviewMessageRequest, InterviewStartRequest
from app.workflow.controller import ResumeWorkflowController
from app.workflow.errors import WorkflowError

router = APIRouter()


def _session(controller: ResumeWorkflowController, voice: bool = True) -> ConversationSessionManager:
    try:
        return controller.interview_session(voice=voice)
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
        raise


@router.get("/workflow/{session_id}/interview")
async def get_interview(controller: ResumeWorkflowController = Depends(get_controller)):
    manager = _session(controller, voice=False)
    manager.check_inactivity()
    return manager.snapshot()


@router.post("/workflow/{session_id}/interview/start")
@rate_limit()
async def start_interview(
    request: Request,
    payload: InterviewStartRequest,
    controller: ResumeWorkflowController = Depends(get_controller),
):
    _ = request
    manager = _session(controller)
    if payload.microphone_granted is not None:
        manager.microphone.report(payload.microphone_granted)
    try:
        await manager.start()
    except ConversationStateError as exc:
        raise_workflow_http_error(exc)
    return manager.snapshot()


@router.post("/workflow/{session_id}/interview/resume")
@rate_limit()
async def resume_interview(
    request: Request,
    payload: InterviewStartRequest,
    controller: ResumeWorkflowController = Depends(get_controller),
):
    _ = request
    manager = _session(controller)
    if payload.microphone_granted is not None:
        manager.microphone.report(payload.microphone_granted)
    try:
        await manager.resume()
    except ConversationStateError as exc:
        raise_workflow_http_error(exc)
    return manager.snapshot()


@router.post("/workflow/{session_id}/interview/pause")
async def pause_interview(controller: ResumeWorkflowController = Depends(get_controller)):
    manager = _session(controller, voice=False)
    await manager.pause()
    return manager.snapshot()


@router.post("/workflow/{session_id}/interview/message")
@rate_limit()
async def send_interview_message(
    request: Request,
    payload: InterviewMessageRequest,
    controller: ResumeWorkflowController = Depends(get_controller),
):
    _ = request
    manager = _session(controller, voice=False)
    try:
        await manager.send_text(payload.text)
    except ConversationStateError as exc:
        raise_workflow_http_error(exc)
    return manager.snapshot()


@router.post("/workflow/{session_id}/interview/text/start")
@rate_limit()
async def start_text_interview(request: Request, controller: ResumeWorkflowController = Depends(get_controller)):
    _ = request
    manager = _session(controller, voice=False)
    try:
        await manager.open_text_interview()
    except ConversationStateError as exc:
        raise_workflow_http_error(exc)
    return manager.snapshot()


@router.post("/workflow/{session_id}/interview/continue")
async def answer_inactivity_prompt(
    payload: InterviewContinueRequest,
    controller: ResumeWorkflowController = Depends(get_controller),
):
    manager = _session(controller, voice=False)
    await manager.resolve_inactivity_prompt(finish=payload.finish)
    return workflow_payload(controller)


@router.post("/workflow/{session_id}/interview/finish")
@rate_limit()
async def finish_interview(request: Request, controller: ResumeWorkflowController = Depends(get_controller)):
    _ = request
    try:
        await controller.finish_interview()
    except WorkflowError as exc:
        raise_workflow_http_error(exc)
    return workflow_payload(controller)
