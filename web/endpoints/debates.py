"""Debate management and WebSocket endpoints."""

import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from debate_engine.enhanced import EnhancedRunStatus
from debate_engine.exceptions import DocumentNotFound, InsufficientContext
from debate_engine.types import SessionStatus
from web.debate_response import DebateResponse, EnhancedDebateResponse
from web.debate_setup_request import (
    DebateSetupRequest,
    EnhancedDebateRequest,
    QuestionGenerationRequest,
)
from web.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
ws_router = APIRouter()


def setup_session_manager() -> SessionManager:
    """Get the global session manager."""
    # Import here to avoid circular imports
    from web import api

    if api.session_manager is None:
        raise HTTPException(status_code=503, detail="Debate service is not ready")
    return api.session_manager


@router.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"isAlive": True}


@router.post("/questions")
async def generate_questions(request: QuestionGenerationRequest):
    """Propose debate questions for a document."""
    session_manager = setup_session_manager()
    try:
        questions = await session_manager.generate_questions(
            request.document_id, request.max_questions
        )
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientContext as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Question generation failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate questions: {e}")
    return {"document_id": request.document_id, "questions": questions}


@router.post("/debates", response_model=DebateResponse)
async def create_debate(setup: DebateSetupRequest):
    """Create and start a single-question debate."""
    session_manager = setup_session_manager()
    try:
        machine = await session_manager.create_debate(
            setup.document_id,
            setup.question,
            setup.num_debaters,
            setup.cross_examination_rounds,
        )
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientContext as e:
        raise HTTPException(status_code=422, detail=str(e))
    return DebateResponse.from_session(machine.snapshot())


@router.get("/debates")
async def list_debates(status: str | None = None, page: int = 1, limit: int = 20):
    """Paginated list of stored sessions."""
    session_manager = setup_session_manager()
    if session_manager.store is None:
        return {"debates": [], "page": page, "limit": limit}

    if page < 1:
        page = 1
    if limit < 1 or limit > 100:
        limit = 20
    try:
        status_filter = SessionStatus(status) if status else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")

    debates = session_manager.store.list_sessions(
        status=status_filter, limit=limit, offset=(page - 1) * limit
    )
    return {"debates": debates, "page": page, "limit": limit}


@router.get("/debates/{debate_id}", response_model=DebateResponse)
async def get_debate(debate_id: str):
    """Get the published state of a debate session."""
    session_manager = setup_session_manager()
    session = session_manager.get_session(debate_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Debate not found")
    return DebateResponse.from_session(session)


@router.post("/debates/{debate_id}/cancel")
async def cancel_debate(debate_id: str):
    """Cancel a running debate or enhanced run."""
    session_manager = setup_session_manager()
    if not await session_manager.cancel_debate(debate_id):
        raise HTTPException(status_code=404, detail="Debate not found")
    return {"status": "cancelled", "debate_id": debate_id}


@router.post("/enhanced-debates", response_model=EnhancedDebateResponse)
async def create_enhanced_debate(request: EnhancedDebateRequest):
    """Create and start a multi-question debate run."""
    session_manager = setup_session_manager()
    try:
        run = await session_manager.create_enhanced_debate(request.document_id, request.questions)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientContext as e:
        raise HTTPException(status_code=422, detail=str(e))
    return EnhancedDebateResponse.from_run(run)


@router.get("/enhanced-debates/{run_id}", response_model=EnhancedDebateResponse)
async def get_enhanced_debate(run_id: str):
    """Get the state of a multi-question run."""
    run = setup_session_manager().get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Enhanced debate not found")
    return EnhancedDebateResponse.from_run(run)


@router.get("/enhanced-debates/{run_id}/report.md", response_class=PlainTextResponse)
async def get_enhanced_report(run_id: str):
    """Consolidated markdown report of a completed run."""
    run = setup_session_manager().get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Enhanced debate not found")
    if run.status is not EnhancedRunStatus.COMPLETED or run.report is None:
        raise HTTPException(
            status_code=409, detail=f"Report not available while run is {run.status.value}"
        )
    return PlainTextResponse(run.report.markdown, media_type="text/markdown")


@ws_router.websocket("/ws/debates/{debate_id}")
async def websocket_endpoint(websocket: WebSocket, debate_id: str):
    """WebSocket endpoint for real-time progress events."""
    await websocket.accept()
    session_manager = setup_session_manager()

    try:
        status = session_manager.status_of(debate_id)
        await websocket.send_json(
            {"type": "connected", "debate_id": debate_id, "status": status}
        )
        # Replay what the client missed, then switch to live events
        await session_manager.replay(debate_id, websocket)

        # Keep connection alive
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        session_manager.remove_connection(debate_id, websocket)
