"""Multi-agent chat API route."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from flowsmith.api.dependencies import get_chat_pipeline
from flowsmith.core.exceptions import ChatProcessingError
from flowsmith.prompts.agent_prompts import APOLOGY_MESSAGE
from flowsmith.schemas.chat import ChatErrorResponse, ChatRequest, ChatResponse
from flowsmith.services.chat_pipeline import ChatPipeline

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, pipeline: ChatPipeline = Depends(get_chat_pipeline)):
    """Route a message to the right agent and run any workflow creation or deployment it implies."""
    logger.info(
        "Processing chat request: user=%s agent=%s length=%d has_session=%s",
        payload.user_id,
        payload.agent_type.value if payload.agent_type else "auto",
        len(payload.message),
        bool(payload.session_id),
    )

    try:
        session_id = pipeline.store.get_or_create_session(payload.user_id, payload.session_id)
    except Exception as exc:
        logger.exception("Could not open chat session for user %s", payload.user_id)
        return JSONResponse(
            status_code=500,
            content=ChatErrorResponse(error=f"Internal server error: {exc}", response=APOLOGY_MESSAGE).model_dump(
                mode="json"
            ),
        )

    try:
        return await pipeline.process(session_id, payload.user_id, payload.message, payload.agent_type)
    except ChatProcessingError as exc:
        return JSONResponse(
            status_code=500,
            content=ChatErrorResponse(
                error="Internal server error",
                response=exc.response_text,
                message_id=exc.message_id or "error",
                session_id=exc.session_id,
            ).model_dump(mode="json"),
        )
