import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.v1.schemas import (
    AssistantRequest,
    AssistantResponse,
    IntentRequest,
    IntentResponse,
    SuggestedSessionContext,
)
from app.settings import settings
from engine.llm.models import ModelManager
from engine.nodes.intent_extraction import extract_intent
from engine.orchestrator import AssistantPipeline, build_default_pipeline
from engine.states.assistant_states import Query

router = APIRouter(prefix="/assistant", tags=["assistant"])
logger = logging.getLogger(__name__)

_pipeline: Optional[AssistantPipeline] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_pipeline() -> AssistantPipeline:
    """Process-wide pipeline, built on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_default_pipeline()
    return _pipeline


async def close_pipeline() -> None:
    global _pipeline
    if _pipeline is not None:
        await _pipeline.aclose()
        _pipeline = None


def _intent_model():
    return ModelManager.get_chat_model() if settings.INTENT_LLM_ENABLED else None


async def prepare_query(request: AssistantRequest) -> Query:
    """Build the first-pass Query, extracting from text what the caller left out."""
    query = request.to_query()
    if request.text and (request.intent is None or request.drug_name is None):
        extracted = await extract_intent(request.text, _intent_model())
        query = query.model_copy(
            update={
                "intent": request.intent or extracted.intent,
                "drug_name": request.drug_name or extracted.drug_name,
                "needs": query.needs or extracted.needs,
                "sources": frozenset(request.sources) or extracted.sources,
            }
        )
    return query


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/intent", response_model=IntentResponse)
async def classify_intent(request: IntentRequest) -> IntentResponse:
    """Extract intent, drug name, needs and sources from a free-text question."""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")
    query = await extract_intent(request.text.strip(), _intent_model())
    logger.info("Extracted intent=%s drug=%s", query.intent.value, query.drug_name)
    return IntentResponse.from_query(query)


@router.post("/respond", response_model=AssistantResponse)
async def respond(
    request: AssistantRequest,
    pipeline: AssistantPipeline = Depends(get_pipeline),
) -> AssistantResponse:
    """Answer a staff question. Refusals and clarifications are normal 200 answers."""
    try:
        query = await prepare_query(request)
        logger.info(
            "Assistant query intent=%s drug=%s",
            query.intent.value,
            query.drug_name,
        )
        envelope = await pipeline.run(query, request.session())
    except Exception as exc:
        logger.error("Error composing assistant response: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to compose response") from exc

    suggestion = envelope.suggested_session_context
    return AssistantResponse(
        response=envelope.text,
        sources=envelope.sources,
        suggested_session_context=(
            SuggestedSessionContext.from_suggestion(suggestion) if suggestion else None
        ),
    )
