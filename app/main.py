from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache, partial
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
import logging
from pydantic import BaseModel, ConfigDict, Field

from config.settings import Settings, get_settings
from patient.diagnostics import probe_models
from patient.errors import InvalidInput, InvalidPersona
from patient.pacing import DEFAULT_POLICY, PacingPolicy, event_stream
from patient.responder import ChatTurn, LLMFactory, Responder, build_llm, build_responder


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("therapysim")

app = FastAPI(title="TherapySim Patient Relay", version="1.0.0")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# CORS: allow local frontend during development
settings = get_settings()
if settings.app_env.lower() in {"dev", "development", "local"}:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(None, description="Therapist's latest message")
    patient_type: Optional[str] = Field(
        None, alias="patientType", description="Persona id, e.g. 'experienced' or 'new'"
    )
    chat_history: List[ChatTurn] = Field(
        default_factory=list,
        alias="chatHistory",
        description="Conversation so far, oldest first (frontend-managed)",
    )


@lru_cache(maxsize=1)
def get_responder() -> Responder:
    return build_responder(get_settings())


def get_pacing_policy() -> PacingPolicy:
    return DEFAULT_POLICY.scaled(get_settings().typing_delay_scale)


def get_probe_factory() -> Optional[LLMFactory]:
    settings = get_settings()
    if not settings.openrouter_api_key:
        return None
    return partial(build_llm, settings=settings, max_tokens=50, temperature=0.7)


@app.post("/api/chat")
async def chat(
    req: ChatRequest,
    responder: Responder = Depends(get_responder),
    policy: PacingPolicy = Depends(get_pacing_policy),
) -> StreamingResponse:
    logger.info(
        "Incoming chat: patient_type=%s history_turns=%s message_len=%s",
        req.patient_type,
        len(req.chat_history),
        len(req.message or ""),
    )
    if not req.message or not req.patient_type:
        raise HTTPException(status_code=400, detail="Message and patient type are required")

    try:
        reply = await responder.respond(req.patient_type, req.chat_history, req.message)
    except InvalidPersona:
        raise HTTPException(status_code=400, detail="Invalid patient type")
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Chat processing failed: %s", e)
        raise HTTPException(status_code=500, detail="Server error")

    logger.info("Streaming %s chars to %s", len(reply), req.patient_type)
    return StreamingResponse(
        event_stream(reply, policy),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/api/health")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "apiKey": "configured" if settings.openrouter_api_key else "missing",
    }


@app.get("/api/test")
async def connectivity_test(
    settings: Settings = Depends(get_settings),
    probe_factory: Optional[LLMFactory] = Depends(get_probe_factory),
) -> Dict[str, Any]:
    if probe_factory is None:
        return {"status": "No API key - using mock responses"}

    results = await probe_models(settings.models, probe_factory)
    return {
        "status": "API test complete",
        "results": results,
        "fallback": "Mock responses available",
    }


if __name__ == "__main__":
    import uvicorn

    logger.info("API key: %s", "configured" if settings.openrouter_api_key else "missing")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
