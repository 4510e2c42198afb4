from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage

from patient.responder import LLMFactory, message_text


logger = logging.getLogger(__name__)

PROBE_MESSAGES = [
    SystemMessage(content="You are a helpful assistant. Always respond with actual content."),
    HumanMessage(content="Say hello and tell me you're working. Be brief."),
]


def openai_usage(reply: Any) -> Optional[Dict[str, int]]:
    """Token counts in the chat-completions ``usage`` shape."""
    metadata = getattr(reply, "usage_metadata", None)
    if not metadata:
        return None
    return {
        "prompt_tokens": metadata.get("input_tokens", 0),
        "completion_tokens": metadata.get("output_tokens", 0),
        "total_tokens": metadata.get("total_tokens", 0),
    }


async def probe_models(models: Sequence[str], llm_factory: LLMFactory) -> List[Dict[str, Any]]:
    """Ask every candidate model a trivial question and report what happened."""
    results: List[Dict[str, Any]] = []
    for model in models:
        logger.info("Probing %s", model)
        try:
            reply = await llm_factory(model).ainvoke(PROBE_MESSAGES)
        except Exception as exc:
            logger.warning("Probe of %s failed: %s", model, exc)
            results.append({"model": model, "status": "failed", "error": str(exc)})
            continue

        text = message_text(reply)
        results.append(
            {
                "model": model,
                "status": "working" if text else "empty response",
                "response": text,
                "usage": openai_usage(reply),
            }
        )
    return results
