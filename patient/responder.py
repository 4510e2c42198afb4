from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from config.settings import Settings, get_settings
from patient.core.personas import PERSONAS, PersonaConfig, get_persona
from patient.core.rotation import FallbackRotation
from patient.errors import InvalidInput, UpstreamUnavailable


logger = logging.getLogger(__name__)

THERAPIST = "therapist"

Attempt = Tuple[str, Callable[[], Awaitable[str]]]
LLMFactory = Callable[[str], Any]


class ChatTurn(BaseModel):
    sender: Optional[str] = Field("", description="'therapist' or 'patient'")
    content: Optional[str] = ""


def build_llm(
    model: str,
    settings: Optional[Settings] = None,
    *,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
) -> ChatOpenAI:
    settings = settings or get_settings()
    if not settings.openrouter_api_key:
        raise RuntimeError(
            "OPENROUTER_API_KEY not set. Please configure it in environment or .env"
        )

    return ChatOpenAI(
        model=model,
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        max_tokens=max_tokens if max_tokens is not None else settings.max_tokens,
        temperature=temperature if temperature is not None else settings.temperature,
        timeout=settings.upstream_timeout,
        # One shot per model; the candidate list is the retry policy.
        max_retries=0,
        default_headers={
            "HTTP-Referer": settings.app_referer,
            "X-Title": settings.app_title,
        },
    )


def to_lc_messages(history: Sequence[ChatTurn], window: int) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    recent = list(history or [])[-window:] if window > 0 else []
    for turn in recent:
        if not turn.content:
            continue
        if (turn.sender or "").lower() == THERAPIST:
            messages.append(HumanMessage(content=turn.content))
        else:
            messages.append(AIMessage(content=turn.content))
    return messages


def build_prompt(
    persona: PersonaConfig,
    history: Sequence[ChatTurn],
    new_message: str,
    window: int,
) -> List[BaseMessage]:
    return [
        SystemMessage(content=persona.instructions),
        *to_lc_messages(history, window),
        HumanMessage(content=new_message),
    ]


def message_text(message: Any) -> str:
    """Plain text of a chat model reply, tolerating content-block lists."""
    content = getattr(message, "content", message)
    if content is None:
        return ""
    if isinstance(content, str):
        return content.strip()
    parts: List[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text") or "")
    return "".join(parts).strip()


async def first_success(candidates: Iterable[Attempt]) -> Optional[Tuple[str, str]]:
    """Run candidates in order and return ``(name, text)`` for the first non-empty reply.

    Every failure, including an empty reply, moves straight on to the next
    candidate. Returns ``None`` when the list is exhausted.
    """
    for name, attempt in candidates:
        try:
            text = (await attempt() or "").strip()
            if not text:
                raise UpstreamUnavailable(name, "empty response")
        except Exception as exc:
            logger.warning("Model %s failed: %s", name, exc)
            continue
        logger.info("Model %s answered with %s chars", name, len(text))
        return name, text
    return None


class Responder:
    """Produces one finished patient reply per therapist message."""

    def __init__(
        self,
        models: Sequence[str],
        llm_factory: Optional[LLMFactory],
        rotation: Optional[FallbackRotation] = None,
        personas: Optional[Dict[str, PersonaConfig]] = None,
        history_window: int = 4,
        attempt_timeout: Optional[float] = None,
    ) -> None:
        self.models = tuple(models)
        self.llm_factory = llm_factory
        self.rotation = rotation or FallbackRotation()
        self.personas = personas if personas is not None else PERSONAS
        self.history_window = history_window
        self.attempt_timeout = attempt_timeout

    @property
    def upstream_enabled(self) -> bool:
        return self.llm_factory is not None and bool(self.models)

    async def respond(
        self,
        persona_id: str,
        history: Sequence[ChatTurn],
        new_message: str,
    ) -> str:
        persona = get_persona(persona_id, self.personas)
        if not new_message:
            raise InvalidInput("Message is required")

        if self.upstream_enabled:
            messages = build_prompt(persona, history, new_message, self.history_window)
            result = await first_success(self._candidates(messages))
            if result is not None:
                return result[1]
            logger.warning("All models failed for %s, using a canned line", persona.name)

        line = self.rotation.next_line(persona)
        logger.info("Canned reply for %s: %r", persona.name, line)
        return line

    def _candidates(self, messages: List[BaseMessage]) -> Iterator[Attempt]:
        for model in self.models:
            yield model, partial(self._ask, model, messages)

    async def _ask(self, model: str, messages: List[BaseMessage]) -> str:
        logger.info("Trying model %s with %s messages", model, len(messages))
        llm = self.llm_factory(model)
        call = llm.ainvoke(messages)
        if self.attempt_timeout:
            reply = await asyncio.wait_for(call, timeout=self.attempt_timeout)
        else:
            reply = await call
        return message_text(reply)


def build_responder(settings: Optional[Settings] = None) -> Responder:
    settings = settings or get_settings()
    llm_factory: Optional[LLMFactory] = None
    if settings.openrouter_api_key:
        llm_factory = partial(build_llm, settings=settings)
    else:
        logger.warning("OPENROUTER_API_KEY not found; using canned patient lines only")

    return Responder(
        models=settings.models,
        llm_factory=llm_factory,
        history_window=settings.history_window,
        attempt_timeout=settings.upstream_timeout,
    )
