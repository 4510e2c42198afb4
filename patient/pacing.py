"""Word-by-word "typing" playback of a finished reply.

``pace`` decides what to send and how long to wait, without touching a
clock. ``paced_chunks`` applies the waits, ``stream`` pushes into a sink and
``event_stream`` renders Server-Sent Events for the HTTP response.

Whitespace runs in the reply collapse to single spaces in the fragments; the
terminal chunk always carries the reply verbatim.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import AsyncIterator, Awaitable, Callable, Iterator, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from patient.errors import StreamAborted


logger = logging.getLogger(__name__)

SENTENCE_END = (".", "!", "?")
CLAUSE_END = (",", ";", ":")


class TextFragment(BaseModel):
    content: str


class Terminal(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    done: Literal[True] = True
    full_text: str = Field(..., alias="fullResponse")


StreamChunk = Union[TextFragment, Terminal]
Sleep = Callable[[float], Awaitable[None]]
Sink = Callable[[StreamChunk], Awaitable[None]]


@dataclass(frozen=True)
class PacingPolicy:
    between_words: float = 0.03
    sentence_pause: float = 0.4
    clause_pause: float = 0.2
    final_pause: float = 0.1
    word_pause: float = 0.08
    jitter: float = 0.04

    def scaled(self, factor: float) -> "PacingPolicy":
        factor = max(factor, 0.0)
        return replace(
            self,
            between_words=self.between_words * factor,
            sentence_pause=self.sentence_pause * factor,
            clause_pause=self.clause_pause * factor,
            final_pause=self.final_pause * factor,
            word_pause=self.word_pause * factor,
            jitter=self.jitter * factor,
        )

    def after_word(self, word: str, is_last: bool, rng: random.Random) -> float:
        if word.endswith(SENTENCE_END):
            return self.sentence_pause
        if word.endswith(CLAUSE_END):
            return self.clause_pause
        if is_last:
            return self.final_pause
        return self.word_pause + rng.random() * self.jitter


DEFAULT_POLICY = PacingPolicy()


def pace(
    text: str,
    policy: PacingPolicy = DEFAULT_POLICY,
    rng: Optional[random.Random] = None,
) -> Iterator[Tuple[StreamChunk, float]]:
    """Yield ``(chunk, delay)`` pairs; ``delay`` is the wait after sending ``chunk``."""
    rng = rng or random.Random()
    words = (text or "").split()
    for i, word in enumerate(words):
        if i > 0:
            yield TextFragment(content=" "), policy.between_words
        is_last = i == len(words) - 1
        yield TextFragment(content=word), policy.after_word(word, is_last, rng)
    yield Terminal(full_text=text or ""), 0.0


async def paced_chunks(
    text: str,
    policy: PacingPolicy = DEFAULT_POLICY,
    sleep: Sleep = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> AsyncIterator[StreamChunk]:
    for chunk, delay in pace(text, policy, rng):
        yield chunk
        if delay > 0:
            await sleep(delay)


def encode_event(chunk: StreamChunk) -> str:
    return f"data: {chunk.model_dump_json(by_alias=True)}\n\n"


async def stream(
    text: str,
    sink: Sink,
    policy: PacingPolicy = DEFAULT_POLICY,
    sleep: Sleep = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> bool:
    """Play ``text`` into ``sink``. Returns False if the sink went away first."""
    try:
        async for chunk in paced_chunks(text, policy, sleep, rng):
            await sink(chunk)
    except (StreamAborted, OSError) as exc:
        logger.info("Stream aborted by receiver: %s", exc)
        return False
    except asyncio.CancelledError:
        logger.info("Stream cancelled before completion")
        raise
    return True


async def event_stream(
    text: str,
    policy: PacingPolicy = DEFAULT_POLICY,
    sleep: Sleep = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> AsyncIterator[str]:
    completed = False
    try:
        async for chunk in paced_chunks(text, policy, sleep, rng):
            yield encode_event(chunk)
        completed = True
    finally:
        if not completed:
            logger.info("Client disconnected mid-stream")
