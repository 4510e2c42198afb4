"""Per-persona cursors over the canned fallback lines.

This is the only state shared between requests. One instance lives on the
responder; tests build their own.
"""

from __future__ import annotations

import threading
from typing import Dict

from patient.core.personas import PersonaConfig


class FallbackRotation:
    def __init__(self) -> None:
        self._cursors: Dict[str, int] = {}
        self._lock = threading.Lock()

    def position(self, persona_id: str) -> int:
        with self._lock:
            return self._cursors.get(persona_id, 0)

    def next_line(self, persona: PersonaConfig) -> str:
        pool = persona.fallback_pool
        with self._lock:
            cursor = self._cursors.get(persona.id, 0)
            self._cursors[persona.id] = (cursor + 1) % len(pool)
        return pool[cursor % len(pool)]

    def reset(self) -> None:
        with self._lock:
            self._cursors.clear()
