"""Minimal consumer for the /api/chat event stream.

Mirrors what the browser UI does: concatenate ``content`` fragments for the
live text and take ``fullResponse`` from the terminal chunk as the final reply.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Generator, Iterable, Iterator, List, Optional

import httpx

from patient.errors import StreamAborted


logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


def parse_events(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    for line in lines:
        if not line.startswith(DATA_PREFIX):
            continue
        try:
            payload = json.loads(line[len(DATA_PREFIX):])
        except json.JSONDecodeError:
            logger.warning("Skipping undecodable event: %r", line)
            continue
        if isinstance(payload, dict):
            yield payload


def follow_stream(lines: Iterable[str]) -> Generator[str, None, str]:
    """Yield the running text after each fragment; return the terminal full text."""
    running = ""
    for payload in parse_events(lines):
        if payload.get("done"):
            return payload.get("fullResponse") or ""
        content = payload.get("content")
        if content:
            running += content
            yield running
    raise StreamAborted("Stream closed before the terminal chunk")


class ChatClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ChatClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def health(self) -> Dict[str, Any]:
        response = self._client.get("/api/health")
        response.raise_for_status()
        return response.json()

    def send(
        self,
        message: str,
        patient_type: str,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> Generator[str, None, str]:
        payload = {
            "message": message,
            "patientType": patient_type,
            "chatHistory": history or [],
        }
        with self._client.stream("POST", "/api/chat", json=payload) as response:
            if response.status_code >= 400:
                response.read()
                response.raise_for_status()
            return (yield from follow_stream(response.iter_lines()))

    def ask(
        self,
        message: str,
        patient_type: str,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> str:
        stream = self.send(message, patient_type, history)
        while True:
            try:
                next(stream)
            except StopIteration as stop:
                return stop.value


def main() -> None:
    base_url = os.getenv("RELAY_URL", "http://localhost:3001")
    patient_type = os.getenv("PATIENT_TYPE", "experienced")
    history: List[Dict[str, str]] = []
    with ChatClient(base_url) as client:
        print(f"Talking to '{patient_type}' at {base_url}. Empty line quits.")
        while True:
            message = input("therapist> ").strip()
            if not message:
                break
            shown = 0
            stream = client.send(message, patient_type, history)
            try:
                while True:
                    text = next(stream)
                    print(text[shown:], end="", flush=True)
                    shown = len(text)
            except StopIteration as stop:
                reply = stop.value
            print()
            history.append({"sender": "therapist", "content": message})
            history.append({"sender": "patient", "content": reply})


if __name__ == "__main__":
    main()
