from __future__ import annotations


class RelayError(Exception):
    """Base class for errors raised by the patient relay."""


class InvalidInput(RelayError):
    """The caller sent a malformed request or left a required field empty."""


class InvalidPersona(RelayError):
    def __init__(self, persona_id: str) -> None:
        super().__init__(f"Unknown patient type: {persona_id!r}")
        self.persona_id = persona_id


class UpstreamUnavailable(RelayError):
    """A single upstream model produced no usable text.

    Raised per candidate and always absorbed by the fallback chain.
    """

    def __init__(self, model: str, reason: str) -> None:
        super().__init__(f"{model}: {reason}")
        self.model = model
        self.reason = reason


class StreamAborted(RelayError):
    """The receiving side of a paced stream went away before the terminal chunk."""
