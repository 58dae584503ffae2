"""Common interface for the generation backends.

A backend takes a rendered prompt pair and returns raw model text. Two
implementations exist:
- RemoteBackend: hosted chat-completion API through litellm, key-authenticated
- LocalBackend: Ollama-compatible inference server over HTTP

Credentials travel in an explicit BackendSession passed to the constructor.
Nothing is stored process-wide, so two sessions never see each other's keys.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from vsme_assistant.core.errors import BackendError, MalformedResponseError, NotConnectedError


class BackendKind(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BackendSession:
    """Explicit connection context for one backend instance.

    Attributes:
        kind: Which backend to build.
        model: Model identifier (remote model name, or local display name).
        api_key: Remote API key. Never logged.
        base_url: Local server URL, or an override for the remote endpoint.
    """

    kind: BackendKind
    model: str
    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None


@dataclass
class GenerationResult:
    """Outcome of one generate() call.

    Attributes:
        success: True if the backend returned text.
        response: Raw model text ("" on failure).
        error: Typed backend error on failure.
        usage: Token counts as {"prompt_tokens", "completion_tokens"}.
    """

    success: bool
    response: str = ""
    error: BackendError | None = None
    usage: dict[str, int] = field(default_factory=dict)

    def raise_for_error(self) -> str:
        """Return the response text, or raise the recorded error."""
        if not self.success:
            raise self.error or BackendError()
        return self.response


@dataclass
class StructuredResult:
    """Outcome of one generate_structured() call."""

    success: bool
    data: Any = None
    error: Exception | None = None


_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL | re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


class GenerationBackend(ABC):
    """Interchangeable executor of extraction prompts.

    Usage:
        backend = create_backend(session)
        await backend.connect()
        result = await backend.generate(user_prompt, system_prompt=system_prompt)
        text = result.raise_for_error()
    """

    kind: BackendKind

    def __init__(self, session: BackendSession) -> None:
        self.session = session
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def model_id(self) -> str:
        """Model identifier used for cost tracking."""
        return self.session.model

    @property
    @abstractmethod
    def context_chars(self) -> int:
        """Document character budget the prompt builder may spend."""

    @property
    def numeric_confidence(self) -> bool:
        """True if the backend is asked for 0.0-1.0 confidence scores."""
        return False

    @abstractmethod
    async def connect(self) -> None:
        """Establish the backend. Raises a BackendError subclass on failure."""

    async def disconnect(self) -> None:
        self._connected = False

    async def generate(self, prompt: str, system_prompt: str | None = None) -> GenerationResult:
        """Run one prompt. Fails fast without a network call when not connected."""
        if not self._connected:
            return GenerationResult(success=False, error=NotConnectedError())
        try:
            text, usage = await self._generate(prompt, system_prompt)
        except BackendError as e:
            return GenerationResult(success=False, error=e)
        return GenerationResult(success=True, response=text, usage=usage)

    async def generate_structured(
        self, prompt: str, system_prompt: str | None = None
    ) -> StructuredResult:
        """Run one prompt and decode its JSON answer (code fences stripped)."""
        result = await self.generate(prompt, system_prompt)
        if not result.success:
            return StructuredResult(success=False, error=result.error)
        try:
            data = json.loads(strip_code_fences(result.response))
        except json.JSONDecodeError:
            return StructuredResult(
                success=False,
                error=MalformedResponseError(
                    "Failed to parse structured response. The model may not have returned valid JSON.",
                    raw_response=result.response,
                ),
            )
        return StructuredResult(success=True, data=data)

    @abstractmethod
    async def _generate(
        self, prompt: str, system_prompt: str | None
    ) -> tuple[str, dict[str, int]]:
        """Backend-specific call. Returns (text, usage) or raises BackendError."""
