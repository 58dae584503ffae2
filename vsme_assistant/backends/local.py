"""Local backend: Ollama-compatible inference server over HTTP.

Runs on the user's machine, so it is free and the documents never leave it.
connect() checks the server, downloads the model if it is missing, then
generation posts single non-streamed requests.

Local models are asked for a numeric confidence score; the parser maps it to
HIGH/MEDIUM/LOW so nothing downstream knows which backend ran.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable

import httpx

from vsme_assistant.backends.base import BackendKind, BackendSession, GenerationBackend
from vsme_assistant.backends.model_catalog import to_registry_name
from vsme_assistant.core.config import LOCAL_URL, LLMConfig, LocalServerConfig, PromptLimits
from vsme_assistant.core.cost_tracker import LOCAL_PREFIX
from vsme_assistant.core.errors import (
    BackendError,
    BackendServerError,
    BackendUnavailableError,
    ModelPullError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullProgress:
    """One progress event from a model download."""

    status: str
    completed: int = 0
    total: int = 0

    @property
    def fraction(self) -> float | None:
        if self.total:
            return self.completed / self.total
        return None


ProgressCallback = Callable[[PullProgress], None]


class LocalBackend(GenerationBackend):
    """Backend for a local inference server.

    Usage:
        session = BackendSession(BackendKind.LOCAL, "Qwen 2.5 7B")
        backend = LocalBackend(session, on_progress=print)
        await backend.connect()   # pulls qwen2.5:7b if needed
    """

    kind = BackendKind.LOCAL

    def __init__(
        self,
        session: BackendSession,
        client: httpx.AsyncClient | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            session: Model display name and optional server URL.
            client: Pre-built HTTP client (tests pass one with a mock transport).
            on_progress: Receives download progress if the model must be pulled.
        """
        super().__init__(session)
        self.base_url = (session.base_url or LOCAL_URL).rstrip("/")
        self.registry_name = to_registry_name(session.model)
        self.on_progress = on_progress
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                LLMConfig.REQUEST_TIMEOUT_SECONDS,
                connect=LocalServerConfig.CONNECT_TIMEOUT_SECONDS,
            ),
        )

    @property
    def model_id(self) -> str:
        return f"{LOCAL_PREFIX}{self.registry_name}"

    @property
    def context_chars(self) -> int:
        return PromptLimits.LOCAL_CONTEXT_CHARS

    @property
    def numeric_confidence(self) -> bool:
        return True

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def list_models(self) -> list[str]:
        """Registry names of the models installed on the server.

        Raises:
            BackendUnavailableError: If the server cannot be reached.
        """
        try:
            resp = await self._client.get(
                self._url(LocalServerConfig.TAGS_PATH),
                timeout=LocalServerConfig.CONNECT_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Local server unreachable at {self.base_url}: {e}")
            raise BackendUnavailableError() from e

        if resp.status_code != 200:
            raise BackendUnavailableError(
                f"Local AI server at {self.base_url} answered HTTP {resp.status_code}."
            )
        try:
            models = resp.json().get("models", [])
        except (ValueError, AttributeError) as e:
            raise BackendUnavailableError(
                f"The server at {self.base_url} does not look like a local AI server."
            ) from e
        return [m.get("name", "") for m in models if isinstance(m, dict)]

    async def has_model(self) -> bool:
        installed = await self.list_models()
        return any(
            name == self.registry_name or name == f"{self.registry_name}:latest"
            for name in installed
        )

    async def pull_model(self, on_progress: ProgressCallback | None = None) -> None:
        """Download the session's model, streaming progress to a callback.

        Raises:
            ModelPullError: If the server rejects the pull or reports an error.
            BackendUnavailableError: If the server cannot be reached.
        """
        callback = on_progress or self.on_progress
        logger.info(f"Pulling local model {self.registry_name}")
        try:
            async with self._client.stream(
                "POST",
                self._url(LocalServerConfig.PULL_PATH),
                json={"name": self.registry_name},
                timeout=LocalServerConfig.PULL_TIMEOUT_SECONDS,
            ) as resp:
                if resp.status_code != 200:
                    raise ModelPullError(
                        f"Failed to download model {self.registry_name}: HTTP {resp.status_code}"
                    )
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError as e:
                        raise ModelPullError(
                            f"Failed to download model {self.registry_name}: "
                            f"unreadable progress line {line[:80]!r}"
                        ) from e
                    if not isinstance(event, dict):
                        continue
                    if "error" in event:
                        raise ModelPullError(
                            f"Failed to download model {self.registry_name}: {event['error']}"
                        )
                    if callback:
                        callback(PullProgress(
                            status=event.get("status", ""),
                            completed=event.get("completed", 0),
                            total=event.get("total", 0),
                        ))
        except httpx.HTTPError as e:
            raise BackendUnavailableError() from e

    async def connect(self) -> None:
        """Check the server and make sure the model is installed."""
        if not await self.has_model():
            await self.pull_model()
        self._connected = True
        logger.debug(f"Local backend ready: {self.registry_name} at {self.base_url}")

    async def disconnect(self) -> None:
        await super().disconnect()
        if self._owns_client:
            await self._client.aclose()

    async def _generate(
        self, prompt: str, system_prompt: str | None
    ) -> tuple[str, dict[str, int]]:
        payload = {
            "model": self.registry_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": LLMConfig.TEMPERATURE,
                "top_p": LLMConfig.TOP_P,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            resp = await self._client.post(self._url(LocalServerConfig.GENERATE_PATH), json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning(f"Local server connection failed: {e}")
            raise BackendUnavailableError() from e
        except httpx.ReadTimeout as e:
            logger.warning(f"Local server read timeout: {e}")
            raise BackendUnavailableError(
                "The local model took too long to answer. Try a smaller model or fewer documents."
            ) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Local AI request failed: {e}") from e

        if resp.status_code >= 500:
            raise BackendServerError(f"Local AI server error: HTTP {resp.status_code}")
        if resp.status_code != 200:
            raise BackendError(f"LLM request failed: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning(f"Local server returned a non-JSON body: {resp.text[:200]!r}")
            raise BackendError("The local AI server returned an unreadable response.") from e
        if not isinstance(data, dict):
            raise BackendError("The local AI server returned an unreadable response.")
        usage = {
            "prompt_tokens": data.get("prompt_eval_count", 0) or 0,
            "completion_tokens": data.get("eval_count", 0) or 0,
        }
        return data.get("response", ""), usage
