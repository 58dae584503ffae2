"""Remote backend: hosted chat-completion API through litellm.

Absorbs the per-call boilerplate (message building, usage reporting, error
mapping) so the analyzer only sees text or a typed BackendError.

Nothing retries automatically: a rate limit or an outage is reported to the
user, who decides whether to try again.
"""

import asyncio
import logging

from litellm import acompletion, check_valid_key, model_cost
from litellm.exceptions import APIConnectionError, Timeout

from vsme_assistant.backends.base import BackendKind, BackendSession, GenerationBackend
from vsme_assistant.backends.model_catalog import REMOTE_MODELS
from vsme_assistant.core.config import CostConfig, LLMConfig, PromptLimits
from vsme_assistant.core.cost_tracker import normalize_model_name
from vsme_assistant.core.errors import (
    AuthenticationFailedError,
    BackendError,
    BackendServerError,
    BackendUnavailableError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

# Suppress LiteLLM debug noise (done once at module load)
logging.getLogger("litellm").setLevel(logging.ERROR)
logging.getLogger("httpx").setLevel(logging.ERROR)

DEFAULT_CONTEXT_TOKENS = 16_000
"""Context window assumed for a model with no known metadata."""


def map_remote_error(exc: Exception) -> BackendError:
    """Translate a provider exception into the package's error taxonomy.

    Connection failures are recognized by type (litellm reports them with a
    500 status); everything else by its HTTP status code.
    """
    if isinstance(exc, (APIConnectionError, Timeout, ConnectionError)):
        return BackendUnavailableError()

    status = getattr(exc, "status_code", None)
    if status in (401, 403):
        return AuthenticationFailedError()
    if status == 429:
        return RateLimitedError()
    if isinstance(status, int) and status >= 500:
        return BackendServerError()
    return BackendError(f"AI analysis failed: {exc}")


def context_window_tokens(model: str) -> int:
    """Context window of a remote model, from the catalog or litellm's table."""
    normalized = normalize_model_name(model)
    if normalized in REMOTE_MODELS:
        return REMOTE_MODELS[normalized].context_window

    info = model_cost.get(normalized) or model_cost.get(model) or {}
    return int(info.get("max_input_tokens") or DEFAULT_CONTEXT_TOKENS)


class RemoteBackend(GenerationBackend):
    """Key-authenticated chat-completion backend.

    Usage:
        session = BackendSession(BackendKind.REMOTE, "gpt-4o", api_key=key)
        backend = RemoteBackend(session)
        await backend.connect()
        result = await backend.generate(user_prompt, system_prompt=system_prompt)

    With verify_key=True, connect() also checks the key with the provider.
    """

    kind = BackendKind.REMOTE

    def __init__(self, session: BackendSession, verify_key: bool = False) -> None:
        super().__init__(session)
        self.verify_key = verify_key

    @property
    def context_chars(self) -> int:
        tokens = (
            context_window_tokens(self.session.model)
            - PromptLimits.OUTPUT_RESERVE_TOKENS
            - PromptLimits.PROMPT_OVERHEAD_TOKENS
        )
        return max(tokens, 0) * CostConfig.CHARS_PER_TOKEN

    def _require_key(self) -> str:
        key = (self.session.api_key or "").strip()
        if not key:
            raise AuthenticationFailedError("No API key provided. Please enter your API key.")
        return key

    async def validate_key(self) -> None:
        """Check the key with the provider through a minimal completion.

        litellm reports any failure as an invalid key, so an outage during
        the check also lands here.

        Raises:
            AuthenticationFailedError: If no key was provided or the provider refuses it.
        """
        key = self._require_key()
        valid = await asyncio.to_thread(check_valid_key, self.session.model, key)
        if not valid:
            logger.warning(f"API key check failed for {self.session.model}")
            raise AuthenticationFailedError()

    async def connect(self) -> None:
        """Accept the session's key.

        No network call is made unless the backend was built with
        verify_key=True.

        Raises:
            AuthenticationFailedError: If no API key was provided, or it fails
                the provider check.
        """
        self._require_key()
        if self.verify_key:
            await self.validate_key()
        self._connected = True
        logger.debug(f"Remote backend ready: {self.session.model}")

    async def _generate(
        self, prompt: str, system_prompt: str | None
    ) -> tuple[str, dict[str, int]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {}
        if self.session.base_url:
            kwargs["api_base"] = self.session.base_url

        try:
            response = await acompletion(
                model=self.session.model,
                messages=messages,
                temperature=LLMConfig.TEMPERATURE,
                max_tokens=LLMConfig.MAX_TOKENS,
                api_key=self.session.api_key,
                timeout=LLMConfig.REQUEST_TIMEOUT_SECONDS,
                **kwargs,
            )
        except Exception as e:
            error = map_remote_error(e)
            logger.warning(f"Remote generation failed: {type(e).__name__}: {e}")
            raise error from e

        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": getattr(response.usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(response.usage, "completion_tokens", 0) or 0,
            }

        content = response.choices[0].message.content
        if not content:
            raise BackendError("No response from the AI model.")
        return content, usage
