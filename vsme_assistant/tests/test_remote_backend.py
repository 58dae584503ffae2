"""Tests for vsme_assistant.backends.remote module.

Tests the remote backend without network access:
- Connection gating, key handling and the opt-in key check
- Call parameters passed to litellm
- Error mapping to the package taxonomy
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from vsme_assistant.backends import BackendKind, BackendSession, create_backend
from vsme_assistant.backends.local import LocalBackend
from vsme_assistant.backends.remote import RemoteBackend, map_remote_error
from vsme_assistant.core.errors import (
    AuthenticationFailedError,
    BackendError,
    BackendServerError,
    BackendUnavailableError,
    MalformedResponseError,
    NotConnectedError,
    RateLimitedError,
)


class _ProviderError(Exception):
    def __init__(self, status_code):
        super().__init__(f"provider said {status_code}")
        self.status_code = status_code


def _completion(content, prompt_tokens=1000, completion_tokens=200):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


@pytest.fixture
def session():
    return BackendSession(BackendKind.REMOTE, "gpt-4o", api_key="sk-test")


# =============================================================================
# Connection tests
# =============================================================================


class TestConnect:
    """Tests for connect() and the not-connected guard."""

    @pytest.mark.asyncio
    async def test_generate_before_connect_makes_no_call(self, session):
        backend = RemoteBackend(session)
        with patch("vsme_assistant.backends.remote.acompletion", new=AsyncMock()) as mock:
            result = await backend.generate("prompt")

        assert result.success is False
        assert isinstance(result.error, NotConnectedError)
        mock.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_key_rejected(self):
        backend = RemoteBackend(BackendSession(BackendKind.REMOTE, "gpt-4o", api_key="  "))
        with pytest.raises(AuthenticationFailedError):
            await backend.connect()
        assert backend.is_connected is False

    @pytest.mark.asyncio
    async def test_disconnect(self, session):
        backend = RemoteBackend(session)
        await backend.connect()
        await backend.disconnect()
        assert backend.is_connected is False

    @pytest.mark.asyncio
    async def test_connect_skips_key_check_by_default(self, session):
        with patch("vsme_assistant.backends.remote.check_valid_key") as check:
            await RemoteBackend(session).connect()
        check.assert_not_called()

    @pytest.mark.asyncio
    async def test_verified_key_accepted(self, session):
        backend = create_backend(session, verify_key=True)
        with patch("vsme_assistant.backends.remote.check_valid_key", return_value=True) as check:
            await backend.connect()

        assert backend.is_connected
        check.assert_called_once_with("gpt-4o", "sk-test")

    @pytest.mark.asyncio
    async def test_refused_key_fails_connect(self, session):
        backend = RemoteBackend(session, verify_key=True)
        with patch("vsme_assistant.backends.remote.check_valid_key", return_value=False):
            with pytest.raises(AuthenticationFailedError) as exc_info:
                await backend.connect()

        assert backend.is_connected is False
        assert exc_info.value.user_message == AuthenticationFailedError.user_message

    @pytest.mark.asyncio
    async def test_validate_key_without_key(self):
        backend = RemoteBackend(BackendSession(BackendKind.REMOTE, "gpt-4o"))
        with patch("vsme_assistant.backends.remote.check_valid_key") as check:
            with pytest.raises(AuthenticationFailedError):
                await backend.validate_key()
        check.assert_not_called()

    def test_key_not_in_repr(self, session):
        assert "sk-test" not in repr(session)

    def test_factory(self, session):
        assert isinstance(create_backend(session), RemoteBackend)
        local = create_backend(BackendSession(BackendKind.LOCAL, "Qwen 2.5 7B"))
        assert isinstance(local, LocalBackend)

    def test_context_budget(self, session):
        assert RemoteBackend(session).context_chars == (128_000 - 4_000 - 3_000) * 4


# =============================================================================
# Generation tests
# =============================================================================


class TestGenerate:
    """Tests for the litellm call."""

    @pytest.mark.asyncio
    async def test_call_parameters(self, session):
        backend = RemoteBackend(session)
        await backend.connect()
        mock = AsyncMock(return_value=_completion("[]"))
        with patch("vsme_assistant.backends.remote.acompletion", new=mock):
            result = await backend.generate("user text", system_prompt="system text")

        assert result.success is True
        assert result.response == "[]"
        assert result.usage == {"prompt_tokens": 1000, "completion_tokens": 200}

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 4000
        assert kwargs["messages"] == [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ]
        assert "api_base" not in kwargs

    @pytest.mark.asyncio
    async def test_base_url_forwarded(self):
        backend = RemoteBackend(
            BackendSession(BackendKind.REMOTE, "gpt-4o", api_key="k", base_url="https://proxy.local/v1")
        )
        await backend.connect()
        mock = AsyncMock(return_value=_completion("[]"))
        with patch("vsme_assistant.backends.remote.acompletion", new=mock):
            await backend.generate("prompt")
        assert mock.call_args.kwargs["api_base"] == "https://proxy.local/v1"
        assert len(mock.call_args.kwargs["messages"]) == 1

    @pytest.mark.asyncio
    async def test_empty_content_is_error(self, session):
        backend = RemoteBackend(session)
        await backend.connect()
        with patch("vsme_assistant.backends.remote.acompletion", new=AsyncMock(return_value=_completion(None))):
            result = await backend.generate("prompt")
        assert result.success is False
        assert isinstance(result.error, BackendError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected", [
        (401, AuthenticationFailedError),
        (403, AuthenticationFailedError),
        (429, RateLimitedError),
        (503, BackendServerError),
    ])
    async def test_status_mapping(self, session, status, expected):
        backend = RemoteBackend(session)
        await backend.connect()
        mock = AsyncMock(side_effect=_ProviderError(status))
        with patch("vsme_assistant.backends.remote.acompletion", new=mock):
            result = await backend.generate("prompt")

        assert result.success is False
        assert type(result.error) is expected
        with pytest.raises(expected):
            result.raise_for_error()

    @pytest.mark.asyncio
    async def test_structured_strips_fences(self, session):
        backend = RemoteBackend(session)
        await backend.connect()
        mock = AsyncMock(return_value=_completion('```json\n{"a": 1}\n```'))
        with patch("vsme_assistant.backends.remote.acompletion", new=mock):
            result = await backend.generate_structured("prompt")
        assert result.success is True
        assert result.data == {"a": 1}

    @pytest.mark.asyncio
    async def test_structured_invalid_json(self, session):
        backend = RemoteBackend(session)
        await backend.connect()
        with patch("vsme_assistant.backends.remote.acompletion", new=AsyncMock(return_value=_completion("sorry"))):
            result = await backend.generate_structured("prompt")
        assert result.success is False
        assert isinstance(result.error, MalformedResponseError)
        assert result.error.raw_response == "sorry"


class TestMapRemoteError:
    """Tests for the error taxonomy mapping."""

    def test_connection_error(self):
        assert isinstance(map_remote_error(ConnectionError("refused")), BackendUnavailableError)

    def test_other_status_is_generic(self):
        error = map_remote_error(_ProviderError(400))
        assert type(error) is BackendError
        assert "provider said 400" in str(error)

    def test_no_status(self):
        assert type(map_remote_error(ValueError("odd"))) is BackendError
