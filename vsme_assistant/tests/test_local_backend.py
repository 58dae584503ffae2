"""Tests for vsme_assistant.backends.local module.

Tests the local inference server client against an in-process mock transport:
- Model presence check and download with progress
- Generation payload and usage reporting
- Connection and server error mapping
"""

import json

import httpx
import pytest

from vsme_assistant.backends import BackendKind, BackendSession
from vsme_assistant.backends.local import LocalBackend, PullProgress
from vsme_assistant.core.errors import (
    BackendError,
    BackendServerError,
    BackendUnavailableError,
    ModelPullError,
    NotConnectedError,
)


def _backend(handler, model="Qwen 2.5 7B", **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    session = BackendSession(BackendKind.LOCAL, model, base_url="http://ollama.test")
    return LocalBackend(session, client=client, **kwargs)


def _server(models=("qwen2.5:7b",), pull_lines=None, generate=None, log=None):
    """Build a mock server handler. Records requests into log if given."""

    def handler(request: httpx.Request) -> httpx.Response:
        if log is not None:
            log.append(request)
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": m} for m in models]})
        if request.url.path == "/api/pull":
            body = "\n".join(json.dumps(line) for line in (pull_lines or [{"status": "success"}]))
            return httpx.Response(200, content=body.encode())
        if request.url.path == "/api/generate":
            if generate is not None:
                return generate(request)
            return httpx.Response(200, json={"response": "[]", "prompt_eval_count": 900, "eval_count": 150})
        return httpx.Response(404)

    return handler


# =============================================================================
# connect() tests
# =============================================================================


class TestConnect:
    """Tests for server check and model download."""

    @pytest.mark.asyncio
    async def test_installed_model_is_not_pulled(self):
        log = []
        backend = _backend(_server(log=log))
        await backend.connect()

        assert backend.is_connected
        assert [r.url.path for r in log] == ["/api/tags"]

    @pytest.mark.asyncio
    async def test_latest_tag_counts_as_installed(self):
        backend = _backend(_server(models=("mistral:7b:latest", "qwen2.5:7b:latest")))
        assert await backend.has_model()

    @pytest.mark.asyncio
    async def test_missing_model_is_pulled_with_progress(self):
        log = []
        events = []
        lines = [
            {"status": "pulling manifest"},
            {"status": "downloading", "completed": 50, "total": 100},
            {"status": "success"},
        ]
        backend = _backend(_server(models=(), pull_lines=lines, log=log), on_progress=events.append)
        await backend.connect()

        assert backend.is_connected
        pull = [r for r in log if r.url.path == "/api/pull"][0]
        assert json.loads(pull.content) == {"name": "qwen2.5:7b"}
        assert [e.status for e in events] == ["pulling manifest", "downloading", "success"]
        assert events[1].fraction == 0.5
        assert events[0].fraction is None

    @pytest.mark.asyncio
    async def test_pull_error_line(self):
        lines = [{"status": "pulling manifest"}, {"error": "model not found"}]
        backend = _backend(_server(models=(), pull_lines=lines))

        with pytest.raises(ModelPullError, match="model not found"):
            await backend.connect()
        assert backend.is_connected is False

    @pytest.mark.asyncio
    async def test_server_down(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = _backend(handler)
        with pytest.raises(BackendUnavailableError):
            await backend.connect()

    def test_model_id_uses_registry_name(self):
        backend = _backend(_server())
        assert backend.registry_name == "qwen2.5:7b"
        assert backend.model_id == "local/qwen2.5:7b"
        assert backend.numeric_confidence is True

    def test_progress_fraction(self):
        assert PullProgress("downloading", 25, 100).fraction == 0.25


# =============================================================================
# generate() tests
# =============================================================================


class TestGenerate:
    """Tests for single non-streamed generation."""

    @pytest.mark.asyncio
    async def test_not_connected(self):
        log = []
        backend = _backend(_server(log=log))
        result = await backend.generate("prompt")

        assert isinstance(result.error, NotConnectedError)
        assert log == []

    @pytest.mark.asyncio
    async def test_payload_and_usage(self):
        log = []
        backend = _backend(_server(log=log))
        await backend.connect()
        result = await backend.generate("user text", system_prompt="system text")

        assert result.success
        assert result.response == "[]"
        assert result.usage == {"prompt_tokens": 900, "completion_tokens": 150}

        payload = json.loads(log[-1].content)
        assert payload["model"] == "qwen2.5:7b"
        assert payload["prompt"] == "user text"
        assert payload["system"] == "system text"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.1, "top_p": 0.9}

    @pytest.mark.asyncio
    async def test_server_error(self):
        backend = _backend(_server(generate=lambda request: httpx.Response(500)))
        await backend.connect()
        result = await backend.generate("prompt")
        assert isinstance(result.error, BackendServerError)

    @pytest.mark.asyncio
    async def test_connection_lost_mid_run(self):
        def generate(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = _backend(_server(generate=generate))
        await backend.connect()
        result = await backend.generate("prompt")
        assert isinstance(result.error, BackendUnavailableError)

    @pytest.mark.asyncio
    async def test_read_timeout(self):
        def generate(request):
            raise httpx.ReadTimeout("too slow", request=request)

        backend = _backend(_server(generate=generate))
        await backend.connect()
        result = await backend.generate("prompt")
        assert isinstance(result.error, BackendUnavailableError)
        assert "took too long" in result.error.user_message

    @pytest.mark.asyncio
    async def test_non_json_body_is_a_backend_error(self):
        """A proxy page answered with HTTP 200 is a failed generation."""
        def generate(request):
            return httpx.Response(200, content=b"<html>proxy error</html>")

        backend = _backend(_server(generate=generate))
        await backend.connect()
        result = await backend.generate("prompt")

        assert result.success is False
        assert isinstance(result.error, BackendError)
        assert "unreadable" in result.error.user_message


class TestUnreadableServerAnswers:
    """Tests for non-JSON bodies outside generation."""

    @pytest.mark.asyncio
    async def test_non_json_pull_line(self):
        def handler(request):
            if request.url.path == "/api/tags":
                return httpx.Response(200, json={"models": []})
            return httpx.Response(200, content=b'{"status": "pulling manifest"}\n<html>oops</html>\n')

        backend = _backend(handler)
        with pytest.raises(ModelPullError, match="unreadable progress line"):
            await backend.connect()
        assert backend.is_connected is False

    @pytest.mark.asyncio
    async def test_non_json_tags(self):
        backend = _backend(lambda request: httpx.Response(200, content=b"<html>login</html>"))
        with pytest.raises(BackendUnavailableError):
            await backend.connect()
