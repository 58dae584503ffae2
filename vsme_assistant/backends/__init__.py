"""Generation backends and the factory that picks one for a session."""

from vsme_assistant.backends.base import (
    BackendKind,
    BackendSession,
    GenerationBackend,
    GenerationResult,
    StructuredResult,
    strip_code_fences,
)
from vsme_assistant.backends.local import LocalBackend, PullProgress
from vsme_assistant.backends.model_catalog import (
    RECOMMENDED_MODELS,
    REMOTE_MODELS,
    ModelTier,
    recommend_model_tier,
    to_registry_name,
)
from vsme_assistant.backends.remote import RemoteBackend


def create_backend(session: BackendSession, **kwargs) -> GenerationBackend:
    """Build the backend a session asks for.

    Extra keyword arguments go to the backend constructor (e.g. on_progress
    for LocalBackend).
    """
    if session.kind == BackendKind.LOCAL:
        return LocalBackend(session, **kwargs)
    if session.kind == BackendKind.REMOTE:
        return RemoteBackend(session, **kwargs)
    raise ValueError(f"Unknown backend kind: {session.kind}")


__all__ = [
    "BackendKind",
    "BackendSession",
    "GenerationBackend",
    "GenerationResult",
    "LocalBackend",
    "ModelTier",
    "PullProgress",
    "RECOMMENDED_MODELS",
    "REMOTE_MODELS",
    "RemoteBackend",
    "StructuredResult",
    "create_backend",
    "recommend_model_tier",
    "strip_code_fences",
    "to_registry_name",
]
