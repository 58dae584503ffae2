"""VSME sustainability report extraction assistant.

Extracts EFRAG VSME form values from uploaded documents, with a source and a
verbatim quote for every value, and routes anything uncertain to human review.
"""

from vsme_assistant.analyzer import DocumentAnalyzer
from vsme_assistant.backends import BackendKind, BackendSession, create_backend
from vsme_assistant.review import ApplyOutcome, ReviewSession, select_auto_accepted

__all__ = [
    "ApplyOutcome",
    "BackendKind",
    "BackendSession",
    "DocumentAnalyzer",
    "ReviewSession",
    "create_backend",
    "select_auto_accepted",
]
