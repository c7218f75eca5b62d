"""
Page-tracked PDF review: extract a PDF with page markers, have an LLM review
it with a structured answer, and export the corrections.
"""

from .llm_review import LLMReviewer
from .models import Correction, ReviewResult, SourceDocument
from .parser import load_document
from .session import AppStatus, ReviewSession

__all__ = [
    "AppStatus",
    "Correction",
    "LLMReviewer",
    "ReviewResult",
    "ReviewSession",
    "SourceDocument",
    "load_document",
]
