"""
The single in-memory review session and its lifecycle.

    IDLE -> EXTRACTING_TEXT -> IDLE | ERROR         (uploads)
    IDLE -> ANALYZING       -> COMPLETED | ERROR    (analysis)
    any  -> IDLE                                    (reset)

Uploads and analyses are rejected while another one is in flight. Reset is
always accepted; whatever was in flight at that moment is ignored when it
finishes.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import DocumentReadError, ReviewerError, ServiceCallError
from .llm_review import LLMReviewer
from .models import ReviewResult, SourceDocument
from .parser import load_document
from .response import Ok

logger = logging.getLogger(__name__)

DocumentLoader = Callable[[str, bytes], Awaitable[SourceDocument]]


class AppStatus(str, Enum):
    IDLE = "IDLE"
    EXTRACTING_TEXT = "EXTRACTING_TEXT"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


BUSY_STATUSES = frozenset({AppStatus.EXTRACTING_TEXT, AppStatus.ANALYZING})


class ReviewSession:
    def __init__(
        self,
        reviewer: Optional[LLMReviewer] = None,
        loader: DocumentLoader = load_document,
    ):
        self.reviewer = reviewer or LLMReviewer()
        self._load = loader
        self._generation = 0
        self._clear()

    def _clear(self) -> None:
        self.target: Optional[SourceDocument] = None
        self.references: List[SourceDocument] = []
        self.result: Optional[ReviewResult] = None
        self.error: Optional[ReviewerError] = None
        self.status = AppStatus.IDLE

    # --- guards -------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self.status in BUSY_STATUSES

    @property
    def can_start_analysis(self) -> bool:
        return self.target is not None and not self.is_busy

    @property
    def error_message(self) -> Optional[str]:
        return self.error.user_message if self.error else None

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _fail(self, error: ReviewerError) -> None:
        self.error = error
        self.status = AppStatus.ERROR

    # --- transitions --------------------------------------------------------------

    async def upload_target(self, name: str, data: bytes) -> bool:
        if self.is_busy:
            logger.info(f"Ignoring upload of {name}: session is {self.status.value}")
            return False
        generation = self._generation
        self.status = AppStatus.EXTRACTING_TEXT
        try:
            document = await self._load(name, data)
        except DocumentReadError as exc:
            if not self._is_stale(generation):
                logger.warning(f"Could not read target {name}: {exc}")
                self._fail(exc)
            return False
        if self._is_stale(generation):
            return False
        self.target = document
        self.error = None
        self.status = AppStatus.IDLE
        return True

    async def upload_references(self, files: Sequence[Tuple[str, bytes]]) -> bool:
        """Extract a batch of reference files, keeping every one that reads.

        Returns True when the whole batch was added.
        """
        if self.is_busy or not files:
            return False
        generation = self._generation
        self.status = AppStatus.EXTRACTING_TEXT
        failed: List[str] = []
        for name, data in files:
            try:
                document = await self._load(name, data)
            except DocumentReadError as exc:
                logger.warning(f"Could not read reference {name}: {exc}")
                document = None
            if self._is_stale(generation):
                return False
            if document is None:
                failed.append(name)
            else:
                self.references.append(document)

        if failed:
            self._fail(
                DocumentReadError(
                    f"unreadable references: {', '.join(failed)}",
                    user_message=(
                        "Erro ao ler um ou mais arquivos de referência: " + ", ".join(failed)
                    ),
                )
            )
            return False
        self.error = None
        self.status = AppStatus.IDLE
        return True

    async def start_analysis(self) -> bool:
        if not self.can_start_analysis:
            logger.info(f"Analysis not started: status {self.status.value}, target {self.target is not None}")
            return False
        generation = self._generation
        self.status = AppStatus.ANALYZING
        self.error = None
        self.result = None
        try:
            outcome = await self.reviewer.review(self.target, list(self.references))
        except Exception:
            if not self._is_stale(generation):
                self._fail(ServiceCallError("unexpected failure during review"))
            raise
        if self._is_stale(generation):
            logger.info("Discarding review result of a session that was reset")
            return False
        if isinstance(outcome, Ok):
            self.result = outcome.value
            self.status = AppStatus.COMPLETED
            return True
        self._fail(outcome.error)
        return False

    def remove_target(self) -> bool:
        if self.is_busy or self.target is None:
            return False
        self.target = None
        return True

    def remove_reference(self, doc_id: str) -> bool:
        if self.is_busy:
            return False
        remaining = [ref for ref in self.references if ref.id != doc_id]
        if len(remaining) == len(self.references):
            return False
        self.references = remaining
        return True

    def reset(self) -> None:
        self._generation += 1
        self._clear()
        logger.info("Session reset")

    def snapshot(self) -> Dict:
        return {
            "status": self.status.value,
            "error": self.error_message,
            "target": (
                {"id": self.target.id, "name": self.target.name, "pages": self.target.page_count}
                if self.target
                else None
            ),
            "references": [{"id": ref.id, "name": ref.name} for ref in self.references],
            "can_start_analysis": self.can_start_analysis,
            "result": self.result.model_dump(mode="json", by_alias=True) if self.result else None,
        }
