from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, List, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_document_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass(frozen=True)
class Page:
    number: int  # 1-based
    text: str


@dataclass(frozen=True)
class SourceDocument:
    """A PDF reduced to its ordered page texts."""

    name: str
    pages: Tuple[Page, ...]
    id: str = field(default_factory=new_document_id)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def page_texts(self) -> List[str]:
        return [page.text for page in self.pages]

    @property
    def marked_text(self) -> str:
        from .parser import mark_pages

        return mark_pages(self.page_texts)

    @property
    def plain_text(self) -> str:
        return "\n".join(self.page_texts).strip()


class Category(str, Enum):
    ORTHOGRAPHY = "orthography"
    GRAMMAR = "grammar"
    STYLE = "style"
    PUNCTUATION = "punctuation"


_WIRE_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


class Correction(BaseModel):
    model_config = _WIRE_CONFIG

    original: str
    corrected: str
    explanation: str
    category: Category
    page_number: Annotated[int, Field(strict=True, gt=0)]


class ReviewResult(BaseModel):
    """Outcome of one successful review call."""

    model_config = _WIRE_CONFIG

    full_corrected_text: str
    corrections: Tuple[Correction, ...]
    score: Annotated[float, Field(strict=True, ge=0, le=100, allow_inf_nan=False)]

    @property
    def score_band(self) -> str:
        if self.score > 80:
            return "good"
        if self.score > 50:
            return "fair"
        return "poor"
