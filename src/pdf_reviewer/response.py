"""Validation of the review service's JSON answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import ValidationError

from .errors import ServiceCallError, ServiceContractError
from .models import ReviewResult
from .parser import find_markers, strip_markers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    value: ReviewResult


@dataclass(frozen=True)
class Err:
    error: Union[ServiceContractError, ServiceCallError]


ReviewOutcome = Union[Ok, Err]


def _describe(exc: ValidationError) -> str:
    problems = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def parse_review_response(raw: Union[str, bytes], page_count: Optional[int] = None) -> ReviewResult:
    """Turn the raw service output into a ReviewResult.

    Structural problems (bad JSON, missing fields, unknown categories, scores
    outside 0-100, non-positive page numbers) raise ServiceContractError.
    Leftover page markers in the corrected text are stripped, and page numbers
    beyond ``page_count`` are only logged.
    """
    try:
        result = ReviewResult.model_validate_json(raw)
    except ValidationError as exc:
        raise ServiceContractError(_describe(exc)) from exc

    leftover = find_markers(result.full_corrected_text)
    if leftover:
        logger.warning(f"Corrected text still had page markers {leftover}; stripping them")
        result = result.model_copy(
            update={"full_corrected_text": strip_markers(result.full_corrected_text)}
        )

    if page_count is not None:
        for correction in result.corrections:
            if correction.page_number > page_count:
                logger.warning(
                    f"Correction {correction.original!r} reported on page "
                    f"{correction.page_number} of a {page_count}-page document"
                )
    return result
