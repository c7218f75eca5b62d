"""
Read PDFs into page-tracked text.

Every page is wrapped with a ``[[PÁGINA n]]`` marker so the reviewer can say
on which page each correction was found. The markers are stripped again from
anything shown to the user.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional, Protocol, Sequence

import fitz  # PyMuPDF

from . import config
from .errors import DocumentReadError
from .models import Page, SourceDocument

logger = logging.getLogger(__name__)

MARKER_LABEL = "PÁGINA"

_SENTINEL = r"\[\[\s*P[ÁA]GINA\s+(\d+)\s*\]\]"
_SENTINEL_RE = re.compile(_SENTINEL, re.IGNORECASE)
# A marker owns one newline on each side, see mark_pages.
_MARKER_RE = re.compile(r"\n?" + _SENTINEL + r"\n?", re.IGNORECASE)


class DocumentTextSource(Protocol):
    """Anything that can hand out the text of its pages, one at a time."""

    @property
    def page_count(self) -> int: ...

    async def get_page_text(self, page_number: int) -> str: ...


class PdfTextSource:
    """PyMuPDF document opened from in-memory bytes.

    PyMuPDF calls block, so page reads run in the default executor. A fitz
    Document is not thread-safe: reads of one document go through a lock.
    Use ``await PdfTextSource.open(...)`` from async code to keep the parse
    itself off the event loop too.
    """

    def __init__(self, data: bytes, name: str = "document.pdf"):
        self.name = name
        try:
            self._doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise DocumentReadError(f"{name}: {exc}") from exc
        if self._doc.needs_pass:
            self._doc.close()
            raise DocumentReadError(f"{name} is password protected")
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, data: bytes, name: str = "document.pdf") -> "PdfTextSource":
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, cls, data, name)

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def _read_page(self, page_number: int) -> str:
        return self._doc[page_number - 1].get_text()

    async def get_page_text(self, page_number: int) -> str:
        if not 1 <= page_number <= self.page_count:
            raise DocumentReadError(f"{self.name}: page {page_number} out of range")
        loop = asyncio.get_running_loop()
        async with self._lock:
            future = loop.run_in_executor(None, self._read_page, page_number)
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                # a read in flight keeps the lock until its thread is done
                await asyncio.wait([future])
                raise
            except (RuntimeError, ValueError) as exc:
                raise DocumentReadError(f"{self.name}: page {page_number}: {exc}") from exc

    def close(self) -> None:
        self._doc.close()

    def __enter__(self) -> "PdfTextSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def format_marker(page_number: int) -> str:
    return f"[[{MARKER_LABEL} {page_number}]]"


def _neutralise_markers(text: str, page_number: int) -> str:
    """Swap the brackets of marker-shaped text found inside a page."""
    if not _SENTINEL_RE.search(text):
        return text
    logger.warning(f"Page {page_number} contains marker-shaped text; neutralising it")
    return _SENTINEL_RE.sub(lambda m: "［［" + m.group(0)[2:-2] + "］］", text)


def mark_pages(page_texts: Sequence[str]) -> str:
    """Join page texts, each preceded by its page marker, in page order."""
    parts: List[str] = []
    for number, text in enumerate(page_texts, start=1):
        parts.append(f"\n{format_marker(number)}\n{_neutralise_markers(text, number)}\n")
    return "".join(parts)


def strip_markers(text: str) -> str:
    """Remove every page marker together with its surrounding newlines.

    A marker standing on its own line between two lines of text leaves one
    newline behind so the lines stay apart.
    """

    def replace(match: re.Match) -> str:
        matched = match.group(0)
        if "\n" not in matched:
            return ""
        start, end = match.start(), match.end()
        if start == 0 or end == len(text):
            return ""
        if text[start - 1] == "\n" or text[end] == "\n":
            return ""
        return "\n"

    return _MARKER_RE.sub(replace, text)


def find_markers(text: str) -> List[int]:
    """Page numbers of the markers in ``text``, in order of appearance."""
    return [int(m.group(1)) for m in _SENTINEL_RE.finditer(text)]


async def extract_pages(
    source: DocumentTextSource,
    concurrency: Optional[int] = None,
) -> List[Page]:
    """Fetch all pages of ``source``; any failing page fails the whole document."""
    count = source.page_count
    if count < 1:
        raise DocumentReadError("document has no pages")

    semaphore = asyncio.Semaphore(max(1, concurrency or config.PAGE_FETCH_CONCURRENCY))

    async def fetch(page_number: int) -> str:
        async with semaphore:
            return await source.get_page_text(page_number)

    tasks = [asyncio.ensure_future(fetch(n)) for n in range(1, count + 1)]
    try:
        # gather keeps argument order, whatever order the pages finish in
        texts = await asyncio.gather(*tasks)
    except Exception as exc:
        for task in tasks:
            task.cancel()
        # the source may be closed right after we return
        await asyncio.gather(*tasks, return_exceptions=True)
        if isinstance(exc, DocumentReadError):
            raise
        raise DocumentReadError(f"page extraction failed: {exc}") from exc

    return [Page(number=n, text=text) for n, text in enumerate(texts, start=1)]


def validate_upload(name: str, data: bytes, max_size: Optional[int] = None) -> None:
    limit = max_size if max_size is not None else config.MAX_FILE_SIZE
    if not name or not name.lower().endswith(".pdf"):
        raise DocumentReadError(
            f"{name!r} is not a PDF", user_message="Apenas arquivos PDF são aceitos."
        )
    if not data:
        raise DocumentReadError(f"{name} is empty", user_message=f"O arquivo {name} está vazio.")
    if len(data) > limit:
        raise DocumentReadError(
            f"{name} is {len(data)} bytes",
            user_message=(
                f"O arquivo é muito grande ({len(data) / 1024 / 1024:.1f}MB). "
                f"O limite é {limit / 1024 / 1024:.0f}MB."
            ),
        )


async def load_document(
    name: str,
    data: bytes,
    concurrency: Optional[int] = None,
) -> SourceDocument:
    validate_upload(name, data)
    with await PdfTextSource.open(data, name) as source:
        pages = await extract_pages(source, concurrency)
    logger.info(f"Extracted {len(pages)} pages from {name}")
    return SourceDocument(name=name, pages=tuple(pages))
