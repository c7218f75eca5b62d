import asyncio
import unittest

import fitz

from pdf_reviewer.errors import DocumentReadError
from pdf_reviewer.parser import (
    PdfTextSource,
    extract_pages,
    find_markers,
    format_marker,
    load_document,
    mark_pages,
    strip_markers,
    validate_upload,
)


def build_pdf(page_texts, **save_options):
    doc = fitz.open()
    for text in page_texts:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes(**save_options)
    doc.close()
    return data


class SlowSource:
    """Pages finish in reverse order: the last page is the fastest."""

    def __init__(self, texts, failing_page=None, exc_type=DocumentReadError):
        self.texts = texts
        self.failing_page = failing_page
        self.exc_type = exc_type
        self.completed = []

    @property
    def page_count(self):
        return len(self.texts)

    async def get_page_text(self, page_number):
        await asyncio.sleep((self.page_count - page_number) * 0.01)
        if page_number == self.failing_page:
            raise self.exc_type(f"page {page_number} is broken")
        self.completed.append(page_number)
        return self.texts[page_number - 1]


class TestMarkers(unittest.TestCase):
    def test_markers_are_contiguous_for_any_page_count(self):
        for count in range(1, 9):
            texts = [f"body of page {n}" for n in range(1, count + 1)]
            marked = mark_pages(texts)
            self.assertEqual(find_markers(marked), list(range(1, count + 1)))

    def test_marker_layout(self):
        marked = mark_pages(["first", "second"])
        self.assertEqual(
            marked,
            f"\n{format_marker(1)}\nfirst\n\n{format_marker(2)}\nsecond\n",
        )

    def test_strip_restores_page_content(self):
        texts = ["Primeira linha.\nSegunda linha.", "", "Outra página\n", "\nfim"]
        self.assertEqual(strip_markers(mark_pages(texts)), "".join(t + "\n" for t in texts))

    def test_strip_markers_in_service_text(self):
        corrected = ["Texto corrigido.", "Mais texto."]
        injected = mark_pages(corrected)
        self.assertEqual(strip_markers(injected), "Texto corrigido.\nMais texto.\n")

    def test_strip_keeps_a_line_break_between_text_lines(self):
        self.assertEqual(strip_markers("A\n[[PÁGINA 2]]\nB"), "A\nB")
        self.assertEqual(strip_markers("A\n[[PÁGINA 2]]B"), "A\nB")
        self.assertEqual(strip_markers("A\n\n[[PÁGINA 2]]\nB"), "A\nB")
        self.assertEqual(strip_markers("A\n[[PÁGINA 2]]\n"), "A")

    def test_strip_tolerates_marker_variants(self):
        self.assertEqual(strip_markers("a [[Pagina 3]] b"), "a  b")
        self.assertEqual(find_markers("x [[ PÁGINA  12 ]] y"), [12])

    def test_marker_shaped_page_text_is_neutralised(self):
        with self.assertLogs("pdf_reviewer.parser", level="WARNING"):
            marked = mark_pages(["see [[PÁGINA 9]] below"])
        self.assertEqual(find_markers(marked), [1])
        self.assertIn("［［PÁGINA 9］］", marked)


class TestExtractPages(unittest.IsolatedAsyncioTestCase):
    async def test_pages_keep_document_order(self):
        source = SlowSource(["one", "two", "three", "four"])
        pages = await extract_pages(source, concurrency=4)
        self.assertEqual(source.completed, [4, 3, 2, 1])
        self.assertEqual([p.number for p in pages], [1, 2, 3, 4])
        self.assertEqual([p.text for p in pages], ["one", "two", "three", "four"])

    async def test_failing_page_fails_whole_document(self):
        source = SlowSource(["one", "two", "three"], failing_page=2)
        with self.assertRaises(DocumentReadError):
            await extract_pages(source)

    async def test_unexpected_page_error_is_wrapped(self):
        source = SlowSource(["one", "two"], failing_page=1, exc_type=RuntimeError)
        with self.assertRaises(DocumentReadError):
            await extract_pages(source)

    async def test_failing_page_cancels_pending_pages(self):
        cancelled = []

        class HangingSource:
            page_count = 4

            async def get_page_text(self, page_number):
                if page_number == 1:
                    raise DocumentReadError("page 1 is broken")
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    cancelled.append(page_number)
                    raise
                return "never"

        with self.assertRaises(DocumentReadError):
            await asyncio.wait_for(extract_pages(HangingSource(), concurrency=4), timeout=5)
        self.assertEqual(sorted(cancelled), [2, 3, 4])

    async def test_empty_source_is_rejected(self):
        with self.assertRaises(DocumentReadError):
            await extract_pages(SlowSource([]))


class TestPdfDocuments(unittest.IsolatedAsyncioTestCase):
    async def test_load_document_reads_every_page(self):
        data = build_pdf(["Hello page one", "Hello page two", "Hello page three"])
        document = await load_document("report.pdf", data)
        self.assertEqual(document.name, "report.pdf")
        self.assertEqual(document.page_count, 3)
        self.assertEqual([p.number for p in document.pages], [1, 2, 3])
        self.assertIn("Hello page two", document.pages[1].text)
        self.assertTrue(document.id)

    async def test_pdf_source_page_range(self):
        with PdfTextSource(build_pdf(["only page"]), "one.pdf") as source:
            self.assertEqual(source.page_count, 1)
            with self.assertRaises(DocumentReadError):
                await source.get_page_text(2)

    async def test_corrupt_pdf(self):
        with self.assertRaises(DocumentReadError):
            await load_document("broken.pdf", b"this is not a pdf document at all")

    async def test_load_document_does_not_block_the_loop(self):
        data = build_pdf([f"Page number {n}" for n in range(1, 41)])
        ticks = 0
        done = asyncio.Event()

        async def ticker():
            nonlocal ticks
            while not done.is_set():
                ticks += 1
                await asyncio.sleep(0)

        counter = asyncio.create_task(ticker())
        try:
            document = await load_document("long.pdf", data)
        finally:
            done.set()
            await counter
        self.assertEqual(document.page_count, 40)
        self.assertGreater(ticks, 40)

    async def test_open_reads_pages_off_the_loop(self):
        source = await PdfTextSource.open(build_pdf(["first", "second"]), "two.pdf")
        with source:
            texts = await asyncio.gather(source.get_page_text(2), source.get_page_text(1))
        self.assertIn("second", texts[0])
        self.assertIn("first", texts[1])

    async def test_marked_text_of_document(self):
        document = await load_document("two.pdf", build_pdf(["alpha", "beta"]))
        self.assertEqual(find_markers(document.marked_text), [1, 2])
        self.assertEqual(document.marked_text, mark_pages(document.page_texts))

    async def test_password_protected_pdf(self):
        data = build_pdf(
            ["secret"],
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="user",
        )
        with self.assertRaises(DocumentReadError):
            await load_document("locked.pdf", data)


class TestValidateUpload(unittest.TestCase):
    def test_rejects_non_pdf(self):
        with self.assertRaises(DocumentReadError) as ctx:
            validate_upload("notes.docx", b"data")
        self.assertIn("PDF", ctx.exception.user_message)

    def test_rejects_empty_and_oversized(self):
        with self.assertRaises(DocumentReadError):
            validate_upload("a.pdf", b"")
        with self.assertRaises(DocumentReadError):
            validate_upload("a.pdf", b"x" * 11, max_size=10)

    def test_accepts_uppercase_extension(self):
        validate_upload("A.PDF", b"x", max_size=10)


if __name__ == "__main__":
    unittest.main()
