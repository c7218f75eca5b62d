"""Downloadable artifacts built from a review result."""

from __future__ import annotations

import io
import re
from typing import Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

from .models import Category, Correction, ReviewResult

CATEGORY_LABELS = {
    Category.ORTHOGRAPHY: "Ortografia",
    Category.GRAMMAR: "Gramática",
    Category.STYLE: "Estilo",
    Category.PUNCTUATION: "Pontuação",
}

SHEET_NAME = "Revisão Detalhada"
SPREADSHEET_COLUMNS = [
    "Tipo de Erro",
    "Página",
    "Texto Original (De)",
    "Texto Sugerido (Para)",
    "Explicação",
]
COLUMN_WIDTHS = [15, 10, 40, 40, 60]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_PDF_SUFFIX = re.compile(r"\.pdf$", re.IGNORECASE)


def _stem(name: str) -> str:
    return _PDF_SUFFIX.sub("", name)


def corrected_text_filename(name: str) -> str:
    return f"revisado_{_stem(name)}.txt"


def spreadsheet_filename(name: str) -> str:
    return f"analise_revisao_{_stem(name)}.xlsx"


def export_corrected_text(result: ReviewResult) -> bytes:
    return result.full_corrected_text.encode("utf-8")


def corrections_frame(corrections: Sequence[Correction]) -> pd.DataFrame:
    rows = [
        [
            CATEGORY_LABELS[corr.category],
            corr.page_number,
            corr.original,
            corr.corrected,
            corr.explanation,
        ]
        for corr in corrections
    ]
    return pd.DataFrame(rows, columns=SPREADSHEET_COLUMNS)


def export_spreadsheet(corrections: Sequence[Correction]) -> bytes:
    """Render the correction list as a single-sheet XLSX workbook."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        corrections_frame(corrections).to_excel(writer, sheet_name=SHEET_NAME, index=False)
        sheet = writer.sheets[SHEET_NAME]
        for index, width in enumerate(COLUMN_WIDTHS, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = width
    return buffer.getvalue()
