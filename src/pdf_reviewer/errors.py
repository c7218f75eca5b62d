"""Error taxonomy shared by extraction, review and the session."""

from __future__ import annotations

from typing import Optional


class ReviewerError(Exception):
    """Base class; carries the message shown to the user."""

    default_message = "Ocorreu um erro inesperado."

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.default_message)
        self.detail = detail
        self.user_message = user_message or self.default_message


class DocumentReadError(ReviewerError):
    """A document could not be read (protected, corrupt or not a PDF)."""

    default_message = "Erro ao ler o PDF. Verifique se o arquivo não está protegido."


class ServiceContractError(ReviewerError):
    """The review service answered with output that violates the schema."""

    default_message = (
        "A resposta da IA veio em um formato inesperado. Tente novamente em instantes."
    )


class ServiceCallError(ReviewerError):
    """The review service could not be reached or failed on its side."""

    default_message = "Falha na análise da IA. Tente novamente em instantes."
