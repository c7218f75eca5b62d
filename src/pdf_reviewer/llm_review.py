from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Sequence

import google.generativeai as genai

from . import config
from .errors import ServiceCallError, ServiceContractError
from .models import Category, SourceDocument
from .parser import MARKER_LABEL
from .response import Err, Ok, ReviewOutcome, parse_review_response

logger = logging.getLogger(__name__)

REFERENCE_SEPARATOR = "\n---\n"

SYSTEM_INSTRUCTION = """\
Você é um linguista sênior e revisor profissional de textos em Português.
Responda somente com JSON no formato solicitado.
"""

REVIEW_INSTRUCTION = """\
Sua tarefa é revisar o "Texto Alvo" fornecido abaixo.

O texto contém marcadores de página no formato {marker}.
Sua tarefa é identificar erros e, para cada correção, informar em qual página ela foi encontrada.

INSTRUÇÕES:
1. Corrija erros ortográficos, gramaticais, de pontuação e de concordância.
2. Aplique as regras de referência fornecidas, se houver.
3. Mantenha o tom original do texto, mas melhore a clareza se necessário.
4. Remova os marcadores {marker} do "fullCorrectedText" final para que ele fique limpo.
5. Para cada item em "corrections", preencha o "pageNumber" com o número da página onde o erro foi localizado.
6. Classifique cada item em "category" como {categories}.
"""

REFERENCE_RULES_PREFIX = (
    "Utilize as seguintes regras gramaticais e guias de estilo como referência prioritária, "
    "acima das convenções gerais:\n"
)

DEFAULT_RULES = "Siga as normas padrão da língua portuguesa (Acordo Ortográfico vigente)."

RESPONSE_SCHEMA: Dict = {
    "type": "OBJECT",
    "properties": {
        "fullCorrectedText": {
            "type": "STRING",
            "description": "O texto completo limpo (sem marcadores de página) após todas as correções.",
        },
        "corrections": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "original": {"type": "STRING"},
                    "corrected": {"type": "STRING"},
                    "explanation": {"type": "STRING"},
                    "category": {
                        "type": "STRING",
                        "format": "enum",
                        "enum": [c.value for c in Category],
                        "description": "Categoria da correção.",
                    },
                    "pageNumber": {
                        "type": "INTEGER",
                        "description": "O número da página, extraído dos marcadores, onde o erro ocorreu.",
                    },
                },
                "required": ["original", "corrected", "explanation", "category", "pageNumber"],
            },
        },
        "score": {
            "type": "NUMBER",
            "description": "Uma nota de 0 a 100 para a qualidade original do texto.",
        },
    },
    "required": ["fullCorrectedText", "corrections", "score"],
}


@dataclass(frozen=True)
class ReviewRequest:
    prompt: str
    response_schema: Dict = field(default_factory=lambda: RESPONSE_SCHEMA)


def build_reference_rules(reference_texts: Sequence[str]) -> str:
    texts = [text for text in reference_texts if text.strip()]
    if not texts:
        return DEFAULT_RULES
    return REFERENCE_RULES_PREFIX + REFERENCE_SEPARATOR.join(texts)


def build_review_request(target_marked_text: str, reference_texts: Sequence[str] = ()) -> ReviewRequest:
    """Compose the instruction, reference-rules and target blocks into one prompt."""
    instruction = REVIEW_INSTRUCTION.format(
        marker=f"[[{MARKER_LABEL} X]]",
        categories=", ".join(f"'{c.value}'" for c in Category),
    )
    prompt = (
        f"{instruction}\n"
        f"REGRAS DE REFERÊNCIA:\n{build_reference_rules(reference_texts)}\n\n"
        f"TEXTO ALVO:\n{target_marked_text}"
    )
    return ReviewRequest(prompt=prompt)


class ReviewService(Protocol):
    async def generate(self, request: ReviewRequest) -> str: ...


class GeminiReviewService:
    """Very small wrapper around Gemini returning the raw JSON answer."""

    def __init__(
        self,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        system_instruction: Optional[str] = None,
    ):
        api_key = config.GOOGLE_API_KEY
        if not api_key:
            raise RuntimeError("GOOGLE_API_KEY is not set")
        genai.configure(api_key=api_key)
        self.model_name = model or config.REVIEW_MODEL
        self.timeout = timeout or config.REVIEW_TIMEOUT
        self.system_instruction = system_instruction or SYSTEM_INSTRUCTION

    async def generate(self, request: ReviewRequest) -> str:
        model = genai.GenerativeModel(
            self.model_name,
            system_instruction=self.system_instruction,
        )
        try:
            response = await model.generate_content_async(
                request.prompt,
                generation_config=genai.types.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=request.response_schema,
                ),
                request_options={"timeout": self.timeout},
            )
            text = response.text
        except Exception as exc:
            raise ServiceCallError(f"{self.model_name}: {exc}") from exc
        if not text:
            raise ServiceCallError(f"{self.model_name} returned an empty response")
        return text


class LLMReviewer:
    """Runs one review: build the request, call the service, parse the answer."""

    def __init__(self, service: Optional[ReviewService] = None, model: Optional[str] = None):
        self._service = service
        self.model = model

    @property
    def service(self) -> ReviewService:
        if self._service is None:
            try:
                self._service = GeminiReviewService(model=self.model)
            except RuntimeError as exc:
                raise ServiceCallError(
                    str(exc),
                    user_message=(
                        "Falha ao iniciar a análise da IA. "
                        "Verifique se a chave da API está configurada corretamente."
                    ),
                ) from exc
        return self._service

    async def review(
        self,
        target: SourceDocument,
        references: Sequence[SourceDocument] = (),
    ) -> ReviewOutcome:
        request = build_review_request(
            target.marked_text,
            [ref.plain_text for ref in references],
        )
        try:
            raw = await self.service.generate(request)
            result = parse_review_response(raw, page_count=target.page_count)
        except (ServiceCallError, ServiceContractError) as exc:
            logger.error(f"Review of {target.name} failed: {exc}", exc_info=True)
            return Err(exc)
        logger.info(
            f"Review of {target.name} finished: {len(result.corrections)} corrections, "
            f"score {result.score}"
        )
        return Ok(result)
