"""Query orchestration: retrieve, then synthesize."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from ragia.config import Settings
from ragia.errors import ValidationError
from ragia.rag.models import RetrievalResult
from ragia.rag.retriever import Retriever
from ragia.rag.synthesizer import AnswerSynthesizer

logger = structlog.get_logger()


@dataclass
class QueryResult:
    """Retrieved evidence plus the (optional) generated answer."""

    results: List[RetrievalResult]
    answer_text: Optional[str] = None
    generation_error: Optional[str] = None
    grounded_in: List[str] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "resultados": [result.to_dict() for result in self.results],
            "respuesta": self.answer_text,
            "respuestaError": self.generation_error,
        }


class QueryOrchestrator:
    """The single externally visible operation: answer this question."""

    def __init__(
        self,
        retriever: Retriever,
        synthesizer: AnswerSynthesizer,
        settings: Settings,
    ):
        self.retriever = retriever
        self.synthesizer = synthesizer
        self.max_question_chars = settings.max_question_chars

    def _validate(self, question: Any) -> str:
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Missing 'question' in request")

        question = question.strip()
        if len(question) > self.max_question_chars:
            raise ValidationError(
                f"Question too long (max {self.max_question_chars} characters)"
            )
        return question

    async def answer_question(self, question: Any) -> QueryResult:
        """Answer a question from the index.

        An empty retrieval is a valid result. Generation problems are reported
        in ``generation_error``; retrieval problems raise.

        Raises:
            ValidationError: Missing, blank or over-long question
        """
        question = self._validate(question)

        results = await self.retriever.retrieve(question)
        answer = await self.synthesizer.synthesize(question, results)

        logger.info(
            "question_answered",
            results=len(results),
            answered=answer.text is not None,
            generation_failed=answer.generation_error is not None,
        )

        return QueryResult(
            results=results,
            answer_text=answer.text,
            generation_error=answer.generation_error,
            grounded_in=answer.grounded_in,
        )
