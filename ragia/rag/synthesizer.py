"""Grounded answer synthesis with source attribution.

Builds a bounded context block from retrieved passages, asks the generative
model to answer only from it, and never lets a generation failure reach the
caller: failures are returned in ``Answer.generation_error`` so retrieval
evidence can still be shown.
"""
import re
from typing import Dict, List, Sequence

import structlog

from ragia.config import Settings
from ragia.errors import GenerationError
from ragia.llm_client import ModelCapability
from ragia.rag.models import Answer, RetrievalResult

logger = structlog.get_logger()

SYSTEM_INSTRUCTIONS = " ".join([
    "You are an assistant that answers only with information from the provided context.",
    "If the sources do not contain enough information, say that you could not find it.",
    "Answer in the same language as the question and cite sources like this: (Source 1), (Source 2)...",
])

_CITATION = re.compile(r"\bSource\s+(\d+)\b")


def truncate(text: str, max_chars: int) -> str:
    """Trim and cut text to ``max_chars``, marking the cut with '...'."""
    clean = (text or "").strip()
    if len(clean) <= max_chars:
        return clean
    return f"{clean[:max_chars]}..."


def build_context(passages: Sequence[RetrievalResult], max_chars: int) -> str:
    """Render passages as numbered sources, in retrieval order."""
    blocks = []
    for n, passage in enumerate(passages, 1):
        blocks.append(
            f"Source {n}: {passage.source_id} (score {passage.score:.3f})\n"
            f"{truncate(passage.text, max_chars)}"
        )
    return "\n\n".join(blocks)


def build_messages(
    question: str, passages: Sequence[RetrievalResult], max_chars: int
) -> List[Dict[str, str]]:
    """Two-message prompt: fixed instructions, then question plus context."""
    context = build_context(passages, max_chars)
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTIONS},
        {"role": "user", "content": f"Question: {question}\n\nSources:\n{context}"},
    ]


def cited_sources(text: str, passages: Sequence[RetrievalResult]) -> List[str]:
    """source_ids cited as 'Source n' in ``text``, in first-citation order."""
    cited = []
    for match in _CITATION.finditer(text):
        n = int(match.group(1))
        if 1 <= n <= len(passages):
            source_id = passages[n - 1].source_id
            if source_id not in cited:
                cited.append(source_id)
    return cited


class AnswerSynthesizer:
    """Turns retrieved passages into a cited answer."""

    def __init__(self, model: ModelCapability, settings: Settings):
        self.model = model
        self.enabled = settings.llm_enabled
        self.context_chars = settings.llm_context_chars
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature

    async def synthesize(
        self, question: str, passages: Sequence[RetrievalResult]
    ) -> Answer:
        """Generate an answer grounded in ``passages``.

        Never raises for generation problems; see module docstring.
        """
        if not self.enabled:
            return Answer(text=None, generation_error=None)

        messages = build_messages(question, passages, self.context_chars)

        try:
            text = await self.model.generate(
                messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except GenerationError as e:
            logger.error(
                "answer_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
                passages=len(passages),
            )
            return Answer(text=None, generation_error=str(e))

        grounded_in = cited_sources(text, passages)

        logger.info(
            "answer_generated",
            answer_length=len(text),
            passages=len(passages),
            cited=len(grounded_in),
        )

        return Answer(text=text, grounded_in=grounded_in)
