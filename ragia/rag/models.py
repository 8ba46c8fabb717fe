"""Value types passed between pipeline components."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class DocumentChunk:
    """An indexed chunk. Created once at ingestion, never mutated."""

    source_id: str
    text: str
    embedding: Tuple[float, ...]


@dataclass(frozen=True)
class RetrievalResult:
    """A single retrieved passage; higher score = more relevant."""

    source_id: str
    text: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        """Wire format used by the query endpoint."""
        return {
            "ruta": self.source_id,
            "contenido": self.text,
            "score": self.score,
        }


@dataclass(frozen=True)
class Answer:
    """Outcome of answer synthesis.

    ``text`` is None both when generation is disabled (no error) and when it
    failed (``generation_error`` set).
    """

    text: Optional[str] = None
    grounded_in: List[str] = field(default_factory=list)
    generation_error: Optional[str] = None
