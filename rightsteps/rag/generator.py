"""Answer generation: one round trip to the completion service."""
from dataclasses import dataclass, field
from typing import List, Optional
import structlog

from rightsteps.errors import GenerationError
from rightsteps.rag.index_gateway import RetrievalResult

logger = structlog.get_logger()

MODE_DOCUMENT = "document"
MODE_RAG = "rag"


@dataclass
class Answer:
    """Generated text plus the passages it was conditioned on."""

    text: str
    is_question: bool
    mode: str = MODE_DOCUMENT
    sources: List[RetrievalResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "success": True,
            "explanation": self.text,
            "is_question": self.is_question,
            "mode": self.mode,
        }
        if self.mode == MODE_RAG:
            data["sources"] = [source.to_source() for source in self.sources]
        return data


class AnswerGenerator:
    """Sends prompts to a completion service.

    ``service`` is anything with ``async generate(prompt) -> str``. No
    retries and no streaming.
    """

    def __init__(self, service):
        self.service = service

    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt.

        Raises:
            GenerationError: If the call fails or returns no text
        """
        try:
            text = await self.service.generate(prompt)
        except Exception as e:
            logger.error(
                "generation_failed",
                prompt_length=len(prompt),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GenerationError("Failed to generate response", e) from e

        if not text or not text.strip():
            logger.error("empty_generation_response", prompt_length=len(prompt))
            raise GenerationError("Empty response from model")

        return text

    async def answer(
        self,
        prompt: str,
        is_question: bool,
        sources: Optional[List[RetrievalResult]] = None,
        mode: str = MODE_DOCUMENT,
    ) -> Answer:
        """Generate an answer and attach its provenance."""
        text = await self.generate(prompt)

        logger.info(
            "answer_generated",
            mode=mode,
            is_question=is_question,
            source_count=len(sources or []),
            response_length=len(text),
        )

        return Answer(text=text, is_question=is_question, mode=mode, sources=list(sources or []))
