"""Retriever for semantic search over indexed documents."""
from typing import List, Optional
import structlog

from rightsteps import config
from rightsteps.errors import NoRelevantContentError
from rightsteps.rag.index_gateway import RetrievalResult, VectorIndexGateway

logger = structlog.get_logger()


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(self, gateway: VectorIndexGateway, top_k: int = None):
        """Initialize the retriever.

        Args:
            gateway: Vector index gateway to query
            top_k: Number of results to retrieve (default from config)
        """
        self.gateway = gateway
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k

    async def retrieve(
        self,
        question: str,
        top_k: Optional[int] = None,
        file_name: Optional[str] = None,
    ) -> List[RetrievalResult]:
        """Retrieve the chunks most relevant to a question.

        Args:
            question: User question
            top_k: Number of results to return (overrides default)
            file_name: Only search chunks of this document

        Returns:
            List of RetrievalResult objects, best first

        Raises:
            NoRelevantContentError: If nothing is indexed (for this file name)
            IndexQueryError: If the gateway query fails
        """
        top_k = self.top_k if top_k is None else top_k

        logger.info(
            "retrieval_started",
            query_length=len(question),
            top_k=top_k,
            file_name=file_name,
        )

        results = await self.gateway.query(question, top_k=top_k, file_name=file_name)

        if not results:
            logger.warning("no_results_found", file_name=file_name)
            raise NoRelevantContentError()

        logger.info(
            "retrieval_completed",
            results_returned=len(results),
            top_score=results[0].score,
        )

        return results
