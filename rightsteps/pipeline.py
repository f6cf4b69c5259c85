"""Document pipeline: upload (chunk + index) and question answering.

One pipeline serves both modes. ``rag_enabled`` selects between:

- document mode: the whole document text goes into the prompt
- RAG mode: documents are chunked and indexed on upload, and questions are
  answered from the top-K retrieved chunks
"""
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Dict, Optional, Tuple
import structlog

from rightsteps import config
from rightsteps.errors import ValidationError
from rightsteps.llm_client import create_llm_client
from rightsteps.rag import prompts
from rightsteps.rag.chunker import TextChunker
from rightsteps.rag.embedder import EmbeddingClient
from rightsteps.rag.generator import Answer, AnswerGenerator, MODE_DOCUMENT, MODE_RAG
from rightsteps.rag.index_gateway import VectorIndexGateway
from rightsteps.rag.retriever import Retriever
from rightsteps.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()

MAX_QUESTION_LENGTH = 2000

# Retrieval query used when RAG mode is asked to explain rather than answer
EXPLAIN_QUERY = "What are the main topics and key points of this document?"


@dataclass
class UploadResult:
    """Outcome of a successful upload."""

    file_name: str
    file_size: int
    analysis: str
    original_content: Optional[str] = None
    chunks_stored: Optional[int] = None
    total_chunks: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": True,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "analysis": self.analysis,
        }
        if self.original_content is not None:
            data["original_content"] = self.original_content
        if self.chunks_stored is not None:
            data["chunks_stored"] = self.chunks_stored
            data["total_chunks"] = self.total_chunks
        return data


def is_supported_file(file_name: str, content_type: Optional[str] = None) -> bool:
    """Markdown and plain-text files are accepted by content type or extension."""
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime in config.ALLOWED_CONTENT_TYPES:
        return True
    return PurePath(file_name).suffix.lower() in config.ALLOWED_EXTENSIONS


def decode_upload(file_name: str, content_type: Optional[str], data: bytes) -> str:
    """Validate an uploaded file and return its text.

    Raises:
        ValidationError: Missing file, unsupported type, too large or not UTF-8
    """
    if not file_name:
        raise ValidationError("No file uploaded")

    if not is_supported_file(file_name, content_type):
        raise ValidationError("Unsupported file type. Please upload .md or .txt files.")

    if len(data) > config.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File too large ({len(data)} bytes, max {config.MAX_UPLOAD_BYTES})"
        )

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(f"File is not valid UTF-8 text: {e}") from e


class DocumentPipeline:
    """Upload and question-answering flows over the RAG components."""

    def __init__(
        self,
        store,
        llm,
        rag_enabled: bool = None,
        chunker: Optional[TextChunker] = None,
        top_k: int = None,
        embedding_dimension: int = None,
    ):
        """Wire the pipeline components.

        Args:
            store: Vector store (upsert / query / delete_many)
            llm: Model service client (embed / generate)
            rag_enabled: Chunk-and-index mode (default from config)
            chunker: Text chunker (default: configured chunk size and overlap)
            top_k: Passages retrieved per question (default from config)
            embedding_dimension: Expected embedding length (default from config)
        """
        self.store = store
        self.llm = llm
        self.rag_enabled = config.RAG_ENABLED if rag_enabled is None else rag_enabled
        self.chunker = chunker or TextChunker()

        self.embedder = EmbeddingClient(llm, dimension=embedding_dimension)
        self.gateway = VectorIndexGateway(store, self.embedder)
        self.retriever = Retriever(self.gateway, top_k=top_k)
        self.generator = AnswerGenerator(llm)

        logger.info(
            "pipeline_initialized",
            rag_enabled=self.rag_enabled,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
            top_k=self.retriever.top_k,
        )

    async def upload(
        self,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """Validate, analyse and (in RAG mode) chunk and index a document.

        Re-uploading a file name replaces its previously indexed chunks.

        Raises:
            ValidationError: Before any external call
            UpstreamServiceError: Embedding, index or generation failure
        """
        content = decode_upload(file_name, content_type, data)

        if not content.strip():
            raise ValidationError("Uploaded file is empty")

        logger.info(
            "upload_started",
            file_name=file_name,
            file_size=len(data),
            rag_enabled=self.rag_enabled,
        )

        analysis = await self.generator.generate(prompts.build_analysis_prompt(content))

        if not self.rag_enabled:
            return UploadResult(
                file_name=file_name,
                file_size=len(data),
                analysis=analysis,
                original_content=content,
            )

        stored, total = await self.index_document(file_name, content)

        return UploadResult(
            file_name=file_name,
            file_size=len(data),
            analysis=analysis,
            chunks_stored=stored,
            total_chunks=total,
        )

    async def index_document(self, file_name: str, content: str) -> Tuple[int, int]:
        """Chunk a document and replace its chunks in the index.

        New chunks overwrite old ones by id; chunks past the new end are removed
        only once the upsert has succeeded.

        Returns:
            (chunks stored, chunks produced by the chunker)
        """
        chunks = self.chunker.chunk_text(content)

        stored = await self.gateway.upsert(chunks, file_name)
        await self.gateway.delete_by_file_name(file_name, from_chunk_index=len(chunks))

        logger.info(
            "document_indexed",
            file_name=file_name,
            chunks_stored=stored,
            total_chunks=len(chunks),
        )

        return stored, len(chunks)

    async def ask(
        self,
        question: Optional[str] = None,
        content: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> Answer:
        """Answer a question, or explain the document when no question is given.

        Document mode needs ``content``; RAG mode searches the index,
        optionally restricted to ``file_name``.

        Raises:
            ValidationError: Blank/oversize question, or missing content
            NoRelevantContentError: RAG mode found nothing to answer from
            UpstreamServiceError: Retrieval or generation failure
        """
        if question is not None:
            question = question.strip()
            if not question:
                raise ValidationError("Question cannot be empty")
            if len(question) > MAX_QUESTION_LENGTH:
                raise ValidationError(
                    f"Question too long (max {MAX_QUESTION_LENGTH} characters)"
                )

        is_question = question is not None

        if not self.rag_enabled:
            if not content:
                raise ValidationError("No content provided")

            prompt = prompts.build_document_prompt(content, question)
            return await self.generator.answer(prompt, is_question=is_question, mode=MODE_DOCUMENT)

        results = await self.retriever.retrieve(question or EXPLAIN_QUERY, file_name=file_name)

        if is_question:
            prompt = prompts.build_rag_prompt(results, question)
        else:
            prompt = prompts.build_rag_explain_prompt(results)

        return await self.generator.answer(
            prompt,
            is_question=is_question,
            sources=results,
            mode=MODE_RAG,
        )

    async def delete_document(self, file_name: str) -> None:
        """Remove a document's chunks from the index."""
        if not file_name:
            raise ValidationError("No file name provided")
        await self.gateway.delete_by_file_name(file_name)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.store.get_stats()
        stats["rag_enabled"] = self.rag_enabled
        return stats


def build_pipeline(
    provider: str = None,
    rag_enabled: bool = None,
    index_dir=None,
) -> DocumentPipeline:
    """Construct the process-wide pipeline from configuration.

    The vector store is created and loaded here, once; callers keep the
    returned pipeline for the lifetime of the process.
    """
    if index_dir is None and config.PERSIST_INDEX:
        index_dir = config.VECTOR_STORE_DIR

    store = FAISSVectorStore(dimension=config.EMBEDDING_DIMENSION, index_dir=index_dir)
    store.init_or_load()

    return DocumentPipeline(
        store=store,
        llm=create_llm_client(provider),
        rag_enabled=rag_enabled,
    )
