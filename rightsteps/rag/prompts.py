"""Prompt assembly for document mode and RAG mode.

Instruction text is fixed so answers stay grounded in the supplied content,
and chunk labels let a reader trace which passage fed which part of an answer.
"""
from typing import List, Optional

from rightsteps.rag.index_gateway import RetrievalResult

CHUNK_SEPARATOR = "\n\n---\n\n"

ANALYSIS_TEMPLATE = """Please read and analyze this document. Provide a comprehensive summary including:
1. Main topics covered
2. Key points and insights
3. Important details
4. Overall structure and organization

Document content:
{content}"""

DOCUMENT_QUESTION_TEMPLATE = """Based on this document, please answer the following question: "{question}"

Document content:
{content}

Please provide a clear, concise answer based on the information in the document."""

DOCUMENT_EXPLAIN_TEMPLATE = """Please provide a detailed explanation of this document. Make it conversational and easy to understand, as if you're explaining it to someone who hasn't read it yet.

Document content:
{content}"""

RAG_QUESTION_TEMPLATE = """You are answering questions about the user's uploaded documents.

Context from the documents:
{context}

Question: {question}

Instructions:
- Answer using only the information in the context above
- If the context does not contain enough information to answer, say so explicitly
- Keep the answer conversational and easy to understand"""

RAG_EXPLAIN_TEMPLATE = """You are explaining the user's uploaded documents.

Context from the documents:
{context}

Instructions:
- Explain what these passages are about using only the information in the context above
- If the context is too fragmentary to explain, say so explicitly
- Keep the explanation conversational and easy to understand"""


def build_context(results: List[RetrievalResult]) -> str:
    """Join retrieved chunks as ``[Chunk i]`` sections (1-based)."""
    return CHUNK_SEPARATOR.join(
        f"[Chunk {i}]\n{result.text}" for i, result in enumerate(results, 1)
    )


def build_analysis_prompt(content: str) -> str:
    return ANALYSIS_TEMPLATE.format(content=content)


def build_document_prompt(content: str, question: Optional[str] = None) -> str:
    """Whole-document prompt: answer ``question`` or explain the document."""
    if question:
        return DOCUMENT_QUESTION_TEMPLATE.format(question=question, content=content)
    return DOCUMENT_EXPLAIN_TEMPLATE.format(content=content)


def build_rag_prompt(results: List[RetrievalResult], question: str) -> str:
    return RAG_QUESTION_TEMPLATE.format(context=build_context(results), question=question)


def build_rag_explain_prompt(results: List[RetrievalResult]) -> str:
    return RAG_EXPLAIN_TEMPLATE.format(context=build_context(results))
