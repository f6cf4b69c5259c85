"""Error taxonomy shared by the pipeline and the web layer."""
from typing import Optional


class RightStepsError(Exception):
    """Base class for all application errors."""


class ValidationError(RightStepsError):
    """Request rejected before any external service was called."""


class NoRelevantContentError(RightStepsError):
    """The pipeline worked but found nothing to answer from.

    Usually means no document has been indexed yet (or none under the
    requested file name). Callers should prompt for an upload rather than
    report a fault.
    """

    def __init__(self, message: str = "No relevant content found. Please upload a document first."):
        super().__init__(message)


class UpstreamServiceError(RightStepsError):
    """An embedding, vector store or generation call failed.

    The originating message is appended so it reaches the caller as-is.
    """

    stage = "upstream"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause


class EmbeddingServiceError(UpstreamServiceError):
    stage = "embedding"


class IndexWriteError(UpstreamServiceError):
    stage = "index_write"


class IndexQueryError(UpstreamServiceError):
    stage = "index_query"


class IndexDeleteError(UpstreamServiceError):
    stage = "index_delete"


class GenerationError(UpstreamServiceError):
    stage = "generation"
