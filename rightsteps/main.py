"""Quart application for RightSteps document explanations."""
import logging
from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError
from quart import Quart, current_app, jsonify, request
import structlog

from rightsteps import config
from rightsteps.errors import NoRelevantContentError, UpstreamServiceError, ValidationError
from rightsteps.pipeline import DocumentPipeline, build_pipeline

# Configure structured logging
logging.basicConfig(format="%(message)s", level=config.LOG_LEVEL)

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

PIPELINE_KEY = "rightsteps_pipeline"


class ExplainRequest(BaseModel):
    """Body of POST /api/explain."""

    question: Optional[str] = None
    content: Optional[str] = None
    file_name: Optional[str] = None


def get_pipeline() -> DocumentPipeline:
    """Return the pipeline created at start-up."""
    pipeline = current_app.extensions.get(PIPELINE_KEY)
    if pipeline is None:
        raise RuntimeError("Pipeline not initialized; the app has not started serving")
    return pipeline


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def create_app(pipeline: Optional[DocumentPipeline] = None) -> Quart:
    """Create the web application.

    Args:
        pipeline: Pre-built pipeline (tests); when omitted one is built from
            configuration before the app starts serving
    """
    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES + 64 * 1024

    if pipeline is not None:
        app.extensions[PIPELINE_KEY] = pipeline

    @app.before_serving
    async def init_pipeline():
        if PIPELINE_KEY not in app.extensions:
            app.extensions[PIPELINE_KEY] = build_pipeline()
            logger.info("pipeline_ready", provider=config.LLM_PROVIDER)

    @app.route("/api/upload", methods=["POST"])
    async def upload():
        """Upload a .md or .txt document (multipart field ``file``).

        Returns JSON:
        {
            "success": true,
            "file_name": "notes.md",
            "file_size": 1234,
            "analysis": "...",
            "original_content": "..."        // document mode
            "chunks_stored": 5, "total_chunks": 5   // RAG mode
        }
        """
        files = await request.files
        upload_file = files.get("file")

        if upload_file is None or not upload_file.filename:
            return _error("No file uploaded", 400)

        try:
            result = await get_pipeline().upload(
                file_name=upload_file.filename,
                data=upload_file.read(),
                content_type=upload_file.content_type,
            )
            return jsonify(result.to_dict())

        except ValidationError as e:
            logger.warning("upload_rejected", file_name=upload_file.filename, reason=str(e))
            return _error(str(e), 400)

        except UpstreamServiceError as e:
            logger.error(
                "upload_error",
                file_name=upload_file.filename,
                stage=e.stage,
                error=str(e),
            )
            return _error(f"Failed to process file: {e}", 502)

    @app.route("/api/explain", methods=["POST"])
    async def explain():
        """Explain a document or answer a question about it.

        Expects JSON body:
        {
            "question": "optional question text",   // null = explain
            "content": "document text",             // document mode
            "file_name": "notes.md"                 // RAG mode, optional filter
        }

        Returns JSON:
        {
            "success": true,
            "explanation": "...",
            "is_question": true,
            "mode": "rag",
            "sources": [{"file_name": "notes.md", "chunk_index": 2, "score": 0.873}]
        }
        """
        data = await request.get_json(silent=True)

        if not isinstance(data, dict):
            return _error("Request body must be a JSON object", 400)

        try:
            body = ExplainRequest.model_validate(data)
        except PydanticValidationError as e:
            return _error(f"Invalid request: {e.errors()[0]['msg']}", 400)

        try:
            answer = await get_pipeline().ask(
                question=body.question,
                content=body.content,
                file_name=body.file_name,
            )
            return jsonify(answer.to_dict())

        except ValidationError as e:
            return _error(str(e), 400)

        except NoRelevantContentError as e:
            logger.info("no_relevant_content", file_name=body.file_name)
            return _error(str(e), 404)

        except UpstreamServiceError as e:
            logger.error("explain_error", stage=e.stage, error=str(e))
            return _error(f"Failed to generate explanation: {e}", 502)

    @app.route("/api/documents/<path:file_name>", methods=["DELETE"])
    async def delete_document(file_name: str):
        """Delete all indexed chunks of a document (idempotent)."""
        try:
            await get_pipeline().delete_document(file_name)
            return jsonify({"success": True, "file_name": file_name})

        except ValidationError as e:
            return _error(str(e), 400)

        except UpstreamServiceError as e:
            logger.error("document_delete_error", file_name=file_name, error=str(e))
            return _error(f"Failed to delete document: {e}", 502)

    @app.route("/api/index/stats")
    async def index_stats():
        """Vector index statistics."""
        return jsonify(get_pipeline().get_stats())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - check the model service is reachable."""
        checks = {"status": "healthy", "llm": False, "index": False}

        try:
            pipeline = get_pipeline()
            checks["index"] = pipeline.get_stats().get("initialized", False)
            checks["llm"] = bool(await pipeline.llm.ping())

            if not (checks["llm"] and checks["index"]):
                checks["status"] = "unhealthy"

            status_code = 200 if checks["status"] == "healthy" else 503
            return jsonify(checks), status_code

        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            checks["status"] = "unhealthy"
            checks["error"] = str(e)
            return jsonify(checks), 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        return _error("Not found", 404)

    @app.errorhandler(413)
    async def too_large(error):
        return _error("File too large", 413)

    @app.errorhandler(500)
    async def internal_error(error):
        logger.error("internal_server_error", error=str(error))
        return _error("Internal server error", 500)

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
