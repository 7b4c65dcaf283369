"""Main Quart application for the document Q&A service."""
import logging
from typing import List

from pydantic import BaseModel, ValidationError
from quart import Quart, request, jsonify
import structlog

from docqa import config
from docqa.errors import DocQAError, InvalidRequest
from docqa.llm_client import ollama_client
from docqa.rag.gateways import OllamaEmbeddingGateway, OllamaGenerationGateway
from docqa.rag.ingest import IngestPipeline
from docqa.rag.pipeline import Answer, QueryPipeline, get_pipeline, set_pipeline
from docqa.rag.vector_index import get_vector_index


def configure_logging(level: str = None) -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


configure_logging()

logger = structlog.get_logger()

app = Quart(__name__)


class AskRequest(BaseModel):
    """Body of POST /ask."""

    question: str


class Source(BaseModel):
    source_ref: str
    ordinal: int
    score: float
    content_preview: str


class AskResponse(BaseModel):
    """Successful answer to POST /ask."""

    answer: str
    model: str
    sources: List[Source]


def _build_response(result: Answer, model: str) -> AskResponse:
    return AskResponse(
        answer=result.answer,
        model=model,
        sources=[
            Source(
                source_ref=hit.segment.source_ref,
                ordinal=hit.segment.ordinal,
                score=round(hit.score, 4),
                content_preview=hit.segment.text[:200] + "..."
                if len(hit.segment.text) > 200
                else hit.segment.text,
            )
            for hit in result.hits
        ],
    )


@app.before_serving
async def build_index():
    """Build the document index before accepting traffic.

    Any failure here propagates and stops the server from starting.
    """
    index = get_vector_index()
    embedder = OllamaEmbeddingGateway()

    logger.info("startup_index_build_started", document=str(config.DOCUMENT_PATH))

    pipeline = IngestPipeline(
        embedder,
        index,
        chunk_size=config.CHUNK_SIZE,
        chunk_overlap=config.CHUNK_OVERLAP,
    )
    stats = await pipeline.ingest_file(config.DOCUMENT_PATH)

    set_pipeline(
        QueryPipeline(
            embedder=embedder,
            generator=OllamaGenerationGateway(),
            index=index,
            top_k=config.RETRIEVAL_TOP_K,
        )
    )

    logger.info("startup_index_build_completed", **stats)


@app.route("/ask", methods=["POST"])
@app.route("/api/ask", methods=["POST"])
async def ask():
    """Answer a question about the indexed document.

    Expects JSON body:
    {
        "question": "question text"
    }

    Returns JSON:
    {
        "answer": "generated answer",
        "model": "model_name",
        "sources": [...]
    }

    Errors return {"error": "...", "category": "..."} where category is one
    of bad_request, not_ready, upstream, upstream_timeout or internal.
    """
    data = await request.get_json(silent=True)

    try:
        payload = AskRequest.model_validate(data if data is not None else {})
    except ValidationError as e:
        logger.warning("invalid_ask_request", errors=e.errors(include_url=False))
        error = InvalidRequest("Body must be a JSON object with a string 'question'")
        return jsonify(error.to_dict()), error.status_code

    try:
        pipeline = get_pipeline()
        result = await pipeline.ask(payload.question)

    except DocQAError as e:
        return jsonify(e.to_dict()), e.status_code

    except Exception as e:
        logger.error("ask_endpoint_error", error=str(e), error_type=type(e).__name__)
        return jsonify({
            "error": "An error occurred processing your request. Please try again.",
            "category": "internal",
        }), 500

    model = getattr(pipeline.generator, "model", config.CHAT_MODEL)
    return jsonify(_build_response(result, model).model_dump())


@app.route("/health/ready")
async def health_ready():
    """Readiness probe - check if app can serve requests.

    Checks:
    - The document index is built
    - Ollama service is reachable and the configured models are available
    """
    index = get_vector_index()
    checks = {
        "status": "healthy",
        "index": index.get_stats(),
        "ollama": False,
        "models": False,
    }

    if not index.is_ready:
        checks["status"] = "unhealthy"
        checks["error"] = "Document index is not ready"
        return jsonify(checks), 503

    try:
        models = await ollama_client.list_models()
        checks["ollama"] = True

        missing = [m for m in (config.CHAT_MODEL, config.EMBEDDING_MODEL) if m not in models]
        if missing:
            checks["status"] = "unhealthy"
            checks["error"] = f"Missing models: {', '.join(missing)}"
        else:
            checks["models"] = True

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
    """Handle 404 errors."""
    return jsonify({"error": "Not found", "category": "bad_request"}), 404


@app.errorhandler(405)
async def method_not_allowed(error):
    """Handle 405 errors."""
    return jsonify({"error": "Method not allowed", "category": "bad_request"}), 405


@app.errorhandler(500)
async def internal_error(error):
    """Handle 500 errors."""
    logger.error("internal_server_error", error=str(error))
    return jsonify({"error": "Internal server error", "category": "internal"}), 500


if __name__ == "__main__":
    # For development - run under hypercorn in production
    app.run(host=config.HOST, port=config.PORT, debug=False)
