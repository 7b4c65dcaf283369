"""Tests for the HTTP endpoints."""
import httpx
import pytest

from docqa import main
from docqa.errors import UpstreamGenerationError, UpstreamTimeout
from docqa.llm_client import OllamaClient
from docqa.rag.gateways import OllamaEmbeddingGateway
from docqa.rag.pipeline import QueryPipeline, set_pipeline
from docqa.rag.vector_index import VectorIndex

from conftest import RESUME_QUESTION, RESUME_SECTIONS


@pytest.fixture
def client(pipeline):
    """Test client with the resume pipeline installed."""
    set_pipeline(pipeline)
    yield main.app.test_client()
    set_pipeline(None)


@pytest.mark.asyncio
async def test_ask_returns_answer_and_sources(client):
    response = await client.post("/ask", json={"question": RESUME_QUESTION})

    assert response.status_code == 200
    data = await response.get_json()
    assert "BS Computer Science" in data["answer"]
    assert data["sources"] == [
        {
            "source_ref": "doc",
            "ordinal": 1,
            "score": pytest.approx(0.9879, abs=1e-3),
            "content_preview": RESUME_SECTIONS[1],
        }
    ]


@pytest.mark.asyncio
async def test_api_prefixed_route(client):
    response = await client.post("/api/ask", json={"question": RESUME_QUESTION})
    assert response.status_code == 200


@pytest.mark.parametrize(
    "body",
    [{}, {"question": 3}, {"question": None}, {"q": "hi"}, ["question"]],
)
@pytest.mark.asyncio
async def test_malformed_body_is_bad_request(client, body):
    response = await client.post("/ask", json=body)

    assert response.status_code == 400
    data = await response.get_json()
    assert data["category"] == "bad_request"


@pytest.mark.asyncio
async def test_non_json_body_is_bad_request(client):
    response = await client.post("/ask", data="question=hi")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_blank_question_is_bad_request(client, embedder):
    response = await client.post("/ask", json={"question": "   "})

    assert response.status_code == 400
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_not_ready_before_startup():
    set_pipeline(None)
    response = await main.app.test_client().post("/ask", json={"question": RESUME_QUESTION})

    assert response.status_code == 503
    assert (await response.get_json())["category"] == "not_ready"


@pytest.mark.asyncio
async def test_upstream_failure_is_reported(client, generator):
    generator.error = UpstreamGenerationError("model crashed")

    response = await client.post("/ask", json={"question": RESUME_QUESTION})

    assert response.status_code == 502
    assert (await response.get_json())["category"] == "upstream"


@pytest.mark.asyncio
async def test_upstream_timeout_is_reported(client, generator):
    generator.error = UpstreamTimeout("slow", stage="generation")

    response = await client.post("/ask", json={"question": RESUME_QUESTION})

    assert response.status_code == 504
    data = await response.get_json()
    assert data == {"error": "slow", "category": "upstream_timeout", "stage": "generation"}


@pytest.mark.asyncio
async def test_unexpected_error_is_opaque(client, generator):
    generator.error = KeyError("secret detail")

    response = await client.post("/ask", json={"question": RESUME_QUESTION})

    assert response.status_code == 500
    data = await response.get_json()
    assert data["category"] == "internal"
    assert "secret detail" not in data["error"]


@pytest.mark.asyncio
async def test_health_live():
    response = await main.app.test_client().get("/health/live")

    assert response.status_code == 200
    assert await response.get_json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_health_ready_when_index_not_built(monkeypatch):
    monkeypatch.setattr(main, "get_vector_index", lambda: VectorIndex())

    response = await main.app.test_client().get("/health/ready")

    assert response.status_code == 503
    data = await response.get_json()
    assert data["index"]["phase"] == "uninitialized"


@pytest.mark.asyncio
async def test_health_ready_when_built(monkeypatch, resume_index):
    async def list_models():
        return [main.config.CHAT_MODEL, main.config.EMBEDDING_MODEL]

    monkeypatch.setattr(main, "get_vector_index", lambda: resume_index)
    monkeypatch.setattr(main.ollama_client, "list_models", list_models)

    response = await main.app.test_client().get("/health/ready")

    assert response.status_code == 200
    data = await response.get_json()
    assert data["status"] == "healthy"
    assert data["index"]["entry_count"] == 3


@pytest.mark.asyncio
async def test_unknown_route_is_json_404():
    response = await main.app.test_client().get("/nope")

    assert response.status_code == 404
    assert (await response.get_json())["error"] == "Not found"


@pytest.mark.asyncio
async def test_malformed_embedding_reply_is_upstream_failure(generator, resume_index):
    def handler(request):
        return httpx.Response(200, json={"embedding": ["a", "b", "c"]})

    client = OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler))
    set_pipeline(
        QueryPipeline(
            embedder=OllamaEmbeddingGateway(client=client),
            generator=generator,
            index=resume_index,
            top_k=1,
        )
    )
    try:
        response = await main.app.test_client().post("/ask", json={"question": RESUME_QUESTION})
    finally:
        set_pipeline(None)

    assert response.status_code == 502
    assert (await response.get_json())["category"] == "upstream"
    assert generator.prompts == []
