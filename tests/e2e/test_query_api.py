"""End-to-end tests for the HTTP query surface."""
import pytest

from ragia.main import Services, create_app
from ragia.rag.embeddings import EmbeddingClient
from ragia.rag.models import DocumentChunk
from ragia.rag.orchestrator import QueryOrchestrator
from ragia.rag.retriever import Retriever
from ragia.rag.synthesizer import AnswerSynthesizer
from tests.conftest import FakeModel, fake_vector


def make_app(settings, store, model):
    embedder = EmbeddingClient(model, settings)
    services = Services(
        orchestrator=QueryOrchestrator(
            retriever=Retriever(embedder, store, settings),
            synthesizer=AnswerSynthesizer(model, settings),
            settings=settings,
        ),
        embedder=embedder,
        store=store,
    )
    return create_app(settings, services)


async def seed(store, count):
    for i in range(count):
        text = f"chunk body {i}"
        await store.insert(
            DocumentChunk(source_id=f"doc.md#{i}", text=text, embedding=tuple(fake_vector(text)))
        )


@pytest.mark.asyncio
async def test_ping(settings, store):
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.get("/ping")

    assert response.status_code == 200
    assert await response.get_json() == {"ok": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"question": ""}, {"question": "   "}, {"question": 5}])
async def test_rejects_invalid_question(settings, store, body):
    model = FakeModel()
    client = make_app(settings, store, model).test_client()

    response = await client.post("/rag", json=body)

    assert response.status_code == 400
    assert "error" in await response.get_json()
    assert model.embed_calls == []


@pytest.mark.asyncio
async def test_rejects_non_json_body(settings, store):
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.post("/rag", data="question=hi")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_answer_shape(settings, store):
    await seed(store, 3)
    client = make_app(settings, store, FakeModel(answer="See (Source 1).")).test_client()

    response = await client.post("/rag", json={"question": "chunk body 2"})
    data = await response.get_json()

    assert response.status_code == 200
    assert set(data) == {"resultados", "respuesta", "respuestaError"}
    assert data["resultados"][0]["ruta"] == "doc.md#2"
    assert data["resultados"][0]["contenido"] == "chunk body 2"
    assert data["respuesta"] == "See (Source 1)."
    assert data["respuestaError"] is None


@pytest.mark.asyncio
async def test_pregunta_alias(settings, store):
    await seed(store, 1)
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.post("/rag", json={"pregunta": "chunk body 0"})

    assert response.status_code == 200
    assert (await response.get_json())["resultados"][0]["ruta"] == "doc.md#0"


@pytest.mark.asyncio
async def test_top_k_bounds_results(settings, store):
    await seed(store, 10)
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.post("/rag", json={"question": "something else entirely"})
    results = (await response.get_json())["resultados"]

    assert len(results) == 4
    scores = [r["score"] for r in results]
    assert scores == sorted(scores, reverse=True)
    assert all(-1.0 <= s <= 1.0 for s in scores)


@pytest.mark.asyncio
async def test_generation_failure_still_returns_results(settings, store, failing_generation_model):
    await seed(store, 2)
    client = make_app(settings, store, failing_generation_model).test_client()

    response = await client.post("/rag", json={"question": "chunk body 1"})
    data = await response.get_json()

    assert response.status_code == 200
    assert len(data["resultados"]) == 2
    assert data["respuesta"] is None
    assert "500" in data["respuestaError"]


@pytest.mark.asyncio
async def test_generation_disabled(settings, store):
    await seed(store, 1)
    disabled = settings.model_copy(update={"llm_enabled": False})
    client = make_app(disabled, store, FakeModel()).test_client()

    data = await (await client.post("/rag", json={"question": "chunk body 0"})).get_json()

    assert data["respuesta"] is None
    assert data["respuestaError"] is None
    assert len(data["resultados"]) == 1


@pytest.mark.asyncio
async def test_retrieval_failure_maps_to_500(settings, store):
    client = make_app(settings, store, FakeModel(fail_embed_after=0)).test_client()

    response = await client.post("/rag", json={"question": "anything"})

    assert response.status_code == 500
    assert await response.get_json() == {"error": "RAG query failed"}


@pytest.mark.asyncio
async def test_health_ready(settings, store):
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.get("/health/ready")
    data = await response.get_json()

    assert response.status_code == 200
    assert data["embeddings"] is True
    assert data["store"]["initialized"] is True


@pytest.mark.asyncio
async def test_health_ready_unhealthy(settings, store):
    client = make_app(settings, store, FakeModel(fail_embed_after=0)).test_client()

    response = await client.get("/health/ready")

    assert response.status_code == 503
    assert (await response.get_json())["status"] == "unhealthy"


@pytest.mark.asyncio
async def test_health_live_and_not_found(settings, store):
    client = make_app(settings, store, FakeModel()).test_client()

    assert (await client.get("/health/live")).status_code == 200

    response = await client.get("/nope")
    assert response.status_code == 404
    assert await response.get_json() == {"error": "Not found"}


@pytest.mark.asyncio
async def test_rejects_json_array_body(settings, store):
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.post("/rag", json=["what is this?"])

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cors_allows_any_origin_by_default(settings, store):
    client = make_app(settings, store, FakeModel()).test_client()

    response = await client.get("/ping", headers={"Origin": "http://web.test"})

    assert response.headers.get("Access-Control-Allow-Origin") == "*"


@pytest.mark.asyncio
async def test_cors_origin_list(settings, store):
    restricted = settings.model_copy(update={"cors_origins": "http://web.test,http://admin.test"})
    client = make_app(restricted, store, FakeModel()).test_client()

    allowed = await client.post(
        "/rag", json={"question": "hi"}, headers={"Origin": "http://admin.test"}
    )
    denied = await client.get("/ping", headers={"Origin": "http://evil.test"})

    assert allowed.headers.get("Access-Control-Allow-Origin") == "http://admin.test"
    assert "Access-Control-Allow-Origin" not in denied.headers
