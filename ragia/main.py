"""Quart application exposing the RAG query endpoint."""
from dataclasses import dataclass
from typing import Optional

import structlog
from quart import Quart, jsonify, request
from quart_cors import cors

from ragia.config import Settings, load_settings
from ragia.errors import RagError, ValidationError
from ragia.llm_client import ModelClient
from ragia.logs import configure_logging
from ragia.rag.embeddings import EmbeddingClient
from ragia.rag.orchestrator import QueryOrchestrator
from ragia.rag.retriever import Retriever
from ragia.rag.store import VectorStore
from ragia.rag.synthesizer import AnswerSynthesizer

logger = structlog.get_logger()


@dataclass
class Services:
    """Per-process components shared by all requests."""

    orchestrator: QueryOrchestrator
    embedder: Optional[EmbeddingClient] = None
    store: Optional[VectorStore] = None


async def build_services(settings: Settings) -> Services:
    """Wire production components and prepare the store schema."""
    model = ModelClient(settings)
    embedder = EmbeddingClient(model, settings)
    store = VectorStore(settings)
    await store.ensure_schema()

    orchestrator = QueryOrchestrator(
        retriever=Retriever(embedder, store, settings),
        synthesizer=AnswerSynthesizer(model, settings),
        settings=settings,
    )
    return Services(orchestrator=orchestrator, embedder=embedder, store=store)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> Quart:
    """Create the Quart app.

    Args:
        settings: Process settings (loaded from the environment if omitted)
        services: Pre-built services; built at startup if omitted
    """
    settings = settings or load_settings()
    app = cors(Quart(__name__), allow_origin=settings.cors_allow_origin)
    app.config["RAGIA_SETTINGS"] = settings
    app.config["RAGIA_SERVICES"] = services

    def _services() -> Services:
        current = app.config["RAGIA_SERVICES"]
        if current is None:
            raise RuntimeError("Services not initialized")
        return current

    @app.before_serving
    async def startup():
        if app.config["RAGIA_SERVICES"] is None:
            app.config["RAGIA_SERVICES"] = await build_services(settings)
        logger.info("ragia_api_started", port=settings.port)

    @app.route("/ping")
    async def ping():
        return jsonify({"ok": True})

    @app.route("/rag", methods=["POST"])
    async def rag():
        """Answer a question from the indexed documents.

        Expects JSON body:
        {
            "question": "question text"   // "pregunta" accepted as alias
        }

        Returns JSON:
        {
            "resultados": [{"ruta": ..., "contenido": ..., "score": ...}],
            "respuesta": "answer text" | null,
            "respuestaError": "generation error" | null
        }
        """
        data = await request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        question = data.get("question", data.get("pregunta"))

        try:
            result = await _services().orchestrator.answer_question(question)
            return jsonify(result.to_response())

        except ValidationError as e:
            logger.warning("rag_request_rejected", error=str(e))
            return jsonify({"error": str(e)}), 400

        except Exception as e:
            logger.error("rag_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({"error": "RAG query failed"}), 500

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe.

        Checks:
        - Embedding service answers with the configured dimension
        - Vector store is initialized
        """
        checks = {"status": "healthy", "embeddings": False, "store": None}

        try:
            services = _services()
            if services.embedder is not None:
                await services.embedder.probe()
                checks["embeddings"] = True
            if services.store is not None:
                checks["store"] = services.store.get_stats()
            return jsonify(checks), 200

        except (RagError, RuntimeError) as e:
            logger.error("health_check_failed", error=str(e))
            checks["status"] = "unhealthy"
            checks["error"] = str(e)
            return jsonify(checks), 503

    @app.route("/health/live")
    async def health_live():
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


_settings = load_settings()
configure_logging(_settings.log_level)
app = create_app(_settings)


if __name__ == "__main__":
    # For development - serve with hypercorn in production
    app.run(host=_settings.host, port=_settings.port)
