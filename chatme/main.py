"""Quart application exposing chat and knowledge base ingestion."""
from typing import Optional

from quart import Quart, Response, jsonify, request
import structlog

from chatme.config import load_settings
from chatme.errors import InvalidInput
from chatme.logging_config import configure_logging
from chatme.services import Services, build_services

logger = structlog.get_logger()

CHAT_ERROR_MESSAGE = "Error processing chat request"


def create_app(services: Optional[Services] = None) -> Quart:
    """Create the application.

    Args:
        services: Prebuilt services; when omitted they are built from the
            environment before the app starts serving
    """
    app = Quart(__name__)
    state = {"services": services}

    @app.before_serving
    async def startup():
        if state["services"] is None:
            settings = load_settings()
            configure_logging(settings.log_level)
            state["services"] = build_services(settings)
        logger.info("app_started")

    @app.after_serving
    async def shutdown():
        if state["services"] is not None:
            await state["services"].aclose()
        logger.info("app_stopped")

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer the latest user message using retrieved context.

        Expects JSON body:
        {
            "messages": [{"role": "user", "content": "..."}, ...],
            "stream": false  // optional
        }

        Returns JSON:
        {
            "response": "assistant response text",
            "model": "model_name",
            "sources": [...]
        }
        or, when streaming, the response text as text/plain.
        """
        try:
            data = await request.get_json(silent=True)
            if not isinstance(data, dict):
                return jsonify({"error": "Request body must be a JSON object"}), 400
            messages = data.get("messages")

            if not isinstance(messages, list) or not messages:
                return jsonify({"error": "Missing 'messages' in request body"}), 400
            if not all(isinstance(m, dict) and "content" in m for m in messages):
                return jsonify({"error": "Every message needs 'role' and 'content'"}), 400

            stream = data.get("stream", False)
            if not isinstance(stream, bool):
                return jsonify({"error": "'stream' must be a boolean"}), 400

            latest_message = str(messages[-1]["content"])

            logger.info(
                "chat_request_received",
                message_count=len(messages),
                message_length=len(latest_message),
                stream=stream,
            )

            services = state["services"]
            assembler = services.assembler()
            context = await assembler.build_context(latest_message)
            llm_messages = assembler.build_messages(messages, context)

            if stream:
                tokens = services.chat_client.stream_chat(llm_messages)
                # Wait for the first token so failures still produce a clean 500
                try:
                    first = await tokens.__anext__()
                except StopAsyncIteration:
                    first = ""

                async def generate():
                    if first:
                        yield first.encode("utf-8")
                    async for token in tokens:
                        yield token.encode("utf-8")

                return Response(generate(), mimetype="text/plain")

            answer = await services.chat_client.chat(llm_messages)

            logger.info(
                "chat_response_sent",
                response_length=len(answer),
                used_context=bool(context.retrieved_chunks),
            )

            return jsonify(
                {
                    "response": answer,
                    "model": services.chat_client.model,
                    "sources": context.sources,
                }
            )

        except InvalidInput as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({"error": CHAT_ERROR_MESSAGE}), 500

    @app.route("/api/ingest", methods=["POST"])
    async def ingest():
        """Load web pages into the knowledge base.

        Expects JSON body:
        {
            "urls": ["https://example.com", ...],
            "isolate_failures": false  // optional
        }
        """
        data = await request.get_json(silent=True)
        urls = data.get("urls") if isinstance(data, dict) else None

        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            return jsonify({"success": False, "message": "'urls' must be a list of strings"}), 400

        isolate = data.get("isolate_failures", False)
        if not isinstance(isolate, bool):
            return jsonify({"success": False, "message": "'isolate_failures' must be a boolean"}), 400

        try:
            pipeline = state["services"].ingest_pipeline(isolate_failures=isolate)
            report = await pipeline.ingest(urls)
        except InvalidInput as e:
            return jsonify({"success": False, "message": str(e)}), 400
        except Exception as e:
            logger.error("ingest_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify(
                {"success": False, "message": f"Error updating knowledge base: {e}"}
            ), 500

        return jsonify(report.to_dict())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - check the vector store answers."""
        services = state["services"]
        store_ok = services is not None and await services.store.ping()
        checks = {
            "status": "healthy" if store_ok else "unhealthy",
            "vector_store": store_ok,
        }
        return jsonify(checks), 200 if store_ok else 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
