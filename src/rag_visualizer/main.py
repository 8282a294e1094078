from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import json
import logging
from time import monotonic
from typing import Annotated, Any
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.requests import HTTPConnection

from rag_visualizer.config import Settings, get_settings
from rag_visualizer.errors import DocumentNotFoundError, RateLimitExceededError, ValidationError
from rag_visualizer.live import ChannelClosedError, ConnectionSession
from rag_visualizer.logging_setup import configure_logging
from rag_visualizer.rate_limit import ClientRateLimiter
from rag_visualizer.services.rag import (
    PipelineKind,
    PipelineOrchestrator,
    PipelineResult,
    SAMPLE_DOCUMENTS,
    build_gateway,
    sample_data_payload,
    validate_question,
)

logger = logging.getLogger(__name__)

VECTOR_PREVIEW_DIMENSIONS = 8
MATCH_PREVIEW_CHARS = 100
CONTEXT_PREVIEW_CHARS = 500


class ProcessDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: Any = Field(default=None, alias="documentId")


class QueryRequest(BaseModel):
    question: Any = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings)

    gateway = await build_gateway(settings, SAMPLE_DOCUMENTS)
    app.state.gateway = gateway
    app.state.orchestrator = PipelineOrchestrator(
        gateway,
        SAMPLE_DOCUMENTS,
        chunk_max_length=settings.chunk_max_length,
        top_k=settings.search_top_k,
    )
    app.state.api_limiter = ClientRateLimiter(
        limit=settings.api_rate_limit,
        window_ms=settings.api_rate_window_ms,
    )
    app.state.started_at = monotonic()

    features = gateway.describe()
    logger.info(
        "RAG Visualizer ready on port %d (environment=%s, embeddings=%s, vector_search=%s, generation=%s)",
        settings.port,
        settings.environment,
        features["embeddings"],
        features["vectorSearch"],
        features["generation"],
    )
    yield
    logger.info("RAG Visualizer shut down")


def _cors_options(settings: Settings) -> dict[str, Any]:
    if settings.is_production:
        return {"allow_origins": list(settings.allowed_origins), "allow_methods": ["GET", "POST"]}
    return {"allow_origins": ["*"], "allow_methods": ["GET", "POST"]}


app = FastAPI(title="RAG Visualizer API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, **_cors_options(get_settings()))


@app.middleware("http")
async def log_requests(request: Request, call_next: Any) -> Any:
    if get_settings().is_production:
        client = request.client.host if request.client else "-"
        logger.info("%s %s - %s", request.method, request.url.path, client)
    return await call_next(request)


@app.exception_handler(RateLimitExceededError)
async def rate_limit_exceeded(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    minutes = max(1, exc.retry_after_ms // 60_000)
    return JSONResponse(
        status_code=429,
        content={"error": str(exc), "retryAfter": f"{minutes} minutes"},
    )


@app.exception_handler(Exception)
async def unexpected_failure(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "details": _error_details(exc),
            "timestamp": _now_iso(),
        },
    )


def get_orchestrator(connection: HTTPConnection) -> PipelineOrchestrator:
    return connection.app.state.orchestrator


def enforce_api_rate_limit(request: Request) -> None:
    limiter: ClientRateLimiter = request.app.state.api_limiter
    client_key = request.client.host if request.client else "unknown"
    if not limiter.allow(client_key):
        raise RateLimitExceededError(
            "Too many requests from this IP, please try again later.",
            retry_after_ms=limiter.window_ms,
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_details(exc: Exception) -> str:
    if get_settings().is_production:
        return "Internal server error"
    return str(exc) or type(exc).__name__


def _processing_steps(result: PipelineResult) -> list[dict[str, Any]]:
    return [
        {
            "step": stage.label,
            "completed": stage.status.value == "completed",
            "status": stage.status.value,
            "duration": stage.duration_ms,
        }
        for stage in result.stages
    ]


@app.get("/health")
def health(request: Request) -> dict[str, Any]:
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": _now_iso(),
        "uptime": round(monotonic() - request.app.state.started_at, 3),
        "environment": settings.environment,
        "features": request.app.state.gateway.describe(),
    }


@app.get("/api/sample-data", dependencies=[Depends(enforce_api_rate_limit)])
def sample_data(
    orchestrator: Annotated[PipelineOrchestrator, Depends(get_orchestrator)],
) -> dict[str, Any]:
    return sample_data_payload(orchestrator.documents)


@app.post("/api/process-document", dependencies=[Depends(enforce_api_rate_limit)])
async def process_document(
    orchestrator: Annotated[PipelineOrchestrator, Depends(get_orchestrator)],
    request: ProcessDocumentRequest | None = None,
) -> JSONResponse:
    document_id = request.document_id if request is not None else None

    try:
        result = await orchestrator.run(PipelineKind.INDEXING, {"documentId": document_id})
    except DocumentNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Document not found"})
    except Exception as exc:
        logger.exception("Document processing failed for documentId=%r", document_id)
        return JSONResponse(
            status_code=500,
            content={"error": "Processing failed", "details": _error_details(exc)},
        )

    document = result.document
    if document is None:
        return JSONResponse(status_code=404, content={"error": "Document not found"})

    return JSONResponse(
        status_code=200,
        content={
            "documentId": document.id,
            "title": document.title,
            "chunks": [
                {
                    "id": chunk.chunk_id,
                    "content": chunk.text,
                    "vector": (chunk.embedding or [])[:VECTOR_PREVIEW_DIMENSIONS],
                }
                for chunk in result.chunks
            ],
            "processingSteps": _processing_steps(result),
            "metadata": {
                "processingTimeMs": result.total_ms,
                "timestamp": _now_iso(),
            },
        },
    )


@app.post("/api/query", dependencies=[Depends(enforce_api_rate_limit)])
async def query(
    orchestrator: Annotated[PipelineOrchestrator, Depends(get_orchestrator)],
    request: QueryRequest | None = None,
) -> JSONResponse:
    raw_question = request.question if request is not None else None

    try:
        question = validate_question(raw_question)
    except ValidationError as exc:
        return JSONResponse(status_code=400, content={"error": exc.message, "code": exc.code})

    try:
        result = await orchestrator.run(PipelineKind.QUERY, {"question": question})
    except Exception as exc:
        logger.exception("Query processing error")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Query processing failed",
                "details": _error_details(exc),
                "code": "PROCESSING_ERROR",
                "timestamp": _now_iso(),
            },
        )

    return JSONResponse(
        status_code=200,
        content={
            "question": question,
            "queryVector": result.vector[:VECTOR_PREVIEW_DIMENSIONS],
            "searchResults": [
                {
                    "id": match.id,
                    "score": match.score,
                    "content": match.text[:MATCH_PREVIEW_CHARS] + "...",
                }
                for match in result.matches
            ],
            "context": result.context[:CONTEXT_PREVIEW_CHARS] + "...",
            "response": result.response,
            "metadata": {
                "processingTimeMs": result.total_ms,
                "vectorDimensions": len(result.vector),
                "contextLength": len(result.context),
                "timestamp": _now_iso(),
            },
            "processingSteps": _processing_steps(result),
        },
    )


@app.websocket("/ws")
async def live_channel(
    websocket: WebSocket,
    orchestrator: Annotated[PipelineOrchestrator, Depends(get_orchestrator)],
) -> None:
    await websocket.accept()

    async def send(event: str, data: dict[str, Any]) -> None:
        try:
            await websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise ChannelClosedError(str(exc)) from exc

    session = ConnectionSession(uuid4().hex, send, orchestrator, settings=get_settings())
    client = websocket.client.host if websocket.client else "-"
    logger.info("connection %s opened from %s", session.connection_id, client)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                logger.debug("connection %s sent a non-text frame", session.connection_id)
                continue
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("connection %s sent malformed JSON", session.connection_id)
                continue
            if not isinstance(message, dict):
                continue
            session.handle(str(message.get("event", "")), message.get("data"))
    except WebSocketDisconnect as exc:
        logger.info("connection %s disconnected (code=%s)", session.connection_id, exc.code)
    finally:
        session.close()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("rag_visualizer.main:app", host="0.0.0.0", port=settings.port, reload=False)


if __name__ == "__main__":
    run()
