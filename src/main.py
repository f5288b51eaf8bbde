"""
Pustaka - FastAPI Application Entry Point

Thin HTTP adapter over the research assistant: a Server-Sent Events chat
stream, a synchronous ask endpoint and the PDF document lifecycle (upload,
ingest, list, delete).
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from src import __version__
from src.config import MAX_UPLOAD_BYTES, Settings
from src.errors import ConfigurationError
from src.pipelines.ingestion import DocumentIngestor, IngestionPipeline
from src.rag.events import StreamEvent, format_sse
from src.rag.records import SEED_BOOKS, Document, InMemoryRecordStore
from src.rag.vector_store import SearchMode

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


class ChatRequest(BaseModel):
    """Chat request body."""

    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    search_mode: SearchMode = SearchMode.ALL


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    logger.info("Starting Pustaka API v%s", __version__)

    settings = Settings.from_env()
    app.state.settings = settings
    app.state.records = InMemoryRecordStore(books=SEED_BOOKS)
    app.state.pipeline = IngestionPipeline.from_settings(settings)

    try:
        from src.pipelines.research_assistant import ResearchAssistant

        app.state.assistant = ResearchAssistant.from_settings(settings, app.state.records)
        app.state.ingestor = DocumentIngestor.from_settings(settings)
        logger.info("Research assistant initialized")
    except ConfigurationError as e:
        logger.warning("Research assistant unavailable: %s", e)
        app.state.assistant = None
        app.state.ingestor = None

    yield

    logger.info("Shutting down Pustaka API")


app = FastAPI(
    title="Pustaka",
    description="Library research assistant over books and PDF documents",
    version=__version__,
    lifespan=lifespan,
)


def _get_assistant(request: Request):
    assistant = getattr(request.app.state, "assistant", None)
    if assistant is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Research assistant not configured",
        )
    return assistant


# ============================================
# Health Check Endpoints
# ============================================


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": "pustaka-api",
    }


# ============================================
# Chat Endpoints
# ============================================


@app.post("/api/chat", tags=["Chat"])
async def chat_stream_endpoint(body: ChatRequest, request: Request):
    """
    Stream an answer as Server-Sent Events.

    Frames are ``data: {"type": ..., "content": ...}``; the stream always
    ends with a ``done`` or ``error`` frame. A client disconnect closes the
    event generator, which aborts the upstream model request.
    """
    assistant = _get_assistant(request)

    async def event_stream():
        events = assistant.ask(body.message, body.search_mode)
        try:
            async for event in events:
                yield format_sse(event)
        except Exception as e:
            logger.error("Stream error: %s", e)
            yield format_sse(StreamEvent.error(str(e)))
        finally:
            await events.aclose()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.post("/api/chat/ask", tags=["Chat"])
async def chat_ask_endpoint(body: ChatRequest, request: Request) -> dict[str, Any]:
    """Answer a question without streaming."""
    assistant = _get_assistant(request)
    result = await assistant.ask_sync(body.message, body.search_mode)
    return {"answer": result.answer, "sources": result.sources}


# ============================================
# Document Endpoints
# ============================================


def _get_records(request: Request) -> InMemoryRecordStore:
    return request.app.state.records


async def _get_document_or_404(request: Request, document_id: int) -> Document:
    document = await _get_records(request).get_document(document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return document


def _get_ingestor(request: Request):
    ingestor = getattr(request.app.state, "ingestor", None)
    if ingestor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document ingestion not configured",
        )
    return ingestor


def _document_dict(document: Document) -> dict[str, Any]:
    return document.model_dump(exclude={"filepath"})


@app.post(
    "/api/documents/upload",
    tags=["Documents"],
    status_code=status.HTTP_201_CREATED,
)
async def upload_document_endpoint(
    request: Request, file: UploadFile = File(...)
) -> dict[str, Any]:
    """Store an uploaded PDF and register it as a pending document."""
    filename = Path(file.filename or "upload.pdf").name
    if not filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="The file must be a PDF.",
        )

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="The file may not be larger than 20MB.",
        )

    upload_dir = Path(request.app.state.settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_path = upload_dir / f"{uuid.uuid4().hex}.pdf"
    with open(file_path, "wb") as f:
        f.write(content)

    document = _get_records(request).create_document(
        filename, filepath=str(file_path), file_size=len(content)
    )
    logger.info("Uploaded document %d (%s, %d bytes)", document.id, filename, len(content))

    return {
        "message": f"File '{filename}' uploaded successfully.",
        "document": _document_dict(document),
    }


@app.post("/api/documents/{document_id}/ingest", tags=["Documents"])
async def ingest_document_endpoint(document_id: int, request: Request):
    """
    Extract, chunk, embed and index an uploaded PDF.

    The document's status moves ``pending`` -> ``processing`` ->
    ``completed`` or ``failed``; its page and chunk counts are recorded so
    the document resolves when cited and its vectors can be deleted later.
    """
    records = _get_records(request)
    document = await _get_document_or_404(request, document_id)
    if document.status == "processing":
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"message": "Document is already being processed."},
        )
    ingestor = _get_ingestor(request)
    pipeline = request.app.state.pipeline

    records.save_document(document.model_copy(update={"status": "processing"}))
    start_time = time.time()

    try:
        # PDF parsing is CPU-bound
        result = await asyncio.to_thread(
            pipeline.process, document.filepath, document.filename
        )
        if not result.chunks:
            records.save_document(document.model_copy(update={"status": "failed"}))
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={"error": "No text could be extracted from the PDF."},
            )

        report = await ingestor.ingest(document.id, document.filename, result.chunks)
    except Exception as e:
        logger.error("Document %d ingestion failed: %s", document.id, e)
        records.save_document(document.model_copy(update={"status": "failed"}))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"Document processing failed: {e}"},
        )

    records.save_document(
        document.model_copy(
            update={
                "status": "completed",
                "pages_count": result.page_count,
                "chunks_count": report.chunks_count,
            }
        )
    )
    logger.info(
        "Document %d ingested in %.1fms", document.id, (time.time() - start_time) * 1000
    )

    return {
        "message": f"Document '{document.filename}' processed successfully.",
        "pages_count": result.page_count,
        "chunks_count": report.chunks_count,
        "upserted_count": report.upserted_count,
    }


@app.get("/api/documents", tags=["Documents"])
async def list_documents_endpoint(request: Request) -> list[dict[str, Any]]:
    """List uploaded documents, newest first."""
    return [_document_dict(d) for d in _get_records(request).list_documents()]


@app.delete("/api/documents/{document_id}", tags=["Documents"])
async def delete_document_endpoint(document_id: int, request: Request) -> dict[str, Any]:
    """Delete a document, its stored file and its vectors."""
    document = await _get_document_or_404(request, document_id)

    if document.chunks_count > 0:
        ingestor = _get_ingestor(request)
        result = await ingestor.delete(document.id, document.chunks_count)
        if "error" in result:
            logger.error("Vector deletion failed for document %d: %s", document.id, result["error"])

    if document.filepath:
        Path(document.filepath).unlink(missing_ok=True)
    _get_records(request).delete_document(document.id)

    return {"message": f"Document '{document.filename}' deleted successfully."}


# ============================================
# Exception Handlers
# ============================================


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if app.debug else "An unexpected error occurred",
        },
    )


# ============================================
# Main Entry Point
# ============================================


def main():
    """Run the application using uvicorn."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
