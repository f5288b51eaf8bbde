"""
Celery Worker for Pustaka

Background tasks for:
- PDF ingestion (extract, chunk, embed, upsert)
- Vector cleanup when a document is deleted
"""

import asyncio
import logging
import os
import uuid

from celery import Celery

from src.config import Settings
from src.errors import IngestionError

logger = logging.getLogger(__name__)

# Initialize Celery app
celery_app = Celery(
    "pustaka",
    broker=os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/1"),
    backend=os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/2"),
)

# Configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    # Ingestion is sequential per provider rate limits
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
    task_time_limit=300,
)

# In-memory job tracking (result backend is the durable copy)
_job_store: dict[str, dict] = {}


@celery_app.task(bind=True, name="ingest_document")
def ingest_document(self, document_id: int, file_path: str, filename: str):  # type: ignore[no-untyped-def]
    """
    Ingest an uploaded PDF into the vector index.

    Raises IngestionError when no text at all could be extracted; partial
    embedding/upsert failures are reported in the result instead. The
    worker runs in its own process, so the returned ``pages_count`` and
    ``chunks_count`` are for the caller to record on the document.
    """
    job_id = self.request.id or str(uuid.uuid4())
    _job_store[job_id] = {"status": "processing", "progress": 0, "document_id": document_id}

    try:
        from src.pipelines.ingestion import DocumentIngestor, IngestionPipeline

        settings = Settings.from_env()

        # Extract + chunk
        result = IngestionPipeline.from_settings(settings).process(file_path, filename)
        if not result.chunks:
            raise IngestionError("No text could be extracted from the PDF.")
        _job_store[job_id]["progress"] = 40

        # Embed + upsert
        ingestor = DocumentIngestor.from_settings(settings)
        report = asyncio.run(ingestor.ingest(document_id, filename, result.chunks))

        outcome = {
            "document_id": document_id,
            "pages_count": result.page_count,
            "chunks_count": report.chunks_count,
            "upserted_count": report.upserted_count,
            "failed_batches": report.failed_batches,
            "message": report.message,
        }
        _job_store[job_id].update({"status": "completed", "progress": 100, "result": outcome})

        return {"job_id": job_id, "status": "completed", **outcome}

    except Exception as e:
        logger.error("Document ingestion failed for %s: %s", document_id, e)
        _job_store[job_id].update({"status": "failed", "error": str(e)})
        raise


@celery_app.task(name="delete_document_vectors")
def delete_document_vectors(document_id: int, chunks_count: int):  # type: ignore[no-untyped-def]
    """Delete a document's vectors given the chunk count stored at ingestion."""
    from src.pipelines.ingestion import DocumentIngestor

    ingestor = DocumentIngestor.from_settings(Settings.from_env())
    return asyncio.run(ingestor.delete(document_id, chunks_count))


def get_job_status(job_id: str) -> dict:
    """Get the status of an ingestion job."""
    if job_id in _job_store:
        return {"job_id": job_id, **_job_store[job_id]}

    # Try Celery result backend
    try:
        result = celery_app.AsyncResult(job_id)
        if result.state == "PENDING":
            return {"job_id": job_id, "status": "pending"}
        elif result.state == "STARTED":
            return {"job_id": job_id, "status": "processing"}
        elif result.state == "SUCCESS":
            return {"job_id": job_id, "status": "completed", "result": result.result}
        elif result.state == "FAILURE":
            return {"job_id": job_id, "status": "failed", "error": str(result.result)}
        return {"job_id": job_id, "status": result.state.lower()}
    except Exception as e:
        logger.warning("Could not read job %s from result backend: %s", job_id, e)
        return {"job_id": job_id, "status": "unknown"}


if __name__ == "__main__":
    celery_app.start()
