"""
imgstamp - FastAPI Application
"""

import asyncio
import json
import sys
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from imgstamp.config import settings
from imgstamp.modules import (
    CaptionMetadata,
    Exporter,
    ExportItem,
    Ingestor,
    Renderer,
)
from imgstamp.utils.exceptions import DecodeError, EncodeError, UnknownTargetSizeError


# ============================================================================
# Progress Tracking System (Real-time updates via SSE)
# ============================================================================
class ProgressTracker:
    """Track progress of export jobs and stream updates via SSE"""

    def __init__(self):
        self.jobs: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def create_job(self, job_id: str, total: int) -> None:
        """Create a new job"""
        with self._lock:
            self.jobs[job_id] = {
                "status": "running",
                "current": 0,
                "total": total,
                "filename": None,
                "result": None,
                "error": None,
                "timestamp": time.time(),
            }

    def update(self, job_id: str, current: int, total: int, filename: str) -> None:
        """Record one processed item"""
        with self._lock:
            if job_id in self.jobs:
                self.jobs[job_id].update({
                    "current": current,
                    "total": total,
                    "filename": filename,
                    "timestamp": time.time(),
                })

    def complete(self, job_id: str, result: Optional[Dict] = None, error: Optional[str] = None) -> None:
        """Mark job as completed or failed"""
        with self._lock:
            if job_id in self.jobs:
                self.jobs[job_id].update({
                    "status": "failed" if error else "completed",
                    "result": result,
                    "error": error,
                    "timestamp": time.time(),
                })

    def get_job(self, job_id: str) -> Optional[Dict]:
        """Get a snapshot of the job status"""
        with self._lock:
            job = self.jobs.get(job_id)
            return dict(job) if job else None

    def cleanup_old_jobs(self, max_age_seconds: int = 600) -> None:
        """Remove finished jobs older than max_age_seconds"""
        current_time = time.time()
        with self._lock:
            to_remove = [
                job_id for job_id, job in self.jobs.items()
                if job["status"] != "running" and current_time - job["timestamp"] > max_age_seconds
            ]
            for job_id in to_remove:
                del self.jobs[job_id]


progress_tracker = ProgressTracker()

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)
logger.add(settings.LOGS_DIR / "app.log", rotation="50 MB", retention="10 days", level="DEBUG")

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description="Batch white-border and caption stamping for photo prints",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

renderer = Renderer()


# Request/Response Models
class StatusResponse(BaseModel):
    status: str
    message: str


class TargetSizeResponse(BaseModel):
    id: str
    label: str
    width: int
    height: int
    dpi: int


class CaptionModel(BaseModel):
    """Caption text; empty strings are rendered as nothing"""
    date: Optional[str] = Field(None, description="Date text, e.g. 2024-05-01")
    location: str = ""
    description: str = ""

    def to_metadata(self) -> CaptionMetadata:
        return CaptionMetadata(date=self.date, location=self.location, description=self.description)


class SourceRequest(BaseModel):
    base_dir: str = Field(..., description="Photo folder")
    relative_path: str = Field(..., description="Photo path relative to base_dir")


class ScanRequest(BaseModel):
    base_dir: str = Field(..., description="Photo folder to scan recursively")


class ScanEntry(BaseModel):
    relative_path: str
    filename: str


class ThumbnailRequest(SourceRequest):
    size: int = Field(settings.THUMBNAIL_SIZE, gt=0, le=2048)


class PreviewRequest(SourceRequest):
    caption: CaptionModel = CaptionModel()
    target_size: str = Field("6", description="Target size preset id")
    include_text: bool = True
    max_edge: int = Field(settings.PREVIEW_MAX_EDGE, gt=0, le=4096)
    source_width: Optional[int] = Field(None, gt=0)
    source_height: Optional[int] = Field(None, gt=0)


class ExportItemModel(BaseModel):
    relative_path: str
    output_stem: str
    caption: CaptionModel = CaptionModel()


class ExportRequest(BaseModel):
    base_dir: str
    target_size: str
    output_root: Optional[str] = Field(None, description="Parent of the output folder (default: workspace/export)")
    items: List[ExportItemModel]


class ExportJobResponse(BaseModel):
    job_id: str
    total: int


def _source_path(request: SourceRequest) -> Path:
    path = Path(request.base_dir) / request.relative_path
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"Image not found: {request.relative_path}")
    return path


def _run_export(job_id: str, request: ExportRequest) -> None:
    """Background export job"""
    items = [
        ExportItem(
            source_relative_path=item.relative_path,
            output_filename_stem=item.output_stem,
            caption=item.caption.to_metadata(),
        )
        for item in request.items
    ]
    output_root = Path(request.output_root) if request.output_root else settings.EXPORT_DIR

    try:
        exporter = Exporter(renderer)
        result = exporter.export_batch(
            items,
            request.target_size,
            output_root,
            Path(request.base_dir),
            on_progress=lambda current, total, filename: progress_tracker.update(job_id, current, total, filename),
        )
        progress_tracker.complete(job_id, result={
            "exported_count": result.exported_count,
            "failed_count": result.failed_count,
            "total_count": result.total_count,
            "output_dir": str(result.output_dir),
        })
    except Exception as e:
        logger.error(f"Export job {job_id} failed: {e}")
        progress_tracker.complete(job_id, error=str(e))


# API Endpoints
@app.get("/health", response_model=StatusResponse)
async def health():
    """Health check endpoint"""
    return StatusResponse(status="healthy", message="All systems operational")


@app.get("/target-sizes", response_model=List[TargetSizeResponse])
async def target_sizes():
    """List the print size presets"""
    return [TargetSizeResponse(**size.model_dump()) for size in renderer.config.target_sizes]


@app.post("/scan", response_model=List[ScanEntry])
def scan(request: ScanRequest):
    """Recursively list JPEG/PNG photos under base_dir"""
    base_dir = Path(request.base_dir)
    if not base_dir.is_dir():
        raise HTTPException(status_code=404, detail=f"Directory not found: {request.base_dir}")
    return [ScanEntry(relative_path=r.relative_path, filename=r.filename) for r in Ingestor(base_dir).scan()]


@app.post("/metadata")
def metadata(request: SourceRequest):
    """Pixel size and EXIF capture date of one photo"""
    _source_path(request)
    try:
        return Ingestor(Path(request.base_dir)).image_metadata(request.relative_path)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/exif-date")
def exif_date(request: SourceRequest):
    """EXIF capture date as YYYY-MM-DD (null when absent)"""
    _source_path(request)
    return {"date": Ingestor(Path(request.base_dir)).read_capture_date(request.relative_path)}


@app.post("/thumbnail")
def thumbnail(request: ThumbnailRequest):
    """JPEG thumbnail of one photo"""
    _source_path(request)
    try:
        data = Ingestor(Path(request.base_dir)).thumbnail(request.relative_path, request.size)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return Response(content=data, media_type="image/jpeg")


@app.post("/preview")
def preview(request: PreviewRequest):
    """
    Render a reduced resolution preview with the export layout

    Returns:
        JPEG bytes
    """
    path = _source_path(request)
    source_size = None
    if request.source_width and request.source_height:
        source_size = (request.source_width, request.source_height)

    try:
        data = renderer.render_preview(
            path,
            request.target_size,
            request.caption.to_metadata(),
            source_size=source_size,
            include_text=request.include_text,
            max_edge=request.max_edge,
        )
    except UnknownTargetSizeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DecodeError as e:
        logger.error(f"Preview failed for {request.relative_path}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except EncodeError as e:
        logger.error(f"Preview encode failed for {request.relative_path}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return Response(content=data, media_type="image/jpeg")


@app.post("/export", response_model=ExportJobResponse)
async def start_export(request: ExportRequest, background_tasks: BackgroundTasks):
    """
    Start a batch export in the background

    Track it with GET /export/{job_id} or the SSE stream at /progress/{job_id}.
    """
    try:
        renderer.config.target_size(request.target_size)
    except UnknownTargetSizeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    progress_tracker.cleanup_old_jobs()
    job_id = str(uuid4())
    progress_tracker.create_job(job_id, len(request.items))
    background_tasks.add_task(_run_export, job_id, request)

    logger.info(f"Export job {job_id} queued ({len(request.items)} item(s))")
    return ExportJobResponse(job_id=job_id, total=len(request.items))


@app.get("/export/{job_id}")
async def export_status(job_id: str):
    """Current snapshot of an export job"""
    job = progress_tracker.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@app.get("/progress/{job_id}")
async def stream_progress(job_id: str):
    """
    Stream export progress via Server-Sent Events (SSE)

    Usage:
        const eventSource = new EventSource(`/progress/${jobId}`);
        eventSource.addEventListener("progress", (event) => {
            const data = JSON.parse(event.data);
            console.log(data.current, data.total, data.filename);
        });
    """
    async def event_generator():
        job = progress_tracker.get_job(job_id)
        if not job:
            yield {"event": "error", "data": json.dumps({"error": "Job not found"})}
            return

        last_current = -1
        while True:
            job = progress_tracker.get_job(job_id)
            if not job:
                yield {"event": "error", "data": json.dumps({"error": "Job not found"})}
                break

            if job["current"] != last_current:
                yield {
                    "event": "progress",
                    "data": json.dumps({
                        "current": job["current"],
                        "total": job["total"],
                        "filename": job["filename"],
                    }),
                }
                last_current = job["current"]

            if job["status"] != "running":
                yield {
                    "event": "complete",
                    "data": json.dumps({
                        "status": job["status"],
                        "result": job["result"],
                        "error": job["error"],
                    }),
                }
                break

            await asyncio.sleep(0.25)

    return EventSourceResponse(event_generator())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "imgstamp.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
    )
