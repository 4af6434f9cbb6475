"""
FastAPI service exposing template-based PPTX generation as background jobs with
progress logs, plus synchronous style preview and slide analysis.
Run: uvicorn server:app --host 0.0.0.0 --port 8000 --reload
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

from config import LOG_LEVEL, LOG_FILE, DEFAULT_TEMPLATE_ID, PPTX_MIME_TYPE
from utils.logger import get_logger
from utils.job_manager import JobManager, GenerationJob
from utils.template_store import OutputStore
from pptx_engine import ErrorKind, InputError, TemplateEngineError, TemplateGenerator
from pptx_engine.pipeline import coerce_data, coerce_options


logger = get_logger("server", LOG_LEVEL, LOG_FILE)
app = FastAPI(title="PPTX Template Engine API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

job_manager = JobManager()
# Requests may only name templates by URL or registered id, never by server path
generator = TemplateGenerator(output_store=OutputStore(), allow_local_paths=False)

ERROR_STATUS = {
    ErrorKind.INPUT: 400,
    ErrorKind.DOWNLOAD: 502,
    ErrorKind.INVALID_ARCHIVE: 422,
    ErrorKind.TEMPLATE_SLIDE: 500,
    ErrorKind.UNRESOLVED: 422,
    ErrorKind.UPLOAD: 500,
}


class TemplateRef(BaseModel):
    template_id: Optional[str] = Field(None, alias="templateId")
    template_url: Optional[str] = Field(None, alias="templateUrl")

    model_config = {"populate_by_name": True}

    def reference(self) -> str:
        ref = self.template_url or self.template_id or DEFAULT_TEMPLATE_ID
        if not ref:
            raise InputError("templateId or templateUrl is required")
        return ref


class GenerateRequest(TemplateRef):
    data: Dict[str, Any]
    output_file_name: Optional[str] = Field(None, alias="outputFileName")
    options: Optional[Dict[str, Any]] = None
    owner: Optional[str] = None  # saves the deck under OUTPUT_DIR/generated/<owner>/ when set


class AnalyzeRequest(TemplateRef):
    slide_roles: Optional[Dict[int, str]] = Field(None, alias="slideRoles")
    cover_aware: bool = Field(True, alias="coverAware")


def error_body(kind: str, message: str) -> Dict[str, Any]:
    return {"error": {"kind": kind, "message": message}}


@app.exception_handler(TemplateEngineError)
def handle_engine_error(request: Request, exc: TemplateEngineError):
    logger.error(f"{request.url.path}: {exc.kind.value}: {exc.message}")
    return JSONResponse(status_code=ERROR_STATUS.get(exc.kind, 500), content={"error": exc.to_dict()})


@app.post("/jobs/generate")
def start_generate(req: GenerateRequest):
    # Input errors are reported before any job or package exists
    template_ref = req.reference()
    data = coerce_data(req.data)
    options = coerce_options(req.options)
    job = job_manager.create("generate", req.model_dump())

    def run_job(job: GenerationJob):
        logger.info(f"Processing template generation job {job.id}")
        result = generator.generate(template_ref, data, options, req.output_file_name, owner=req.owner)
        job.content = result.content
        job.file_name = result.file_name
        job.result = result.to_dict()

    def on_error(job: GenerationJob, exc: Exception):
        if isinstance(exc, TemplateEngineError):
            job.error = exc.to_dict()
        else:
            job.error = {"kind": "internal", "message": str(exc) or "Internal server error"}
        logger.error(f"Job {job.id} failed: {job.error['message']}")

    job_manager.run(job, run_job, on_error)
    return {"job_id": job.id}


@app.get("/jobs")
def list_jobs():
    return {"jobs": job_manager.list()}


@app.get("/jobs/{job_id}")
def get_job(job_id: str):
    job = job_manager.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return {
        "id": job.id,
        "kind": job.kind,
        "status": job.status,
        "result": job.result,
        "error": job.error,
        "created_at": job.created_at,
        "started_at": job.started_at,
        "completed_at": job.completed_at,
    }


@app.get("/jobs/{job_id}/logs")
def get_job_logs(job_id: str):
    job = job_manager.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"logs": job.logs}


@app.get("/jobs/{job_id}/download")
def download_job_output(job_id: str):
    job = job_manager.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.status != "succeeded" or job.content is None:
        return JSONResponse(status_code=409, content=error_body("input", f"Job is {job.status}; no file available"))
    return Response(
        content=job.content,
        media_type=PPTX_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{job.file_name}"'},
    )


@app.post("/styles")
def extract_styles(req: TemplateRef):
    template_ref = req.reference()
    _, template_name = generator.loader.resolve(template_ref)
    logger.info(f"Extracting template styles: {template_name}")
    styles = generator.extract_styles(template_ref)
    return {"success": True, "template_name": template_name, "styles": styles.to_dict()}


@app.post("/analyze")
def analyze_template(req: AnalyzeRequest):
    slides = generator.analyze(req.reference(), req.slide_roles, req.cover_aware)
    return {"slide_count": len(slides), "slides": [s.to_dict() for s in slides]}
