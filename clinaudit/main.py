import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

from fastapi import Body, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinaudit import backend
from clinaudit.analysis import run_analysis
from clinaudit.backend import BackendError, BackendUnavailable
from clinaudit.config import settings
from clinaudit.models import DashboardStats, JobResults

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class GatewayError(Exception):
    """Carries the exact status and JSON body to send back to the browser."""

    def __init__(self, status_code: int, content: Any):
        self.status_code = status_code
        self.content = content
        super().__init__(f"{status_code}: {content}")


def _call(
    fn: Callable,
    *args: Any,
    error: str,
    passthrough: bool = False,
    not_found: str | None = None,
) -> Any:
    """Run a backend call, translating failures into a GatewayError.

    ``passthrough`` forwards the backend's own status and body; otherwise a
    backend 404 maps to ``not_found`` (when given) and anything else to 500.
    """
    try:
        return fn(*args)
    except BackendError as exc:
        if passthrough:
            raise GatewayError(exc.status_code, exc.payload) from exc
        if not_found and exc.status_code == 404:
            raise GatewayError(404, {"error": not_found}) from exc
        log.error("%s: %s", error, exc)
        raise GatewayError(500, {"error": error}) from exc
    except (BackendUnavailable, ValueError) as exc:
        log.error("%s: %s", error, exc)
        raise GatewayError(500, {"error": error}) from exc


def _read_upload(file: UploadFile | None) -> tuple[str, bytes]:
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    limit = settings.backend.max_upload_bytes
    content = file.file.read(limit + 1)
    if len(content) > limit:
        raise HTTPException(status_code=413, detail=f"File exceeds the {limit} byte upload limit")
    return file.filename or "upload.xlsx", content


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Analysis backend configured: %s", settings.backend.api_url)
    yield
    backend.close_session()


app = FastAPI(title="clinaudit", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content=exc.content)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.get("/api/health")
def health():
    return {"status": "ok", "backend": settings.backend.base_url}


# ── Reference data & configurations ──


@app.get("/api/icmp-codes")
def icmp_codes():
    return _call(backend.get_json, "icmp-codes", error="Failed to fetch ICMP codes")


@app.get("/api/configurations")
def configurations():
    return _call(backend.get_json, "configurations", error="Failed to fetch configurations")


@app.post("/api/save-configuration")
def save_configuration(body: Any = Body(None)):
    return _call(backend.post_json, "save-configuration", body, error="Failed to save configuration")


# ── Comorbidities ──


@app.get("/api/comorbidities/{code}")
def list_comorbidities(code: str):
    return _call(
        backend.get_json,
        f"comorbidities/{quote(code, safe='')}",
        error="Failed to handle comorbidities request",
    )


@app.post("/api/comorbidities/{code}", status_code=201)
def create_comorbidity(code: str, body: Any = Body(None)):
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="No valid request body provided")
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        raise HTTPException(status_code=400, detail="Comorbidity name is required")

    cleaned = {
        "name": name.strip(),
        "description": str(body.get("description") or "").strip(),
        "keywords": str(body.get("keywords") or "").strip(),
    }
    log.info("Creating comorbidity %r for code %s", cleaned["name"], code)
    return _call(
        backend.post_json,
        f"comorbidities/{quote(code, safe='')}",
        cleaned,
        error="Failed to handle comorbidities request",
        passthrough=True,
    )


@app.put("/api/comorbidities/{code}/{comorbidity_id}")
def update_comorbidity(code: str, comorbidity_id: str, body: Any = Body(None)):
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="No update data provided")
    cleaned = {k: v for k, v in body.items() if v is not None and v != ""}
    if not cleaned:
        raise HTTPException(status_code=400, detail="No update data provided")
    return _call(
        backend.put_json,
        f"comorbidities/{quote(code, safe='')}/{quote(comorbidity_id, safe='')}",
        cleaned,
        error="Failed to handle comorbidity request",
    )


@app.delete("/api/comorbidities/{code}/{comorbidity_id}")
def delete_comorbidity(code: str, comorbidity_id: str):
    return _call(
        backend.delete_json,
        f"comorbidities/{quote(code, safe='')}/{quote(comorbidity_id, safe='')}",
        error="Failed to handle comorbidity request",
    )


# ── File analysis & processing ──


@app.post("/api/analyze-columns")
def analyze_columns(file: UploadFile | None = File(None)):
    filename, content = _read_upload(file)
    return _call(backend.post_file, "analyze-columns", filename, content, error="Failed to analyze columns")


@app.post("/api/analyze-file-structure")
def analyze_file_structure(file: UploadFile | None = File(None)):
    filename, content = _read_upload(file)
    log.info("Analyzing file structure: %s (%d bytes)", filename, len(content))
    return _call(
        backend.post_file,
        "analyze-file-structure",
        filename,
        content,
        error="Failed to analyze file structure",
    )


@app.post("/api/process-file")
def process_file(
    file: UploadFile | None = File(None),
    icmp_code: str | None = Form(None),
    comorbidities: str | None = Form(None),
    column_mappings: str | None = Form(None),
):
    filename, content = _read_upload(file)
    fields = {"icmp_code": icmp_code, "comorbidities": comorbidities, "column_mappings": column_mappings}
    return _call(backend.post_file, "process-file", filename, content, fields, error="Failed to process file")


@app.post("/api/process-file-enhanced")
def process_file_enhanced(
    file: UploadFile | None = File(None),
    icmp_code: str | None = Form(None),
    file_metadata: str | None = Form(None),
    global_settings: str | None = Form(None),
):
    filename, content = _read_upload(file)
    fields = {"icmp_code": icmp_code, "file_metadata": file_metadata, "global_settings": global_settings}
    return _call(
        backend.post_file,
        "process-file-enhanced",
        filename,
        content,
        fields,
        error="Failed to process file with enhanced configuration",
    )


@app.post("/api/upload/{path:path}")
def upload(path: str, file: UploadFile | None = File(None)):
    filename, content = _read_upload(file)
    return _call(
        backend.post_file,
        f"upload/{path}",
        filename,
        content,
        error=f"Failed to upload file for upload/{path}",
        passthrough=True,
    )


@app.post("/api/consolidate-files")
def consolidate_files(body: Any = Body(None)):
    content = _call(backend.post_json_for_bytes, "consolidate-files", body, error="Failed to consolidate files")
    return _xlsx(content, "consolidated-results.xlsx")


# ── Jobs ──


@app.get("/api/job-status/{job_id}")
def job_status(job_id: str):
    return _call(
        backend.get_json,
        f"job-status/{quote(job_id, safe='')}",
        error="Failed to fetch job status",
        not_found="Job not found",
    )


@app.get("/api/job-results/{job_id}", response_model=JobResults)
def job_results(job_id: str, output_format: str = Query("legacy", alias="format")):
    fmt = "enhanced" if output_format == "enhanced" else "legacy"
    data = _call(
        backend.get_json,
        f"job-results/{quote(job_id, safe='')}",
        {"format": fmt},
        error="Failed to fetch job results",
        not_found="Job results not found in backend",
    )
    log.info("Backend response received for job %s", job_id)
    return run_analysis("job_results", data, fmt=fmt)


@app.delete("/api/jobs/{job_id}")
def delete_job(job_id: str):
    return _call(
        backend.delete_json,
        f"jobs/{quote(job_id, safe='')}",
        error=f"Failed to delete job {job_id}",
        passthrough=True,
    )


@app.get("/api/download-results/{job_id}")
def download_results(job_id: str):
    content = _call(
        backend.get_bytes,
        f"download-results/{quote(job_id, safe='')}",
        error="Failed to download results",
        not_found="Results not found",
    )
    return _xlsx(content, f"results-{job_id}.xlsx")


@app.get("/api/dashboard-stats", response_model=DashboardStats)
def dashboard_stats():
    data = _call(backend.get_json, "dashboard-stats", error="Failed to fetch dashboard stats")
    return run_analysis("dashboard_stats", data)
