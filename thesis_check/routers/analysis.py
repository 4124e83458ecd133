from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from typing import Optional

from thesis_check.dependencies.services import get_coordinator, get_corpus, get_result_store
from thesis_check.errors import JobFailure
from thesis_check.logger import get_logger
from thesis_check.schemas.analysis_schemas import AnalysisOptions, CoordinatorStatus, JobStatus
from thesis_check.schemas.api_schemas import DocumentUploadResponse, JobResponse
from thesis_check.services.processing_coordinator import estimate_processing_minutes
from thesis_check.utils.file_utils import allowed_file, extract_text_from_file, within_size_limit

router = APIRouter(prefix="/analysis", tags=["analysis"])

logger = get_logger("analysis_router")


@router.post("/documents", response_model=DocumentUploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    corpus=Depends(get_corpus),
):
    if not allowed_file(file.filename):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {file.filename}")
    content_bytes = await file.read()
    if not within_size_limit(content_bytes):
        raise HTTPException(status_code=413, detail="File too large")
    try:
        text = extract_text_from_file(content_bytes, file.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not text.strip():
        raise HTTPException(status_code=400, detail="No text could be extracted from the file")

    doc = corpus.create_document(text, title=title or file.filename, author=author)
    logger.info(f"📥 Stored {file.filename} as {doc.id} ({len(text)} chars)")
    return DocumentUploadResponse(
        document_id=doc.id,
        title=doc.title,
        characters=len(text),
        words=len(text.split()),
        estimated_minutes=estimate_processing_minutes(len(content_bytes) / 1024),
    )


@router.post("/jobs/{document_id}", response_model=JobResponse)
async def submit_analysis(
    document_id: str,
    options: Optional[AnalysisOptions] = None,
    wait: bool = Query(False, description="Wait for the job to finish before responding"),
    corpus=Depends(get_corpus),
    coordinator=Depends(get_coordinator),
):
    try:
        doc = corpus.get_document(document_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Document not found")

    options = options or AnalysisOptions()
    job, future = coordinator.enqueue(document_id, options)
    estimate = estimate_processing_minutes(len(doc.content.encode("utf-8")) / 1024, options)
    if not wait:
        return JobResponse(job=coordinator.get_job(job.job_id), estimated_minutes=estimate)

    try:
        result = await future
    except JobFailure as e:
        logger.error(f"❌ {e}")
        return JobResponse(job=coordinator.get_job(job.job_id), estimated_minutes=estimate)
    return JobResponse(job=coordinator.get_job(job.job_id), result=result, estimated_minutes=estimate)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    coordinator=Depends(get_coordinator),
    results=Depends(get_result_store),
):
    job = coordinator.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    result = results.get(job.job_id) if job.status == JobStatus.DONE else None
    return JobResponse(job=job, result=result)


@router.get("/system-status", response_model=CoordinatorStatus)
async def system_status(coordinator=Depends(get_coordinator)):
    return coordinator.status()
