from pydantic import BaseModel
from typing import Optional

from thesis_check.schemas.analysis_schemas import AnalysisJob, AnalysisResult


class DocumentUploadResponse(BaseModel):
    document_id: str
    title: str
    characters: int
    words: int
    estimated_minutes: int


class JobResponse(BaseModel):
    job: AnalysisJob
    result: Optional[AnalysisResult] = None
    estimated_minutes: Optional[int] = None
