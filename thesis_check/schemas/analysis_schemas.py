from pydantic import BaseModel, Field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from enum import Enum


# ---- Matching ----

class Chunk(BaseModel):
    source_doc_id: str
    start_offset: int
    end_offset: int
    text: str
    token_count: int


class SimilarityScore(BaseModel):
    method: Literal["cosine", "ngram", "dice"]
    value: float = Field(ge=0.0, le=1.0)


class MatchRecord(BaseModel):
    start_offset: int
    end_offset: int
    matched_text: str
    source_ref: str
    similarity_percent: int   # 0–100
    page_number: int
    source_type: str = "corpus"    # "corpus" | "reference" | "web"
    source_title: str = ""
    source_text: str = ""


class SourceSummary(BaseModel):
    source_id: str
    title: str
    author: Optional[str] = None
    overall_similarity_percent: int
    url: Optional[str] = None
    source_type: str = "corpus"
    domain: Optional[str] = None


class CorpusMatchResult(BaseModel):
    plagiarism_score: int = 0
    match_records: List[MatchRecord] = Field(default_factory=list)
    sources: List[SourceSummary] = Field(default_factory=list)
    total_tokens: int = 0


class WebMatchResult(BaseModel):
    web_plagiarism_score: int = 0
    match_records: List[MatchRecord] = Field(default_factory=list)
    sources: List[SourceSummary] = Field(default_factory=list)
    total_paragraphs: int = 0
    paragraphs_with_hits: int = 0
    queries_succeeded: int = 0
    degraded: bool = False


# ---- AI detection ----

class AIFlaggedSegment(BaseModel):
    start_offset: int
    end_offset: int
    text: str
    confidence_percent: int   # 0–100


class AIScoreResult(BaseModel):
    score: int = 0
    flagged_segments: List[AIFlaggedSegment] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class HeuristicDetection(BaseModel):
    kind: Literal["heuristic"] = "heuristic"
    provider: str = "heuristic"
    score: float = Field(ge=0, le=100)
    weight: float = Field(gt=0)
    details: List[AIFlaggedSegment] = Field(default_factory=list)
    patterns: Dict[str, Any] = Field(default_factory=dict)


class ClassifierDetection(BaseModel):
    kind: Literal["classifier"] = "classifier"
    provider: str
    score: float = Field(ge=0, le=100)
    weight: float = Field(gt=0)
    details: List[AIFlaggedSegment] = Field(default_factory=list)


DetectionResult = Annotated[
    Union[HeuristicDetection, ClassifierDetection],
    Field(discriminator="kind"),
]


class ProviderScore(BaseModel):
    provider: str
    score: float
    weight: float


class FusedAIResult(BaseModel):
    ai_score: int = 0
    flagged_segments: List[AIFlaggedSegment] = Field(default_factory=list)
    providers: List[ProviderScore] = Field(default_factory=list)


# ---- Jobs ----

class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class AnalysisOptions(BaseModel):
    check_traditional: bool = True
    check_ai: bool = True


class AnalysisJob(BaseModel):
    job_id: str
    document_id: str
    status: JobStatus = JobStatus.QUEUED
    submitted_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None


class AnalysisResult(BaseModel):
    document_id: str
    # set by the coordinator; None for results produced outside a job
    job_id: Optional[str] = None
    plagiarism_score: int = 0
    corpus_score: int = 0
    web_score: int = 0
    ai_score: int = 0
    sources: List[SourceSummary] = Field(default_factory=list)
    matches: List[MatchRecord] = Field(default_factory=list)
    flagged_segments: List[AIFlaggedSegment] = Field(default_factory=list)
    ai_providers: List[ProviderScore] = Field(default_factory=list)
    degraded_signals: List[str] = Field(default_factory=list)
    reduced_confidence: bool = False
    processing_seconds: float = 0.0


class CoordinatorStatus(BaseModel):
    running_count: int
    running_document_ids: List[str] = Field(default_factory=list)
    queue_length: int
    max_concurrent: int
