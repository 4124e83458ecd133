from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class CorpusDocument(BaseModel):
    id: str
    content: str
    title: str = ""
    author: Optional[str] = None
    created_at: Optional[datetime] = None


class SearchResult(BaseModel):
    title: str = ""
    url: str
    author: Optional[str] = None


class FlaggedSpan(BaseModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    confidence: float = Field(default=50, ge=0, le=100)


class ClassifierResponse(BaseModel):
    score: float = Field(ge=0, le=100)   # 0-100, higher = more likely AI
    flagged_spans: List[FlaggedSpan] = Field(default_factory=list)
