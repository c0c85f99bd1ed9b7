from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class EnrichmentStatus:
    """Values of Paper.enrichment_status"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PaperRecord(BaseModel):
    """
    One normalized arXiv search hit.

    This is what the search endpoints return and what ``save`` accepts;
    it carries no AI fields.
    """

    id: str
    title: str
    abstract: str = ""
    authors: List[str] = Field(default_factory=list)
    published_at: Optional[datetime] = None
    url: Optional[str] = None
    pdf_url: Optional[str] = None

    model_config = {
        "str_strip_whitespace": True,
        "extra": "ignore",
    }


class Topic(BaseModel):
    id: int
    name: str


class Enrichment(BaseModel):
    """Structured result of analyzing a paper PDF."""

    summary: str = ""
    institution: str = ""
    topics: List[str] = Field(default_factory=list)


class Paper(BaseModel):
    """
    Catalog entry shared by all users, optionally seen through one
    user's library (``is_saved`` / ``saved_at``).
    """

    id: str
    title: str
    authors: List[str] = Field(default_factory=list)
    abstract: Optional[str] = None
    url: Optional[str] = None
    pdf_url: Optional[str] = None
    published_at: Optional[datetime] = None

    # AI fields
    summary: Optional[str] = None
    institution: Optional[str] = None
    enrichment_status: Optional[str] = None
    enrichment_provider: Optional[str] = None
    topics: List[Topic] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    is_saved: bool = False
    saved_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "extra": "ignore",
    }

    @classmethod
    def from_record(cls, record: PaperRecord) -> "Paper":
        """Unsaved view of a live search hit."""
        return cls(**record.model_dump(), is_saved=False)

    @property
    def topic_names(self) -> List[str]:
        return [t.name for t in self.topics]


class User(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RegenerateResult(BaseModel):
    success: bool
    error: Optional[str] = None
    error_type: Optional[str] = None


class UrlAnalysisResult(BaseModel):
    """On-demand summary of a PDF that is not (yet) in the library."""
    success: bool
    summary: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
