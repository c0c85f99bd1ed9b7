from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from papershelf.model.paper import PaperRecord


class SavePaperRequest(BaseModel):
    id: str
    title: str
    abstract: str = ""
    authors: List[str] = []
    published_at: Optional[datetime] = None
    url: Optional[str] = None
    pdf_url: Optional[str] = None

    def to_record(self) -> PaperRecord:
        return PaperRecord(**self.model_dump())


class AddTopicRequest(BaseModel):
    name: str


class MutationResponse(BaseModel):
    success: bool
    changed: bool = True


class AnalyzeUrlRequest(BaseModel):
    pdf_url: str
