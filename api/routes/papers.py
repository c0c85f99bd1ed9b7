from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_current_user, get_library_service
from api.schemas.paper import AddTopicRequest, AnalyzeUrlRequest, MutationResponse
from papershelf.model.paper import Paper, PaperRecord, RegenerateResult, Topic, UrlAnalysisResult, User
from papershelf.service.library_service import LibraryService

router = APIRouter(prefix="/api", tags=["papers"])


@router.get("/search", response_model=List[PaperRecord])
def search_papers(
    q: str = Query(default=""),
    start: int = Query(default=0, ge=0),
    size: Optional[int] = Query(default=None, ge=1, le=100),
    sort_by: str = Query(default="submittedDate", pattern="^(relevance|submittedDate)$"),
    order: str = Query(default="descending", pattern="^(ascending|descending)$"),
    service: LibraryService = Depends(get_library_service),
):
    """Live arXiv search. An empty list also covers provider outages."""
    return service.search(q, offset=start, sort_by=sort_by, sort_order=order, page_size=size)


@router.get("/latest", response_model=List[PaperRecord])
def latest_papers(
    category: Optional[str] = Query(default=None),
    service: LibraryService = Depends(get_library_service),
):
    """Newest papers in a category (recommendations)."""
    return service.latest(category)


@router.get("/topics", response_model=List[Topic])
def list_topics(
    service: LibraryService = Depends(get_library_service),
):
    return service.list_topics()


@router.post("/papers/{paper_id:path}/regenerate", response_model=RegenerateResult)
def regenerate_paper(
    paper_id: str,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """Re-run the AI analysis inline; failures come back in the body."""
    return service.regenerate(paper_id)


@router.post("/analyze", response_model=UrlAnalysisResult)
def analyze_url(
    body: AnalyzeUrlRequest,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """Summarize a PDF without saving it; failures come back in the body."""
    return service.analyze_url(body.pdf_url)


@router.post("/papers/{paper_id:path}/auto-tag", response_model=List[Topic])
def auto_tag_paper(
    paper_id: str,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """Attach model-suggested tags; an empty list when the model gives none."""
    return service.auto_tag(paper_id)


@router.post("/papers/{paper_id:path}/topics", response_model=Topic)
def add_topic(
    paper_id: str,
    body: AddTopicRequest,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    return service.add_topic(paper_id, body.name)


@router.delete("/papers/{paper_id:path}/topics/{topic_id}", response_model=MutationResponse)
def remove_topic(
    paper_id: str,
    topic_id: int,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    removed = service.remove_topic(paper_id, topic_id)
    return MutationResponse(success=True, changed=removed)


@router.get("/papers/{paper_id:path}", response_model=Paper)
def get_paper(
    paper_id: str,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """Saved view if in the user's library, else live arXiv data."""
    paper = service.get_paper(user, paper_id)
    if not paper:
        raise HTTPException(status_code=404, detail="Paper not found")
    return paper
