from typing import List

from fastapi import APIRouter, Depends

from api.deps import get_current_user, get_library_service
from api.schemas.paper import MutationResponse, SavePaperRequest
from papershelf.model.paper import Paper, User
from papershelf.service.library_service import LibraryService

router = APIRouter(prefix="/api/library", tags=["library"])


@router.get("", response_model=List[Paper])
def list_library(
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """The user's saved papers, most recently saved first."""
    return service.list_saved(user)


@router.post("", response_model=Paper)
def save_paper(
    body: SavePaperRequest,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """Save a search hit; AI enrichment continues in the background."""
    return service.save(user, body.to_record())


@router.delete("/{paper_id:path}", response_model=MutationResponse)
def remove_paper(
    paper_id: str,
    user: User = Depends(get_current_user),
    service: LibraryService = Depends(get_library_service),
):
    """Remove from the user's library only; the shared paper is kept."""
    service.remove(user, paper_id)
    return MutationResponse(success=True)
