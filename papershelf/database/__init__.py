from .paper_repository import PaperRepository
from .saved_paper_repository import SavedPaperRepository
from .user_repository import UserRepository

__all__ = [
    "PaperRepository",
    "SavedPaperRepository",
    "UserRepository",
]
