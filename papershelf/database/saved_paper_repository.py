import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from papershelf.errors import NotFoundError
from papershelf.model.paper import Paper
from papershelf.database.db.session import SessionLocal
from papershelf.database.db.models import PaperRow, SavedPaperRow, utcnow
from papershelf.database.paper_repository import row_to_paper

logger = logging.getLogger(__name__)


class SavedPaperRepository:
    """
    Per-user library: links between users and catalog papers.

    Removing a link never touches the shared paper row.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or SessionLocal

    def link_user_to_paper(self, user_id: str, paper_id: str) -> bool:
        """
        Returns:
            True if a new link was created, False if already saved
        """
        with self._session_factory() as db:
            link = (
                db.query(SavedPaperRow)
                .filter_by(user_id=user_id, paper_id=paper_id)
                .first()
            )
            if link:
                return False

            if db.get(PaperRow, paper_id) is None:
                raise NotFoundError(f"Paper not found: {paper_id}")

            db.add(SavedPaperRow(user_id=user_id, paper_id=paper_id, saved_at=utcnow()))
            try:
                db.commit()
            except IntegrityError:
                # double-click / concurrent save of the same pair
                db.rollback()
                return False

            logger.info(f"🔖 Paper {paper_id} saved by user {user_id}")
            return True

    def unlink_user_from_paper(self, user_id: str, paper_id: str) -> None:
        with self._session_factory() as db:
            link = (
                db.query(SavedPaperRow)
                .filter_by(user_id=user_id, paper_id=paper_id)
                .first()
            )
            if not link:
                raise NotFoundError(f"Paper {paper_id} is not in the library of user {user_id}")

            db.delete(link)
            db.commit()
            logger.info(f"🗑 Paper {paper_id} removed from library of user {user_id}")

    def is_linked(self, user_id: str, paper_id: str) -> bool:
        with self._session_factory() as db:
            return (
                db.query(SavedPaperRow.id)
                .filter_by(user_id=user_id, paper_id=paper_id)
                .first()
            ) is not None

    def get_saved_paper(self, user_id: str, paper_id: str) -> Optional[Paper]:
        """
        The enriched paper if this user saved it, else None.
        """
        with self._session_factory() as db:
            link = (
                db.query(SavedPaperRow)
                .filter_by(user_id=user_id, paper_id=paper_id)
                .first()
            )
            if not link:
                return None
            return row_to_paper(link.paper, saved_at=link.saved_at)

    def list_saved_for_user(self, user_id: str) -> List[Paper]:
        """
        Most recently saved first.
        """
        with self._session_factory() as db:
            links = (
                db.query(SavedPaperRow)
                .filter(SavedPaperRow.user_id == user_id)
                .order_by(SavedPaperRow.saved_at.desc(), SavedPaperRow.id.desc())
                .all()
            )
            return [row_to_paper(link.paper, saved_at=link.saved_at) for link in links]

    def count_savers(self, paper_id: str) -> int:
        with self._session_factory() as db:
            return db.query(SavedPaperRow).filter_by(paper_id=paper_id).count()
