import uuid
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from papershelf.model.paper import User
from papershelf.database.db.session import SessionLocal
from papershelf.database.db.models import UserRow, utcnow


class UserRepository:
    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or SessionLocal

    def sync_or_create(self, email: str, name: Optional[str] = None) -> User:
        """
        Find the user by email (refreshing the display name) or create it.
        """
        email = (email or "").strip()
        if not email:
            raise ValueError("email is required")

        try:
            return self._sync_once(email, name)
        except IntegrityError:
            # first request of a new user raced with another one
            return self._sync_once(email, name)

    def _sync_once(self, email: str, name: Optional[str]) -> User:
        with self._session_factory() as db:
            row = db.query(UserRow).filter_by(email=email).first()

            if row is None:
                row = UserRow(
                    id=str(uuid.uuid4()),
                    email=email,
                    name=name or email.split("@")[0],
                    created_at=utcnow(),
                )
                db.add(row)
                db.commit()
            elif name and row.name != name:
                row.name = name
                db.commit()

            return User.model_validate(row)

    def get_by_email(self, email: str) -> Optional[User]:
        with self._session_factory() as db:
            row = db.query(UserRow).filter_by(email=email).first()
            if not row:
                return None
            return User.model_validate(row)
