from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from papershelf.database.user_repository import UserRepository
from papershelf.errors import Unauthorized
from papershelf.model.paper import User
from papershelf.service.library_service import LibraryService


@lru_cache(maxsize=1)
def get_library_service() -> LibraryService:
    """One LibraryService per process (it only holds stateless repositories and lazy clients)."""
    return LibraryService()


def get_user_repo() -> UserRepository:
    return UserRepository()


def get_current_user(
    x_user_email: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    users: UserRepository = Depends(get_user_repo),
) -> User:
    """
    Identity comes from the auth proxy in front of the API; this only
    syncs it into the users table.
    """
    if not x_user_email or not x_user_email.strip():
        raise Unauthorized("Unauthorized: Please sign in to continue.")
    return users.sync_or_create(x_user_email, x_user_name)
