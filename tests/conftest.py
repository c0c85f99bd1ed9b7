import os

# must be set before papershelf.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone
from typing import Any, Callable, List, Tuple
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from papershelf.database.db.models import Base
from papershelf.database.paper_repository import PaperRepository
from papershelf.database.saved_paper_repository import SavedPaperRepository
from papershelf.database.user_repository import UserRepository
from papershelf.model.paper import Enrichment, PaperRecord


class FakeRunner:
    """Collects submitted enrichment jobs instead of running them."""

    def __init__(self) -> None:
        self.submitted: List[Tuple[str, str]] = []

    def submit_enrichment(self, paper_id: str, pdf_url: str) -> str:
        self.submitted.append((paper_id, pdf_url))
        return f"paper_enrichment_{paper_id}"


class FakeDownloader:
    def __init__(self, content: bytes = b"%PDF-1.7 fake") -> None:
        self.content = content
        self.urls: List[str] = []

    def fetch_bytes(self, url: str) -> bytes:
        self.urls.append(url)
        return self.content


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def paper_repo(session_factory) -> PaperRepository:
    return PaperRepository(session_factory=session_factory)


@pytest.fixture
def saved_repo(session_factory) -> SavedPaperRepository:
    return SavedPaperRepository(session_factory=session_factory)


@pytest.fixture
def user_repo(session_factory) -> UserRepository:
    return UserRepository(session_factory=session_factory)


@pytest.fixture
def alice(user_repo):
    return user_repo.sync_or_create("alice@example.com", "Alice")


@pytest.fixture
def bob(user_repo):
    return user_repo.sync_or_create("bob@example.com", "Bob")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def enrichment() -> Enrichment:
    return Enrichment(
        summary="S",
        institution="I",
        topics=["Agent", "Large Language Models", "Model Architecture"],
    )


def make_record(paper_id: str = "2106.09685v2", **overrides) -> PaperRecord:
    values = dict(
        id=paper_id,
        title="LoRA: Low-Rank Adaptation of Large Language Models",
        abstract="We propose LoRA...",
        authors=["Edward Hu", "Yelong Shen"],
        published_at=datetime(2021, 6, 17, tzinfo=timezone.utc),
        url=f"http://arxiv.org/abs/{paper_id}",
        pdf_url=f"http://arxiv.org/pdf/{paper_id}",
    )
    values.update(overrides)
    return PaperRecord(**values)


@pytest.fixture
def record() -> PaperRecord:
    return make_record()


class LostRaceSessions:
    """
    Session factory whose first matching read comes back empty, as if a
    concurrent writer committed the row right after that read.

    ``method`` is the Session method to intercept ("get", "execute" or
    "query"); ``match`` receives its positional arguments.
    """

    def __init__(self, session_factory, method: str, match: Callable[..., bool], missing: Any = None) -> None:
        self._session_factory = session_factory
        self._method = method
        self._match = match
        self._missing = missing
        self.hidden = 0

    def __call__(self):
        db = self._session_factory()
        real = getattr(db, self._method)

        def read(*args, **kwargs):
            if self.hidden == 0 and self._match(*args):
                self.hidden += 1
                return self._missing
            return real(*args, **kwargs)

        setattr(db, self._method, read)
        return db


def empty_result() -> MagicMock:
    """Stand-in for a Result / Query that finds nothing."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    result.first.return_value = None
    result.filter_by.return_value.first.return_value = None
    return result


def reads_table(statement, table_name: str) -> bool:
    froms = getattr(statement, "get_final_froms", lambda: [])()
    return any(getattr(f, "name", None) == table_name for f in froms)
