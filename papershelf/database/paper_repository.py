from __future__ import annotations

import logging
from typing import Callable, List, Optional
from datetime import datetime

from sqlalchemy import select, delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from papershelf.errors import NotFoundError
from papershelf.model.paper import Enrichment, Paper, PaperRecord, Topic
from papershelf.database.db.session import SessionLocal
from papershelf.database.db.models import PaperRow, TopicRow, paper_topics, utcnow

logger = logging.getLogger(__name__)

# Fields refreshed from a search record. AI fields are never in this list.
BIBLIOGRAPHIC_FIELDS = ("title", "authors", "abstract", "url", "pdf_url", "published_at")


def row_to_paper(
    row: PaperRow,
    saved_at: Optional[datetime] = None,
) -> Paper:
    """
    Build the API model from a row. Must be called inside the session
    that loaded the row (topics are lazy-loaded).
    """
    return Paper(
        id=row.id,
        title=row.title,
        authors=list(row.authors or []),
        abstract=row.abstract,
        url=row.url,
        pdf_url=row.pdf_url,
        published_at=row.published_at,
        summary=row.summary,
        institution=row.institution,
        enrichment_status=row.enrichment_status,
        enrichment_provider=row.enrichment_provider,
        topics=[Topic(id=t.id, name=t.name) for t in row.topics],
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_saved=saved_at is not None,
        saved_at=saved_at,
    )


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    # SQLite hands back naive datetimes for timezone-aware columns
    if a is None or b is None:
        return a is b
    if a.tzinfo is None or b.tzinfo is None:
        return a.replace(tzinfo=None) == b.replace(tzinfo=None)
    return a == b


class PaperRepository:
    """
    Global paper catalog: papers, topics and the paper <-> topic edges.

    Every method runs in its own short session, so concurrent writers are
    last-write-wins at the row level.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or SessionLocal

    # =====================================================
    # Upsert (save path)
    # =====================================================

    def upsert_paper(self, record: PaperRecord) -> Paper:
        """
        Insert the paper, or refresh its bibliographic fields.

        summary / institution / topics are left alone so that a bare
        search record can never wipe an existing enrichment.
        """
        try:
            return self._upsert_once(record)
        except IntegrityError:
            # another request inserted the same id first
            logger.info(f"🔁 Concurrent insert for paper {record.id}, refreshing instead")
            return self._upsert_once(record)

    def _upsert_once(self, record: PaperRecord) -> Paper:
        values = record.model_dump(include=set(BIBLIOGRAPHIC_FIELDS))
        values["authors"] = list(values.get("authors") or [])

        with self._session_factory() as db:
            row = db.get(PaperRow, record.id)

            if row is None:
                now = utcnow()
                row = PaperRow(id=record.id, created_at=now, updated_at=now, **values)
                db.add(row)
                db.commit()
                logger.info(f"📌 Paper added to catalog: {record.id}")
                return row_to_paper(row)

            changed = False
            for field, value in values.items():
                current = getattr(row, field)
                if field == "published_at":
                    if _same_instant(current, value):
                        continue
                elif current == value:
                    continue
                setattr(row, field, value)
                changed = True

            if changed:
                row.updated_at = utcnow()
                db.commit()

            return row_to_paper(row)

    # =====================================================
    # Read
    # =====================================================

    def get_paper_by_id(self, paper_id: str) -> Optional[Paper]:
        with self._session_factory() as db:
            row = db.get(PaperRow, paper_id)
            if not row:
                return None
            return row_to_paper(row)

    def exists(self, paper_id: str) -> bool:
        with self._session_factory() as db:
            return db.get(PaperRow, paper_id) is not None

    def list_topics(self) -> List[Topic]:
        with self._session_factory() as db:
            rows = db.execute(select(TopicRow).order_by(TopicRow.name)).scalars().all()
            return [Topic(id=r.id, name=r.name) for r in rows]

    # =====================================================
    # Enrichment (AI fields)
    # =====================================================

    def merge_enrichment(
        self,
        paper_id: str,
        enrichment: Enrichment,
        provider: Optional[str] = None,
    ) -> Paper:
        """
        Overwrite summary / institution and attach every topic.

        Last write wins; concurrent regenerates have no defined order.
        """
        with self._session_factory() as db:
            row = db.get(PaperRow, paper_id)
            if not row:
                raise NotFoundError(f"Paper not found: {paper_id}")

            row.summary = enrichment.summary
            row.institution = enrichment.institution
            row.enrichment_provider = provider
            row.updated_at = utcnow()
            db.commit()

        for name in enrichment.topics:
            topic_id = self._get_or_create_topic(name)
            self._attach_edge(paper_id, topic_id)

        logger.info(
            f"🧠 Enrichment merged for {paper_id}: "
            f"institution='{enrichment.institution}' topics={enrichment.topics}"
        )
        return self.get_paper_by_id(paper_id)

    # =====================================================
    # Topics
    # =====================================================

    def attach_topic(self, paper_id: str, topic_name: str) -> Topic:
        """
        Get-or-create the topic by name and attach it (idempotent).
        """
        name = (topic_name or "").strip()
        if not name:
            raise ValueError("Topic name cannot be empty")

        if not self.exists(paper_id):
            raise NotFoundError(f"Paper not found: {paper_id}")

        topic_id = self._get_or_create_topic(name)
        self._attach_edge(paper_id, topic_id)
        return Topic(id=topic_id, name=name)

    def detach_topic(self, paper_id: str, topic_id: int) -> bool:
        """
        Remove the paper <-> topic edge. The topic row is kept.

        Returns:
            True if an edge was removed, False if it was not attached
        """
        with self._session_factory() as db:
            if db.get(PaperRow, paper_id) is None:
                raise NotFoundError(f"Paper not found: {paper_id}")

            result = db.execute(
                delete(paper_topics).where(
                    paper_topics.c.paper_id == paper_id,
                    paper_topics.c.topic_id == topic_id,
                )
            )
            db.commit()
            return result.rowcount > 0

    def _get_or_create_topic(self, name: str) -> int:
        with self._session_factory() as db:
            topic_id = db.execute(
                select(TopicRow.id).where(TopicRow.name == name)
            ).scalar_one_or_none()
            if topic_id is not None:
                return topic_id

            row = TopicRow(name=name)
            db.add(row)
            try:
                db.commit()
                return row.id
            except IntegrityError:
                # lost the race against another writer; the row exists now
                db.rollback()
                return db.execute(
                    select(TopicRow.id).where(TopicRow.name == name)
                ).scalar_one()

    def _attach_edge(self, paper_id: str, topic_id: int) -> None:
        with self._session_factory() as db:
            exists = db.execute(
                select(paper_topics.c.topic_id).where(
                    paper_topics.c.paper_id == paper_id,
                    paper_topics.c.topic_id == topic_id,
                )
            ).first()
            if exists:
                return

            try:
                db.execute(insert(paper_topics).values(paper_id=paper_id, topic_id=topic_id))
                db.commit()
            except IntegrityError:
                # attached concurrently
                db.rollback()

    # =====================================================
    # Job status tracking
    # =====================================================

    def set_enrichment_status(self, paper_id: str, status: Optional[str]) -> None:
        """
        Status values: pending | running | completed | failed
        """
        with self._session_factory() as db:
            row = db.get(PaperRow, paper_id)
            if not row:
                return
            row.enrichment_status = status
            db.commit()

    def get_enrichment_status(self, paper_id: str) -> Optional[str]:
        with self._session_factory() as db:
            row = db.get(PaperRow, paper_id)
            if not row:
                return None
            return row.enrichment_status
