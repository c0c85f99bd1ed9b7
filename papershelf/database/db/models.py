from sqlalchemy import (
    Column,
    Text,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Table,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone


Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JsonList = JSON().with_variant(JSONB, "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# (paper_id, topic_id) is the primary key: attaching twice cannot create a
# second edge, even from concurrent enrichment jobs.
paper_topics = Table(
    "paper_topics",
    Base.metadata,
    Column("paper_id", Text, ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True),
    Column("topic_id", Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True),
)


class PaperRow(Base):
    """Global catalog entry, shared across users."""
    __tablename__ = "papers"

    id = Column(Text, primary_key=True)  # canonical arXiv id

    title = Column(Text, nullable=False)
    authors = Column(JsonList, nullable=False, default=list)
    abstract = Column(Text)
    url = Column(Text)
    pdf_url = Column(Text)
    published_at = Column(DateTime(timezone=True))

    # AI fields, written only by merge_enrichment
    summary = Column(Text)
    institution = Column(Text)
    enrichment_provider = Column(Text)
    enrichment_status = Column(Text)  # pending | running | completed | failed

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    topics = relationship("TopicRow", secondary=paper_topics, order_by="TopicRow.name")
    saved_by = relationship("SavedPaperRow", back_populates="paper")


class TopicRow(Base):
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)  # UUID
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text)

    created_at = Column(DateTime(timezone=True), default=utcnow)


class SavedPaperRow(Base):
    """A user's link to a catalog paper."""
    __tablename__ = "saved_papers"
    __table_args__ = (
        UniqueConstraint("user_id", "paper_id", name="uq_saved_papers_user_paper"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    paper_id = Column(Text, ForeignKey("papers.id"), nullable=False, index=True)

    saved_at = Column(DateTime(timezone=True), default=utcnow)

    paper = relationship("PaperRow", back_populates="saved_by")
