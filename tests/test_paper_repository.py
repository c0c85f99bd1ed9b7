import pytest
from sqlalchemy import select

from conftest import LostRaceSessions, empty_result, make_record, reads_table
from papershelf.database.db.models import PaperRow, paper_topics
from papershelf.database.paper_repository import PaperRepository
from papershelf.errors import NotFoundError
from papershelf.model.paper import Enrichment


def test_upsert_twice_is_idempotent(paper_repo, record) -> None:
    paper_repo.upsert_paper(record)
    before = paper_repo.get_paper_by_id(record.id)

    paper_repo.upsert_paper(record)
    after = paper_repo.get_paper_by_id(record.id)

    assert after.model_dump() == before.model_dump()
    assert after.updated_at == before.updated_at


def test_upsert_refreshes_bibliographic_fields(paper_repo, record) -> None:
    paper_repo.upsert_paper(record)

    paper_repo.upsert_paper(record.model_copy(update={"title": "LoRA (v2)", "authors": ["Edward Hu"]}))

    paper = paper_repo.get_paper_by_id(record.id)
    assert paper.title == "LoRA (v2)"
    assert paper.authors == ["Edward Hu"]


def test_upsert_never_clobbers_enrichment(paper_repo, record, enrichment) -> None:
    paper_repo.upsert_paper(record)
    paper_repo.merge_enrichment(record.id, enrichment)

    paper_repo.upsert_paper(record.model_copy(update={"title": "Refreshed title"}))

    paper = paper_repo.get_paper_by_id(record.id)
    assert paper.title == "Refreshed title"
    assert paper.summary == "S"
    assert paper.institution == "I"
    assert len(paper.topics) == 3


def test_new_paper_has_no_ai_fields(paper_repo, record) -> None:
    paper = paper_repo.upsert_paper(record)

    assert paper.summary is None
    assert paper.institution is None
    assert paper.topics == []


def test_merge_enrichment_sets_fields_and_topics(paper_repo, record, enrichment) -> None:
    paper_repo.upsert_paper(record)

    paper = paper_repo.merge_enrichment(record.id, enrichment, provider="gemini/test")

    assert paper.summary == "S"
    assert paper.institution == "I"
    assert paper.enrichment_provider == "gemini/test"
    assert sorted(paper.topic_names) == ["Agent", "Large Language Models", "Model Architecture"]


def test_merge_enrichment_overwrites_previous_ai_fields(paper_repo, record, enrichment) -> None:
    paper_repo.upsert_paper(record)
    paper_repo.merge_enrichment(record.id, enrichment)

    paper = paper_repo.merge_enrichment(
        record.id,
        Enrichment(summary="S2", institution="I2", topics=["Agent"]),
    )

    assert paper.summary == "S2"
    assert paper.institution == "I2"
    # attaching an existing edge again is a no-op
    assert sorted(paper.topic_names) == ["Agent", "Large Language Models", "Model Architecture"]


def test_merge_enrichment_unknown_paper_raises(paper_repo, enrichment) -> None:
    with pytest.raises(NotFoundError):
        paper_repo.merge_enrichment("0000.00000", enrichment)


def test_same_topic_on_two_papers_creates_one_topic_row(paper_repo) -> None:
    paper_repo.upsert_paper(make_record("2106.09685v2"))
    paper_repo.upsert_paper(make_record("2305.14314v1"))

    t1 = paper_repo.attach_topic("2106.09685v2", "Agent")
    t2 = paper_repo.attach_topic("2305.14314v1", "Agent")

    assert t1.id == t2.id
    assert [t.name for t in paper_repo.list_topics()] == ["Agent"]
    assert paper_repo.get_paper_by_id("2106.09685v2").topic_names == ["Agent"]
    assert paper_repo.get_paper_by_id("2305.14314v1").topic_names == ["Agent"]


def test_attach_topic_twice_keeps_one_edge(paper_repo, record) -> None:
    paper_repo.upsert_paper(record)

    paper_repo.attach_topic(record.id, "Agent")
    paper_repo.attach_topic(record.id, "Agent")

    assert paper_repo.get_paper_by_id(record.id).topic_names == ["Agent"]


def test_topic_names_are_case_sensitive(paper_repo, record) -> None:
    paper_repo.upsert_paper(record)

    paper_repo.attach_topic(record.id, "agent")
    paper_repo.attach_topic(record.id, "Agent")

    assert sorted(t.name for t in paper_repo.list_topics()) == ["Agent", "agent"]


def test_attach_topic_validation(paper_repo, record) -> None:
    with pytest.raises(NotFoundError):
        paper_repo.attach_topic("0000.00000", "Agent")

    paper_repo.upsert_paper(record)
    with pytest.raises(ValueError):
        paper_repo.attach_topic(record.id, "   ")


def test_detach_topic_keeps_topic_row(paper_repo, record) -> None:
    paper_repo.upsert_paper(record)
    topic = paper_repo.attach_topic(record.id, "Agent")

    assert paper_repo.detach_topic(record.id, topic.id) is True
    assert paper_repo.detach_topic(record.id, topic.id) is False

    assert paper_repo.get_paper_by_id(record.id).topics == []
    assert [t.name for t in paper_repo.list_topics()] == ["Agent"]


def test_detach_topic_unknown_paper_raises(paper_repo) -> None:
    with pytest.raises(NotFoundError):
        paper_repo.detach_topic("0000.00000", 1)


def test_enrichment_status_roundtrip(paper_repo, record) -> None:
    paper_repo.upsert_paper(record)
    assert paper_repo.get_enrichment_status(record.id) is None

    paper_repo.set_enrichment_status(record.id, "running")

    assert paper_repo.get_enrichment_status(record.id) == "running"
    assert paper_repo.get_enrichment_status("0000.00000") is None


def test_topic_created_concurrently_is_reused(session_factory, paper_repo) -> None:
    paper_repo.upsert_paper(make_record("2106.09685v2"))
    paper_repo.upsert_paper(make_record("2305.14314v1"))
    existing = paper_repo.attach_topic("2106.09685v2", "Agent")

    sessions = LostRaceSessions(
        session_factory, "execute", lambda stmt, *rest: reads_table(stmt, "topics"), empty_result()
    )
    topic = PaperRepository(session_factory=sessions).attach_topic("2305.14314v1", "Agent")

    assert sessions.hidden == 1
    assert topic.id == existing.id
    assert [t.name for t in paper_repo.list_topics()] == ["Agent"]
    assert paper_repo.get_paper_by_id("2305.14314v1").topic_names == ["Agent"]


def test_edge_attached_concurrently_is_not_duplicated(session_factory, paper_repo, record) -> None:
    paper_repo.upsert_paper(record)
    paper_repo.attach_topic(record.id, "Agent")

    sessions = LostRaceSessions(
        session_factory, "execute", lambda stmt, *rest: reads_table(stmt, "paper_topics"), empty_result()
    )
    PaperRepository(session_factory=sessions).attach_topic(record.id, "Agent")

    assert sessions.hidden == 1
    with session_factory() as db:
        edges = db.execute(select(paper_topics).where(paper_topics.c.paper_id == record.id)).all()
    assert len(edges) == 1


def test_upsert_losing_insert_race_refreshes_instead(session_factory, paper_repo, record) -> None:
    paper_repo.upsert_paper(record)

    sessions = LostRaceSessions(session_factory, "get", lambda entity, *rest: entity is PaperRow)
    paper = PaperRepository(session_factory=sessions).upsert_paper(
        record.model_copy(update={"title": "Refreshed title"})
    )

    assert sessions.hidden == 1
    assert paper.title == "Refreshed title"
    with session_factory() as db:
        assert db.query(PaperRow).count() == 1
