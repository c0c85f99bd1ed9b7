from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol

from papershelf.config import Config
from papershelf.crawler.arxiv_client import ArxivClient
from papershelf.crawler.arxiv_id import normalize_arxiv_id
from papershelf.database.paper_repository import PaperRepository
from papershelf.database.saved_paper_repository import SavedPaperRepository
from papershelf.errors import NoPdfAvailable, NotFoundError
from papershelf.jobs.paper_enrichment_job import Analyzer, enrich_paper
from papershelf.model.paper import (
    EnrichmentStatus,
    Paper,
    PaperRecord,
    RegenerateResult,
    Topic,
    UrlAnalysisResult,
    User,
)
from papershelf.service.llm_service import analyze_pdf, suggest_topics
from papershelf.service.pdf_download_service import PdfDownloader

logger = logging.getLogger(__name__)

TopicSuggester = Callable[[str], List[str]]


class EnrichmentRunner(Protocol):
    def submit_enrichment(self, paper_id: str, pdf_url: str) -> str: ...


class LibraryService:
    """
    Search, save and enrich papers for one application process.

    save() returns as soon as the catalog row and the user's link exist;
    AI enrichment is handed to a background runner and only shows up
    through later reads of the paper.

    ``downloader`` and ``analyzer`` apply to the inline paths (regenerate,
    analyze_url). The background job is submitted with only the paper id
    and PDF url, so it always runs with the default PaperRepository,
    PdfDownloader and analyze_pdf.
    """

    def __init__(
        self,
        crawler: Optional[ArxivClient] = None,
        papers: Optional[PaperRepository] = None,
        saved: Optional[SavedPaperRepository] = None,
        runner: Optional[EnrichmentRunner] = None,
        downloader: Optional[PdfDownloader] = None,
        analyzer: Optional[Analyzer] = None,
        topic_suggester: Optional[TopicSuggester] = None,
    ):
        self._crawler = crawler
        self.papers = papers or PaperRepository()
        self.saved = saved or SavedPaperRepository()
        self._runner = runner
        self._downloader = downloader
        self._analyzer = analyzer
        self._topic_suggester = topic_suggester or suggest_topics

    @property
    def crawler(self) -> ArxivClient:
        if self._crawler is None:
            self._crawler = ArxivClient()
        return self._crawler

    @property
    def runner(self) -> EnrichmentRunner:
        if self._runner is None:
            from papershelf.scheduler.scheduler_service import get_scheduler
            self._runner = get_scheduler()
        return self._runner

    # =====================================================
    # Search
    # =====================================================

    def search(
        self,
        query: str,
        offset: int = 0,
        sort_by: str = "submittedDate",
        sort_order: str = "descending",
        page_size: Optional[int] = None,
    ) -> List[PaperRecord]:
        return self.crawler.search(
            query,
            offset=offset,
            page_size=page_size,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    def latest(self, category: Optional[str] = None) -> List[PaperRecord]:
        return self.crawler.latest(category)

    # =====================================================
    # Library
    # =====================================================

    def save(self, user: User, record: PaperRecord) -> Paper:
        """
        Upsert into the catalog, link to the user, spawn enrichment.
        """
        record = record.model_copy(update={"id": normalize_arxiv_id(record.id)})

        self.papers.upsert_paper(record)
        self.saved.link_user_to_paper(user.id, record.id)

        if record.pdf_url:
            self._spawn_enrichment(record.id, record.pdf_url)

        return self.saved.get_saved_paper(user.id, record.id)

    def _spawn_enrichment(self, paper_id: str, pdf_url: str) -> None:
        if not Config.enrichment.enabled:
            logger.info(f"⏸ Background enrichment disabled, not queuing {paper_id}")
            return

        try:
            self.papers.set_enrichment_status(paper_id, EnrichmentStatus.PENDING)
            self.runner.submit_enrichment(paper_id, pdf_url)
        except Exception as e:
            # the save itself already succeeded
            logger.error(f"❌ Could not queue enrichment for {paper_id}: {e}", exc_info=True)

    def remove(self, user: User, paper_id: str) -> None:
        """
        Drop the paper from the user's library; the catalog row stays.
        """
        self.saved.unlink_user_from_paper(user.id, normalize_arxiv_id(paper_id))

    delete_saved_paper = remove

    def list_saved(self, user: User) -> List[Paper]:
        return self.saved.list_saved_for_user(user.id)

    def get_paper(self, user: User, paper_id: str) -> Optional[Paper]:
        """
        Saved/enriched view if the user has the paper, else a live arXiv
        lookup (unsaved, no AI fields), else None.
        """
        arxiv_id = normalize_arxiv_id(paper_id)

        paper = self.saved.get_saved_paper(user.id, arxiv_id)
        if paper:
            return paper

        record = self.crawler.get_by_id(arxiv_id)
        if record:
            return Paper.from_record(record)
        return None

    # =====================================================
    # Enrichment
    # =====================================================

    def regenerate(self, paper_id: str) -> RegenerateResult:
        """
        Re-run fetch + analyze + merge inline and report the outcome.
        """
        arxiv_id = normalize_arxiv_id(paper_id)

        try:
            paper = self.papers.get_paper_by_id(arxiv_id)
            if not paper:
                raise NotFoundError(f"Paper not found: {arxiv_id}")
            if not paper.pdf_url:
                raise NoPdfAvailable(f"No PDF available for paper {arxiv_id}")

            enrich_paper(
                arxiv_id,
                paper.pdf_url,
                repo=self.papers,
                downloader=self._downloader,
                analyzer=self._analyzer,
            )
        except Exception as e:
            logger.error(f"❌ Regenerate failed for {arxiv_id}: {e}")
            return RegenerateResult(success=False, error=str(e), error_type=type(e).__name__)

        return RegenerateResult(success=True)

    def analyze_url(self, pdf_url: str) -> UrlAnalysisResult:
        """
        Summarize a PDF on demand (e.g. a paper the user has not saved).
        Nothing is persisted; failures come back in the result.
        """
        try:
            pdf_bytes = (self._downloader or PdfDownloader()).fetch_bytes(pdf_url)
            enrichment = (self._analyzer or analyze_pdf)(pdf_bytes)
        except Exception as e:
            logger.error(f"❌ On-demand analysis failed for {pdf_url}: {e}")
            return UrlAnalysisResult(success=False, error=str(e), error_type=type(e).__name__)

        return UrlAnalysisResult(success=True, summary=enrichment.summary)

    # =====================================================
    # Manual topics
    # =====================================================

    def add_topic(self, paper_id: str, topic_name: str) -> Topic:
        return self.papers.attach_topic(normalize_arxiv_id(paper_id), topic_name)

    def remove_topic(self, paper_id: str, topic_id: int) -> bool:
        return self.papers.detach_topic(normalize_arxiv_id(paper_id), topic_id)

    def list_topics(self) -> List[Topic]:
        return self.papers.list_topics()

    def auto_tag(self, paper_id: str) -> List[Topic]:
        """
        Ask the model for tags based on summary + title and attach them.
        An empty suggestion list attaches nothing.
        """
        arxiv_id = normalize_arxiv_id(paper_id)

        paper = self.papers.get_paper_by_id(arxiv_id)
        if not paper:
            raise NotFoundError(f"Paper not found: {arxiv_id}")

        names = self._topic_suggester(f"{paper.summary or ''} {paper.title}".strip())
        topics = [self.papers.attach_topic(arxiv_id, name) for name in names]

        logger.info(f"🏷 Auto-tagged {arxiv_id}: {[t.name for t in topics]}")
        return topics
