# papershelf/jobs/paper_enrichment_job.py

"""
Paper Enrichment Job - background AI analysis of one saved paper

Used by:
- SchedulerService (fire-and-forget after a save)
- LibraryService.regenerate (inline, errors propagate)
- CLI manual trigger
"""

import logging
from typing import Callable, Optional

from papershelf.config import Config, setup_logging
from papershelf.database.paper_repository import PaperRepository
from papershelf.model.paper import Enrichment, EnrichmentStatus, Paper
from papershelf.service.llm_service import analyze_pdf
from papershelf.service.pdf_download_service import PdfDownloader

logger = logging.getLogger(__name__)

Analyzer = Callable[[bytes], Enrichment]


def enrich_paper(
    paper_id: str,
    pdf_url: str,
    repo: Optional[PaperRepository] = None,
    downloader: Optional[PdfDownloader] = None,
    analyzer: Optional[Analyzer] = None,
) -> Paper:
    """
    Fetch the PDF, analyze it and merge the result into the catalog.

    Errors propagate; see ``run_paper_enrichment_job`` for the detached
    variant.
    """
    repo = repo or PaperRepository()
    downloader = downloader or PdfDownloader()
    analyzer = analyzer or analyze_pdf

    repo.set_enrichment_status(paper_id, EnrichmentStatus.RUNNING)

    try:
        # --- Step 1: PDF bytes ---
        pdf_bytes = downloader.fetch_bytes(pdf_url)

        # --- Step 2: model analysis ---
        logger.info(f"🤖 Analyzing PDF for {paper_id}...")
        enrichment = analyzer(pdf_bytes)

        # --- Step 3: merge AI fields ---
        paper = repo.merge_enrichment(
            paper_id,
            enrichment,
            provider=Config.chat_litellm.model,
        )
    except Exception:
        repo.set_enrichment_status(paper_id, EnrichmentStatus.FAILED)
        raise

    repo.set_enrichment_status(paper_id, EnrichmentStatus.COMPLETED)
    paper.enrichment_status = EnrichmentStatus.COMPLETED
    return paper


def run_paper_enrichment_job(
    paper_id: str,
    pdf_url: str,
    repo: Optional[PaperRepository] = None,
    downloader: Optional[PdfDownloader] = None,
    analyzer: Optional[Analyzer] = None,
) -> None:
    """
    Scheduler entry point.

    Nobody awaits this job, so failures stop here: they are logged and
    recorded as enrichment_status=failed. The summary stays empty until a
    manual regenerate.
    """
    logger.info(f"🚀 Starting enrichment job for paper: {paper_id}")

    try:
        enrich_paper(paper_id, pdf_url, repo=repo, downloader=downloader, analyzer=analyzer)
    except Exception as e:
        logger.error(f"❌ Enrichment job failed for {paper_id}: {e}", exc_info=True)
        return

    logger.info(f"✅ Enrichment job completed for paper: {paper_id}")


if __name__ == "__main__":
    import sys
    if len(sys.argv) < 2:
        print("Usage: python -m papershelf.jobs.paper_enrichment_job <paper_id>")
        sys.exit(1)

    target = PaperRepository().get_paper_by_id(sys.argv[1])
    if not target or not target.pdf_url:
        print(f"Paper not found or has no PDF: {sys.argv[1]}")
        sys.exit(1)

    setup_logging()
    enrich_paper(target.id, target.pdf_url)
