import logging
import re
import time
from typing import List, Optional

import arxiv

from ..config import Config
from ..errors import ProviderError, TransientProviderError
from ..model.paper import PaperRecord
from .arxiv_id import normalize_arxiv_id

logger = logging.getLogger(__name__)

SORT_CRITERIA = {
    "relevance": arxiv.SortCriterion.Relevance,
    "submittedDate": arxiv.SortCriterion.SubmittedDate,
}

SORT_ORDERS = {
    "ascending": arxiv.SortOrder.Ascending,
    "descending": arxiv.SortOrder.Descending,
}

RATE_LIMITED = 429

_arxiv_client: Optional[arxiv.Client] = None


def get_arxiv_client() -> arxiv.Client:
    """
    Process-wide arxiv.Client (lazy singleton).

    num_retries=0: the library retries every error, we only retry 429s.
    """
    global _arxiv_client

    if _arxiv_client is None:
        _arxiv_client = arxiv.Client(
            page_size=Config.arxiv.page_size,
            delay_seconds=Config.arxiv.delay_seconds,
            num_retries=0,
        )

    return _arxiv_client


def _collapse_whitespace(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (text or "").strip())


class ArxivClient:
    def __init__(
        self,
        client: Optional[arxiv.Client] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self.arxiv_client = client or get_arxiv_client()
        self.max_retries = Config.arxiv.max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            Config.arxiv.backoff_seconds if backoff_seconds is None else backoff_seconds
        )

    # =====================================================
    # Public API
    # =====================================================

    def search(
        self,
        query: str,
        offset: int = 0,
        page_size: Optional[int] = None,
        sort_by: str = "submittedDate",
        sort_order: str = "descending",
    ) -> List[PaperRecord]:
        """
        Search arXiv and return normalized records.

        Never raises: any failure is logged and an empty list is returned,
        so "no results" and "provider down" look the same to the caller.
        """
        if not query or not query.strip():
            return []

        if sort_by not in SORT_CRITERIA:
            raise ValueError(f"Unsupported sort field '{sort_by}'")
        if sort_order not in SORT_ORDERS:
            raise ValueError(f"Unsupported sort order '{sort_order}'")

        search_query = arxiv.Search(
            query=query.strip(),
            max_results=page_size or Config.arxiv.default_max_results,
            sort_by=SORT_CRITERIA[sort_by],
            sort_order=SORT_ORDERS[sort_order],
        )

        try:
            results = self._fetch(search_query, offset=max(offset, 0))
        except (TransientProviderError, ProviderError) as e:
            logger.error(f"❌ arXiv search failed for query='{query}': {e}")
            return []

        return [self._arxiv_result_to_record(result) for result in results]

    def latest(self, category: Optional[str] = None) -> List[PaperRecord]:
        """
        Newest submissions in one category (recommendations feed).
        """
        category = category or Config.arxiv.latest_category
        return self.search(
            f"cat:{category}",
            page_size=Config.arxiv.latest_page_size,
            sort_by="submittedDate",
            sort_order="descending",
        )

    def get_by_id(self, paper_id: str) -> Optional[PaperRecord]:
        """
        Live lookup of a single paper, used when it is not in the library.
        """
        arxiv_id = normalize_arxiv_id(paper_id)
        if not arxiv_id:
            return None

        search_query = arxiv.Search(id_list=[arxiv_id], max_results=1)

        try:
            results = self._fetch(search_query)
        except (TransientProviderError, ProviderError) as e:
            logger.error(f"❌ arXiv lookup failed for id='{arxiv_id}': {e}")
            return None

        if not results:
            return None
        return self._arxiv_result_to_record(results[0])

    # =====================================================
    # Transport with rate-limit backoff
    # =====================================================

    def _fetch(self, search_query: arxiv.Search, offset: int = 0) -> List[arxiv.Result]:
        """
        Run one query, retrying only on HTTP 429.

        Backoff starts at ``backoff_seconds`` and doubles:
        max_retries=3 -> sleeps 1s, 2s, 4s -> 4 attempts in total.
        """
        wait = self.backoff_seconds

        for attempt in range(self.max_retries + 1):
            try:
                return list(self.arxiv_client.results(search_query, offset=offset))

            except arxiv.HTTPError as e:
                if e.status != RATE_LIMITED:
                    raise ProviderError(f"arXiv returned HTTP {e.status}") from e

                if attempt == self.max_retries:
                    raise TransientProviderError(
                        f"arXiv rate limit persisted after {self.max_retries} retries"
                    ) from e

                logger.warning(
                    f"⏳ arXiv rate limit hit [{attempt + 1}/{self.max_retries}], retrying in {wait}s..."
                )
                time.sleep(wait)
                wait *= 2

            except Exception as e:
                raise ProviderError(f"arXiv request failed: {e}") from e

        return []

    # =====================================================
    # Mapping
    # =====================================================

    def _get_pdf_url(self, result: arxiv.Result) -> Optional[str]:
        for link in result.links or []:
            if link.title == "pdf":
                return link.href
        return None

    def _arxiv_result_to_record(self, result: arxiv.Result) -> PaperRecord:
        return PaperRecord(
            id=normalize_arxiv_id(result.entry_id),
            title=_collapse_whitespace(result.title),
            abstract=_collapse_whitespace(result.summary),
            authors=[author.name for author in result.authors or []],
            published_at=result.published,
            url=result.entry_id,
            pdf_url=self._get_pdf_url(result),
        )
