from __future__ import annotations

import logging
import re
from typing import Optional

import requests

from ..config import Config
from ..errors import PdfDownloadError

logger = logging.getLogger(__name__)

_session: Optional[requests.Session] = None


def get_http_session() -> requests.Session:
    """
    Process-wide requests.Session (lazy singleton).
    """
    global _session

    if _session is None:
        _session = requests.Session()
        _session.headers.update({"User-Agent": Config.pdf_download.user_agent})

    return _session


def secure_url(url: str) -> str:
    """http:// -> https://, everything else untouched."""
    return re.sub(r"^http://", "https://", url.strip(), flags=re.IGNORECASE)


class PdfDownloader:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ):
        self.session = session or get_http_session()
        self.timeout = timeout or Config.pdf_download.timeout

    def _looks_like_pdf(self, content: bytes, content_type: str | None):
        """
        A real PDF, not an HTML CAPTCHA page served with status 200
        """
        if content.startswith(b"%PDF-"):
            return True

        if content_type and "application/pdf" in content_type.lower():
            return True

        return False

    def fetch_bytes(self, url: str) -> bytes:
        """
        Download a PDF into memory over https.

        Raises:
            PdfDownloadError: transport error, HTTP error or non-PDF body
        """
        if not url:
            raise PdfDownloadError("No PDF url given")

        target = secure_url(url)
        logger.info(f"⬇ Fetching PDF: {target}")

        try:
            r = self.session.get(
                target,
                timeout=self.timeout,
                headers={"User-Agent": Config.pdf_download.user_agent},
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise PdfDownloadError(f"Failed to download PDF {target}: {e}") from e

        content = r.content or b""
        if not content:
            raise PdfDownloadError(f"Empty response for {target}")

        if not self._looks_like_pdf(content, r.headers.get("Content-Type", "")):
            raise PdfDownloadError(f"Not a PDF (maybe CAPTCHA): {target}")

        logger.info(f"✅ PDF fetched: {target} ({len(content)} bytes)")
        return content
