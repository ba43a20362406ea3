"""Web page loader.

Fetches a fixed list of URLs with httpx and extracts their visible text
with BeautifulSoup, dropping scripts, styles and navigation.  A page that
cannot be fetched is logged and skipped so one dead link does not fail the
whole source.
"""

from __future__ import annotations

import httpx
import structlog
from bs4 import BeautifulSoup

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.models.documents import Document

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; RefDataRagBot/1.0)"
_DEFAULT_TIMEOUT = 30.0
_STRIPPED_TAGS = ["script", "style", "nav", "noscript"]


class WebPageDocumentLoader(IDocumentLoader):
    """Loads one document per configured web page URL."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        urls: list[str],
        user_agent: str = _DEFAULT_USER_AGENT,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._http = http_client
        self._urls = list(urls)
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
        self._timeout = timeout

    async def load_documents(self) -> list[Document]:
        documents: list[Document] = []
        for url in self._urls:
            document = await self._fetch_document(url)
            if document is not None:
                documents.append(document)

        logger.info(
            "web_pages_loaded",
            requested=len(self._urls),
            document_count=len(documents),
        )
        return documents

    def get_loader_name(self) -> str:
        return "WebPageDocumentLoader"

    # -- Private helpers -------------------------------------------------------

    async def _fetch_document(self, url: str) -> Document | None:
        """Fetch *url* and return its text as a document, or ``None`` on error."""
        try:
            response = await self._http.get(
                url,
                headers=self._headers,
                timeout=self._timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("web_page_fetch_failed", url=url, error=str(exc))
            return None

        soup = BeautifulSoup(response.text, "html.parser")
        for tag in soup(_STRIPPED_TAGS):
            tag.decompose()

        title = soup.title.get_text(strip=True) if soup.title else ""
        body = soup.body or soup
        lines = (line.strip() for line in body.get_text("\n").splitlines())
        text = "\n".join(line for line in lines if line)
        if not text:
            logger.warning("web_page_empty", url=url)
            return None

        return Document(
            id=url,
            content=f"# {title}\n\n{text}" if title else text,
            source_path=url,
            metadata={"url": url, "page_title": title},
        )
