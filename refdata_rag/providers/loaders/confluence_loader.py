"""Confluence page loader.

Pages through ``/rest/api/content`` for one space, expanding the storage
body of each page and reducing its XHTML to plain text with BeautifulSoup.
Pagination stops when the response carries no ``_links.next``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from bs4 import BeautifulSoup

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.models.documents import Document
from refdata_rag.utils.errors import DocumentLoadError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 25


def html_to_text(html: str) -> str:
    """Strip markup from *html*, keeping one line per block element."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


class ConfluenceDocumentLoader(IDocumentLoader):
    """Loads every page of a Confluence space."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        username: str,
        api_token: str,
        space_key: str = "REF",
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(username, api_token)
        self._space_key = space_key

    async def load_documents(self) -> list[Document]:
        documents: list[Document] = []
        start = 0

        while True:
            page = await self._fetch_page(start)
            results: list[dict[str, Any]] = page.get("results") or []
            documents.extend(self._page_to_document(item) for item in results)

            if not results or not (page.get("_links") or {}).get("next"):
                break
            start += len(results)

        logger.info(
            "confluence_pages_loaded",
            space_key=self._space_key,
            document_count=len(documents),
        )
        return documents

    def get_loader_name(self) -> str:
        return "ConfluenceDocumentLoader"

    # -- Private helpers -------------------------------------------------------

    async def _fetch_page(self, start: int) -> dict[str, Any]:
        url = f"{self._base_url}/rest/api/content"
        params = {
            "spaceKey": self._space_key,
            "type": "page",
            "expand": "body.storage",
            "start": start,
            "limit": _PAGE_SIZE,
        }
        try:
            response = await self._http.get(url, params=params, auth=self._auth)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise DocumentLoadError(
                message=f"Confluence content request returned HTTP {exc.response.status_code}",
                provider_name=self.get_loader_name(),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise DocumentLoadError(
                message=f"Confluence content request failed: {exc}",
                provider_name=self.get_loader_name(),
            ) from exc

    def _page_to_document(self, item: dict[str, Any]) -> Document:
        page_id = str(item.get("id", ""))
        title = item.get("title") or ""
        body = ((item.get("body") or {}).get("storage") or {}).get("value") or ""
        text = html_to_text(body)

        return Document(
            id=f"confluence-{page_id}",
            content=f"# {title}\n\n{text}" if title else text,
            source_path=f"confluence://{self._space_key}/{page_id}",
            metadata={
                "space": self._space_key,
                "page_title": title,
            },
        )
