"""Jira issue loader.

Pages through ``/rest/api/2/search`` with a JQL query using basic auth and
turns each issue into a document whose content is::

    # KEY: summary

    description
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.models.documents import Document
from refdata_rag.utils.errors import DocumentLoadError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 50


class JiraDocumentLoader(IDocumentLoader):
    """Loads Jira issues matching a JQL query."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        username: str,
        api_token: str,
        jql: str = "project = REF",
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(username, api_token)
        self._jql = jql

    async def load_documents(self) -> list[Document]:
        documents: list[Document] = []
        start_at = 0

        while True:
            page = await self._fetch_page(start_at)
            issues: list[dict[str, Any]] = page.get("issues") or []
            documents.extend(self._issue_to_document(issue) for issue in issues)

            total = int(page.get("total", 0))
            start_at += len(issues)
            if not issues or start_at >= total:
                break

        logger.info("jira_issues_loaded", jql=self._jql, document_count=len(documents))
        return documents

    def get_loader_name(self) -> str:
        return "JiraDocumentLoader"

    # -- Private helpers -------------------------------------------------------

    async def _fetch_page(self, start_at: int) -> dict[str, Any]:
        url = f"{self._base_url}/rest/api/2/search"
        params = {"jql": self._jql, "startAt": start_at, "maxResults": _PAGE_SIZE}
        try:
            response = await self._http.get(url, params=params, auth=self._auth)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise DocumentLoadError(
                message=f"Jira search returned HTTP {exc.response.status_code}",
                provider_name=self.get_loader_name(),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise DocumentLoadError(
                message=f"Jira search failed: {exc}",
                provider_name=self.get_loader_name(),
            ) from exc

    @staticmethod
    def _issue_to_document(issue: dict[str, Any]) -> Document:
        key = issue.get("key", "")
        fields = issue.get("fields") or {}
        summary = fields.get("summary") or ""
        description = fields.get("description") or ""
        project = (fields.get("project") or {}).get("key", "")
        issue_type = (fields.get("issuetype") or {}).get("name", "")

        return Document(
            id=key,
            content=f"# {key}: {summary}\n\n{description}",
            source_path=f"jira://{key}",
            metadata={
                "project": project,
                "issue_type": issue_type,
                "summary": summary,
            },
        )
