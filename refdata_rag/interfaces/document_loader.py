"""Abstract base class for document loaders.

Each configured document source (a directory tree, a Jira project, a
Confluence space, a list of web pages) is represented by one loader.  The
ingestion orchestrator calls every loader in configuration order and treats
a loader failure as a partial failure of the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refdata_rag.models.documents import Document


# Concrete implementations: LocalFileLoader, JiraDocumentLoader,
# ConfluenceDocumentLoader, WebPageDocumentLoader (refdata_rag/providers/loaders/)
class IDocumentLoader(ABC):
    """Contract for document sources consumed by the ingestion pipeline."""

    @abstractmethod
    async def load_documents(self) -> list[Document]:
        """Load every document currently available from this source.

        Individual unreadable items (one file, one page) are skipped and
        logged by the loader itself.

        Returns
        -------
        list[Document]
            Zero or more documents, in source order.

        Raises
        ------
        refdata_rag.utils.errors.DocumentLoadError
            If the source as a whole cannot be read.
        """

    @abstractmethod
    def get_loader_name(self) -> str:
        """Return a human-readable name used in logs and job error messages."""
