"""refdata-rag domain models.

    - documents.py -- loaded documents, derived metadata, chunks, search hits
    - jobs.py      -- ingestion job lifecycle
    - chat.py      -- answered query exchanges
"""

from __future__ import annotations

from refdata_rag.models.chat import ChatExchange
from refdata_rag.models.documents import (
    Document,
    DocumentChunk,
    DocumentMetadata,
    DocumentType,
    RetrievedChunk,
    TextChunk,
)
from refdata_rag.models.jobs import IngestionJob, IngestionStatus

__all__ = [
    "ChatExchange",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "DocumentType",
    "IngestionJob",
    "IngestionStatus",
    "RetrievedChunk",
    "TextChunk",
]
