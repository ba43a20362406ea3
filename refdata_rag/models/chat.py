"""Query/answer exchange model returned by the RAG engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from refdata_rag.models.documents import RetrievedChunk


class ChatExchange(BaseModel):
    """One answered query with the chunks that grounded the answer.

    ``relevant_chunks`` is ordered by descending similarity.  Exchanges are
    not persisted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: str
    response: str
    relevant_chunks: list[RetrievedChunk] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    user_id: str | None = None
