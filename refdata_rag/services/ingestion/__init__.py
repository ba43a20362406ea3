"""Document ingestion pipeline for the reference-data knowledge base.

Pipeline stages for each document a loader returns:

1. **Extract** (metadata_extractor.py / BankingMetadataExtractor) -- title,
   department, document type, effective date and version from the text.
2. **Chunk** (chunker.py / TextChunker) -- sentence-aligned overlapping
   chunks of at most ``chunk_size`` characters.
3. **Embed** (via IEmbeddingProvider) -- one vector per chunk.
4. **Store** (via IVectorStoreProvider) -- one upsert per chunk.

IngestionService runs the stages for every configured loader and tracks the
outcome on an IngestionJob.
"""

from refdata_rag.services.ingestion.chunker import TextChunker
from refdata_rag.services.ingestion.ingestion_service import IngestionService
from refdata_rag.services.ingestion.metadata_extractor import BankingMetadataExtractor

__all__ = [
    "BankingMetadataExtractor",
    "IngestionService",
    "TextChunker",
]
