"""refdata-rag: retrieval-augmented Q&A over banking reference documents.

Documents (policies, procedures and reference data) are loaded from the
configured sources, split into overlapping sentence-aware chunks, embedded
and stored in a vector store.  Queries are answered by retrieving the most
similar chunks and handing them to a local language model as context.
"""

__version__ = "1.0.0"
