"""Document loader implementations, one per kind of document source.

    LocalFileLoader           -- recursive scan of a directory tree
    JiraDocumentLoader        -- issues matching a JQL query
    ConfluenceDocumentLoader  -- pages of one Confluence space
    WebPageDocumentLoader     -- a fixed list of web page URLs
"""

from refdata_rag.providers.loaders.confluence_loader import ConfluenceDocumentLoader
from refdata_rag.providers.loaders.jira_loader import JiraDocumentLoader
from refdata_rag.providers.loaders.local_file_loader import LocalFileLoader
from refdata_rag.providers.loaders.web_page_loader import WebPageDocumentLoader

__all__ = [
    "ConfluenceDocumentLoader",
    "JiraDocumentLoader",
    "LocalFileLoader",
    "WebPageDocumentLoader",
]
