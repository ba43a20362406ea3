"""Local filesystem document loader.

Walks a base directory recursively and turns every file with a supported
extension into a :class:`Document`.  PDFs are read page by page with
PyMuPDF, Word .docx files paragraph by paragraph with python-docx;
everything else is read as UTF-8 text.  Legacy binary .doc files are not
supported.  A file that cannot be read is logged and skipped; a missing
base directory fails the whole source.
"""

from __future__ import annotations

import asyncio
import zipfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

import docx
import fitz  # PyMuPDF
import structlog
from docx.opc.exceptions import PackageNotFoundError

from refdata_rag.interfaces.document_loader import IDocumentLoader
from refdata_rag.models.documents import Document
from refdata_rag.utils.errors import DocumentLoadError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_EXTENSIONS = (".txt", ".md", ".json", ".pdf", ".docx")

_UNREADABLE = (OSError, UnicodeDecodeError, RuntimeError, ValueError, zipfile.BadZipFile, PackageNotFoundError)


class LocalFileLoader(IDocumentLoader):
    """Loads documents from files under *base_path*.

    Parameters
    ----------
    base_path:
        Root directory to scan.
    supported_extensions:
        Lower-case file suffixes (with the leading dot) to include.
    """

    def __init__(
        self,
        base_path: str,
        supported_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    ) -> None:
        self._base_path = Path(base_path)
        self._extensions = frozenset(ext.lower() for ext in supported_extensions)

    @property
    def supported_extensions(self) -> frozenset[str]:
        return self._extensions

    # ------------------------------------------------------------------
    # IDocumentLoader implementation
    # ------------------------------------------------------------------

    async def load_documents(self) -> list[Document]:
        """Scan the directory tree in a worker thread and return its documents."""
        if not self._base_path.is_dir():
            raise DocumentLoadError(
                message=f"Documents directory not found: {self._base_path}",
                provider_name=self.get_loader_name(),
            )
        documents = await asyncio.to_thread(self._scan)
        logger.info(
            "local_files_loaded",
            base_path=str(self._base_path),
            document_count=len(documents),
        )
        return documents

    def get_loader_name(self) -> str:
        return "LocalFileLoader"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _scan(self) -> list[Document]:
        documents: list[Document] = []
        for path in sorted(self._base_path.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in self._extensions:
                continue
            try:
                documents.append(self._load_file(path))
            except _UNREADABLE as exc:
                logger.warning("local_file_skipped", path=str(path), error=str(exc))
        return documents

    def _load_file(self, path: Path) -> Document:
        if path.suffix.lower() == ".pdf":
            content = self._read_pdf(path)
        elif path.suffix.lower() == ".docx":
            content = self._read_docx(path)
        else:
            content = path.read_text(encoding="utf-8")

        stat = path.stat()
        return Document(
            id=path.relative_to(self._base_path).as_posix(),
            content=content,
            source_path=str(path),
            metadata={
                "file_name": path.name,
                "extension": path.suffix.lower(),
                "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            },
        )

    @staticmethod
    def _read_pdf(path: Path) -> str:
        doc = fitz.open(str(path))
        try:
            pages = [page.get_text("text").strip() for page in doc]
        finally:
            doc.close()
        return "\n\n".join(text for text in pages if text)

    @staticmethod
    def _read_docx(path: Path) -> str:
        document = docx.Document(str(path))
        return "\n\n".join(para.text for para in document.paragraphs if para.text.strip())
