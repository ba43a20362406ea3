"""Rule-based metadata extraction for banking reference documents.

Derives a :class:`~refdata_rag.models.documents.DocumentMetadata` from the
raw text of a document:

- **title** -- first non-empty line with leading ``#`` markers removed,
  truncated to 100 characters.
- **department** -- a ``Department:`` / ``Dept:`` line, else the first of
  the well-known departments mentioned anywhere, else ``General``.
- **document type** -- keyword rules (policy, procedure, reference ...)
  falling back to modal verbs (must/shall/required) and process wording.
- **effective date** -- ``Effective Date: M/D/YYYY`` (``-`` separators and
  two-digit years accepted).
- **version** -- ``Version: 2.1`` / ``Ver 3`` / ``V 1.0``, default ``1.0``.

Loader-supplied metadata is merged in: keys matching a typed field override
the inferred value, everything else is kept verbatim in ``extensions``.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

import structlog

from refdata_rag.models.documents import DocumentMetadata, DocumentType

logger = structlog.get_logger(logger_name=__name__)

_MAX_TITLE_LENGTH = 100
_UNTITLED = "Untitled Document"
_DEFAULT_DEPARTMENT = "General"
_DEFAULT_VERSION = "1.0"

_KNOWN_DEPARTMENTS: list[tuple[str, re.Pattern[str]]] = [
    (name, re.compile(rf"\b{name}\b", re.IGNORECASE))
    for name in ("Risk", "Compliance", "Operations", "Technology", "Finance", "Legal")
]

_DEPARTMENT_RE = re.compile(
    r"^[ \t#*]*(?:Department|Dept)\.?[ \t]*[:|][ \t]*([A-Za-z][A-Za-z &]*?)[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_EFFECTIVE_DATE_RE = re.compile(
    r"(?:Effective Date|Effective)[:|\s]+(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})\b",
    re.IGNORECASE,
)
_VERSION_RE = re.compile(r"\b(?:Version|Ver|V)[:|\s]+(\d+(?:\.\d+)*)", re.IGNORECASE)

# Checked in order -- first match wins.
_TYPE_KEYWORDS: list[tuple[re.Pattern[str], DocumentType]] = [
    (re.compile(r"\bpolic(?:y|ies)\b", re.IGNORECASE), DocumentType.POLICY),
    (re.compile(r"\bprocedures?\b", re.IGNORECASE), DocumentType.PROCEDURE),
    (re.compile(r"\b(?:reference|lookup|mapping|codes)\b", re.IGNORECASE), DocumentType.REFERENCE_DATA),
    (re.compile(r"\b(?:must|shall|required)\b", re.IGNORECASE), DocumentType.POLICY),
    (re.compile(r"\b(?:step|process|how to)\b", re.IGNORECASE), DocumentType.PROCEDURE),
]

_TYPED_FIELDS = frozenset({"title", "department", "document_type", "effective_date", "version"})


class BankingMetadataExtractor:
    """Extracts typed metadata from banking policy, procedure and reference text."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(
        self,
        content: str | None,
        source_metadata: dict[str, Any] | None = None,
    ) -> DocumentMetadata:
        """Return metadata for *content*, merged with loader *source_metadata*."""
        text = content or ""
        source_metadata = source_metadata or {}

        fields: dict[str, Any] = {
            "title": self.extract_title(text),
            "department": self.extract_department(text),
            "document_type": self.classify(text),
            "effective_date": self.extract_effective_date(text),
            "version": self.extract_version(text),
        }

        extensions: dict[str, Any] = {}
        for key, value in source_metadata.items():
            if key in _TYPED_FIELDS and value not in (None, ""):
                fields[key] = self._coerce_override(key, value, fields[key])
            else:
                extensions[key] = value

        return DocumentMetadata(**fields, extensions=extensions)

    @staticmethod
    def extract_title(text: str) -> str:
        for line in text.splitlines():
            title = line.strip().lstrip("#").strip()
            if title:
                if len(title) > _MAX_TITLE_LENGTH:
                    return title[:_MAX_TITLE_LENGTH] + "..."
                return title
        return _UNTITLED

    @staticmethod
    def extract_department(text: str) -> str:
        match = _DEPARTMENT_RE.search(text)
        if match:
            return match.group(1).strip()

        for department, pattern in _KNOWN_DEPARTMENTS:
            if pattern.search(text):
                return department
        return _DEFAULT_DEPARTMENT

    @staticmethod
    def classify(text: str) -> DocumentType:
        for pattern, document_type in _TYPE_KEYWORDS:
            if pattern.search(text):
                return document_type
        return DocumentType.REFERENCE_DATA

    @staticmethod
    def extract_effective_date(text: str) -> date | None:
        match = _EFFECTIVE_DATE_RE.search(text)
        if not match:
            return None
        return _parse_us_date(match.group(1))

    @staticmethod
    def extract_version(text: str) -> str:
        match = _VERSION_RE.search(text)
        return match.group(1) if match else _DEFAULT_VERSION

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_override(key: str, value: Any, inferred: Any) -> Any:
        """Validate a loader override, keeping the inferred value if it is unusable."""
        if key == "document_type":
            try:
                return DocumentType(value)
            except ValueError:
                logger.warning("metadata_override_ignored", key=key, value=str(value))
                return inferred
        if key == "effective_date":
            if isinstance(value, date):
                return value
            parsed = _parse_us_date(str(value)) or _parse_iso_date(str(value))
            if parsed is None:
                logger.warning("metadata_override_ignored", key=key, value=str(value))
                return inferred
            return parsed
        return str(value)


def _parse_us_date(raw: str) -> date | None:
    """Parse ``M/D/YYYY`` or ``M/D/YY`` (``-`` also accepted as separator)."""
    normalized = raw.replace("-", "/")
    for fmt in ("%m/%d/%Y", "%m/%d/%y"):
        try:
            return datetime.strptime(normalized, fmt).date()
        except ValueError:
            continue
    return None


def _parse_iso_date(raw: str) -> date | None:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None
