"""Read-only document context sources."""

import json
import logging
from pathlib import Path

from .exceptions import DocumentNotFound
from .models import DocumentContext

logger = logging.getLogger(__name__)


class DocumentStore:
    """Serves document contexts from memory, falling back to ``<id>.json`` files.

    Each file holds ``{"title", "abstract", "full_text"}`` (``fullText`` is
    accepted too).
    """

    def __init__(self, documents_dir: str | Path | None = None):
        self.documents_dir = Path(documents_dir) if documents_dir else None
        self._documents: dict[str, DocumentContext] = {}

    def register(self, document: DocumentContext) -> None:
        self._documents[document.id] = document

    async def fetch_document_context(self, document_id: str) -> DocumentContext:
        if document_id in self._documents:
            return self._documents[document_id]
        if self.documents_dir is None:
            raise DocumentNotFound(document_id)

        # Ids are file stems; reject anything that could escape the directory
        path = self.documents_dir / f"{document_id}.json"
        if Path(document_id).name != document_id or not path.exists():
            raise DocumentNotFound(document_id)

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        document = DocumentContext(
            id=document_id,
            title=str(data.get("title") or ""),
            abstract=str(data.get("abstract") or ""),
            full_text=str(data.get("full_text") or data.get("fullText") or ""),
        )
        logger.debug(f"Loaded document {document_id} from {path}")
        self._documents[document_id] = document
        return document
