"""
Document text store

Reads plain-text renditions of documents from a directory, one
``<doc_id>.txt`` file per document.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class TextDocumentStore:
    """Directory-backed store of extracted document text"""

    def __init__(self, root_dir: str | Path, encoding: str = "utf-8"):
        """
        Args:
            root_dir: Directory holding one ``<doc_id>.txt`` file per document
            encoding: Text encoding of the files

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        self.root_dir = Path(root_dir)
        self.encoding = encoding
        if not self.root_dir.is_dir():
            raise FileNotFoundError(f"Documents directory not found: {self.root_dir}")
        self._cache: dict[str, str] = {}

    def path_for(self, doc_id: str) -> Path:
        return self.root_dir / f"{doc_id}.txt"

    def has_document(self, doc_id: str) -> bool:
        return self.path_for(doc_id).is_file()

    def document_ids(self) -> list[str]:
        """Sorted ids of every document in the directory"""
        return sorted(p.stem for p in self.root_dir.glob("*.txt"))

    def load_text(self, doc_id: str) -> str | None:
        """
        Return the document's text, or None when the file is missing

        Text is cached after the first read; documents do not change during
        a run.
        """
        if doc_id in self._cache:
            return self._cache[doc_id]

        path = self.path_for(doc_id)
        if not path.is_file():
            logger.warning("No text found for document %s (%s)", doc_id, path)
            return None

        text = path.read_text(encoding=self.encoding)
        self._cache[doc_id] = text
        return text
