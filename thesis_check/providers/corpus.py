import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from thesis_check.config import MIN_REFERENCE_FILE_LENGTH, REFERENCE_DATA_PATH
from thesis_check.logger import get_logger
from thesis_check.schemas.source_schemas import CorpusDocument
from thesis_check.utils.text_utils import split_paragraphs

logger = get_logger("corpus")


def load_reference_paragraphs(
    path: str = REFERENCE_DATA_PATH, min_file_length: int = MIN_REFERENCE_FILE_LENGTH
) -> List[str]:
    """Blank-line separated, non-empty paragraphs of a plain-text reference file.

    A missing, unreadable or near-empty file yields no paragraphs.
    """
    if not path or not os.path.exists(path):
        logger.info(f"Reference data file {path!r} not found")
        return []
    try:
        with open(path, encoding="utf-8") as fh:
            content = fh.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"❌ Could not read reference data {path}: {e}")
        return []
    if len(content) < min_file_length:
        logger.info(f"Reference data {path} too short ({len(content)} chars)")
        return []
    paragraphs = [p for p in split_paragraphs(content) if p.strip()]
    logger.info(f"📚 Loaded {len(paragraphs)} reference paragraphs from {path}")
    return paragraphs


class InMemoryCorpus:
    """Thread-safe document store backing uploads and corpus matching."""

    def __init__(self, documents=None, reference_paragraphs: Optional[List[str]] = None,
                 reference_path: Optional[str] = None):
        self._docs: Dict[str, CorpusDocument] = {}
        self._lock = threading.Lock()
        self._reference = reference_paragraphs
        self._reference_path = reference_path
        for doc in documents or []:
            self.add_document(doc)

    def add_document(self, doc: CorpusDocument) -> CorpusDocument:
        with self._lock:
            self._docs[doc.id] = doc
        return doc

    def create_document(self, content: str, title: str = "", author: Optional[str] = None) -> CorpusDocument:
        doc = CorpusDocument(
            id=uuid.uuid4().hex,
            content=content,
            title=title,
            author=author,
            created_at=datetime.now(timezone.utc),
        )
        return self.add_document(doc)

    def get_document(self, document_id: str) -> CorpusDocument:
        with self._lock:
            return self._docs[document_id]

    def list_documents(self) -> List[CorpusDocument]:
        with self._lock:
            return list(self._docs.values())

    def reference_paragraphs(self) -> List[str]:
        if self._reference is None:
            self._reference = (
                load_reference_paragraphs(self._reference_path) if self._reference_path else []
            )
        return list(self._reference)

    def __len__(self) -> int:
        return len(self._docs)
