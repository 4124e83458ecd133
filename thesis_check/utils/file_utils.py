import io

from docx import Document as DocxDocument
from pdfminer.high_level import extract_text as extract_pdf_text

from thesis_check.config import ALLOWED_EXTENSIONS, MAX_FILE_SIZE_MB


def allowed_file(filename: str) -> bool:
    return "." in (filename or "") and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def within_size_limit(content_bytes: bytes, max_mb: float = MAX_FILE_SIZE_MB) -> bool:
    return len(content_bytes) <= max_mb * 1024 * 1024


def extract_text_from_file(content_bytes: bytes, filename: str) -> str:
    """Plain text of a .txt, .pdf or .docx upload.

    Raises ValueError for unsupported or unreadable files.
    """
    if not allowed_file(filename):
        raise ValueError(f"Unsupported file type: {filename}")
    ext = filename.rsplit(".", 1)[1].lower()
    try:
        if ext == "txt":
            return content_bytes.decode("utf-8", errors="ignore")
        if ext == "pdf":
            return extract_pdf_text(io.BytesIO(content_bytes))
        doc = DocxDocument(io.BytesIO(content_bytes))
        return "\n\n".join(p.text for p in doc.paragraphs)
    except Exception as e:
        raise ValueError(f"Could not read {filename}: {e}") from e
