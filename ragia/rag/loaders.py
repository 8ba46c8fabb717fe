"""Source document discovery and text extraction.

Handles:
- Recursive discovery of markdown, plain text and PDF files
- PDF text extraction
- Verbatim reads for everything else
"""
from pathlib import Path
from typing import List

import structlog
from PyPDF2 import PdfReader

from ragia.errors import DocumentReadError

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = (".md", ".txt", ".pdf")


def _is_hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def discover_documents(root: Path) -> List[Path]:
    """Discover all supported documents under ``root``.

    Hidden files and directories are skipped. Order is sorted by relative
    path so repeated runs visit files identically.

    Raises:
        FileNotFoundError: If root doesn't exist
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Ingest directory not found: {root}")

    documents = [
        path
        for path in root.rglob("*")
        if path.is_file()
        and path.suffix.lower() in SUPPORTED_EXTENSIONS
        and not _is_hidden(path, root)
    ]
    documents.sort(key=lambda p: p.relative_to(root).as_posix())

    logger.info("documents_discovered", count=len(documents), root=str(root))
    return documents


def _extract_pdf(path: Path) -> str:
    try:
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        raise DocumentReadError(f"Failed to extract PDF {path}: {e}") from e

    return "\n".join(pages)


def extract_text(path: Path) -> str:
    """Return the plain text of a document.

    Raises:
        DocumentReadError: Unsupported extension, unreadable or undecodable file
    """
    suffix = path.suffix.lower()

    if suffix not in SUPPORTED_EXTENSIONS:
        raise DocumentReadError(f"Unsupported document type: {path}")

    if suffix == ".pdf":
        text = _extract_pdf(path)
    else:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadError(f"Failed to read {path}: {e}") from e

    logger.debug("document_extracted", path=str(path), content_length=len(text))
    return text
