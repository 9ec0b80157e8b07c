"""Document loading for ingestion.

Turns text, markdown and PDF files into ``Document`` objects whose
``metadata["source"]`` is used as the vector id prefix.
"""

import io
import logging
from pathlib import Path
from typing import BinaryIO, List

from langchain_core.documents import Document
from pypdf import PdfReader

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md"}
PDF_SUFFIXES = {".pdf"}
SUPPORTED_SUFFIXES = TEXT_SUFFIXES | PDF_SUFFIXES


def extract_text_per_page(fileobj: BinaryIO) -> List[str]:
    reader = PdfReader(fileobj)
    pages: List[str] = []
    for page in reader.pages:
        text = page.extract_text() or ""
        pages.append(text.strip())
    return pages


def _to_text(suffix: str, data: bytes) -> str:
    if suffix in PDF_SUFFIXES:
        pages = extract_text_per_page(io.BytesIO(data))
        return "\n\n".join(p for p in pages if p)
    return data.decode("utf-8", errors="replace")


def load_upload(name: str, data: bytes) -> Document:
    """Build a document from an uploaded file's name and bytes.

    Raises:
        ValueError: If the file type is not supported.
    """
    suffix = Path(name).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported file type: {name}")
    return Document(page_content=_to_text(suffix, data), metadata={"source": name})


def load_file(path: str | Path) -> Document:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported file type: {path}")
    return Document(
        page_content=_to_text(suffix, path.read_bytes()),
        metadata={"source": str(path)},
    )


def load_directory(path: str | Path, pattern: str = "**/*") -> List[Document]:
    """Load every supported file under ``path`` in sorted path order."""
    root = Path(path)
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")
    docs: List[Document] = []
    for file_path in sorted(root.glob(pattern)):
        if not file_path.is_file():
            continue
        if file_path.suffix.lower() not in SUPPORTED_SUFFIXES:
            logger.debug(f"Skipping unsupported file {file_path}")
            continue
        docs.append(load_file(file_path))
    logger.info(f"Loaded {len(docs)} documents from {root}")
    return docs
