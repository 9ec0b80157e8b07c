"""Text chunking utilities.

This module provides functions for splitting documents into chunks and
reading the document link marker.
"""

import re
from typing import List

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from docsbot.models import Chunk

LINK_PATTERN = re.compile(r"Link: (.+)")


def extract_document_link(text: str) -> str:
    """Return the value of the first ``Link: <url>`` line, or "" if absent."""
    match = LINK_PATTERN.search(text)
    if not match:
        return ""
    return match.group(1).strip()


def _line_range(text: str, start: int, chunk_text: str) -> dict[str, dict[str, int]]:
    first = text.count("\n", 0, start) + 1
    return {"lines": {"from": first, "to": first + chunk_text.count("\n")}}


def chunk_document(
    doc: Document, chunk_size: int = 1000, chunk_overlap: int = 0
) -> List[Chunk]:
    """Split a document into chunks.

    Args:
        doc: Document with ``page_content`` and ``metadata["source"]``.
        chunk_size: Target maximum size for each chunk.
        chunk_overlap: Overlap between consecutive chunks.

    Returns:
        List of chunks in document order.
    """
    text = doc.page_content
    if not text.strip():
        return []

    source = str(doc.metadata.get("source", ""))
    doc_link = extract_document_link(text)
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
        separators=["\n\n", "\n", " ", ""],
        add_start_index=True,
    )
    pieces = splitter.create_documents([text])

    chunks: List[Chunk] = []
    for idx, piece in enumerate(pieces):
        start = piece.metadata.get("start_index", 0)
        # -1 means the splitter could not locate the piece
        if start < 0:
            start = 0
        chunks.append(
            Chunk(
                text=piece.page_content,
                index=idx,
                loc=_line_range(text, start, piece.page_content),
                source=source,
                doc_link=doc_link,
            )
        )
    return chunks
