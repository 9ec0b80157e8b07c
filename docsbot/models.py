"""Data models for the RAG pipeline.

This module defines Pydantic models for chunks, vector records, query
matches and answers.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Chunk(BaseModel):
    """A bounded slice of a source document.

    Attributes:
        text: Chunk text content.
        index: Position of the chunk within its document.
        loc: Line range of the chunk, ``{"lines": {"from": a, "to": b}}``.
        source: Path of the source document.
        doc_link: Link extracted from the document's ``Link:`` line, or "".
    """

    text: str
    index: int
    loc: dict[str, dict[str, int]]
    source: str
    doc_link: str = ""


class VectorMetadata(BaseModel):
    """Metadata stored next to each vector.

    Field aliases are the names written to the vector database.
    """

    model_config = ConfigDict(populate_by_name=True)

    loc: str
    page_content: str = Field(alias="pageContent")
    txt_path: str = Field(alias="txtPath")
    doc_link: str = Field(alias="docLink")


class VectorRecord(BaseModel):
    """Vector ready for upsert.

    Attributes:
        id: ``<source>_<chunk index>``; re-ingestion overwrites by id.
        values: Embedding vector.
        metadata: Stored metadata.
    """

    id: str
    values: list[float]
    metadata: VectorMetadata

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vector": self.values,
            **self.metadata.model_dump(by_alias=True),
        }


class NormalizedMatch(BaseModel):
    """Match whose metadata carried both page content and a document link."""

    kind: Literal["normalized"] = "normalized"
    id: str
    score: float
    values: list[float] = Field(default_factory=list)
    page_content: str
    doc_link: str


class RawMatch(BaseModel):
    """Match passed through with its stored metadata untouched."""

    kind: Literal["raw"] = "raw"
    id: str
    score: float
    values: list[float] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


QueryMatch = Annotated[Union[NormalizedMatch, RawMatch], Field(discriminator="kind")]


class QueryResponse(BaseModel):
    """Ranked matches for one similarity search.

    Attributes:
        matches: Matches by descending similarity.
        namespace: Partition that was searched, if any.
    """

    matches: list[QueryMatch] = Field(default_factory=list)
    namespace: str | None = None


def _raw_field(match: RawMatch, name: str) -> str:
    value = match.metadata.get(name)
    return value if isinstance(value, str) else ""


def match_page_content(match: NormalizedMatch | RawMatch) -> str:
    """Text a match contributes to the context ("" if it has none)."""
    if isinstance(match, NormalizedMatch):
        return match.page_content
    return _raw_field(match, "pageContent")


def match_doc_link(match: NormalizedMatch | RawMatch) -> str:
    """Link a match contributes to the answer ("" if it has none)."""
    if isinstance(match, NormalizedMatch):
        return match.doc_link
    return _raw_field(match, "docLink")


class AnswerResult(BaseModel):
    """Answer with the links of the matches used to build it.

    Attributes:
        answer: Generated answer text.
        document_links: One link per match in ranked order ("" when a match
            has none). Not deduplicated.
    """

    answer: str
    document_links: list[str]
