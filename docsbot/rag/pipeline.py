"""RAG pipeline for document ingestion and query processing.

This module provides the IngestionPipeline and QueryPipeline classes
for document indexing and question answering.
"""

import json
import logging
from typing import Sequence

from langchain_core.documents import Document

from docsbot.config import Settings
from docsbot.models import (
    AnswerResult,
    NormalizedMatch,
    QueryResponse,
    RawMatch,
    VectorMetadata,
    VectorRecord,
    match_doc_link,
    match_page_content,
)
from docsbot.rag.chunker import chunk_document
from docsbot.rag.embeddings import EmbeddingClient
from docsbot.rag.generator import GeneratorClient, combine_question
from docsbot.rag.vectorstore import MilvusStore

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Pipeline for indexing documents.

    Handles chunking, embedding and batched upsert into the vector store.
    """

    def __init__(
        self,
        settings: Settings,
        embed: EmbeddingClient | None = None,
        vs: MilvusStore | None = None,
    ) -> None:
        """Initialize ingestion pipeline.

        Args:
            settings: Application settings.
            embed: Embedding client; built from settings if omitted.
            vs: Vector store session; built from settings if omitted.
        """
        self.settings = settings
        self.embed = embed or EmbeddingClient(settings)
        self.vs = vs or MilvusStore(settings)

    def ensure_index(self) -> bool:
        """Create the configured index if missing.

        Returns:
            True if the index is ready, False if readiness timed out.
        """
        return self.vs.ensure_index(
            self.settings.index_name,
            self.settings.embedding_dim,
            timeout=self.settings.index_timeout,
            poll_interval=self.settings.index_poll_interval,
            namespace=self.settings.milvus_partition,
        )

    def process_document(self, doc: Document) -> list[VectorRecord]:
        """Chunk and embed one document.

        Args:
            doc: Document with ``metadata["source"]``.

        Returns:
            Vector records in chunk order.
        """
        chunks = chunk_document(
            doc, self.settings.chunk_size, self.settings.chunk_overlap
        )
        if not chunks:
            return []
        embeddings = self.embed.embed_chunks(chunks)
        return [
            VectorRecord(
                id=f"{chunk.source}_{chunk.index}",
                values=values,
                metadata=VectorMetadata(
                    loc=json.dumps(chunk.loc),
                    page_content=chunk.text,
                    txt_path=chunk.source,
                    doc_link=chunk.doc_link,
                ),
            )
            for chunk, values in zip(chunks, embeddings)
        ]

    def update_index(self, docs: Sequence[Document]) -> int:
        """Ingest documents one at a time, in order.

        Errors propagate; vectors of documents already processed stay written.

        Args:
            docs: Documents to ingest.

        Returns:
            Total number of vectors written.
        """
        total = 0
        for i, doc in enumerate(docs):
            records = self.process_document(doc)
            total += self.vs.upsert_batch(
                self.settings.index_name,
                records,
                batch_size=self.settings.upsert_batch_size,
                namespace=self.settings.milvus_partition,
            )
            logger.info(
                f"Processing document {i + 1} of {len(docs)}, generated {len(records)} vectors"
            )
        return total


def format_query_response(raw: dict) -> QueryResponse:
    """Reshape a raw store response into normalized or raw matches.

    Args:
        raw: ``{"matches": [...], "namespace": ...}`` from the store.

    Returns:
        QueryResponse preserving match order.
    """
    matches: list[NormalizedMatch | RawMatch] = []
    for match in raw.get("matches") or []:
        metadata = match.get("metadata") or {}
        if "pageContent" in metadata and "docLink" in metadata:
            matches.append(
                NormalizedMatch(
                    id=match["id"],
                    score=match.get("score", 0.0),
                    values=match.get("values") or [],
                    page_content=metadata["pageContent"],
                    doc_link=metadata["docLink"],
                )
            )
        else:
            matches.append(
                RawMatch(
                    id=match["id"],
                    score=match.get("score", 0.0),
                    values=match.get("values") or [],
                    metadata=metadata,
                )
            )
    return QueryResponse(matches=matches, namespace=raw.get("namespace"))


class QueryPipeline:
    """Pipeline for answering questions.

    Handles question embedding, similarity search, response reshaping and
    a single stuff-all-context completion.
    """

    def __init__(
        self,
        settings: Settings,
        embed: EmbeddingClient | None = None,
        vs: MilvusStore | None = None,
        gen: GeneratorClient | None = None,
    ) -> None:
        """Initialize query pipeline.

        Args:
            settings: Application settings.
            embed: Embedding client; must use the ingestion model.
            vs: Vector store session.
            gen: Completion client.
        """
        self.settings = settings
        self.embed = embed or EmbeddingClient(settings)
        self.vs = vs or MilvusStore(settings)
        self.gen = gen or GeneratorClient(settings)

    def query_vector_store(self, question: str) -> dict:
        logger.info("Querying vector store...")
        q_emb = self.embed.embed_query(question)
        return self.vs.query(
            self.settings.index_name,
            q_emb,
            top_k=self.settings.top_k,
            namespace=self.settings.milvus_partition,
        )

    def query_language_model(
        self, response: QueryResponse, question: str
    ) -> AnswerResult | None:
        """Answer from the retrieved matches.

        Returns:
            AnswerResult, or None when there are no matches (no completion
            call is made in that case).
        """
        logger.info(f"Asking question: {question}...")
        if not response.matches:
            logger.info("Since there are no matches, the language model will not be queried.")
            return None

        logger.info(f"Found {len(response.matches)} matches...")
        context = " ".join(match_page_content(m) for m in response.matches)
        document_links = [match_doc_link(m) for m in response.matches]
        answer = self.gen.answer(
            [Document(page_content=context)], combine_question(question)
        )
        logger.info(f"Answer: {answer}")
        return AnswerResult(answer=answer, document_links=document_links)

    def answer_question(self, question: str) -> AnswerResult | None:
        raw = self.query_vector_store(question)
        return self.query_language_model(format_query_response(raw), question)
