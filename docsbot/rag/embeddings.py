import logging
from typing import Sequence

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import Embeddings as WXEmbeddings

from docsbot.config import Settings
from docsbot.models import Chunk
from docsbot.rag.errors import EmbeddingError

logger = logging.getLogger(__name__)

_VECTOR_KEYS = ("embedding", "vector", "values")


def _vector_from_item(item) -> list[float] | None:
    if isinstance(item, dict):
        for key in _VECTOR_KEYS:
            if key in item:
                return item[key]
        return None
    if isinstance(item, list):
        return item
    return None


def _vectors_from_response(result) -> list[list[float]]:
    data = result.get_result() if hasattr(result, "get_result") else result
    # Supported shapes
    # 1) {"results": [{"embedding"|"vector"|"values": [...]}, ...]}
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        out = [_vector_from_item(item) for item in data["results"]]
        if out and all(v is not None for v in out):
            return out  # type: ignore[return-value]
    # 2) {"embeddings": [[...], ...]}
    if isinstance(data, dict) and "embeddings" in data:
        return data["embeddings"]
    # 3) direct list of vectors
    if isinstance(data, list) and (not data or isinstance(data[0], list)):
        return data
    raise EmbeddingError(
        f"Unexpected embeddings response format from watsonx.ai: {type(data)} keys={list(data.keys()) if isinstance(data, dict) else 'n/a'}"
    )


class EmbeddingClient:
    """watsonx.ai embeddings for both ingestion and queries.

    The same model must embed documents and questions, otherwise retrieval
    silently returns unrelated passages.
    """

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        if client is None:
            credentials = Credentials(
                api_key=settings.ibm_cloud_api_key,
                url=settings.watsonx_url,
            )
            client = WXEmbeddings(
                model_id=settings.watsonx_embed_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        self.client = client

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            result = self.client.embed_documents(texts=list(texts))
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e
        vectors = _vectors_from_response(result)
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding count ({len(vectors)}) doesn't match input count ({len(texts)})"
            )
        return vectors

    def embed_chunks(self, chunks: Sequence[Chunk]) -> list[list[float]]:
        """Embed chunk texts in order, with newlines flattened to spaces."""
        logger.info(f"Calling embedding endpoint with {len(chunks)} text chunks ...")
        return self.embed_texts([chunk.text.replace("\n", " ") for chunk in chunks])

    def embed_query(self, text: str) -> list[float]:
        try:
            result = self.client.embed_query(text=text)
        except Exception as e:
            raise EmbeddingError(f"Query embedding request failed: {e}") from e
        data = result.get_result() if hasattr(result, "get_result") else result
        if isinstance(data, list) and data and isinstance(data[0], (int, float)):
            return data
        vectors = _vectors_from_response(data)
        if not vectors:
            raise EmbeddingError("Empty query embedding from watsonx.ai")
        return vectors[0]
