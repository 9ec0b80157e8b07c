"""Application configuration settings.

This module defines the Settings dataclass that loads configuration
from environment variables.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        ibm_cloud_api_key: IBM Cloud API key for watsonx.ai.
        watsonx_region: Watsonx.ai service region.
        watsonx_project_id: Watsonx.ai project ID.
        watsonx_embed_model: Embedding model ID. Must be the same model for
            ingestion and querying.
        watsonx_gen_model: Generation model ID.
        milvus_uri: Milvus / Zilliz Cloud endpoint.
        milvus_token: Milvus API token (or "user:password").
        milvus_db: Milvus database name (optional).
        milvus_partition: Partition used as the query/upsert namespace (optional).
        index_name: Name of the collection holding document vectors.
        embedding_dim: Embedding dimension declared on the index.
        chunk_size: Soft ceiling for chunk length in characters.
        chunk_overlap: Overlap between consecutive chunks.
        top_k: Number of nearest matches to retrieve.
        upsert_batch_size: Maximum vectors per upsert call.
        index_timeout: Seconds to wait for a new index to become ready.
        index_poll_interval: Seconds between readiness checks.
        temperature: Generation temperature.
        max_new_tokens: Generation token budget.
        log_level: Root logging level for the entry points.
    """

    ibm_cloud_api_key: str
    watsonx_region: str
    watsonx_project_id: str
    watsonx_embed_model: str
    watsonx_gen_model: str

    milvus_uri: str
    milvus_token: str
    milvus_db: str | None
    milvus_partition: str | None

    index_name: str
    embedding_dim: int

    chunk_size: int
    chunk_overlap: int
    top_k: int
    upsert_batch_size: int
    index_timeout: float
    index_poll_interval: float

    temperature: float
    max_new_tokens: int

    log_level: str

    @property
    def watsonx_url(self) -> str:
        return f"https://{self.watsonx_region}.ml.cloud.ibm.com"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Returns:
            Settings instance with values loaded from environment.
        """
        return cls(
            ibm_cloud_api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
            watsonx_region=os.getenv("WATSONX_REGION", "us-south"),
            watsonx_project_id=os.getenv("WATSONX_PROJECT_ID", ""),
            watsonx_embed_model=os.getenv(
                "WATSONX_EMBED_MODEL",
                "ibm/granite-embedding-30m-english",
            ),
            watsonx_gen_model=os.getenv(
                "WATSONX_GEN_MODEL", "ibm/granite-13b-instruct-v2"
            ),
            milvus_uri=os.getenv("MILVUS_URI", "http://localhost:19530"),
            milvus_token=os.getenv("MILVUS_TOKEN", ""),
            milvus_db=os.getenv("MILVUS_DB") or None,
            milvus_partition=os.getenv("MILVUS_PARTITION") or None,
            index_name=os.getenv("INDEX_NAME", "docs_index"),
            embedding_dim=int(os.getenv("EMBEDDING_DIM", "384")),
            chunk_size=int(os.getenv("CHUNK_SIZE", "1000")),
            chunk_overlap=int(os.getenv("CHUNK_OVERLAP", "0")),
            top_k=int(os.getenv("TOP_K", "10")),
            upsert_batch_size=int(os.getenv("UPSERT_BATCH_SIZE", "100")),
            index_timeout=float(os.getenv("INDEX_TIMEOUT", "180")),
            index_poll_interval=float(os.getenv("INDEX_POLL_INTERVAL", "2")),
            temperature=float(os.getenv("TEMPERATURE", "0.2")),
            max_new_tokens=int(os.getenv("MAX_NEW_TOKENS", "1024")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
