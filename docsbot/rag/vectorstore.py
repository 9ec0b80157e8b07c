import logging
import time
from typing import Any, List, Sequence

from pymilvus import (
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)
from pymilvus.client.types import LoadState
from pymilvus.exceptions import MilvusException

from docsbot.config import Settings
from docsbot.models import VectorRecord
from docsbot.rag.errors import (
    IndexSetupError,
    QueryError,
    UpsertError,
    VectorStoreConnectionError,
)

logger = logging.getLogger(__name__)

METADATA_FIELDS = ["loc", "pageContent", "txtPath", "docLink"]


class MilvusStore:
    """Session against a Milvus / Zilliz Cloud deployment.

    Each index is a collection with an ``id`` primary key, a ``vector``
    field and the metadata fields in ``METADATA_FIELDS``.
    """

    def __init__(self, settings: Settings, alias: str = "default"):
        self.settings = settings
        self.alias = alias
        self.dimension = settings.embedding_dim
        self._loaded: set[str] = set()
        self._connect()

    def _connect(self) -> None:
        if connections.has_connection(self.alias):
            return
        kwargs: dict[str, Any] = {"uri": self.settings.milvus_uri}
        if self.settings.milvus_token:
            kwargs["token"] = self.settings.milvus_token
        if self.settings.milvus_db:
            kwargs["db_name"] = self.settings.milvus_db
        try:
            connections.connect(alias=self.alias, **kwargs)
        except MilvusException as e:
            raise VectorStoreConnectionError(
                f"Could not connect to Milvus at {self.settings.milvus_uri}: {e}"
            ) from e

    def list_indexes(self) -> List[str]:
        return utility.list_collections(using=self.alias)

    def _schema(self, dimension: int) -> CollectionSchema:
        fields = [
            FieldSchema(name="id", dtype=DataType.VARCHAR, is_primary=True, max_length=512),
            FieldSchema(name="vector", dtype=DataType.FLOAT_VECTOR, dim=dimension),
            FieldSchema(name="loc", dtype=DataType.VARCHAR, max_length=256),
            FieldSchema(name="pageContent", dtype=DataType.VARCHAR, max_length=16384),
            FieldSchema(name="txtPath", dtype=DataType.VARCHAR, max_length=1024),
            FieldSchema(name="docLink", dtype=DataType.VARCHAR, max_length=2048),
        ]
        return CollectionSchema(
            fields=fields, description="Document chunks", enable_dynamic_field=True
        )

    def ensure_index(
        self,
        name: str,
        dimension: int,
        metric: str = "COSINE",
        timeout: float = 180.0,
        poll_interval: float = 2.0,
        namespace: str | None = None,
    ) -> bool:
        """Create the index if it does not exist and wait until it is loaded.

        Args:
            name: Collection name.
            dimension: Vector dimension.
            metric: Similarity metric.
            timeout: Maximum seconds to wait for the new index to load.
            poll_interval: Seconds between load-state checks.
            namespace: Partition to create in the collection if missing.

        Returns:
            True if the index is ready, False if the wait timed out.
        """
        logger.info(f'Checking "{name}"...')
        try:
            if name in self.list_indexes():
                logger.info(f'"{name}" already exists.')
                if namespace:
                    self._ensure_partition(Collection(name, using=self.alias), namespace)
                return True

            logger.info(f'Creating "{name}"...')
            collection = Collection(name, schema=self._schema(dimension), using=self.alias)
            collection.create_index(
                field_name="vector",
                index_params={"index_type": "AUTOINDEX", "metric_type": metric, "params": {}},
            )
            if namespace:
                self._ensure_partition(collection, namespace)
            collection.load(_async=True)
            logger.info("Creating index.... please wait for it to finish initializing.")
            return self._wait_until_loaded(name, timeout, poll_interval)
        except MilvusException as e:
            raise IndexSetupError(f'Setting up "{name}" failed: {e}') from e

    def _ensure_partition(self, collection: Collection, namespace: str) -> None:
        if not collection.has_partition(namespace):
            logger.info(f'Creating partition "{namespace}" in "{collection.name}"...')
            collection.create_partition(namespace)

    def _wait_until_loaded(self, name: str, timeout: float, poll_interval: float) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            if utility.load_state(name, using=self.alias) == LoadState.Loaded:
                self._loaded.add(name)
                logger.info(f'"{name}" is ready.')
                return True
            if time.monotonic() >= deadline:
                logger.warning(
                    f'"{name}" was not ready after {timeout:.0f}s; continuing anyway.'
                )
                return False
            time.sleep(poll_interval)

    def _collection(self, name: str) -> Collection:
        collection = Collection(name, using=self.alias)
        if name not in self._loaded:
            collection.load()
            self._loaded.add(name)
        return collection

    def query(
        self,
        name: str,
        vector: List[float],
        top_k: int = 10,
        namespace: str | None = None,
    ) -> dict:
        """Return the ``top_k`` nearest vectors with metadata and raw values."""
        try:
            collection = self._collection(name)
            results = collection.search(
                data=[vector],
                anns_field="vector",
                param={"metric_type": "COSINE", "params": {}},
                limit=top_k,
                output_fields=["vector", *METADATA_FIELDS],
                partition_names=[namespace] if namespace else None,
            )
        except MilvusException as e:
            raise QueryError(f'Search on "{name}" failed: {e}') from e

        matches = []
        for hit in results[0]:
            metadata = {}
            for field in METADATA_FIELDS:
                value = hit.entity.get(field)
                if value is not None:
                    metadata[field] = value
            values = hit.entity.get("vector") or []
            matches.append(
                {
                    "id": str(hit.id),
                    "score": float(hit.distance),
                    "values": [float(v) for v in values],
                    "metadata": metadata,
                }
            )
        return {"matches": matches, "namespace": namespace}

    def upsert_batch(
        self,
        name: str,
        records: Sequence[VectorRecord],
        batch_size: int = 100,
        namespace: str | None = None,
    ) -> int:
        """Upsert records in consecutive batches, one call per batch.

        A failing batch raises UpsertError and the remaining batches are not
        sent. Batches already written stay written.

        Returns:
            Number of records written.
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if not records:
            return 0
        for record in records:
            if len(record.values) != self.dimension:
                raise UpsertError(
                    f"Vector {record.id} has dimension {len(record.values)}, "
                    f"index expects {self.dimension}"
                )

        collection = Collection(name, using=self.alias)
        written = 0
        for i in range(0, len(records), batch_size):
            batch = records[i : i + batch_size]
            try:
                collection.upsert(
                    data=[r.to_row() for r in batch], partition_name=namespace
                )
            except MilvusException as e:
                raise UpsertError(
                    f'Upsert of batch starting at {i} into "{name}" failed: {e}'
                ) from e
            written += len(batch)
        return written
