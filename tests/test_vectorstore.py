"""
Tests for docsbot/rag/vectorstore.py
Milvus session: connect, index provisioning, batched upsert and search.
"""

import math
from dataclasses import replace
from unittest.mock import MagicMock, call, patch

import pytest
from pymilvus.client.types import LoadState
from pymilvus.exceptions import MilvusException

from docsbot.models import VectorMetadata, VectorRecord
from docsbot.rag.errors import (
    IndexSetupError,
    QueryError,
    UpsertError,
    VectorStoreConnectionError,
)
from docsbot.rag.vectorstore import MilvusStore


def make_record(i: int, dim: int = 3) -> VectorRecord:
    return VectorRecord(
        id=f"doc.txt_{i}",
        values=[0.1] * dim,
        metadata=VectorMetadata(
            loc='{"lines": {"from": 1, "to": 1}}',
            page_content=f"chunk {i}",
            txt_path="doc.txt",
            doc_link="https://doc",
        ),
    )


class FakeHit:
    def __init__(self, id, distance, entity):
        self.id = id
        self.distance = distance
        self.entity = entity


@pytest.fixture
def milvus():
    with patch("docsbot.rag.vectorstore.connections") as connections, patch(
        "docsbot.rag.vectorstore.utility"
    ) as utility, patch("docsbot.rag.vectorstore.Collection") as collection_cls:
        connections.has_connection.return_value = False
        utility.list_collections.return_value = []
        yield MagicMock(
            connections=connections, utility=utility, Collection=collection_cls
        )


class TestConnect:
    """Test client creation."""

    def test_connects_with_uri_and_token(self, milvus, settings):
        MilvusStore(replace(settings, milvus_token="secret", milvus_db="db1"))

        milvus.connections.connect.assert_called_once_with(
            alias="default",
            uri="http://localhost:19530",
            token="secret",
            db_name="db1",
        )

    def test_reuses_existing_connection(self, milvus, settings):
        milvus.connections.has_connection.return_value = True

        MilvusStore(settings)

        milvus.connections.connect.assert_not_called()

    def test_connect_failure_is_connection_error(self, milvus, settings):
        milvus.connections.connect.side_effect = MilvusException(message="unreachable")

        with pytest.raises(VectorStoreConnectionError) as exc_info:
            MilvusStore(settings)

        assert isinstance(exc_info.value, ConnectionError)


class TestEnsureIndex:
    """Test create-if-absent and the readiness poll."""

    def test_existing_index_is_left_alone(self, milvus, settings):
        milvus.utility.list_collections.return_value = ["docs_index"]
        store = MilvusStore(settings)

        assert store.ensure_index("docs_index", 3) is True
        milvus.Collection.assert_not_called()

    def test_creates_index_and_polls_until_loaded(self, milvus, settings):
        milvus.utility.load_state.side_effect = [LoadState.Loading, LoadState.Loaded]
        store = MilvusStore(settings)

        with patch("docsbot.rag.vectorstore.time.sleep") as sleep:
            ready = store.ensure_index("docs_index", 3, timeout=60, poll_interval=0.25)

        assert ready is True
        sleep.assert_called_once_with(0.25)
        collection = milvus.Collection.return_value
        _, kwargs = collection.create_index.call_args
        assert kwargs["field_name"] == "vector"
        assert kwargs["index_params"]["metric_type"] == "COSINE"
        collection.load.assert_called_once_with(_async=True)
        schema = milvus.Collection.call_args.kwargs["schema"]
        vector_field = next(f for f in schema.fields if f.name == "vector")
        assert vector_field.params["dim"] == 3

    def test_timeout_returns_false(self, milvus, settings):
        milvus.utility.load_state.return_value = LoadState.Loading
        store = MilvusStore(settings)

        with patch("docsbot.rag.vectorstore.time.sleep") as sleep:
            ready = store.ensure_index("docs_index", 3, timeout=0)

        assert ready is False
        sleep.assert_not_called()

    def test_new_index_gets_missing_partition(self, milvus, settings):
        milvus.utility.load_state.return_value = LoadState.Loaded
        collection = milvus.Collection.return_value
        collection.has_partition.return_value = False
        store = MilvusStore(settings)

        assert store.ensure_index("docs_index", 3, namespace="team") is True

        collection.has_partition.assert_called_once_with("team")
        collection.create_partition.assert_called_once_with("team")

    def test_existing_index_gets_missing_partition(self, milvus, settings):
        milvus.utility.list_collections.return_value = ["docs_index"]
        collection = milvus.Collection.return_value
        collection.has_partition.return_value = False
        store = MilvusStore(settings)

        assert store.ensure_index("docs_index", 3, namespace="team") is True

        milvus.Collection.assert_called_once_with("docs_index", using="default")
        collection.create_partition.assert_called_once_with("team")
        collection.create_index.assert_not_called()

    def test_existing_partition_is_kept(self, milvus, settings):
        milvus.utility.list_collections.return_value = ["docs_index"]
        collection = milvus.Collection.return_value
        collection.has_partition.return_value = True
        store = MilvusStore(settings)

        store.ensure_index("docs_index", 3, namespace="team")

        collection.create_partition.assert_not_called()

    def test_no_partition_without_namespace(self, milvus, settings):
        milvus.utility.load_state.return_value = LoadState.Loaded
        store = MilvusStore(settings)

        store.ensure_index("docs_index", 3)

        milvus.Collection.return_value.create_partition.assert_not_called()

    def test_server_rejection_is_index_setup_error(self, milvus, settings):
        milvus.Collection.side_effect = MilvusException(message="collection name invalid")
        store = MilvusStore(settings)

        with pytest.raises(IndexSetupError) as exc_info:
            store.ensure_index("docs_index", 3)

        assert isinstance(exc_info.value.__cause__, MilvusException)

    def test_listing_failure_is_index_setup_error(self, milvus, settings):
        milvus.utility.list_collections.side_effect = MilvusException(message="denied")
        store = MilvusStore(settings)

        with pytest.raises(IndexSetupError):
            store.ensure_index("docs_index", 3)


class TestUpsertBatch:
    """Test batching and failure behaviour of upserts."""

    @pytest.mark.parametrize("count", [1, 99, 100, 101, 250])
    def test_batches_cover_input(self, milvus, settings, count):
        store = MilvusStore(settings)
        records = [make_record(i) for i in range(count)]

        written = store.upsert_batch("docs_index", records, batch_size=100)

        upsert = milvus.Collection.return_value.upsert
        assert upsert.call_count == math.ceil(count / 100)
        batches = [c.kwargs["data"] for c in upsert.call_args_list]
        assert all(len(b) <= 100 for b in batches)
        assert [row["id"] for b in batches for row in b] == [r.id for r in records]
        assert written == count

    def test_rows_use_stored_field_names(self, milvus, settings):
        store = MilvusStore(settings)

        store.upsert_batch("docs_index", [make_record(0)])

        row = milvus.Collection.return_value.upsert.call_args.kwargs["data"][0]
        assert row == {
            "id": "doc.txt_0",
            "vector": [0.1, 0.1, 0.1],
            "loc": '{"lines": {"from": 1, "to": 1}}',
            "pageContent": "chunk 0",
            "txtPath": "doc.txt",
            "docLink": "https://doc",
        }

    def test_failed_batch_aborts_remaining(self, milvus, settings):
        upsert = milvus.Collection.return_value.upsert
        upsert.side_effect = [None, MilvusException(message="write rejected"), None]
        store = MilvusStore(settings)

        with pytest.raises(UpsertError):
            store.upsert_batch("docs_index", [make_record(i) for i in range(250)])

        assert upsert.call_count == 2

    def test_dimension_mismatch_is_rejected(self, milvus, settings):
        store = MilvusStore(settings)

        with pytest.raises(UpsertError):
            store.upsert_batch("docs_index", [make_record(0, dim=5)])

        milvus.Collection.return_value.upsert.assert_not_called()

    def test_empty_input_writes_nothing(self, milvus, settings):
        store = MilvusStore(settings)

        assert store.upsert_batch("docs_index", []) == 0
        milvus.Collection.return_value.upsert.assert_not_called()

    def test_batch_size_must_be_positive(self, milvus, settings):
        store = MilvusStore(settings)

        with pytest.raises(ValueError):
            store.upsert_batch("docs_index", [make_record(0)], batch_size=0)


class TestQuery:
    """Test search request and raw response shape."""

    def test_returns_matches_with_metadata_and_values(self, milvus, settings):
        collection = milvus.Collection.return_value
        collection.search.return_value = [
            [
                FakeHit("a_0", 0.91, {"vector": [1, 0, 0], "pageContent": "A", "docLink": "https://a", "loc": None}),
                FakeHit("b_0", 0.52, {"vector": [0, 1, 0], "pageContent": "B"}),
            ]
        ]
        store = MilvusStore(settings)

        response = store.query("docs_index", [1.0, 0.0, 0.0])

        assert response == {
            "matches": [
                {"id": "a_0", "score": 0.91, "values": [1.0, 0.0, 0.0], "metadata": {"pageContent": "A", "docLink": "https://a"}},
                {"id": "b_0", "score": 0.52, "values": [0.0, 1.0, 0.0], "metadata": {"pageContent": "B"}},
            ],
            "namespace": None,
        }
        kwargs = collection.search.call_args.kwargs
        assert kwargs["limit"] == 10
        assert kwargs["data"] == [[1.0, 0.0, 0.0]]
        assert "vector" in kwargs["output_fields"]
        assert kwargs["partition_names"] is None

    def test_collection_is_loaded_once(self, milvus, settings):
        collection = milvus.Collection.return_value
        collection.search.return_value = [[]]
        store = MilvusStore(settings)

        store.query("docs_index", [1.0, 0.0, 0.0])
        store.query("docs_index", [0.0, 1.0, 0.0], namespace="team")

        assert collection.load.call_args_list == [call()]
        assert collection.search.call_args.kwargs["partition_names"] == ["team"]

    def test_search_failure_is_query_error(self, milvus, settings):
        milvus.Collection.return_value.search.side_effect = MilvusException(message="down")
        store = MilvusStore(settings)

        with pytest.raises(QueryError):
            store.query("docs_index", [1.0, 0.0, 0.0])
