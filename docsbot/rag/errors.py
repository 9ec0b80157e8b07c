"""Error kinds raised by the ingestion and query paths.

Callers at the chat boundary collapse all of these into one generic reply;
the distinct types exist so logs and tests can tell the failing stage apart.
"""


class DocsBotError(Exception):
    """Base class for docsbot failures."""


class VectorStoreConnectionError(DocsBotError, ConnectionError):
    """The vector database is unreachable or rejected the credentials."""


class EmbeddingError(DocsBotError):
    """The embedding endpoint failed or returned an unexpected shape."""


class QueryError(DocsBotError):
    """A similarity search against the vector database failed."""


class UpsertError(DocsBotError):
    """A batch write failed; remaining batches for the document are skipped."""


class CompletionError(DocsBotError):
    """The language-model completion call failed."""


class IndexSetupError(DocsBotError):
    """Listing, creating or loading an index (or its partition) failed."""
