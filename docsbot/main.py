"""Main Streamlit application for docsbot.

This module provides the chat surface: a sidebar to ingest documents into
the vector index and a chat input whose questions are answered from it.
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple

import streamlit as st
from dotenv import load_dotenv

from docsbot.commands import handle_read_command
from docsbot.config import Settings
from docsbot.rag.loader import load_upload
from docsbot.rag.pipeline import IngestionPipeline, QueryPipeline

logger = logging.getLogger(__name__)

INGEST_ERROR_MESSAGE = "Ingestion failed. Check the logs for details."


class StreamlitChannel:
    """Reply channel that renders into the current chat bubble and records
    the reply in the session history."""

    def send(self, content: str) -> None:
        st.session_state["messages"].append(("assistant", content))
        st.markdown(content)


@dataclass
class StreamlitMessage:
    content: str
    channel: StreamlitChannel = field(default_factory=StreamlitChannel)


@st.cache_resource
def get_settings() -> Settings:
    """Load and cache application settings.

    Returns:
        Settings instance loaded from environment variables.
    """
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


@st.cache_resource
def get_pipelines(
    settings: Settings,
) -> Tuple[IngestionPipeline, QueryPipeline]:
    """Initialize and cache pipelines sharing one store session.

    Args:
        settings: Application settings.

    Returns:
        Tuple of (IngestionPipeline, QueryPipeline) instances.
    """
    ingestion = IngestionPipeline(settings)
    query_pipeline = QueryPipeline(settings, embed=ingestion.embed, vs=ingestion.vs)
    return ingestion, query_pipeline


def init_state() -> None:
    if "messages" not in st.session_state:
        st.session_state["messages"] = []
    if "ingested_docs" not in st.session_state:
        st.session_state["ingested_docs"] = []


def sidebar_ingestion(ingestion: IngestionPipeline) -> None:
    st.sidebar.header("Documents")
    uploaded_files = st.sidebar.file_uploader(
        "Add text, markdown or PDF files",
        type=["txt", "md", "pdf"],
        accept_multiple_files=True,
    )
    if uploaded_files and st.sidebar.button(
        f"Ingest {len(uploaded_files)} file(s)", type="primary"
    ):
        with st.sidebar:
            with st.spinner(f"Processing {len(uploaded_files)} file(s)..."):
                try:
                    docs = [load_upload(f.name, f.getvalue()) for f in uploaded_files]
                    ingestion.ensure_index()
                    count = ingestion.update_index(docs)
                except Exception:
                    logger.exception("Ingestion from upload failed")
                    st.error(INGEST_ERROR_MESSAGE)
                    return
        st.session_state["ingested_docs"].extend(d.metadata["source"] for d in docs)
        st.sidebar.success(f"Upserted {count} vectors from {len(docs)} document(s)")

    for source in st.session_state["ingested_docs"]:
        st.sidebar.caption(source)


def chat_page(query_pipeline: QueryPipeline) -> None:
    st.header("Ask the docs")

    for role, content in st.session_state["messages"]:
        with st.chat_message(role):
            st.markdown(content)

    question = st.chat_input("Ask a question about the indexed documents…")
    if question:
        st.session_state["messages"].append(("user", question))
        with st.chat_message("user"):
            st.markdown(question)
        with st.chat_message("assistant"):
            with st.spinner("Searching documents and generating answer..."):
                handle_read_command(StreamlitMessage(question), question, query_pipeline)


def main() -> None:
    """Main entry point for the Streamlit application."""
    st.set_page_config(page_title="docsbot", page_icon=None, layout="wide")

    settings = get_settings()
    init_state()
    ingestion, query_pipeline = get_pipelines(settings)

    sidebar_ingestion(ingestion)
    chat_page(query_pipeline)


if __name__ == "__main__":
    main()
