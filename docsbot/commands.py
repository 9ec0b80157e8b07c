"""Chat command handling.

Runs a question through the query pipeline and replies on the channel the
message came from.
"""

import logging
from typing import Iterable, Protocol

from docsbot.models import AnswerResult

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No results found for your query."
ERROR_MESSAGE = "An error occurred while processing your request."


class Channel(Protocol):
    def send(self, content: str) -> None: ...


class ChatMessage(Protocol):
    channel: Channel


class AnswersQuestions(Protocol):
    def answer_question(self, question: str) -> AnswerResult | None: ...


def distinct_links(links: Iterable[str], limit: int = 3) -> list[str]:
    """First ``limit`` distinct links, in first-seen order."""
    return list(dict.fromkeys(links))[:limit]


def format_answer(result: AnswerResult) -> str:
    links = distinct_links(result.document_links)
    links_string = "\n".join(
        f"**Link {i + 1}:** <{link}>" for i, link in enumerate(links)
    )
    return f"\n**Answer:**\n {result.answer}\n**Useful resources:**\n{links_string}"


def handle_read_command(
    message: ChatMessage, question: str, pipeline: AnswersQuestions
) -> None:
    """Answer ``question`` and reply on ``message.channel``.

    Failures are logged and replaced by a generic reply; exception details
    never reach the channel.
    """
    try:
        result = pipeline.answer_question(question)
    except Exception as e:
        logger.exception(f"Error answering question ({type(e).__name__})")
        message.channel.send(ERROR_MESSAGE)
        return

    if result is None:
        message.channel.send(NO_RESULTS_MESSAGE)
        return
    message.channel.send(format_answer(result))
