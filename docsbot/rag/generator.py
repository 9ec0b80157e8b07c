import logging
import re
from typing import Sequence

from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import ModelInference
from ibm_watsonx_ai.metanames import GenTextParamsMetaNames as GenParams
from langchain_core.documents import Document
from langchain_core.prompts import PromptTemplate

from docsbot.config import Settings
from docsbot.rag.errors import CompletionError

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "You're an AI assistant. Based on the following excerpts from a long document, "
    "provide a conversational answer to the question asked. "
    "If the answer isn't in the context, simply respond with 'Hmm, I'm not sure.' "
    "Don't invent an answer. "
    "If the question isn't related to the context, state that you are programmed to answer "
    "questions relevant to the given context. "
    "Remember, you cannot use images or visual content to form your answer. "
    "Do the answer in less than 2000 characters."
)

# Stuff strategy: every context document goes into one prompt.
STUFF_PROMPT = PromptTemplate.from_template(
    "Use the following pieces of context to answer the question at the end. "
    "If you don't know the answer, just say that you don't know, "
    "don't try to make up an answer.\n\n"
    "{context}\n\n"
    "Question: {question}\n"
    "Helpful Answer:"
)


def combine_question(question: str) -> str:
    """Prefix the user's literal question with the answering instructions."""
    return f"{INSTRUCTIONS}\n\n{question}"


class GeneratorClient:
    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        if client is None:
            credentials = Credentials(
                api_key=settings.ibm_cloud_api_key,
                url=settings.watsonx_url,
            )
            client = ModelInference(
                model_id=settings.watsonx_gen_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        self.client = client

    def build_prompt(self, context_docs: Sequence[Document], question: str) -> str:
        context = "\n\n".join(doc.page_content for doc in context_docs)
        return STUFF_PROMPT.format(context=context, question=question)

    def clean_output(self, text: str) -> str:
        """Strip answer labels the model sometimes echoes from the prompt."""
        cleaned = re.sub(
            r"^\s*(?:Helpful\s+)?Answer:\s*", "", text, flags=re.IGNORECASE
        )
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()

    def answer(self, context_docs: Sequence[Document], question: str) -> str:
        """Run one completion over all context documents.

        Raises:
            CompletionError: If the request fails or returns no text field.
        """
        prompt = self.build_prompt(context_docs, question)
        params = {
            GenParams.TEMPERATURE: float(self.settings.temperature),
            GenParams.MAX_NEW_TOKENS: self.settings.max_new_tokens,
        }
        try:
            response = self.client.generate(prompt=prompt, params=params)
        except Exception as e:
            raise CompletionError(f"Completion request failed: {e}") from e

        data = response.get_result() if hasattr(response, "get_result") else response
        if isinstance(data, str):
            raw_answer = data
        elif isinstance(data, dict) and data.get("results"):
            raw_answer = data["results"][0].get("generated_text", "")
        elif isinstance(data, dict) and "generated_text" in data:
            raw_answer = data["generated_text"]
        else:
            raise CompletionError(
                f"Unexpected completion response format from watsonx.ai: {type(data)}"
            )
        return self.clean_output(raw_answer)
