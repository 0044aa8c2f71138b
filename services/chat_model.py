from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI
from langchain_groq import ChatGroq
from core.config import (
    AI_GATEWAY_API_KEY,
    AI_GATEWAY_BASE_URL,
    ARTIFACT_MODEL,
    GROQ_API_KEY,
    LLM_TIMEOUT,
    TITLE_MODEL,
)
from services.model_catalog import get_chat_model

# =================== Chat MODEL ===================

class ChatModelCreator:
    """Builds LangChain chat models for the gateway catalog and the Groq title model."""

    def __init__(
        self,
        model_name: str,
        temperature: float | None = None,
        streaming: bool = True,
    ):
        # every catalog model goes through the OpenAI-compatible AI gateway
        self.gateway_llm = ChatOpenAI(
            model=model_name,
            base_url=AI_GATEWAY_BASE_URL,
            api_key=AI_GATEWAY_API_KEY or "missing-gateway-key",
            temperature=temperature,
            streaming=streaming,
            stream_usage=True,          # usage arrives on the last chunk
            timeout=LLM_TIMEOUT,
        )

    @staticmethod
    def groq(model_name: str, temperature: float = 0, max_tokens: int = 64) -> ChatGroq:
        return ChatGroq(
            model=model_name,
            temperature=temperature,
            max_tokens=max_tokens,        # ← Groq uses max_tokens
            groq_api_key=GROQ_API_KEY,
        )


def get_language_model(model_id: str) -> BaseChatModel:
    """Streaming chat model for a catalog id such as ``openai/gpt-4o``."""
    if get_chat_model(model_id) is None:
        raise ValueError(f"Unknown chat model: {model_id}")
    return ChatModelCreator(model_name=model_id).gateway_llm


def get_title_model() -> BaseChatModel:
    return ChatModelCreator.groq(TITLE_MODEL)


def get_artifact_model() -> BaseChatModel:
    return ChatModelCreator(model_name=ARTIFACT_MODEL).gateway_llm
