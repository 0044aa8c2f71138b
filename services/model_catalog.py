# services/model_catalog.py
from typing import Optional, List
from pydantic import BaseModel


class ChatModel(BaseModel):
    id: str
    name: str
    model: str
    model_detail: Optional[str] = None
    description: str
    search: bool

    vision: bool
    pdf_understanding: bool
    reasoning: bool

    pinned: bool


class MODEL_PROVIDER_IDS:
    # Google Gemini
    GEMINI_2_5_FLASH_LITE = "google/gemini-2.5-flash-lite"
    GEMINI_2_5_FLASH = "google/gemini-2.5-flash"
    GEMINI_2_5_PRO = "google/gemini-2.5-pro"

    # OpenAI
    GPT_5 = "openai/gpt-5"
    GPT_5_MINI = "openai/gpt-5-mini"
    GPT_4o = "openai/gpt-4o"
    GPT_4o_MINI = "openai/gpt-4o-mini"
    GPT_OSS_120 = "openai/gpt-oss-120b"
    GPT_OSS_20 = "openai/gpt-oss-20b"

    # DeepSeek
    DEEP_SEEK_V3_1 = "deepseek/deepseek-v3.1"
    DEEP_SEEK_V3 = "deepseek/deepseek-v3"
    DEEP_SEEK_r1 = "deepseek/deepseek-r1"

    # Grok
    GROK_4 = "xai/grok-4"
    GROK_4_FAST = "xai/grok-4-fast-non-reasoning"
    GROK_4_FAST_REASONING = "xai/grok-4-fast-reasoning"

    # Anthropic
    CLAUDE_3_7_SONNET = "anthropic/claude-3.7-sonnet"
    CLAUDE_4_SONNET = "anthropic/claude-sonnet-4"
    CLAUDE_4_5_SONNET = "anthropic/claude-sonnet-4.5"


ids = MODEL_PROVIDER_IDS

DEFAULT_CHAT_MODEL = ids.GEMINI_2_5_FLASH_LITE


chat_models: List[ChatModel] = [
    # --- Google Gemini ---
    ChatModel(id=ids.GEMINI_2_5_FLASH_LITE, name="Gemini", model="2.5 Flash Lite",
              description="Google's most lightweight and fastest model.",
              search=True, vision=True, pdf_understanding=True, reasoning=False, pinned=False),
    ChatModel(id=ids.GEMINI_2_5_FLASH, name="Gemini", model="2.5 Flash",
              description="A fast and cost-efficient model for general tasks.",
              search=True, vision=True, pdf_understanding=True, reasoning=False, pinned=True),
    ChatModel(id=ids.GEMINI_2_5_PRO, name="Gemini", model="2.5 Pro",
              description="Google's most capable and versatile model.",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),

    # --- OpenAI ---
    ChatModel(id=ids.GPT_5, name="GPT", model="5",
              description="OpenAI's next-generation frontier model.",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),
    ChatModel(id=ids.GPT_5_MINI, name="GPT", model="5 Mini",
              description="A smaller, faster version of the GPT-5 architecture.",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),
    ChatModel(id=ids.GPT_4o, name="GPT", model="4o",
              description="OpenAI's current flagship multimodal model, optimized for speed.",
              search=True, vision=True, pdf_understanding=False, reasoning=False, pinned=True),
    ChatModel(id=ids.GPT_4o_MINI, name="GPT", model="4o Mini",
              description="A highly efficient version of GPT-4o for everyday tasks.",
              search=True, vision=True, pdf_understanding=False, reasoning=False, pinned=False),
    ChatModel(id=ids.GPT_OSS_120, name="GPT-OSS", model="120B",
              description="Large open-source model from OpenAI, good for research.",
              search=True, vision=False, pdf_understanding=False, reasoning=True, pinned=False),
    ChatModel(id=ids.GPT_OSS_20, name="GPT-OSS", model="20B",
              description="Smaller open-source model, good for local or fine-tuning.",
              search=True, vision=False, pdf_understanding=False, reasoning=True, pinned=True),

    # --- DeepSeek ---
    ChatModel(id=ids.DEEP_SEEK_V3_1, name="DeepSeek", model="v3.1",
              description="A powerful model specializing in code and mathematics.",
              search=True, vision=False, pdf_understanding=True, reasoning=True, pinned=False),
    ChatModel(id=ids.DEEP_SEEK_V3, name="DeepSeek", model="v3",
              description="Previous generation DeepSeek coding and math expert.",
              search=True, vision=False, pdf_understanding=False, reasoning=False, pinned=True),
    ChatModel(id=ids.DEEP_SEEK_r1, name="DeepSeek", model="r1",
              description="DeepSeek's research-focused experimental model.",
              search=True, vision=False, pdf_understanding=False, reasoning=True, pinned=False),

    # --- Grok ---
    ChatModel(id=ids.GROK_4, name="Grok", model="4",
              description="xAI's flagship real-time, general intelligence model.",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),
    ChatModel(id=ids.GROK_4_FAST, name="Grok", model="4 Fast",
              description="A speed-optimized Grok model for rapid responses.",
              search=True, vision=True, pdf_understanding=False, reasoning=False, pinned=True),
    ChatModel(id=ids.GROK_4_FAST_REASONING, name="Grok", model="4 Fast", model_detail="(reasoning)",
              description="Grok 4 Fast with enhanced chain-of-thought capabilities.",
              search=True, vision=True, pdf_understanding=False, reasoning=True, pinned=False),

    # --- Anthropic ---
    ChatModel(id=ids.CLAUDE_3_7_SONNET, name="Claude", model="3.7 Sonnet",
              description="Anthropic's balanced model, strong with documents and reasoning.",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),
    ChatModel(id=ids.CLAUDE_4_SONNET, name="Claude", model="4 Sonnet",
              description="Anthropic's flagship coding model",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),
    ChatModel(id=ids.CLAUDE_4_5_SONNET, name="Claude", model="4.5 Sonnet",
              description="Anthropic's flagship coding model",
              search=True, vision=True, pdf_understanding=True, reasoning=True, pinned=False),
]

ALL_MODEL_IDS: List[str] = [m.id for m in chat_models]

_BY_ID = {m.id: m for m in chat_models}


def get_chat_model(model_id: str) -> Optional[ChatModel]:
    return _BY_ID.get(model_id)


def display_name(model: ChatModel) -> str:
    """Human name shown in compatibility errors, e.g. ``Grok 4 Fast (reasoning)``."""
    name = f"{model.name} {model.model}"
    return f"{name} {model.model_detail}" if model.model_detail else name
