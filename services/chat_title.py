# services/chat_title.py
import json
import logging
from langchain_core.messages import HumanMessage, SystemMessage
from services.chat_model import get_title_model
from services.prompts import title_prompt

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 80
FALLBACK_TITLE = "New chat"


def _fallback_title(message: dict) -> str:
    text = " ".join(
        p.get("text", "") for p in message.get("parts", []) if p.get("type") == "text"
    ).strip()
    if not text:
        names = [p.get("name") for p in message.get("parts", []) if p.get("type") == "file"]
        text = ", ".join(n for n in names if n)
    return (text[:MAX_TITLE_LENGTH].strip() or FALLBACK_TITLE).replace(":", "")


async def generate_title_from_user_message(message: dict) -> str:
    """Short title for a new chat, falling back to the message text if the model fails."""
    try:
        result = await get_title_model().ainvoke([
            SystemMessage(content=title_prompt),
            HumanMessage(content=json.dumps(message)),
        ])
        title = str(result.content).strip().strip('"').replace(":", "")
        return title[:MAX_TITLE_LENGTH] or _fallback_title(message)
    except Exception as exc:
        logger.warning("Title generation failed, using message text: %s", exc)
        return _fallback_title(message)
