# services/entitlements.py
from typing import Dict, List
from pydantic import BaseModel
from services.model_catalog import MODEL_PROVIDER_IDS as ids, ALL_MODEL_IDS


class Entitlements(BaseModel):
    max_messages_per_day: int
    available_chat_model_ids: List[str]


_FREE_MODELS = [ids.GEMINI_2_5_FLASH_LITE, ids.GPT_OSS_20]

# TODO: move to monthly credits instead of a daily message cap
entitlements_by_user_type: Dict[str, Entitlements] = {
    "free": Entitlements(
        max_messages_per_day=10,
        available_chat_model_ids=_FREE_MODELS,
    ),
    "plus": Entitlements(
        max_messages_per_day=50,
        available_chat_model_ids=[
            *_FREE_MODELS,
            ids.GEMINI_2_5_FLASH,
            ids.GPT_4o,
            ids.GPT_4o_MINI,
            ids.GPT_OSS_120,
            ids.DEEP_SEEK_V3_1,
            ids.DEEP_SEEK_V3,
        ],
    ),
    "pro": Entitlements(max_messages_per_day=100, available_chat_model_ids=list(ALL_MODEL_IDS)),
    "ultra": Entitlements(max_messages_per_day=200, available_chat_model_ids=list(ALL_MODEL_IDS)),
    # accounts registered with credentials outside production
    "dev": Entitlements(max_messages_per_day=1000, available_chat_model_ids=list(ALL_MODEL_IDS)),
}


def get_entitlements(user_type: str) -> Entitlements:
    return entitlements_by_user_type.get(user_type, entitlements_by_user_type["free"])
