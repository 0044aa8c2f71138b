# services/usage.py
"""Token usage for a chat turn, enriched with context limits and cost.

The catalog is the public models.dev listing (the same data tokenlens reads):
``{provider: {"models": {model: {"cost": {...}, "limit": {...}}}}}`` with costs
in USD per million tokens.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from core.config import TOKENLENS_CACHE_SECONDS, TOKENLENS_CATALOG_URL, TOKENLENS_RETRY_SECONDS

logger = logging.getLogger(__name__)

_catalog: Optional[dict] = None
_catalog_fetched_at = 0.0
_catalog_failed_at: Optional[float] = None


async def get_tokenlens_catalog(client: Optional[httpx.AsyncClient] = None) -> Optional[dict]:
    """Catalog cached for a day; ``None`` when it cannot be fetched.

    A failed fetch is not retried for ``TOKENLENS_RETRY_SECONDS``.
    """
    global _catalog, _catalog_fetched_at, _catalog_failed_at

    now = time.monotonic()
    if _catalog is not None and now - _catalog_fetched_at < TOKENLENS_CACHE_SECONDS:
        return _catalog
    if _catalog_failed_at is not None and now - _catalog_failed_at < TOKENLENS_RETRY_SECONDS:
        return None

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=10) as own_client:
                resp = await own_client.get(TOKENLENS_CATALOG_URL)
        else:
            resp = await client.get(TOKENLENS_CATALOG_URL)
        resp.raise_for_status()
        _catalog = resp.json()
        _catalog_fetched_at = time.monotonic()
        _catalog_failed_at = None
        return _catalog
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("TokenLens: catalog fetch failed, using plain usage: %s", exc)
        _catalog_failed_at = time.monotonic()
        return None


def merge_usage(total: Dict[str, int], usage_metadata: Optional[dict]) -> Dict[str, int]:
    """Add LangChain ``usage_metadata`` of one model step into running totals."""
    if not usage_metadata:
        return total

    input_details = usage_metadata.get("input_token_details") or {}
    output_details = usage_metadata.get("output_token_details") or {}

    total["inputTokens"] = total.get("inputTokens", 0) + usage_metadata.get("input_tokens", 0)
    total["outputTokens"] = total.get("outputTokens", 0) + usage_metadata.get("output_tokens", 0)
    total["totalTokens"] = total.get("totalTokens", 0) + usage_metadata.get("total_tokens", 0)
    total["reasoningTokens"] = total.get("reasoningTokens", 0) + output_details.get("reasoning", 0)
    total["cachedInputTokens"] = total.get("cachedInputTokens", 0) + input_details.get("cache_read", 0)
    return total


def _lookup(catalog: dict, model_id: str) -> Optional[dict]:
    provider, _, model = model_id.partition("/")
    entry = (catalog.get(provider) or {}).get("models") or {}
    return entry.get(model) or entry.get(model_id)


def get_usage(model_id: str, usage: Dict[str, Any], catalog: Optional[dict]) -> Dict[str, Any]:
    """Return ``usage`` plus ``context``/``costUSD`` when the catalog knows the model."""
    result: Dict[str, Any] = {**usage, "modelId": model_id}

    info = _lookup(catalog, model_id) if catalog else None
    if not info:
        return result

    limit = info.get("limit") or {}
    result["context"] = {
        "totalMax": limit.get("context"),
        "inputMax": limit.get("input", limit.get("context")),
        "outputMax": limit.get("output"),
    }

    cost = info.get("cost") or {}
    if cost:
        per_token = 1_000_000
        cached = usage.get("cachedInputTokens", 0)
        uncached = max(usage.get("inputTokens", 0) - cached, 0)
        input_usd = uncached * cost.get("input", 0) / per_token
        input_usd += cached * cost.get("cache_read", cost.get("input", 0)) / per_token
        output_usd = usage.get("outputTokens", 0) * cost.get("output", 0) / per_token
        result["costUSD"] = {
            "inputUSD": round(input_usd, 8),
            "outputUSD": round(output_usd, 8),
            "totalUSD": round(input_usd + output_usd, 8),
        }

    return result
