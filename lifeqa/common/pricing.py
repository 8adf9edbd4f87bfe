"""
API Pricing

Per-model token prices in USD per 1M tokens. Cost is a pure function of
(model, input tokens, output tokens); it is informational only.
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger("lifeqa.common.pricing")

# model id prefix -> (input per 1M, output per 1M)
MODEL_PRICING: Dict[str, tuple] = {
    # OpenAI
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (5.00, 15.00),
    "gpt-4-turbo": (10.00, 30.00),
    "gpt-4": (30.00, 60.00),
    "gpt-3.5-turbo": (0.50, 1.50),
    "text-embedding-3-small": (0.02, 0.0),
    "text-embedding-3-large": (0.13, 0.0),
    # Anthropic
    "claude-sonnet-4": (3.00, 15.00),
    "claude-haiku-4-5": (1.00, 5.00),
    "claude-3-5-haiku": (0.80, 4.00),
    "claude-opus-4": (15.00, 75.00),
    # Google
    "gemini-2.0-flash": (0.10, 0.40),
    "gemini-1.5-pro": (1.25, 5.00),
    "gemini-1.5-flash": (0.075, 0.30),
}


def lookup_pricing(model: str) -> Optional[tuple]:
    """Find the price entry for a model id.

    Dated ids ("gpt-4o-2024-08-06") resolve through the longest matching
    prefix, so "gpt-4o-mini-..." never falls back to "gpt-4o".
    """
    if not model:
        return None
    model = model.lower()
    if model in MODEL_PRICING:
        return MODEL_PRICING[model]

    matches = [prefix for prefix in MODEL_PRICING if model.startswith(prefix)]
    if not matches:
        return None
    return MODEL_PRICING[max(matches, key=len)]


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate the USD cost of a single call.

    Unknown models cost 0.0.
    """
    pricing = lookup_pricing(model)
    if pricing is None:
        logger.debug("No pricing entry for model %s", model)
        return 0.0

    input_price, output_price = pricing
    cost = (input_tokens / 1_000_000) * input_price + (output_tokens / 1_000_000) * output_price
    return round(cost, 8)
