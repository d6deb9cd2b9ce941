"""
SDK for token costs.

Provides the pricing client and a priced OpenAI wrapper.
"""

from .client import CostResult, PriceLookupResult, PricingClient
from .errors import (
    ClockMismatchError,
    ModelNotFoundError,
    PricingFetchError,
    ProviderNotFoundError,
    TokenCostsError,
    UnsupportedPricingModelError,
)
from .openai_client import PricedOpenAI

__all__ = [
    "PricingClient",
    "PriceLookupResult",
    "CostResult",
    "PricedOpenAI",
    "TokenCostsError",
    "ModelNotFoundError",
    "ProviderNotFoundError",
    "UnsupportedPricingModelError",
    "ClockMismatchError",
    "PricingFetchError",
]
