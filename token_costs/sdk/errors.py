"""
Errors raised by the pricing client.

Each failure is its own class with inspectable attributes so callers can
branch on the kind of failure.
"""

from typing import List


class TokenCostsError(Exception):
    """Base class for pricing client errors."""


class ModelNotFoundError(TokenCostsError):
    """Raised when a provider's pricing has no entry for a model."""
    def __init__(self, provider: str, model_id: str, available: List[str]):
        super().__init__(
            f"Model '{model_id}' not found for provider '{provider}'. "
            f"Available: {', '.join(available)}"
        )
        self.provider = provider
        self.model_id = model_id
        self.available = available


class ProviderNotFoundError(TokenCostsError):
    """Raised when a provider has neither remote data nor a custom overlay."""
    def __init__(self, provider: str, offline: bool = False):
        if offline:
            message = (
                f"Provider '{provider}' not found. In offline mode, only "
                f"custom_providers data is available."
            )
        else:
            message = (
                f"Provider '{provider}' not found. Use a built-in provider "
                f"(openai, anthropic, google, openrouter) or add it to custom_providers."
            )
        super().__init__(message)
        self.provider = provider
        self.offline = offline


class UnsupportedPricingModelError(TokenCostsError):
    """Raised when a cost calculation targets a model without token pricing."""
    def __init__(self, provider: str, model_id: str):
        super().__init__(
            f"Model '{model_id}' of provider '{provider}' does not have token-based "
            f"pricing. Use image/audio/video pricing fields instead."
        )
        self.provider = provider
        self.model_id = model_id


class ClockMismatchError(TokenCostsError):
    """Raised when published data disagrees with the client's date.

    A data date one day behind the client is the normal publish race and
    never raises; anything in the future or further behind does.
    """
    def __init__(self, client_date: str, data_date: str, days_diff: int):
        super().__init__(
            f"Clock mismatch detected: client thinks it's {client_date} but latest "
            f"data is from {data_date} ({days_diff} days difference). This may "
            f"indicate your server clock is wrong. Use the time_offset_ms option "
            f"to adjust, or check your system clock."
        )
        self.client_date = client_date
        self.data_date = data_date
        self.days_diff = days_diff


class PricingFetchError(TokenCostsError):
    """Raised when pricing data cannot be fetched and nothing is cached."""
    def __init__(self, provider: str, url: str, reason: str):
        super().__init__(f"Failed to fetch pricing data for {provider} from {url}: {reason}")
        self.provider = provider
        self.url = url
        self.reason = reason
