"""
Priced OpenAI client wrapper.

Prices every chat completion against published pricing without modifying
the response.
"""

from typing import Any, Dict, List, Optional

from openai import OpenAI

from .client import CostResult, PricingClient


class PricedOpenAI:
    """OpenAI client wrapper that prices each chat completion.

    The cost of the latest call is kept in ``last_cost`` and the running
    total in ``total_cost``. Pricing failures are loud.
    """

    def __init__(
        self,
        model: str,
        pricing_client: Optional[PricingClient] = None,
        provider: str = "openai",
    ):
        """Initialize priced OpenAI client.

        Args:
            model: OpenAI model name (required)
            pricing_client: Client used for pricing (a default one otherwise)
            provider: Provider id the model is priced under

        Raises:
            ValueError: If model is missing/empty
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")

        self.model = model
        self.provider = provider
        self.pricing_client = pricing_client or PricingClient()
        self.client = OpenAI()
        self.last_cost: Optional[CostResult] = None
        self.total_cost = 0.0

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs: Any
    ) -> Any:
        """Create chat completion and price its usage.

        Args:
            messages: List of message dictionaries (required)
            temperature: Sampling temperature (optional)
            max_tokens: Maximum tokens to generate (optional)
            **kwargs: Additional OpenAI parameters

        Returns:
            OpenAI chat completion response, unchanged

        Raises:
            ValueError: If messages is empty or the response has no usage
            OpenAI API errors: Propagated without modification
            TokenCostsError: Pricing failures, propagated without modification
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )

        usage = response.usage
        if not usage:
            raise ValueError("OpenAI response missing usage information")

        details = getattr(usage, "prompt_tokens_details", None)
        cached_tokens = getattr(details, "cached_tokens", None) or 0

        cost = self.pricing_client.calculate_cost(
            self.provider,
            self.model,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            cached_input_tokens=cached_tokens
        )
        self.last_cost = cost
        self.total_cost += cost.total_cost

        return response
