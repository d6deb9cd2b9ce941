"""
Token counting and usage tracking.

Holds the token counts a cost calculation is based on.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    ``cached_input_tokens`` is the part of ``input_tokens`` that was served
    from the provider's prompt cache; it is not counted twice.
    """
    input_tokens: int
    output_tokens: int
    cached_input_tokens: int = 0

    def __post_init__(self):
        """Validate token counts."""
        if self.input_tokens < 0:
            raise ValueError("input_tokens cannot be negative")
        if self.output_tokens < 0:
            raise ValueError("output_tokens cannot be negative")
        if self.cached_input_tokens < 0:
            raise ValueError("cached_input_tokens cannot be negative")
        if self.cached_input_tokens > self.input_tokens:
            raise ValueError("cached_input_tokens cannot exceed input_tokens")

    @property
    def regular_input_tokens(self) -> int:
        """Input tokens billed at the regular input price."""
        return self.input_tokens - self.cached_input_tokens

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens
