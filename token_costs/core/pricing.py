"""
Published pricing data and cost calculations.

Types for the dual-date provider files served to clients, and the cost
computation applied to them.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from .token_counter import TokenUsage

TOKENS_PER_UNIT = Decimal("1000000")


@dataclass(frozen=True)
class VariantPricing:
    """Price for one resolution/quality variant of a media model."""
    input: Optional[float] = None
    output: Optional[float] = None

    def to_dict(self) -> Dict[str, float]:
        data = {}
        if self.input is not None:
            data["input"] = self.input
        if self.output is not None:
            data["output"] = self.output
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VariantPricing":
        return cls(input=data.get("input"), output=data.get("output"))


def _parse_date(value: Any) -> str:
    """Check a YYYY-MM-DD date string; raises ValueError otherwise."""
    message = f"date must be a YYYY-MM-DD string, got {value!r}"
    if not isinstance(value, str):
        raise ValueError(message)
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise ValueError(message) from None
    if parsed.isoformat() != value:
        raise ValueError(message)
    return value


def _variants_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, VariantPricing]]:
    if data is None:
        return None
    return {name: VariantPricing.from_dict(value) for name, value in data.items()}


@dataclass(frozen=True)
class ModelPricing:
    """Published pricing for a single model.

    Token prices are USD per 1M tokens. Media models may carry only variant
    pricing (per image, per minute of audio, per second of video).
    """
    input: Optional[float] = None
    output: Optional[float] = None
    cached: Optional[float] = None
    context: Optional[int] = None
    max_output: Optional[int] = None
    image: Optional[Dict[str, VariantPricing]] = None
    audio: Optional[Dict[str, VariantPricing]] = None
    video: Optional[Dict[str, VariantPricing]] = None

    @property
    def has_token_pricing(self) -> bool:
        """True if both input and output token prices are known."""
        return self.input is not None and self.output is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key, value in (
            ("input", self.input),
            ("output", self.output),
            ("cached", self.cached),
            ("context", self.context),
            ("maxOutput", self.max_output),
        ):
            if value is not None:
                data[key] = value
        for key, variants in (("image", self.image), ("audio", self.audio), ("video", self.video)):
            if variants is not None:
                data[key] = {name: v.to_dict() for name, v in variants.items()}
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelPricing":
        return cls(
            input=data.get("input"),
            output=data.get("output"),
            cached=data.get("cached"),
            context=data.get("context"),
            max_output=data.get("maxOutput"),
            image=_variants_from_dict(data.get("image")),
            audio=_variants_from_dict(data.get("audio")),
            video=_variants_from_dict(data.get("video")),
        )


@dataclass(frozen=True)
class ProviderData:
    """Pricing for every model of a provider on one date."""
    date: str  # YYYY-MM-DD
    models: Dict[str, ModelPricing] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "models": {model_id: p.to_dict() for model_id, p in self.models.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProviderData":
        return cls(
            date=_parse_date(data["date"]),
            models={
                model_id: ModelPricing.from_dict(p)
                for model_id, p in data.get("models", {}).items()
            },
        )


@dataclass(frozen=True)
class DeprecationInfo:
    """Marker published when a data feed is being retired."""
    since: str
    data_frozen_at: str
    message: str
    upgrade_guide: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {
            "since": self.since,
            "dataFrozenAt": self.data_frozen_at,
            "message": self.message,
        }
        if self.upgrade_guide is not None:
            data["upgradeGuide"] = self.upgrade_guide
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeprecationInfo":
        return cls(
            since=data["since"],
            data_frozen_at=data["dataFrozenAt"],
            message=data["message"],
            upgrade_guide=data.get("upgradeGuide"),
        )


@dataclass(frozen=True)
class ProviderFile:
    """Dual-date file published per provider.

    ``previous`` keeps the prior day's data available while the publish
    job for a new day is still landing.
    """
    current: ProviderData
    previous: Optional[ProviderData] = None
    deprecated: Optional[DeprecationInfo] = None

    def with_models(self, models: Mapping[str, ModelPricing]) -> "ProviderFile":
        """Return a copy whose current models are overlaid with ``models``."""
        merged = dict(self.current.models)
        merged.update(models)
        return replace(self, current=replace(self.current, models=merged))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"current": self.current.to_dict()}
        if self.previous is not None:
            data["previous"] = self.previous.to_dict()
        if self.deprecated is not None:
            data["deprecated"] = self.deprecated.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProviderFile":
        """Parse a published file.

        Raises:
            ValueError: If the payload is not a provider file
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("current"), Mapping):
            raise ValueError("Provider file must contain a 'current' object")
        try:
            previous = data.get("previous")
            deprecated = data.get("deprecated")
            return cls(
                current=ProviderData.from_dict(data["current"]),
                previous=ProviderData.from_dict(previous) if previous else None,
                deprecated=DeprecationInfo.from_dict(deprecated) if deprecated else None,
            )
        except (KeyError, AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed provider file: {e}") from e


@dataclass(frozen=True)
class CostBreakdown:
    """Cost of one request, in USD."""
    input_cost: float
    output_cost: float
    total_cost: float
    used_cached_pricing: bool


def calculate_cost(pricing: ModelPricing, usage: TokenUsage) -> CostBreakdown:
    """Calculate the cost of a request from per-million token prices.

    Cached input tokens are billed at the cached price when the model has
    one, otherwise at the regular input price. Arithmetic is done in Decimal
    so published prices combine without binary rounding noise.

    Args:
        pricing: Model pricing with input and output prices
        usage: Token usage data

    Returns:
        Cost breakdown (unrounded)

    Raises:
        ValueError: If the model has no token-based pricing
    """
    if not pricing.has_token_pricing:
        raise ValueError("Model does not have token-based pricing")

    input_price = Decimal(str(pricing.input))
    output_price = Decimal(str(pricing.output))
    used_cached_pricing = usage.cached_input_tokens > 0 and pricing.cached is not None
    cached_price = Decimal(str(pricing.cached)) if used_cached_pricing else input_price

    input_cost = (Decimal(usage.regular_input_tokens) / TOKENS_PER_UNIT) * input_price
    input_cost += (Decimal(usage.cached_input_tokens) / TOKENS_PER_UNIT) * cached_price
    output_cost = (Decimal(usage.output_tokens) / TOKENS_PER_UNIT) * output_price

    return CostBreakdown(
        input_cost=float(input_cost),
        output_cost=float(output_cost),
        total_cost=float(input_cost + output_cost),
        used_cached_pricing=used_cached_pricing,
    )
