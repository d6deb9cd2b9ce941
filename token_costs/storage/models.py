"""
Data models for storage layer.

Defines price records, change events and the per-provider change log.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ChangeType(Enum):
    """Kind of entry in a provider's change log."""
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class PriceRecord:
    """Pricing for one model at a point in time.

    Prices are USD per one million tokens. A price change always produces
    a new record; records are never mutated.
    """
    model_id: str
    model_name: str
    input_price_per_million: float
    output_price_per_million: float
    cached_input_price_per_million: Optional[float] = None
    context_window: Optional[int] = None
    max_output_tokens: Optional[int] = None
    metadata: Optional[Mapping[str, Any]] = None

    def __post_init__(self):
        """Validate identifier and prices."""
        if not self.model_id or not self.model_id.strip():
            raise ValueError("model_id cannot be empty")
        if self.input_price_per_million < 0:
            raise ValueError("input_price_per_million cannot be negative")
        if self.output_price_per_million < 0:
            raise ValueError("output_price_per_million cannot be negative")
        if (self.cached_input_price_per_million is not None and
                self.cached_input_price_per_million < 0):
            raise ValueError("cached_input_price_per_million cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the history file's camelCase keys."""
        data: Dict[str, Any] = {
            "modelId": self.model_id,
            "modelName": self.model_name,
            "inputPricePerMillion": self.input_price_per_million,
            "outputPricePerMillion": self.output_price_per_million,
        }
        if self.cached_input_price_per_million is not None:
            data["cachedInputPricePerMillion"] = self.cached_input_price_per_million
        if self.context_window is not None:
            data["contextWindow"] = self.context_window
        if self.max_output_tokens is not None:
            data["maxOutputTokens"] = self.max_output_tokens
        if self.metadata is not None:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PriceRecord":
        """Build a record from its serialized form.

        Raises:
            ValueError: If a required key is missing or a value is invalid
        """
        for key in ("modelId", "inputPricePerMillion", "outputPricePerMillion"):
            if key not in data:
                raise ValueError(f"Price record missing '{key}'")
        return cls(
            model_id=data["modelId"],
            model_name=data.get("modelName", data["modelId"]),
            input_price_per_million=data["inputPricePerMillion"],
            output_price_per_million=data["outputPricePerMillion"],
            cached_input_price_per_million=data.get("cachedInputPricePerMillion"),
            context_window=data.get("contextWindow"),
            max_output_tokens=data.get("maxOutputTokens"),
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class PriceChange:
    """Immutable entry in a provider's append-only change log.

    ``pricing`` is the new record (the last-known record for removals);
    ``previous_pricing`` is only set for updates.
    """
    date: date
    change_type: ChangeType
    pricing: PriceRecord
    previous_pricing: Optional[PriceRecord] = None

    def __post_init__(self):
        """Validate previous pricing matches the change type."""
        if self.change_type == ChangeType.UPDATED and self.previous_pricing is None:
            raise ValueError("updated changes require previous_pricing")
        if self.change_type != ChangeType.UPDATED and self.previous_pricing is not None:
            raise ValueError(
                f"{self.change_type.value} changes cannot carry previous_pricing"
            )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "date": self.date.isoformat(),
            "changeType": self.change_type.value,
            "pricing": self.pricing.to_dict(),
        }
        if self.previous_pricing is not None:
            data["previousPricing"] = self.previous_pricing.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PriceChange":
        previous = data.get("previousPricing")
        return cls(
            date=date.fromisoformat(data["date"]),
            change_type=ChangeType(data["changeType"]),
            pricing=PriceRecord.from_dict(data["pricing"]),
            previous_pricing=PriceRecord.from_dict(previous) if previous else None,
        )


@dataclass
class ProviderHistory:
    """Append-only price history for one provider.

    Changes are kept in insertion order, which is the authoritative replay
    order even when a backfill makes the ``date`` fields non-monotonic.
    Entries are only ever appended, never rewritten or removed.
    """
    provider: str
    last_crawled: datetime
    pricing_url: str
    changes: List[PriceChange] = field(default_factory=list)
    # number of leading changes already in the durable store
    persisted_count: int = field(default=0, compare=False)

    def append(self, changes: List[PriceChange]) -> None:
        """Append new changes to the end of the log."""
        self.changes.extend(changes)


@dataclass(frozen=True)
class ProviderSnapshot:
    """Current prices derived by replaying a provider's change log."""
    provider: str
    date: date
    models: Dict[str, PriceRecord]

    @property
    def records(self) -> List[PriceRecord]:
        """Current records in first-seen order."""
        return list(self.models.values())


@dataclass(frozen=True)
class ProviderSummary:
    """Aggregate view of a stored provider history."""
    provider: str
    model_count: int
    last_crawled: datetime
    total_changes: int


def utc_day(moment: datetime) -> date:
    """Truncate a timestamp to its UTC calendar day.

    Naive timestamps are taken to already be in UTC.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()
