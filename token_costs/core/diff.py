"""
Price change detection.

Computes the minimal set of change events that turns one set of prices
into another.
"""

from datetime import date
from typing import Dict, Iterable, List, Mapping, Tuple, Union

from token_costs.storage.models import ChangeType, PriceChange, PriceRecord


# Fields whose difference makes a model "updated". model_name and metadata
# are informational and never trigger a change on their own.
COMPARABLE_FIELDS: Tuple[str, ...] = (
    "input_price_per_million",
    "output_price_per_million",
    "cached_input_price_per_million",
    "context_window",
    "max_output_tokens",
)


def pricing_changed(current: PriceRecord, new: PriceRecord) -> bool:
    """Return True if any comparable field differs.

    Comparison is exact: prices are published at fixed precision, so no
    tolerance is applied.
    """
    return any(
        getattr(current, name) != getattr(new, name)
        for name in COMPARABLE_FIELDS
    )


def _index_by_model_id(records: Iterable[PriceRecord]) -> Dict[str, PriceRecord]:
    indexed: Dict[str, PriceRecord] = {}
    for record in records:
        indexed[record.model_id] = record
    return indexed


def detect_changes(
    current: Union[Mapping[str, PriceRecord], Iterable[PriceRecord]],
    new_prices: Iterable[PriceRecord],
    change_date: date,
) -> List[PriceChange]:
    """Detect changes between current prices and newly observed prices.

    Args:
        current: Current snapshot, either model id -> record or records
        new_prices: Freshly observed records in any order; if a model id
            repeats, the last record wins
        change_date: Date stamped on every emitted change

    Returns:
        Added and updated changes in new-set order, followed by removals in
        current-set order. Empty if nothing changed.
    """
    if isinstance(current, Mapping):
        current_map = dict(current)
    else:
        current_map = _index_by_model_id(current)
    new_map = _index_by_model_id(new_prices)

    changes: List[PriceChange] = []

    for model_id, new_pricing in new_map.items():
        current_pricing = current_map.get(model_id)
        if current_pricing is None:
            changes.append(PriceChange(
                date=change_date,
                change_type=ChangeType.ADDED,
                pricing=new_pricing,
            ))
        elif pricing_changed(current_pricing, new_pricing):
            changes.append(PriceChange(
                date=change_date,
                change_type=ChangeType.UPDATED,
                pricing=new_pricing,
                previous_pricing=current_pricing,
            ))

    for model_id, current_pricing in current_map.items():
        if model_id not in new_map:
            changes.append(PriceChange(
                date=change_date,
                change_type=ChangeType.REMOVED,
                pricing=current_pricing,
            ))

    return changes
