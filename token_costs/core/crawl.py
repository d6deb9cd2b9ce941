"""
Crawl runner.

A price source is anything that returns the current price records of a
provider. The runner applies what a source reports to the change log and
reports the outcome.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

import yaml

from .changelog import ChangeLog
from token_costs.storage.models import ChangeType, PriceChange, PriceRecord

logger = logging.getLogger(__name__)

PriceSource = Callable[[], List[PriceRecord]]

_PRICE_PATTERN = re.compile(r"\$?\s*(-?\d[\d,]*(?:\.\d+)?)")
_PRICE_KEYS = ("inputPricePerMillion", "outputPricePerMillion", "cachedInputPricePerMillion")


@dataclass
class CrawlResult:
    """Outcome of one crawl."""
    success: bool
    provider: str
    timestamp: datetime
    prices: List[PriceRecord] = field(default_factory=list)
    changes: List[PriceChange] = field(default_factory=list)
    error: Optional[str] = None


def run_crawl(
    provider: str,
    pricing_url: str,
    source: PriceSource,
    changelog: ChangeLog,
    observed_at: Optional[datetime] = None,
) -> CrawlResult:
    """Crawl a provider and record its price changes.

    A failing source yields an unsuccessful result. Storage failures are
    not caught: a crawl is never reported as recorded when it wasn't.

    Args:
        provider: Provider identifier
        pricing_url: Pricing page the source reads
        source: Callable producing the provider's price records
        changelog: Change log receiving the prices
        observed_at: Crawl timestamp (defaults to now, UTC)
    """
    timestamp = observed_at or datetime.now(timezone.utc)
    logger.info("[%s] Starting price crawl at %s", provider, timestamp.isoformat())
    logger.info("[%s] Pricing URL: %s", provider, pricing_url)

    try:
        prices = source()
    except Exception as e:
        logger.error("[%s] Crawl failed: %s", provider, e)
        return CrawlResult(
            success=False,
            provider=provider,
            timestamp=timestamp,
            error=str(e)
        )

    logger.info("[%s] Found %d models", provider, len(prices))
    changes = changelog.apply_observed_prices(provider, pricing_url, prices, timestamp)

    for change in changes:
        logger.info("[%s]   - %s: %s", provider, change.change_type.value, change.pricing.model_id)
        if change.change_type == ChangeType.UPDATED:
            previous = change.previous_pricing
            logger.info(
                "[%s]     Input: $%s -> $%s/1M", provider,
                previous.input_price_per_million, change.pricing.input_price_per_million
            )
            logger.info(
                "[%s]     Output: $%s -> $%s/1M", provider,
                previous.output_price_per_million, change.pricing.output_price_per_million
            )

    return CrawlResult(
        success=True,
        provider=provider,
        timestamp=timestamp,
        prices=prices,
        changes=changes
    )


def parse_price(text: str) -> float:
    """Parse the first price-like number in a string such as "$1,250.50 / 1M".

    Raises:
        ValueError: If the string holds no number
    """
    match = _PRICE_PATTERN.search(text)
    if match is None:
        raise ValueError(f"No price found in {text!r}")
    return float(match.group(1).replace(",", ""))


def file_source(path: str) -> PriceSource:
    """Price source reading a YAML or JSON list of price records.

    Prices may be given as numbers or as text such as "$2.50".
    """
    def read() -> List[PriceRecord]:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a list of price records")

        records = []
        for item in data:
            if not isinstance(item, dict):
                raise ValueError(f"{path}: each price record must be a mapping")
            item = dict(item)
            for key in _PRICE_KEYS:
                if isinstance(item.get(key), str):
                    item[key] = parse_price(item[key])
            records.append(PriceRecord.from_dict(item))
        return records

    return read
