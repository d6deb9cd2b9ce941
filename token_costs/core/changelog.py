"""
Change-log store and snapshot replay.

Each provider owns an append-only log of price changes. The current prices
are never stored; they are rebuilt by replaying the log from the start.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .diff import detect_changes
from token_costs.storage.models import (
    ChangeType,
    PriceChange,
    PriceRecord,
    ProviderHistory,
    ProviderSnapshot,
    ProviderSummary,
    utc_day,
)
from token_costs.storage.repository import HistoryRepository

logger = logging.getLogger(__name__)


def snapshot(history: ProviderHistory) -> ProviderSnapshot:
    """Replay a provider's changes into its current prices.

    Changes are applied in insertion order. A removal for a model that is
    not present is ignored, so any well-formed sequence replays cleanly.

    Args:
        history: Provider history to replay

    Returns:
        Snapshot dated on the day of the last crawl
    """
    models: Dict[str, PriceRecord] = {}
    for change in history.changes:
        if change.change_type in (ChangeType.ADDED, ChangeType.UPDATED):
            models[change.pricing.model_id] = change.pricing
        elif change.change_type == ChangeType.REMOVED:
            models.pop(change.pricing.model_id, None)

    return ProviderSnapshot(
        provider=history.provider,
        date=utc_day(history.last_crawled),
        models=models
    )


class ChangeLog:
    """Append-only price history for all providers.

    Every apply runs load, replay, diff, append and save under one lock so
    concurrent callers cannot lose each other's updates.
    """

    def __init__(self, repository: HistoryRepository):
        self.repository = repository
        self._lock = threading.Lock()

    def load(self, provider: str) -> Optional[ProviderHistory]:
        return self.repository.load(provider)

    def save(self, history: ProviderHistory) -> None:
        self.repository.save(history)

    def apply_observed_prices(
        self,
        provider: str,
        source_url: str,
        new_prices: Iterable[PriceRecord],
        observed_at: Optional[datetime] = None,
    ) -> List[PriceChange]:
        """Record freshly observed prices for a provider.

        On the first crawl every price is recorded as added. Afterwards only
        differences from the replayed snapshot are appended, so applying the
        same prices twice appends nothing the second time.

        Args:
            provider: Provider identifier
            source_url: Pricing page the prices were read from
            new_prices: Observed price records, in any order
            observed_at: Crawl timestamp (defaults to now, UTC)

        Returns:
            The changes appended to the log (possibly empty)

        Raises:
            Exception: Any storage failure, after nothing was reported
        """
        if observed_at is None:
            observed_at = datetime.now(timezone.utc)
        elif observed_at.tzinfo is None:
            observed_at = observed_at.replace(tzinfo=timezone.utc)
        change_date = utc_day(observed_at)
        prices = list(new_prices)

        with self._lock:
            history = self.repository.load(provider)
            if history is None:
                history = ProviderHistory(
                    provider=provider,
                    last_crawled=observed_at,
                    pricing_url=source_url
                )
                current: Dict[str, PriceRecord] = {}
            else:
                current = snapshot(history).models

            changes = detect_changes(current, prices, change_date)
            history.append(changes)
            history.last_crawled = observed_at
            history.pricing_url = source_url
            self.repository.save(history)

        if changes:
            logger.info("%s: recorded %d price changes", provider, len(changes))
            for change in changes:
                logger.debug(
                    "%s: %s %s", provider, change.change_type.value, change.pricing.model_id
                )
        else:
            logger.info("%s: no price changes detected", provider)
        return changes

    def current_snapshot(self, provider: str) -> Optional[ProviderSnapshot]:
        """Replay the stored history for a provider, if any."""
        history = self.repository.load(provider)
        if history is None:
            return None
        return snapshot(history)

    def summary(self, providers: Optional[Iterable[str]] = None) -> List[ProviderSummary]:
        """Summarize stored providers.

        Args:
            providers: Providers to include (defaults to every stored provider)

        Returns:
            One summary per provider that has a history
        """
        if providers is None:
            providers = self.repository.list_providers()

        summaries = []
        for provider in providers:
            history = self.repository.load(provider)
            if history is None:
                continue
            summaries.append(ProviderSummary(
                provider=history.provider,
                model_count=len(snapshot(history).models),
                last_crawled=history.last_crawled,
                total_changes=len(history.changes)
            ))
        return summaries
