"""
Pricing client with daily refresh.

Fetches the published dual-date provider files, caches them per UTC day,
overlays caller-supplied custom pricing and answers price and cost queries.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Set, Union

import httpx

from token_costs.core.pricing import (
    DeprecationInfo,
    ModelPricing,
    ProviderData,
    ProviderFile,
    calculate_cost,
)
from token_costs.core.token_counter import TokenUsage
from .errors import (
    ClockMismatchError,
    ModelNotFoundError,
    PricingFetchError,
    ProviderNotFoundError,
    UnsupportedPricingModelError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://raw.githubusercontent.com/mikkotikkanen/token-costs/main/docs/api/v1"
BUILT_IN_PROVIDERS = ("openai", "anthropic", "google", "openrouter")
CACHE_KEY_PREFIX = "token-costs:"
USER_AGENT = "token-costs-client/1.0"


class ExternalCache(Protocol):
    """String key/value store that survives client restarts."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


DeprecationCallback = Callable[[DeprecationInfo, str], None]
CustomModels = Mapping[str, Union[ModelPricing, Mapping[str, Any]]]


@dataclass(frozen=True)
class CacheEntry:
    """A fetched provider file and the client date it was fetched on."""
    data: ProviderFile
    fetched_date: str  # YYYY-MM-DD

    def to_json(self) -> str:
        return json.dumps({"data": self.data.to_dict(), "fetchedDate": self.fetched_date})

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        payload = json.loads(raw)
        return cls(
            data=ProviderFile.from_dict(payload["data"]),
            fetched_date=payload["fetchedDate"]
        )


@dataclass(frozen=True)
class PriceLookupResult:
    """Result of a price lookup."""
    provider: str
    model_id: str
    pricing: ModelPricing
    date: str
    stale: bool  # True if the data predates the client's today


@dataclass(frozen=True)
class CostResult:
    """Cost of a request priced against published data, in USD."""
    input_cost: float
    output_cost: float
    total_cost: float
    used_cached_pricing: bool
    date: str
    stale: bool


def days_difference(date_a: str, date_b: str) -> int:
    """Whole days from ``date_b`` to ``date_a`` (YYYY-MM-DD strings)."""
    return (date.fromisoformat(date_a) - date.fromisoformat(date_b)).days


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_built_in_provider(provider: str) -> bool:
    """Check if a provider has remote data."""
    return provider in BUILT_IN_PROVIDERS or provider.startswith("openrouter/")


class PricingClient:
    """Access to LLM pricing data with caching and daily refresh.

    Remote data for a provider is fetched at most once per client day; a
    failed fetch falls back to whatever is cached. All cache state belongs
    to the instance and is guarded by one lock.

    Example:
        with PricingClient() as client:
            cost = client.calculate_cost("openai", "gpt-4o", 1500, 800)
            print(cost.total_cost)
    """

    def __init__(
        self,
        offline: bool = False,
        custom_providers: Optional[Mapping[str, CustomModels]] = None,
        base_url: str = DEFAULT_BASE_URL,
        http_client: Optional[httpx.Client] = None,
        time_offset_ms: int = 0,
        external_cache: Optional[ExternalCache] = None,
        on_deprecation: Optional[DeprecationCallback] = None,
        suppress_deprecation_warnings: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the client.

        Args:
            offline: Only serve custom_providers data, never fetch
            custom_providers: provider -> model id -> pricing, merged over
                remote data (custom wins)
            base_url: Where the published provider files live
            http_client: Client used for fetching; one is created otherwise
            time_offset_ms: Shift applied to the client's notion of "today"
            external_cache: Optional cache persisted across restarts
            on_deprecation: Called once per deprecated provider
            suppress_deprecation_warnings: Don't log deprecation warnings
            clock: Returns the current time (defaults to UTC now)
        """
        self.offline = offline
        self.custom_providers: Dict[str, Dict[str, ModelPricing]] = {
            provider: {
                model_id: p if isinstance(p, ModelPricing) else ModelPricing.from_dict(p)
                for model_id, p in models.items()
            }
            for provider, models in (custom_providers or {}).items()
        }
        self.base_url = base_url.rstrip("/")
        self.time_offset_ms = time_offset_ms
        self.external_cache = external_cache
        self.on_deprecation = on_deprecation
        self.suppress_deprecation_warnings = suppress_deprecation_warnings
        self._clock = clock or _utc_now
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=30.0,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        self._cache: Dict[str, CacheEntry] = {}
        self._deprecation_warnings_shown: Set[str] = set()
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config, **kwargs) -> "PricingClient":
        """Build a client from a loaded ClientConfig."""
        from token_costs.storage.cache import JsonFileCache

        external_cache = JsonFileCache(config.cache_file) if config.cache_file else None
        return cls(
            offline=config.offline,
            custom_providers=config.custom_providers,
            base_url=config.base_url,
            time_offset_ms=config.time_offset_ms,
            external_cache=external_cache,
            suppress_deprecation_warnings=config.suppress_deprecation_warnings,
            **kwargs
        )

    def close(self) -> None:
        """Release the HTTP client if this instance created it."""
        if self._owns_http_client:
            self._http.close()

    def __enter__(self) -> "PricingClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _today(self) -> str:
        now = self._clock() + timedelta(milliseconds=self.time_offset_ms)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date().isoformat()

    def _cache_key(self, provider: str) -> str:
        return f"{CACHE_KEY_PREFIX}{provider}"

    def _load_from_external_cache(self, provider: str) -> Optional[CacheEntry]:
        if self.external_cache is None:
            return None
        try:
            raw = self.external_cache.get(self._cache_key(provider))
            if raw:
                return CacheEntry.from_json(raw)
        except Exception as e:
            logger.debug("External cache read failed for %s: %s", provider, e)
        return None

    def _save_to_external_cache(self, provider: str, entry: CacheEntry) -> None:
        if self.external_cache is None:
            return
        try:
            self.external_cache.set(self._cache_key(provider), entry.to_json())
        except Exception as e:
            logger.debug("External cache write failed for %s: %s", provider, e)

    def _handle_deprecation(self, data: ProviderFile, provider: str) -> None:
        """Signal a deprecated feed once per provider per client."""
        if data.deprecated is None or provider in self._deprecation_warnings_shown:
            return
        self._deprecation_warnings_shown.add(provider)

        dep = data.deprecated
        if self.on_deprecation is not None:
            self.on_deprecation(dep, provider)
        elif not self.suppress_deprecation_warnings:
            warning = f"DEPRECATION WARNING for '{provider}': {dep.message}"
            warning += f"\n  Deprecated since: {dep.since}"
            warning += f"\n  Data frozen after: {dep.data_frozen_at}"
            if dep.upgrade_guide:
                warning += f"\n  Upgrade guide: {dep.upgrade_guide}"
            logger.warning(warning)

    def _custom_provider_file(self, provider: str) -> Optional[ProviderFile]:
        models = self.custom_providers.get(provider)
        if models is None:
            return None
        return ProviderFile(current=ProviderData(date=self._today(), models=dict(models)))

    def _merge_custom_data(self, data: ProviderFile, provider: str) -> ProviderFile:
        models = self.custom_providers.get(provider)
        if not models:
            return data
        return data.with_models(models)

    def _download(self, url: str) -> ProviderFile:
        response = self._http.get(url)
        response.raise_for_status()
        return ProviderFile.from_dict(response.json())

    def _fetch_provider(self, provider: str, model_id: Optional[str] = None) -> ProviderFile:
        """Resolve the provider file, using the cache when it is from today.

        Args:
            provider: The provider to resolve
            model_id: Optional model id; for openrouter, a "sub/model" id
                selects the openrouter/sub file
        """
        effective = provider
        if provider == "openrouter" and model_id and "/" in model_id:
            effective = f"openrouter/{model_id.split('/')[0]}"

        if self.offline:
            custom = self._custom_provider_file(provider)
            if custom is not None:
                return custom
            raise ProviderNotFoundError(provider, offline=True)

        if not is_built_in_provider(effective):
            custom = self._custom_provider_file(provider)
            if custom is not None:
                return custom
            raise ProviderNotFoundError(provider)

        with self._lock:
            today = self._today()
            cached = self._cache.get(effective)
            if cached is None:
                cached = self._load_from_external_cache(effective)
                if cached is not None:
                    self._cache[effective] = cached

            if cached is not None and cached.fetched_date == today:
                logger.debug("Using cached pricing for %s from %s", effective, today)
                self._handle_deprecation(cached.data, effective)
                return self._merge_custom_data(cached.data, provider)

            url = f"{self.base_url}/{effective}.json"
            logger.info("Fetching pricing data for %s from %s", effective, url)
            try:
                data = self._download(url)
            except (httpx.HTTPError, ValueError) as e:
                if cached is not None:
                    logger.warning(
                        "Fetch for %s failed (%s); using cached data from %s",
                        effective, e, cached.fetched_date
                    )
                    self._handle_deprecation(cached.data, effective)
                    return self._merge_custom_data(cached.data, provider)
                raise PricingFetchError(effective, url, str(e)) from e

            days_diff = days_difference(today, data.current.date)
            if days_diff < 0 or days_diff > 1:
                raise ClockMismatchError(today, data.current.date, days_diff)

            entry = CacheEntry(data=data, fetched_date=today)
            self._cache[effective] = entry
            self._save_to_external_cache(effective, entry)
            self._handle_deprecation(data, effective)

        return self._merge_custom_data(data, provider)

    def get_model_pricing(self, provider: str, model_id: str) -> PriceLookupResult:
        """Get pricing for a specific model.

        Args:
            provider: The provider (openai, anthropic, google, openrouter or custom)
            model_id: The model identifier

        Returns:
            Pricing with its data date and staleness flag

        Raises:
            ModelNotFoundError: If the provider has no such model
            ProviderNotFoundError: If the provider is unknown
            ClockMismatchError: If fetched data disagrees with the client clock
            PricingFetchError: If fetching failed and nothing is cached
        """
        data = self._fetch_provider(provider, model_id).current
        pricing = data.models.get(model_id)
        if pricing is None:
            raise ModelNotFoundError(provider, model_id, list(data.models))

        return PriceLookupResult(
            provider=provider,
            model_id=model_id,
            pricing=pricing,
            date=data.date,
            stale=data.date < self._today()
        )

    def get_model_pricing_or_none(self, provider: str, model_id: str) -> Optional[PriceLookupResult]:
        """Get pricing for a model, returning None if the model is unknown."""
        try:
            return self.get_model_pricing(provider, model_id)
        except ModelNotFoundError:
            return None

    def get_provider_models(self, provider: str) -> Dict[str, ModelPricing]:
        """Get all models for a provider."""
        return self._fetch_provider(provider).current.models

    def list_models(self, provider: str) -> List[str]:
        """List all model ids for a provider."""
        return list(self.get_provider_models(provider))

    def calculate_cost(
        self,
        provider: str,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
        cached_input_tokens: int = 0,
    ) -> CostResult:
        """Calculate cost for a given number of tokens.

        Args:
            provider: The provider
            model_id: The model identifier
            input_tokens: Number of input tokens, cached ones included
            output_tokens: Number of output tokens
            cached_input_tokens: Part of input_tokens served from cache

        Raises:
            UnsupportedPricingModelError: If the model has no token pricing
        """
        lookup = self.get_model_pricing(provider, model_id)
        if not lookup.pricing.has_token_pricing:
            raise UnsupportedPricingModelError(provider, model_id)

        breakdown = calculate_cost(
            lookup.pricing,
            TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cached_input_tokens=cached_input_tokens
            )
        )
        return CostResult(
            input_cost=breakdown.input_cost,
            output_cost=breakdown.output_cost,
            total_cost=breakdown.total_cost,
            used_cached_pricing=breakdown.used_cached_pricing,
            date=lookup.date,
            stale=lookup.stale
        )

    def get_raw_provider_data(self, provider: str) -> ProviderFile:
        """Get the full provider file, including previous-day data."""
        return self._fetch_provider(provider)

    def get_cached_date(self, provider: str) -> Optional[str]:
        """Date of the cached data for a provider, or None if nothing is cached."""
        with self._lock:
            cached = self._cache.get(provider)
            return cached.data.current.date if cached is not None else None

    def clear_cache(self, provider: Optional[str] = None) -> None:
        """Clear the in-memory cache for one provider or all providers."""
        with self._lock:
            if provider is None:
                self._cache.clear()
            else:
                self._cache.pop(provider, None)
