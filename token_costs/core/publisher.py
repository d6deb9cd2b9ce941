"""
Published file generation.

Renders a provider's replayed history into the dual-date file served to
pricing clients.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .changelog import ChangeLog, snapshot
from .pricing import ModelPricing, ProviderData, ProviderFile
from token_costs.storage.models import ProviderHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    """Outcome of writing one provider file."""
    provider: str
    path: Path
    model_count: int
    size: int


def history_to_provider_data(history: ProviderHistory) -> ProviderData:
    """Convert a history into published pricing dated on its last crawl."""
    current = snapshot(history)
    models = {}
    for record in current.records:
        models[record.model_id] = ModelPricing(
            input=record.input_price_per_million,
            output=record.output_price_per_million,
            cached=record.cached_input_price_per_million,
            context=record.context_window,
            max_output=record.max_output_tokens,
        )
    return ProviderData(date=current.date.isoformat(), models=models)


def build_provider_file(
    history: ProviderHistory,
    existing: Optional[ProviderFile] = None,
) -> ProviderFile:
    """Build the dual-date file for a history.

    When the new data is for a different date than the existing file's
    current data, the old current becomes previous. On the same date the
    existing previous is kept. A deprecation marker is carried forward.
    """
    current = history_to_provider_data(history)
    if existing is None:
        return ProviderFile(current=current)

    if existing.current.date != current.date:
        previous = existing.current
    else:
        previous = existing.previous
    return ProviderFile(current=current, previous=previous, deprecated=existing.deprecated)


def load_provider_file(path: Path) -> Optional[ProviderFile]:
    """Load a previously published file, or None if there is none."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return ProviderFile.from_dict(json.load(f))
    except FileNotFoundError:
        return None


def write_provider_file(path: Path, provider_file: ProviderFile) -> int:
    """Write a provider file with 2-space indentation; returns its size."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(provider_file.to_dict(), indent=2)
    path.write_text(content, encoding='utf-8')
    return len(content)


def publish_all(
    changelog: ChangeLog,
    output_dir: str,
    providers: Optional[Iterable[str]] = None,
) -> List[PublishResult]:
    """Publish dual-date files for every stored provider.

    Args:
        changelog: Change log to read histories from
        output_dir: Directory receiving one <provider>.json per provider
        providers: Providers to publish (defaults to every stored provider)

    Returns:
        One result per file written
    """
    out = Path(output_dir)
    if providers is None:
        providers = changelog.repository.list_providers()

    results = []
    for provider in providers:
        history = changelog.load(provider)
        if history is None:
            logger.info("%s: no source data", provider)
            continue

        path = out / f"{provider}.json"
        provider_file = build_provider_file(history, load_provider_file(path))
        size = write_provider_file(path, provider_file)
        results.append(PublishResult(
            provider=provider,
            path=path,
            model_count=len(provider_file.current.models),
            size=size
        ))
        logger.info(
            "%s.json: %d models, %d bytes", provider, len(provider_file.current.models), size
        )
    return results
