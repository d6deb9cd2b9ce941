"""
Repository pattern for price history access.

Persists each provider's change log as an append-only SQLite ledger.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import PriceChange, ProviderHistory


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the price history tables if they don't exist.

    ``price_change`` is an append-only ledger: rows are only ever inserted,
    and the autoincrement id records the authoritative replay order.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS provider_history (
                provider TEXT PRIMARY KEY,
                last_crawled TEXT NOT NULL,
                pricing_url TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS price_change (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                provider TEXT NOT NULL REFERENCES provider_history(provider),
                date TEXT NOT NULL,
                change_type TEXT NOT NULL,
                pricing TEXT NOT NULL,
                previous_pricing TEXT
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_price_change_provider
            ON price_change (provider, id)
        """)
    finally:
        conn.close()


def _parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class HistoryRepository:
    """Repository for loading and saving provider price histories.

    Saving never rewrites stored changes: only the entries past the
    persisted count are inserted, inside a single transaction. A history
    whose stored prefix moved since it was loaded is rejected.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def load(self, provider: str) -> Optional[ProviderHistory]:
        """Load a provider's history, or None if it was never crawled."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT last_crawled, pricing_url FROM provider_history WHERE provider = ?",
                (provider,)
            ).fetchone()
            if row is None:
                return None

            cursor = conn.execute("""
                SELECT date, change_type, pricing, previous_pricing
                FROM price_change
                WHERE provider = ?
                ORDER BY id ASC
            """, (provider,))
            changes = []
            for date_str, change_type, pricing, previous in cursor.fetchall():
                data = {
                    "date": date_str,
                    "changeType": change_type,
                    "pricing": json.loads(pricing),
                }
                if previous is not None:
                    data["previousPricing"] = json.loads(previous)
                changes.append(PriceChange.from_dict(data))

            return ProviderHistory(
                provider=provider,
                last_crawled=_parse_timestamp(row[0]),
                pricing_url=row[1],
                changes=changes,
                persisted_count=len(changes)
            )
        finally:
            conn.close()

    def save(self, history: ProviderHistory) -> None:
        """Persist a provider's history atomically.

        Args:
            history: History whose stored prefix must match what is persisted

        Raises:
            ValueError: If the history holds fewer changes than are stored, or
                other changes were stored since the history was loaded
            sqlite3.Error: Propagated after rolling back
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            persisted = conn.execute(
                "SELECT COUNT(*) FROM price_change WHERE provider = ?",
                (history.provider,)
            ).fetchone()[0]
            if persisted > len(history.changes):
                raise ValueError(
                    f"History for {history.provider} has {len(history.changes)} changes "
                    f"but {persisted} are already stored; the log is append-only"
                )
            if persisted != history.persisted_count:
                raise ValueError(
                    f"History for {history.provider} was loaded with "
                    f"{history.persisted_count} stored changes but {persisted} are stored "
                    f"now; it changed since it was loaded, reload and retry"
                )

            conn.execute("""
                INSERT INTO provider_history (provider, last_crawled, pricing_url)
                VALUES (?, ?, ?)
                ON CONFLICT(provider) DO UPDATE SET
                    last_crawled = excluded.last_crawled,
                    pricing_url = excluded.pricing_url
            """, (
                history.provider,
                history.last_crawled.isoformat(),
                history.pricing_url
            ))

            for change in history.changes[persisted:]:
                conn.execute("""
                    INSERT INTO price_change
                    (provider, date, change_type, pricing, previous_pricing)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    history.provider,
                    change.date.isoformat(),
                    change.change_type.value,
                    json.dumps(change.pricing.to_dict()),
                    json.dumps(change.previous_pricing.to_dict())
                    if change.previous_pricing is not None else None
                ))
            conn.execute("COMMIT")
            history.persisted_count = len(history.changes)
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def list_providers(self) -> List[str]:
        """Return every stored provider id, sorted."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT provider FROM provider_history ORDER BY provider"
            )
            return [row[0] for row in cursor.fetchall()]
        finally:
            conn.close()
