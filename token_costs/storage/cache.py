"""
File-backed external cache for the pricing client.

Keeps fetched provider files across restarts so cold starts don't refetch.
"""

import json
import threading
from pathlib import Path
from typing import Dict, Optional


class JsonFileCache:
    """String key/value cache stored in a single JSON file.

    An unreadable or corrupt file reads as empty.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f)
            tmp_path.replace(self.path)
