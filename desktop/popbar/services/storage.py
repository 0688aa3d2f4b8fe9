"""Durable key-value storage shared by every overlay instance."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from ..config.paths import storage_path

logger = logging.getLogger(__name__)

USAGE_COUNT_KEY = "usageCount"
IS_PREMIUM_KEY = "isPremium"


class LocalStorage:
    """JSON file behaving like a small extension-scoped key-value store."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or storage_path()
        self._lock = threading.Lock()

    def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the stored values for ``keys``; missing keys are omitted."""
        data = self._read()
        return {key: data[key] for key in keys if key in data}

    def set(self, items: Mapping[str, Any]) -> None:
        """Merge ``items`` into the store and write it back."""
        with self._lock:
            data = self._read()
            data.update(items)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8").lstrip("\ufeff") or "{}")
        except ValueError:
            logger.warning("[popbar] storage file %s is not valid JSON, ignoring it", self.path)
            return {}
        return data if isinstance(data, dict) else {}


@dataclass(slots=True)
class UsageState:
    """Advisory usage counter and premium flag (client controlled)."""

    usage_count: int = 0
    is_premium: bool = False


def load_usage(storage: LocalStorage) -> UsageState:
    """Read the usage state; invalid or missing values fall back to defaults."""
    stored = storage.get([USAGE_COUNT_KEY, IS_PREMIUM_KEY])
    usage = stored.get(USAGE_COUNT_KEY)
    premium = stored.get(IS_PREMIUM_KEY)
    state = UsageState()
    if isinstance(usage, int) and not isinstance(usage, bool) and usage >= 0:
        state.usage_count = usage
    if isinstance(premium, bool):
        state.is_premium = premium
    return state


def save_usage(storage: LocalStorage, state: UsageState) -> None:
    storage.set({USAGE_COUNT_KEY: state.usage_count, IS_PREMIUM_KEY: state.is_premium})
