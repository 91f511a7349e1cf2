# SPDX-License-Identifier: MIT

import json
import logging
from typing import Any, Optional

from taskclock.model.result import LIMIT_EXCEEDED, StorageUsage, WriteResult
from taskclock.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_LIMIT = 4096
NEAR_LIMIT_RATIO = 0.8


def measure(value: Any) -> int:
    """Serialized JSON length, the unit the per-key ceiling is expressed in."""
    return len(json.dumps(value, separators=(",", ":"), ensure_ascii=False))


def calculate_usage(value: Any, limit: int = DEFAULT_STORAGE_LIMIT) -> StorageUsage:
    size = measure(value)
    return {
        "size": size,
        "limit": limit,
        "percent": round(size / limit * 100),
        "is_near_limit": size > limit * NEAR_LIMIT_RATIO,
    }


class BoundedStore:
    """
    Size-checked wrapper around a raw KeyValueStore.

    get never raises and falls back to the caller's default. set refuses
    values above the per-key limit without touching the store, so callers
    can shard further instead of retrying. There is no retry policy here.
    """

    def __init__(self, store: KeyValueStore, limit: int = DEFAULT_STORAGE_LIMIT) -> None:
        self.store = store
        self.limit = limit
        self.last_sizes: dict[tuple[str, str], int] = {}

    def measure(self, value: Any) -> int:
        return measure(value)

    def usage(self, value: Any) -> StorageUsage:
        return calculate_usage(value, self.limit)

    def fits(self, value: Any) -> bool:
        return measure(value) <= self.limit

    async def get(self, scope: str, key: str, default: Optional[Any] = None) -> Any:
        try:
            value = await self.store.get(scope, key)
        except Exception as e:
            logger.warning("get %s/%s failed: %s", scope, key, e)
            return default
        if value is None:
            return default
        return value

    async def set(self, scope: str, key: str, value: Any) -> WriteResult:
        try:
            size = measure(value)
        except (TypeError, ValueError) as e:
            return {"success": False, "error": f"value is not serializable: {e}", "size": 0}

        if size > self.limit:
            logger.debug("refusing %s/%s: %s > %s", scope, key, size, self.limit)
            return {"success": False, "error": LIMIT_EXCEEDED, "size": size}

        try:
            await self.store.set(scope, key, value)
        except Exception as e:
            logger.warning("set %s/%s failed: %s", scope, key, e)
            return {"success": False, "error": str(e) or type(e).__name__, "size": size}

        self.last_sizes[(scope, key)] = size
        return {"success": True, "size": size}

    async def remove(self, scope: str, key: str) -> bool:
        try:
            await self.store.remove(scope, key)
        except Exception as e:
            logger.warning("remove %s/%s failed: %s", scope, key, e)
            return False
        self.last_sizes.pop((scope, key), None)
        return True
