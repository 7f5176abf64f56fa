import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from hrms.config import settings
from hrms.database import db
from hrms.models.base import utcnow
from hrms.models.config import SystemConfig

logger = logging.getLogger(__name__)

ConfigListener = Callable[[SystemConfig], Awaitable[None]]


def _deep_merge(base: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SystemConfigProvider:
    """
    In-memory cache of the system configuration document.

    Writers go through `update()`, which drops the cache and notifies
    listeners straight away; the TTL only bounds staleness for changes made
    outside this process.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, monotonic: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.CONFIG_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._monotonic = monotonic
        self._cached: Optional[SystemConfig] = None
        self._fetched_at: Optional[float] = None
        self._listeners: List[ConfigListener] = []

    def subscribe(self, listener: ConfigListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ConfigListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def invalidate(self) -> None:
        self._cached = None
        self._fetched_at = None

    def _is_fresh(self) -> bool:
        return (
            self._cached is not None
            and self._fetched_at is not None
            and self._monotonic() - self._fetched_at < self.ttl_seconds
        )

    async def get(self) -> SystemConfig:
        if self._is_fresh():
            return self._cached

        try:
            config = await db.config.get_system_config()
        except Exception as e:
            logger.error(f"Failed to load system config, using defaults: {e}")
            return self._cached or SystemConfig()

        if config is None:
            logger.info("No system config document found, using defaults")
            return SystemConfig()

        self._cached = config
        self._fetched_at = self._monotonic()
        return config

    async def update(self, changes: Dict[str, Any], updated_by: Optional[str] = None,
                     updated_by_name: Optional[str] = None) -> SystemConfig:
        """Persist a partial change, refresh the cache and notify listeners."""
        current = await self.get()
        data = _deep_merge(current.model_dump(exclude={"id", "version"}), changes)
        data.update({
            "last_updated_by": updated_by,
            "last_updated_by_name": updated_by_name,
            "updated_at": utcnow(),
        })
        new_config = SystemConfig(**data)

        saved = await db.config.save_system_config(new_config)
        self.invalidate()
        self._cached = saved
        self._fetched_at = self._monotonic()
        logger.info(f"System config updated to version {saved.version} by {updated_by}")

        for listener in list(self._listeners):
            try:
                await listener(saved)
            except Exception as e:
                logger.error(f"Config listener {listener} failed: {e}")
        return saved


config_provider = SystemConfigProvider()
