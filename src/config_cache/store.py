# File: src/config_cache/store.py
# Single cached copy of the remote config: freshness window, request coalescing,
# generation counter so an invalidated fetch can never write back.

import asyncio
import time
from typing import Any, Callable, Dict, Optional

from config_cache.models import ConfigSnapshot, InFlightRequest
from utils.errors import ConsoleError, FetchError


class ConfigCache:
    def __init__(self, logger_manager: object, api_client: object, config: dict,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="ConfigCache",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.api_client = api_client
        self.cache_expiry_ms = self.config.get('CACHE_EXPIRY_MS', 30000)
        self.config_path = self.config.get('CONFIG_PATH', '/config')
        self._clock = clock

        self._config: Optional[Dict[str, Any]] = None
        self._last_fetch_time_ms: Optional[int] = None
        self._loading = False
        self._error: Optional[str] = None

        self._generation = 0
        self._in_flight: Optional[InFlightRequest] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def config_value(self) -> Optional[Dict[str, Any]]:
        return dict(self._config) if self._config is not None else None

    @property
    def last_fetch_time_ms(self) -> Optional[int]:
        return self._last_fetch_time_ms

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def snapshot(self) -> Optional[ConfigSnapshot]:
        if self._config is None or self._last_fetch_time_ms is None:
            return None
        return ConfigSnapshot(config=dict(self._config), fetched_at_ms=self._last_fetch_time_ms)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_fresh(self) -> bool:
        if self._config is None or self._last_fetch_time_ms is None:
            return False
        return self._now_ms() - self._last_fetch_time_ms < self.cache_expiry_ms

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def fetch_config(self, force_refresh: bool = False) -> Dict[str, Any]:
        if not force_refresh and self._is_fresh():
            self.logger.debug("Config cache hit")
            return dict(self._config)

        # Coalesce: forced callers join a running fetch too
        if self._in_flight is not None:
            self.logger.debug(f"Joining in-flight config fetch #{self._in_flight.generation}")
            return await asyncio.shield(self._in_flight.task)

        self._loading = True
        self._error = None
        self._generation += 1
        generation = self._generation

        task = asyncio.ensure_future(self._fetch(generation))
        self._in_flight = InFlightRequest(generation=generation, task=task)
        task.add_done_callback(lambda _: self._release_in_flight(generation))
        return await asyncio.shield(task)

    async def _fetch(self, generation: int) -> Dict[str, Any]:
        try:
            data = await self.api_client.get_json(self.config_path)
        except ConsoleError as e:
            message = e.message or "Failed to fetch config"
            if generation == self._generation:
                self._error = message
                self._loading = False
            self.logger.warning(f"Config fetch #{generation} failed: {message}")
            raise FetchError(message) from e

        if not isinstance(data, dict):
            message = f"Unexpected config payload ({type(data).__name__})"
            if generation == self._generation:
                self._error = message
                self._loading = False
            raise FetchError(message)

        if generation != self._generation:
            # Invalidated while in flight: the callers still get their data
            self.logger.debug(f"Discarding stale config fetch #{generation} (current #{self._generation})")
            return data

        self._config = dict(data)
        self._last_fetch_time_ms = self._now_ms()
        self._loading = False
        self.logger.debug(f"Config fetch #{generation} stored")
        return data

    def _release_in_flight(self, generation: int) -> None:
        if self._in_flight is not None and self._in_flight.generation == generation:
            self._in_flight = None

    def update_config_value(self, key: str, value: Any) -> None:
        """Optimistic local edit; nothing is sent to the server."""
        if self._config is None:
            return
        self._config = {**self._config, key: value}

    def clear_cache(self) -> None:
        self._generation += 1
        self._in_flight = None
        self._config = None
        self._last_fetch_time_ms = None
        self._loading = False
        self._error = None
        self.logger.debug(f"Config cache cleared (generation #{self._generation})")
