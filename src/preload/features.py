# File: src/preload/features.py
# Per-feature data stores warmed by the preload orchestrator.
# Each store owns one loader; preloads are single-flight and skip once initialized.

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from preload.models import FeatureStatus
from utils.errors import ConsoleError

Loader = Callable[[], Awaitable[Any]]


class FeatureStore:
    def __init__(self, name: str, loader: Loader, logger: object):
        self.name = name
        self.loader = loader
        self.logger = logger

        self.data: Any = None
        self.loading = False
        self.refreshing = False
        self.initialized = False
        self.error: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._epoch = 0

    def status(self) -> FeatureStatus:
        return FeatureStatus(loading=self.loading, refreshing=self.refreshing,
                             initialized=self.initialized, error=self.error)

    async def preload(self, is_refresh: bool = False) -> Any:
        if self.initialized and not is_refresh:
            return self.data
        # A refresh asked for while a load runs shares that load
        if self._task is None:
            epoch = self._epoch
            self._task = asyncio.ensure_future(self._load(epoch, is_refresh))
            self._task.add_done_callback(self._release_task)
        return await asyncio.shield(self._task)

    def _release_task(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None

    async def _load(self, epoch: int, is_refresh: bool) -> Any:
        if epoch == self._epoch:
            if is_refresh:
                self.refreshing = True
            else:
                self.loading = True
            self.error = None
        try:
            data = await self.loader()
        except Exception as e:
            if epoch == self._epoch:
                self.error = e.message if isinstance(e, ConsoleError) else (str(e) or type(e).__name__)
            raise
        finally:
            if epoch == self._epoch:
                self.loading = False
                self.refreshing = False

        if epoch == self._epoch:
            self.data = data
            self.initialized = True
            self.logger.debug(f"Feature '{self.name}' loaded")
        return data

    def reset(self) -> None:
        self._epoch += 1
        self._task = None
        self.data = None
        self.loading = False
        self.refreshing = False
        self.initialized = False
        self.error = None


def _list_field(payload: Any, field: str) -> list:
    if isinstance(payload, dict):
        value = payload.get(field)
        return value if isinstance(value, list) else []
    return payload if isinstance(payload, list) else []


def build_feature_stores(logger_manager: object, config: dict, api_client: object,
                         config_cache: object, stats_manager: object) -> Dict[str, FeatureStore]:
    """The console's built-in features, keyed by name in fan-out order."""
    logger = logger_manager.create_logger(logger_name="FeatureStores",
                                          logging_level=config.get('LOGGING_LEVEL', 'INFO'))

    async def _or_empty(path: str, field: str) -> list:
        try:
            return _list_field(await api_client.get_json(path), field)
        except ConsoleError as e:
            logger.warning(f"{path} unavailable, using empty list: {e.message}")
            return []

    async def load_config() -> Dict[str, Any]:
        return await config_cache.fetch_config()

    async def load_pool() -> Dict[str, list]:
        kiro_tokens, auth_files = await asyncio.gather(
            _or_empty("/kiro/tokens", "tokens"),
            _or_empty("/auth-files", "files"),
        )
        return {"kiro_tokens": kiro_tokens, "auth_files": auth_files}

    async def load_auth_files() -> list:
        return _list_field(await api_client.get_json("/auth-files"), "files")

    async def load_api_keys() -> list:
        return _list_field(await api_client.get_json("/api-keys"), "api-keys")

    async def load_usage() -> Dict[str, Any]:
        return await stats_manager.refresh()

    loaders = {
        "config": load_config,
        "pool": load_pool,
        # Providers are read out of the shared config, the cache coalesces both
        "providers": load_config,
        "auth_files": load_auth_files,
        "api_keys": load_api_keys,
        "usage": load_usage,
    }
    return {name: FeatureStore(name, loader, logger) for name, loader in loaders.items()}
