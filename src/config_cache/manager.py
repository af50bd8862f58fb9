# File: src/config_cache/manager.py
# /config routes over the shared ConfigCache.

from typing import Callable

from fastapi import APIRouter, Depends

from config_cache.models import CacheStateResponse, ConfigResponse, ConfigValueUpdate
from fast_api.custom_exceptions import NotFoundException


class ConfigCacheManager:
    def __init__(self, logger_manager: object, config_cache: object, config: dict):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="ConfigCacheManager",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.config_cache = config_cache
        self.router = None

    def _response(self, data: dict) -> ConfigResponse:
        return ConfigResponse(
            config=data,
            fetched_at_ms=self.config_cache.last_fetch_time_ms,
            generation=self.config_cache.generation,
        )

    def setup_routes(self, guard: Callable) -> APIRouter:
        router = APIRouter(prefix="/config", tags=["Config"], dependencies=[Depends(guard)])

        @router.get("", response_model=ConfigResponse)
        async def get_config(force_refresh: bool = False):
            data = await self.config_cache.fetch_config(force_refresh=force_refresh)
            return self._response(data)

        @router.patch("/{key}", response_model=ConfigResponse)
        async def update_config_value(key: str, request: ConfigValueUpdate):
            if self.config_cache.config_value is None:
                raise NotFoundException("No config cached yet, fetch it first")
            self.config_cache.update_config_value(key, request.value)
            self.logger.info(f"Config value '{key}' updated locally")
            return self._response(self.config_cache.config_value)

        @router.delete("/cache", response_model=CacheStateResponse)
        async def clear_cache():
            self.config_cache.clear_cache()
            return CacheStateResponse(
                cached=self.config_cache.config_value is not None,
                loading=self.config_cache.loading,
                error=self.config_cache.error,
                generation=self.config_cache.generation,
            )

        self.router = router
        return router
