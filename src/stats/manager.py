# File: src/stats/manager.py
# Keeps the latest /usage payload and serves aggregated statistics over it.

from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query

from fast_api.custom_exceptions import NotFoundException
from stats.aggregator import (DEFAULT_WINDOW_MINUTES, aggregate, calculate_recent_per_minute_rates,
                              collect_usage_details, normalize_auth_index)
from stats.models import AccountLoadStats, LoadRateResult, RateStats, UsageDetail


class StatsManager:
    def __init__(self, logger_manager: object, api_client: object, config: dict):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="StatsManager",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.api_client = api_client
        self.usage_path = self.config.get('USAGE_PATH', '/usage')
        self.default_window = self.config.get('RATE_WINDOW_MINUTES', DEFAULT_WINDOW_MINUTES)

        self.usage: Optional[Dict[str, Any]] = None
        self.details: List[UsageDetail] = []
        self.router: Optional[APIRouter] = None

    async def refresh(self) -> Dict[str, Any]:
        payload = await self.api_client.get_json(self.usage_path)
        # The management API wraps the statistics in {"usage": {...}}
        if isinstance(payload, dict) and isinstance(payload.get("usage"), dict):
            payload = payload["usage"]
        self.usage = payload if isinstance(payload, dict) else {}
        self.details = collect_usage_details(self.usage)
        self.logger.debug(f"Usage refreshed: {len(self.details)} records")
        return self.usage

    async def ensure_loaded(self) -> None:
        if self.usage is None:
            await self.refresh()

    def reset(self) -> None:
        self.usage = None
        self.details = []

    def load_rates(self) -> LoadRateResult:
        return aggregate(self.details)

    def rates(self, window_minutes: Optional[float] = None) -> RateStats:
        return calculate_recent_per_minute_rates(self.details, window_minutes or self.default_window)

    def get_stats_by_source(self, source: str) -> Optional[AccountLoadStats]:
        return self.load_rates().by_source.get(source)

    def get_stats_by_auth_index(self, auth_index: Union[str, int, float, None]) -> Optional[AccountLoadStats]:
        key = normalize_auth_index(auth_index)
        if key is None:
            return None
        return self.load_rates().by_auth_index.get(key)

    # ------------------------------------------------------------------
    # Route definitions
    # ------------------------------------------------------------------
    def setup_routes(self, guard: Callable) -> APIRouter:
        router = APIRouter(prefix="/stats", tags=["Stats"], dependencies=[Depends(guard)])

        @router.get("/load-rates", response_model=LoadRateResult)
        async def load_rates(refresh: bool = False):
            if refresh:
                await self.refresh()
            else:
                await self.ensure_loaded()
            return self.load_rates()

        @router.get("/rates", response_model=RateStats)
        async def rates(window_minutes: Optional[float] = Query(default=None, description="Trailing window in minutes")):
            await self.ensure_loaded()
            return self.rates(window_minutes)

        @router.get("/sources/{source}", response_model=AccountLoadStats)
        async def stats_by_source(source: str):
            await self.ensure_loaded()
            stats = self.get_stats_by_source(source)
            if stats is None:
                raise NotFoundException(f"No requests recorded for source '{source}'")
            return stats

        @router.get("/auth-indexes/{auth_index}", response_model=AccountLoadStats)
        async def stats_by_auth_index(auth_index: str):
            await self.ensure_loaded()
            stats = self.get_stats_by_auth_index(auth_index)
            if stats is None:
                raise NotFoundException(f"No requests recorded for auth index '{auth_index}'")
            return stats

        self.router = router
        return router
