# File: src/app.py
from utils.env_loader import load_env, get_env

load_env()
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI

# Local imports
from config import (MAIN_CONFIG, FASTAPI_CONFIG, HTTPX_CONFIG, MANAGEMENT_API_CONFIG, SESSION_CONFIG,
                    CONFIG_CACHE_CONFIG, STATS_CONFIG, PRELOAD_CONFIG, STORAGE_CONFIG, REDIS_CONFIG)
from config_cache.manager import ConfigCacheManager
from config_cache.store import ConfigCache
from fast_api.fastapi_manager import FastApiManager
from management_api.client import ManagementApiClient
from preload.features import build_feature_stores
from preload.manager import PreloadManager
from preload.orchestrator import PreloadOrchestrator
from session.manager import SessionManager
from session.store import SessionStore
from stats.manager import StatsManager
from storage.backends import RedisStorage, create_storage
from utils.httpx_manager import HttpxManager
from utils.logger import Logger

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def create_app(storage: Optional[object] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None,
               logger_manager: Optional[Logger] = None) -> FastAPI:
    """
    Wire the console core and its HTTP surface.
    `storage` and `transport` are injected by tests; production builds them from config.
    """
    logger_manager = logger_manager or Logger(project_root=PROJECT_ROOT,
                                              log_to_file=MAIN_CONFIG.get('LOG_TO_FILE', False))
    logger = logger_manager.create_logger(logger_name='MAIN', logging_level=MAIN_CONFIG.get('LOGGING_LEVEL', 'INFO'))

    # Persisted key/value storage (memory by default, redis to survive restarts)
    storage = storage or create_storage(STORAGE_CONFIG, REDIS_CONFIG, logger_manager=logger_manager)

    # Httpx for every call to the management API
    httpx_manager = HttpxManager(logger_manager=logger_manager, config=HTTPX_CONFIG, transport=transport)
    api_client = ManagementApiClient(logger_manager=logger_manager, httpx_manager=httpx_manager,
                                     config=MANAGEMENT_API_CONFIG)

    # Core stores
    session_store = SessionStore(logger_manager=logger_manager,
                                 httpx_manager=httpx_manager,
                                 api_client=api_client,
                                 storage=storage,
                                 config=SESSION_CONFIG,
                                 management_config=MANAGEMENT_API_CONFIG)
    config_cache = ConfigCache(logger_manager=logger_manager, api_client=api_client, config=CONFIG_CACHE_CONFIG)
    stats_manager = StatsManager(logger_manager=logger_manager, api_client=api_client, config=STATS_CONFIG)

    # Route guard: restore, then fan out the feature preloads
    features = build_feature_stores(logger_manager=logger_manager,
                                    config=PRELOAD_CONFIG,
                                    api_client=api_client,
                                    config_cache=config_cache,
                                    stats_manager=stats_manager)
    orchestrator = PreloadOrchestrator(logger_manager=logger_manager,
                                       session_store=session_store,
                                       features=features,
                                       config=PRELOAD_CONFIG)

    # Nothing fetched for one key may leak into the next login
    session_store.on_logout(config_cache.clear_cache)
    session_store.on_logout(stats_manager.reset)
    session_store.on_logout(orchestrator.reset)

    preload_manager = PreloadManager(logger_manager=logger_manager, orchestrator=orchestrator,
                                     config=PRELOAD_CONFIG)
    guard = preload_manager.require_ready()
    session_manager = SessionManager(logger_manager=logger_manager, session_store=session_store,
                                     config=SESSION_CONFIG)
    config_cache_manager = ConfigCacheManager(logger_manager=logger_manager, config_cache=config_cache,
                                              config=CONFIG_CACHE_CONFIG)

    # FastApi Manager for health and error mapping
    fast_api_manager = FastApiManager(logger_manager=logger_manager,
                                      config=FASTAPI_CONFIG,
                                      session_store=session_store,
                                      orchestrator=orchestrator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await session_store.hydrate()
        logger.debug(f"Console core started ({STORAGE_CONFIG.get('BACKEND', 'memory')} storage)")
        yield
        if isinstance(storage, RedisStorage):
            await storage.close()
        logger_manager.close_all_loggers()

    app = fast_api_manager.setup(lifespan=lifespan)
    app.include_router(session_manager.router)                      # /session/*
    app.include_router(config_cache_manager.setup_routes(guard))   # /config/* (guarded)
    app.include_router(stats_manager.setup_routes(guard))          # /stats/* (guarded)
    app.include_router(preload_manager.router)                      # /preload/state

    app.state.session_store = session_store
    app.state.config_cache = config_cache
    app.state.stats_manager = stats_manager
    app.state.orchestrator = orchestrator
    return app


if __name__ == "__main__":
    host = get_env("HOST", FASTAPI_CONFIG.get("DEFAULT_HOST", "localhost"))
    port = get_env("PORT", FASTAPI_CONFIG.get("DEFAULT_PORT", 8317), cast=int)
    reload = FASTAPI_CONFIG.get("RELOAD", False)
    uvicorn_log_level = MAIN_CONFIG.get("LOGGING_LEVEL", "INFO").lower()
    uvicorn.run(
        "app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=uvicorn_log_level,
        loop="uvloop",
    )

#while developing:
#cd src && python app.py   (or: uvicorn app:create_app --factory --reload --port 8317)
