# File: src/preload/manager.py
# FastAPI surface of the orchestrator: the guard dependency and GET /preload/state.

from fastapi import APIRouter

from fast_api.custom_exceptions import UnauthorizedException
from preload.models import PreloadStateResponse


class PreloadManager:
    def __init__(self, logger_manager: object, orchestrator: object, config: dict):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="PreloadManager",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.orchestrator = orchestrator
        self.router = APIRouter(prefix="/preload", tags=["Preload"])
        self.setup_routes()

    # Reusable: in other routers, use Depends(preload_manager.require_ready())
    def require_ready(self):
        async def dep() -> None:
            if not await self.orchestrator.enter_protected_view():
                raise UnauthorizedException("Login required")
        return dep

    def setup_routes(self):
        @self.router.get("/state", response_model=PreloadStateResponse)
        async def preload_state():
            return self.orchestrator.describe()
