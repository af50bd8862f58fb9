# File: src/session/manager.py

# SessionManager: HTTP surface of the SessionStore.
# Login/logout/restore are open routes (they are how a caller gets through the guard);
# AuthError from login is mapped to 401 by FastApiManager.

from fastapi import APIRouter

from session.models import LoginRequest, LogoutResponse, PreferencesRequest, RestoreResponse, SessionResponse
from session.utils import mask_secret


class SessionManager:
    def __init__(self, logger_manager: object, session_store: object, config: dict):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="SessionManager",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.session_store = session_store
        self.router = APIRouter(prefix="/session", tags=["Session"])
        self.setup_routes()

    def setup_routes(self):
        @self.router.post("/login", response_model=SessionResponse)
        async def login(request: LoginRequest):
            self.logger.debug(f"Login requested for {request.api_base} ({mask_secret(request.management_key)})")
            session = await self.session_store.login(request.api_base, request.management_key)
            return SessionResponse.from_session(session)

        @self.router.post("/logout", response_model=LogoutResponse)
        async def logout():
            await self.session_store.logout()
            return LogoutResponse(message="Logged out")

        @self.router.post("/restore", response_model=RestoreResponse)
        async def restore():
            restored = await self.session_store.restore_session()
            return RestoreResponse(restored=restored,
                                   session=SessionResponse.from_session(self.session_store.state))

        @self.router.get("", response_model=SessionResponse)
        async def get_session():
            return SessionResponse.from_session(self.session_store.state)

        @self.router.put("/preferences", response_model=SessionResponse)
        async def update_preferences(request: PreferencesRequest):
            await self.session_store.set_use_custom_base(request.use_custom_base)
            return SessionResponse.from_session(self.session_store.state)
