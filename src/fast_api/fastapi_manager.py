# file:src/fast_api/fastapi_manager.py

from datetime import datetime, timezone
from typing import Optional, Type

import setproctitle
from fastapi import FastAPI, Request, HTTPException, APIRouter
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.cors import CORSMiddleware

from fast_api.error_models import ErrorResponse, ValidationErrorResponse, UpstreamErrorResponse
from utils.errors import ApiError, AuthError, ConsoleError, FetchError


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FastApiManager:
    """
    FastAPI Manager - builds the console app around the state core.
    Features:
    - Process naming for better process identification
    - CORS middleware configuration
    - Error mapping for the core's error taxonomy (AuthError/FetchError/ApiError)
    - Health endpoint reporting session and preload state
    """
    def __init__(self, logger_manager: object, config: dict, session_store: object, orchestrator: object):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="FastApiManager",
                                                   logging_level=self.config.get("LOGGING_LEVEL", "INFO"))
        self.session_store = session_store
        self.orchestrator = orchestrator
        self.router = APIRouter(tags=['FastAPI Manager'])
        self._setup_routes()

    def setup(self, lifespan=None, app_name: str = None) -> FastAPI:
        app_name = app_name or self.config.get("APP_NAME", "console-state-core")
        try:
            setproctitle.setproctitle(app_name)
            app = FastAPI(
                title=app_name,
                version=self.config.get("VERSION", "0.1.0"),
                lifespan=lifespan,
                docs_url="/docs" if self.config.get("ENABLE_DOCS", True) else None,
                redoc_url="/redoc" if self.config.get("ENABLE_REDOC", False) else None,
            )
            # ---------- Add Exception Handlers FIRST ----------
            self._setup_exception_handlers(app)

            # ---------- CORS ----------
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self.config.get("ALLOW_ORIGINS", ["*"]),
                allow_credentials=self.config.get("ALLOW_CREDENTIALS", True),
                allow_methods=self.config.get("ALLOW_METHODS", ["*"]),
                allow_headers=self.config.get("ALLOW_HEADERS", ["*"]),
                expose_headers=self.config.get("EXPOSE_HEADERS", ["*"]),
            )

            # ---------- Register router ----------
            app.include_router(self.router)

            self.logger.debug(f"FastAPI app '{app_name}' ready")
            return app
        except Exception as exc:
            self.logger.exception(f"Failed to build FastAPI app: {exc}")
            raise

    def _respond(self, request: Request, status_code: int, error: str, detail: Optional[str] = None,
                 model: Type[ErrorResponse] = ErrorResponse, headers: Optional[dict] = None,
                 **extra) -> JSONResponse:
        body = model(error=error, detail=detail, status_code=status_code, timestamp=_now_iso(),
                     path=request.url.path, **extra)
        return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)

    def _setup_exception_handlers(self, app: FastAPI):
        @app.exception_handler(HTTPException)
        async def http_exception_handler(request: Request, exc: HTTPException):
            """Handle HTTP exceptions (400, 401, 403, 404, etc.)"""
            if isinstance(exc.detail, dict):
                error_message = exc.detail.get('error', 'HTTP Error')
                detail_message = exc.detail.get('detail', str(exc.detail))
            else:
                error_message, detail_message = str(exc.detail), None
            self.logger.warning(f"HTTP {exc.status_code} at {request.url.path}: {error_message}")
            return self._respond(request, exc.status_code, error_message, detail_message,
                                 headers=getattr(exc, "headers", None))

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request: Request, exc: RequestValidationError):
            """Handle Pydantic validation errors (422)"""
            errors = [
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in exc.errors()
            ]
            self.logger.warning(f"Validation error at {request.url.path}: {errors}")
            return self._respond(request, 422, "Validation Error", "One or more fields failed validation",
                                 model=ValidationErrorResponse, errors=errors)

        @app.exception_handler(AuthError)
        async def auth_error_handler(request: Request, exc: AuthError):
            """Login rejected: forward the upstream message (401)"""
            self.logger.warning(f"Auth error at {request.url.path}: {exc.message}")
            return self._respond(request, 401, "Authentication Failed", exc.message)

        @app.exception_handler(FetchError)
        @app.exception_handler(ApiError)
        async def upstream_error_handler(request: Request, exc: ConsoleError):
            """Management API failures surface as 502 with the upstream message"""
            self.logger.warning(f"Upstream error at {request.url.path}: {exc.message}")
            return self._respond(request, 502, "Upstream Error", exc.message, model=UpstreamErrorResponse,
                                 upstream_status=getattr(exc, "status_code", None))

        @app.exception_handler(404)
        async def not_found_exception_handler(request: Request, exc: Exception):
            """Handle 404 Not Found, keeping the detail of a raised NotFoundException"""
            detail = getattr(exc, "detail", None)
            if isinstance(detail, dict):
                detail = detail.get("detail")
            if not detail or detail == "Not Found":
                detail = f"The requested URL {request.url.path} was not found on this server."
            self.logger.warning(f"404 Not Found: {request.url.path}")
            return self._respond(request, 404, "Not Found", detail)

        @app.exception_handler(405)
        async def method_not_allowed_handler(request: Request, exc: Exception):
            """Handle 405 Method Not Allowed"""
            self.logger.warning(f"405 Method Not Allowed: {request.method} {request.url.path}")
            return self._respond(request, 405, "Method Not Allowed",
                                 f"The method {request.method} is not allowed for the URL {request.url.path}.")

        @app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle all other exceptions (500)"""
            self.logger.error(f"Internal server error at {request.url.path}: {exc}", exc_info=True)
            # Don't expose internal details in production
            if self.config.get("ENVIRONMENT") == "production":
                detail = "An internal server error occurred. Please try again later."
            else:
                detail = f"Internal server error: {str(exc)}"
            return self._respond(request, 500, "Internal Server Error", detail)

    # ------------------------------------------------------------------
    # Route definitions
    # ------------------------------------------------------------------
    def _setup_routes(self) -> None:
        @self.router.get("/health")
        async def health():
            session = self.session_store.state
            return {
                "status": "healthy",
                "connection_status": session.connection_status.value,
                "is_authenticated": session.is_authenticated,
                "preload_state": self.orchestrator.state.value,
            }
