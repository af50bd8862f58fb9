# File: src/management_api/client.py
# Bearer-token client for the remote management API.
# Configured by the session store after a successful login; every other component reads through it.

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from utils.errors import ApiError, extract_error_message
from utils.httpx_manager import HttpxManager, HttpResponse
from session.utils import normalize_api_base, mask_secret

UnauthorizedListener = Callable[[], Union[None, Awaitable[None]]]
VersionListener = Callable[[Optional[str], Optional[str]], None]


class ManagementApiClient:
    def __init__(self, logger_manager: object, httpx_manager: HttpxManager, config: dict):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="ManagementApiClient",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.httpx_manager = httpx_manager
        self.prefix = self.config.get('PREFIX', '/v0/management')
        self.version_headers = self.config.get('VERSION_HEADERS', ['x-cpa-version', 'x-server-version'])
        self.build_date_headers = self.config.get('BUILD_DATE_HEADERS', ['x-cpa-build-date', 'x-build-date'])

        self.base_url: str = ''
        self._management_key: str = ''
        self.timeout: Optional[float] = None

        # Explicit subscriptions instead of a global event bus
        self._unauthorized_listeners: List[UnauthorizedListener] = []
        self._version_listeners: List[VersionListener] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def set_config(self, api_base: str, management_key: str, timeout: Optional[float] = None) -> None:
        normalized = normalize_api_base(api_base)
        self.base_url = f"{normalized}{self.prefix}" if normalized else ''
        self._management_key = management_key
        self.timeout = timeout
        self.logger.info(f"Management API bound to {self.base_url} (key {mask_secret(management_key)})")

    def clear_config(self) -> None:
        self.base_url = ''
        self._management_key = ''
        self.timeout = None

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._management_key:
            headers["Authorization"] = f"Bearer {self._management_key}"
        return headers

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def on_unauthorized(self, listener: UnauthorizedListener) -> Callable[[], None]:
        self._unauthorized_listeners.append(listener)
        return lambda: self._unauthorized_listeners.remove(listener)

    def on_server_version(self, listener: VersionListener) -> Callable[[], None]:
        self._version_listeners.append(listener)
        return lambda: self._version_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    async def get_json(self, path: str) -> Any:
        """GET `path` under the management prefix and return the decoded JSON body."""
        if not self.is_configured:
            raise ApiError("Management API is not configured, login first")

        url = f"{self.base_url}/{path.lstrip('/')}"
        response = await self.httpx_manager.http_get(url, headers=self.build_headers(), timeout=self.timeout)
        self._publish_version(response)

        if not response.ok:
            await self._handle_error_response(response)
        return response.body

    def _publish_version(self, response: HttpResponse) -> None:
        version = response.header(*self.version_headers)
        build_date = response.header(*self.build_date_headers)
        if not (version or build_date):
            return
        for listener in list(self._version_listeners):
            listener(version, build_date)

    async def _handle_error_response(self, response: HttpResponse) -> None:
        message = extract_error_message(
            response.body, f"Request failed with status code {response.status_code}")
        if response.status_code == 401:
            self.logger.warning("Management API answered 401, notifying unauthorized listeners")
            for listener in list(self._unauthorized_listeners):
                result = listener()
                if inspect.isawaitable(result):
                    await result
        raise ApiError(message, status_code=response.status_code, data=response.body)
