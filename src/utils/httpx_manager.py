# file: src/utils/httpx_manager.py

import json
from typing import Optional, Dict, Any

import httpx
from pydantic import BaseModel, Field

from utils.errors import ApiError


# ----------------------------
# Pydantic Models
# ----------------------------
class HttpResponse(BaseModel):
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)  # lower-cased names
    body: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, *names: str) -> Optional[str]:
        """First non-empty value among `names` (case-insensitive)."""
        for name in names:
            value = self.headers.get(name.lower())
            if value is not None and value.strip():
                return value
        return None


# ----------------------------
# HTTPX Manager
# ----------------------------
class HttpxManager:
    """
    Thin async transport. No retries: a failed request surfaces to its caller immediately.
    Every status code comes back as an HttpResponse; only network/timeout failures raise ApiError.
    """

    def __init__(self, logger_manager: object, config: dict, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="HttpxManager",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'WARNING'))
        self.timeout = self.config.get('TIMEOUT', 30.0)
        self.follow_redirects = self.config.get('FOLLOW_REDIRECTS', True)
        # Injected by tests (httpx.MockTransport) or left None for the real network
        self.transport = transport

    async def http_get(self, url: str, headers: Optional[Dict[str, str]] = None,
                       timeout: Optional[float] = None) -> HttpResponse:
        return await self.request("GET", url, headers=headers, timeout=timeout)

    async def request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None,
                      body: Optional[Any] = None, timeout: Optional[float] = None) -> HttpResponse:
        timeout = timeout or self.timeout
        headers = headers or {"Content-Type": "application/json"}
        self.logger.debug(f"Making {method} request to {url}")

        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=self.follow_redirects,
                                         transport=self.transport) as client:
                resp = await client.request(method, url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            self.logger.warning(f"Timeout after {timeout}s: {method} {url}")
            raise ApiError(f"timeout of {int(timeout * 1000)}ms exceeded", code="ECONNABORTED") from e
        except httpx.HTTPError as e:
            self.logger.warning(f"Network error: {method} {url} - {e}")
            raise ApiError(str(e) or "Network Error", code="ERR_NETWORK") from e

        return HttpResponse(
            status_code=resp.status_code,
            headers={k.lower(): v for k, v in resp.headers.items()},
            body=self._decode_body(resp),
        )

    @staticmethod
    def _decode_body(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return resp.text
