# File: src/session/store.py
# Authentication state of the console: login / logout / single-flight restore.
# State is replaced (never mutated in place) so readers always see a consistent Session.

import asyncio
from typing import Callable, List, Optional

import orjson
from pydantic import SecretStr, ValidationError

from session.models import ConnectionStatus, PersistedSession, Session
from session.utils import mask_secret, normalize_api_base
from utils.errors import ApiError, AuthError, extract_error_message


class SessionStore:
    """
    Owns the Session and its persisted subset.
    restore_session() is single-flight: concurrent callers share one pending task,
    cleared when it settles and on logout().
    """

    def __init__(self, logger_manager: object, httpx_manager: object, api_client: object, storage: object,
                 config: dict, management_config: Optional[dict] = None):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="SessionStore",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.httpx_manager = httpx_manager
        self.api_client = api_client
        self.storage = storage

        management_config = management_config or {}
        self.prefix = management_config.get('PREFIX', '/v0/management')
        # Login only trusts the two headers the management API always sets
        self.version_headers = ['x-cpa-version', 'x-server-version']

        self.auth_timeout = self.config.get('AUTH_TIMEOUT', 10.0)
        self.storage_key = self.config.get('STORAGE_KEY', 'cli-proxy-auth')
        self.logged_in_key = self.config.get('LOGGED_IN_KEY', 'cli-proxy-logged-in')

        self._state = Session()
        self._hydrate_task: Optional[asyncio.Task] = None
        self._restore_task: Optional[asyncio.Task] = None
        # Bumped by every logout; a login that started before it never commits
        self._logout_epoch = 0
        self._logout_listeners: List[Callable[[], None]] = []

        self.api_client.on_unauthorized(self.logout)
        self.api_client.on_server_version(self._on_server_version)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def state(self) -> Session:
        return self._state.model_copy()

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._state.connection_status

    @property
    def restore_in_progress(self) -> bool:
        return self._restore_task is not None

    def on_logout(self, listener: Callable[[], None]) -> None:
        self._logout_listeners.append(listener)

    def _set(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    async def hydrate(self) -> None:
        """
        Load the persisted record once. Concurrent callers all wait for the same read,
        so none of them sees the session before it is loaded. A corrupt record is ignored.
        """
        task = self._hydrate_task
        if task is None:
            task = asyncio.ensure_future(self._load_persisted())
            self._hydrate_task = task
            task.add_done_callback(self._release_failed_hydrate)
        await asyncio.shield(task)

    def _release_failed_hydrate(self, task: asyncio.Task) -> None:
        # A storage failure leaves the next caller free to retry
        if self._hydrate_task is task and (task.cancelled() or task.exception() is not None):
            self._hydrate_task = None

    async def _load_persisted(self) -> None:
        epoch = self._logout_epoch
        raw = await self.storage.get(self.storage_key)
        if not raw:
            return
        if epoch != self._logout_epoch:
            self.logger.debug("Logout during hydration, persisted session not applied")
            return
        try:
            persisted = PersistedSession.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            self.logger.warning(f"Ignoring unreadable persisted session: {e}")
            return

        self._set(
            is_authenticated=persisted.is_authenticated,
            api_base=persisted.api_base,
            management_key=SecretStr(persisted.management_key),
            server_version=persisted.server_version,
            use_custom_base=persisted.use_custom_base,
        )
        self.logger.debug(f"Hydrated session for {persisted.api_base or '<no base>'}")

    async def _persist(self) -> None:
        record = PersistedSession(
            is_authenticated=self._state.is_authenticated,
            api_base=self._state.api_base,
            management_key=self._state.management_key.get_secret_value(),
            server_version=self._state.server_version,
            use_custom_base=self._state.use_custom_base,
        )
        await self.storage.set(self.storage_key, orjson.dumps(record.model_dump()).decode())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def login(self, api_base: str, management_key: str) -> Session:
        api_base = normalize_api_base(api_base)
        management_key = (management_key or "").strip()
        if not api_base or not management_key:
            raise self._login_failed("API base and management key are required")

        epoch = self._logout_epoch
        self._set(connection_status=ConnectionStatus.CONNECTING)
        self.logger.info(f"Logging in to {api_base} with key {mask_secret(management_key)}")

        try:
            response = await self.httpx_manager.http_get(
                f"{api_base}{self.prefix}/config",
                headers={
                    "Authorization": f"Bearer {management_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.auth_timeout,
            )
        except ApiError as e:
            self._check_not_logged_out(epoch)
            raise self._login_failed(e.message or "Connection failed") from e

        self._check_not_logged_out(epoch)
        if not response.ok:
            raise self._login_failed(extract_error_message(
                response.body, f"Request failed with status code {response.status_code}"))

        self.api_client.set_config(api_base, management_key)
        self._set(
            is_authenticated=True,
            api_base=api_base,
            management_key=SecretStr(management_key),
            server_version=response.header(*self.version_headers),
            connection_status=ConnectionStatus.CONNECTED,
            connection_error=None,
        )
        await self._persist()
        self._check_not_logged_out(epoch)
        await self.storage.set(self.logged_in_key, "true")
        self.logger.info(f"Connected to {api_base} (server version {self._state.server_version or 'unknown'})")
        return self.state

    def _check_not_logged_out(self, epoch: int) -> None:
        if epoch != self._logout_epoch:
            self.logger.info("Logout during login, result discarded")
            raise AuthError("Logged out during login")

    def _login_failed(self, message: str) -> AuthError:
        self._set(connection_status=ConnectionStatus.ERROR, connection_error=message)
        self.logger.warning(f"Login failed: {message}")
        return AuthError(message)

    async def logout(self) -> None:
        # api_base and use_custom_base are kept for a fast re-login
        self._logout_epoch += 1
        self._restore_task = None
        self._set(
            is_authenticated=False,
            management_key=SecretStr(""),
            server_version=None,
            connection_status=ConnectionStatus.DISCONNECTED,
            connection_error=None,
        )
        self.api_client.clear_config()
        for listener in list(self._logout_listeners):
            listener()
        await self._persist()
        await self.storage.remove(self.logged_in_key)
        self.logger.info("Logged out")

    async def restore_session(self) -> bool:
        task = self._restore_task
        if task is None:
            task = asyncio.ensure_future(self._restore())
            self._restore_task = task
            task.add_done_callback(self._release_restore_task)
        # shield: one caller giving up must not cancel the shared attempt
        return await asyncio.shield(task)

    def _release_restore_task(self, task: asyncio.Task) -> None:
        if self._restore_task is task:
            self._restore_task = None

    async def _restore(self) -> bool:
        await self.hydrate()
        was_logged_in = (await self.storage.get(self.logged_in_key)) == "true"
        api_base = self._state.api_base
        management_key = self._state.management_key.get_secret_value()

        if not (was_logged_in and api_base and management_key):
            return False

        try:
            await self.login(api_base, management_key)
            return True
        except AuthError as e:
            self.logger.warning(f"Auto login failed: {e.message}")
            return False

    def update_connection_status(self, status, error: Optional[str] = None) -> None:
        self._set(connection_status=ConnectionStatus(status), connection_error=error)

    async def set_use_custom_base(self, use_custom: bool) -> None:
        self._set(use_custom_base=use_custom)
        await self._persist()

    def _on_server_version(self, version: Optional[str], build_date: Optional[str]) -> None:
        if version and version != self._state.server_version:
            self._set(server_version=version)
