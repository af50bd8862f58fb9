# File: src/preload/orchestrator.py
# Route-guard state machine: idle -> restoring -> preloading -> ready.
# Restoration is awaited before the fan-out; the fan-out members settle independently.

import asyncio
from typing import Dict, Optional

from preload.features import FeatureStore
from preload.models import PreloadState, PreloadStateResponse
from session.models import ConnectionStatus


class PreloadOrchestrator:
    def __init__(self, logger_manager: object, session_store: object, features: Dict[str, FeatureStore],
                 config: dict):
        self.config = config
        self.logger = logger_manager.create_logger(logger_name="PreloadOrchestrator",
                                                   logging_level=self.config.get('LOGGING_LEVEL', 'INFO'))
        self.session_store = session_store
        self.features = features

        self._state = PreloadState.IDLE
        self._entry_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> PreloadState:
        return self._state

    def describe(self) -> PreloadStateResponse:
        return PreloadStateResponse(
            state=self._state,
            features={name: feature.status() for name, feature in self.features.items()},
        )

    async def enter_protected_view(self) -> bool:
        """
        Drive the guard. False means the caller was never authenticated and must be
        sent to login; True releases the protected view, with or without full data.
        """
        task = self._entry_task
        if task is None:
            task = asyncio.ensure_future(self._enter())
            self._entry_task = task
            task.add_done_callback(self._release_entry_task)
        return await asyncio.shield(task)

    def _release_entry_task(self, task: asyncio.Task) -> None:
        if self._entry_task is task:
            self._entry_task = None

    async def _enter(self) -> bool:
        await self.session_store.hydrate()
        if not self.session_store.is_authenticated:
            self._state = PreloadState.IDLE
            return False

        if self.session_store.connection_status != ConnectionStatus.CONNECTED:
            self._state = PreloadState.RESTORING
            restored = await self.session_store.restore_session()
            if not restored:
                self.logger.warning("Session restore failed, rendering without preloaded data")

        if self.session_store.connection_status == ConnectionStatus.CONNECTED:
            self._state = PreloadState.PRELOADING
            await self.preload_all()

        # A 401 during restore or preload logs the session out
        if not self.session_store.is_authenticated:
            self.logger.info("Session ended while entering the protected view")
            self._state = PreloadState.IDLE
            return False

        self._state = PreloadState.READY
        return True

    async def preload_all(self, is_refresh: bool = False) -> None:
        names = list(self.features)
        results = await asyncio.gather(
            *(self.features[name].preload(is_refresh) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                self.logger.warning(f"Preload of '{name}' failed: {result}")

    def reset(self) -> None:
        self._entry_task = None
        self._state = PreloadState.IDLE
        for feature in self.features.values():
            feature.reset()
