"""Core orchestrator - owns service lifecycle and the one-session-at-a-time rule."""
import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Callable, Optional

from ..errors import ErrorKind
from ..models import Session, SubmitResult, UploadConfig
from ..protocols import IArtifactTransfer, IBuildRegistry, IIdentityStore, IPreferenceStore
from ..services.api_client import HTTPAPIClient
from ..services.identity import IdentityStore
from ..services.preferences import PreferenceStore
from ..services.registry import BuildRegistry
from ..services.transfer import PresignedUrlTransfer
from ..utils.events import EventEmitter
from .models import UploadPhase, UploadSession
from .progress import ProgressCallback, ProgressReporter
from .submit import MESSAGES, SubmitHandler

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Orchestrates build submits using injected services.

    Follows:
    - Dependency Injection (services injected or built from config)
    - Single Responsibility (sequencing lives in SubmitHandler)

    Usage:
        # Services built from config
        async with UploadOrchestrator(config) as orchestrator:
            result = await orchestrator.submit(session, on_progress)

        # Pre-built services (no context manager needed)
        orchestrator = UploadOrchestrator(config, identity=..., registry=..., transfer=...)
        result = await orchestrator.submit(session, replace_previous=True)
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        identity: Optional[IIdentityStore] = None,
        registry: Optional[IBuildRegistry] = None,
        transfer: Optional[IArtifactTransfer] = None,
        preferences: Optional[IPreferenceStore] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration
            identity: Organization directory client
            registry: Build metadata registry
            transfer: Artifact transfer implementation
            preferences: Form prefill store (built from config on enter if omitted)
        """
        self._config = config or UploadConfig()
        self._identity = identity
        self._registry = registry
        self._transfer = transfer
        self._preferences = preferences
        self._events = EventEmitter()
        self._stack: Optional[AsyncExitStack] = None

        self._active: Optional[UploadSession] = None
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False

    async def __aenter__(self):
        """Build any service that was not injected."""
        self._stack = AsyncExitStack()
        config = self._config

        if self._identity is None or self._registry is None:
            params = {"auth": config.database_auth} if config.database_auth else None
            database = await self._stack.enter_async_context(
                HTTPAPIClient(config.database_url, timeout=config.timeout, params=params)
            )
            if self._identity is None:
                self._identity = IdentityStore(database)
            if self._registry is None:
                self._registry = BuildRegistry(database, config.builds_root)

        if self._transfer is None:
            broker = await self._stack.enter_async_context(
                HTTPAPIClient(config.broker_url, timeout=config.timeout)
            )
            self._transfer = await self._stack.enter_async_context(PresignedUrlTransfer(broker, config))

        if self._preferences is None:
            self._preferences = await PreferenceStore(config.preferences_path).load()

        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None

    @property
    def identity(self) -> Optional[IIdentityStore]:
        return self._identity

    @property
    def preferences(self) -> Optional[IPreferenceStore]:
        return self._preferences

    @property
    def phase(self) -> UploadPhase:
        """Phase of the in-flight session, IDLE when none."""
        return self._active.phase if self._active is not None else UploadPhase.IDLE

    @property
    def busy(self) -> bool:
        return self._active is not None

    def on(self, event_name: str, callback: Callable) -> None:
        """Subscribe to "phase", "complete" or "fail"."""
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable) -> None:
        self._events.off(event_name, callback)

    def _build_handler(self) -> SubmitHandler:
        if self._identity is None or self._registry is None or self._transfer is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' or inject services.")
        return SubmitHandler(
            self._identity,
            self._registry,
            self._transfer,
            self._config,
            preferences=self._preferences,
            events=self._events,
        )

    async def submit(
        self,
        session: Session,
        on_progress: Optional[ProgressCallback] = None,
        replace_previous: bool = False,
    ) -> SubmitResult:
        """
        Run one submit end to end.

        A second call while one is in flight is rejected with
        SESSION_IN_PROGRESS and leaves the running session untouched.
        """
        if self._active is not None:
            kind = ErrorKind.SESSION_IN_PROGRESS
            logger.warning("Rejected submit: another session is %s", self._active.phase.value)
            return SubmitResult.fail(kind, MESSAGES[kind])

        handler = self._build_handler()
        upload = UploadSession(session=session, replace_previous=replace_previous)
        self._active = upload
        self._cancel_requested = False
        self._task = asyncio.create_task(handler.run(upload, on_progress))

        try:
            return await self._task
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            kind = ErrorKind.CANCELLED
            if not upload.phase.terminal:
                await ProgressReporter(upload, on_progress, self._events).report(
                    UploadPhase.FAILED, message=MESSAGES[kind]
                )
            result = SubmitResult.fail(kind, MESSAGES[kind])
            logger.info("Submit cancelled")
            await self._events.emit("fail", result)
            return result
        finally:
            self._active = None
            self._task = None

    def cancel(self) -> bool:
        """
        Abort the in-flight submit before its metadata is written.

        Returns:
            True if a cancel was issued, False if nothing can be cancelled
        """
        if self._task is None or self._task.done() or self._active is None:
            return False
        if self._active.phase in (UploadPhase.PERSISTING, UploadPhase.COMPLETE, UploadPhase.FAILED):
            return False
        self._cancel_requested = True
        self._task.cancel()
        return True
