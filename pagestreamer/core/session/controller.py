from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Any, Callable, Dict, FrozenSet, Optional

from pagestreamer.core.bridge import (
    PROTOCOL_VERSION,
    BridgeEvent,
    DocumentLoaded,
    EmbeddingHost,
    LoadDocument,
    LoadingChanged,
    MessageBridge,
    PageChanged,
    QueryCurrentPage,
    QueryPageCount,
    SetPage,
    SetZoom,
    UnknownEvent,
    ViewerError,
    ZoomChanged,
)
from pagestreamer.core.cdn import (
    AssetBundleManager,
    AssetFetcher,
    DocumentParams,
    LoadConfiguration,
    LoadProgress,
)
from pagestreamer.core.cdn.loader import SleepFn
from pagestreamer.core.errors import (
    ConfigurationError,
    EmbedError,
    InvalidCommand,
    PageStreamerError,
    RemoteViewerError,
)
from pagestreamer.core.streams import BroadcastChannel, Subscription
from pagestreamer.utils.logger import logger, set_debug

from . import events as ev
from .config import SessionConfig, validate_session_config
from .events import (
    ListenerRegistry,
    SessionError,
    SessionListeners,
    SessionState,
    StateChanged,
)

BundleFactory = Callable[[LoadConfiguration], AssetBundleManager]

_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.INITIALIZING: frozenset(
        {SessionState.LOADING_ASSETS, SessionState.ERROR}
    ),
    SessionState.LOADING_ASSETS: frozenset(
        {SessionState.ASSETS_READY, SessionState.ERROR}
    ),
    SessionState.ASSETS_READY: frozenset(
        {SessionState.LOADING_DOCUMENT, SessionState.ERROR}
    ),
    SessionState.LOADING_DOCUMENT: frozenset(
        {SessionState.READY, SessionState.ERROR}
    ),
    SessionState.READY: frozenset({SessionState.ERROR}),
    SessionState.ERROR: frozenset({SessionState.INITIALIZING}),
}

_SETTLED = (SessionState.READY, SessionState.ERROR)


class SessionController:
    """
    Drive one document session from configuration to a ready viewer.

    Notes:
    - Each controller owns its bridge; sessions share no global state.
    - Navigation and zoom are only dispatched in READY. Elsewhere they are
      silent no-ops that return False. Invalid arguments always raise
      `InvalidCommand`.
    - `initialize_session()` never raises for session faults. It returns the
      state reached; faults go to the error listeners exactly once.
    - Re-initializing bumps a generation counter. Work started by an earlier
      generation may still finish, but it can no longer change state.
    """

    def __init__(
        self,
        host: EmbeddingHost,
        *,
        listeners: Optional[SessionListeners] = None,
        fetcher: Optional[AssetFetcher] = None,
        sleep: SleepFn = asyncio.sleep,
        bundle_factory: Optional[BundleFactory] = None,
        name: str = "session",
    ) -> None:
        self.host = host
        self.name = name
        self.bridge = MessageBridge(name)
        self._listeners = ListenerRegistry()
        self._listeners.register(listeners)
        self._fetcher = fetcher
        self._sleep = sleep
        self._bundle_factory = bundle_factory or self._default_bundle
        self._bundle: Optional[AssetBundleManager] = None
        self._config: Optional[SessionConfig] = None

        self._state = SessionState.INITIALIZING
        self._generation = 0
        self._started = False
        self._disposed = False
        self._last_error: Optional[SessionError] = None
        self._transitions: BroadcastChannel[StateChanged] = BroadcastChannel(
            f"{name}-state"
        )
        self._asset_progress: BroadcastChannel[LoadProgress] = BroadcastChannel(
            f"{name}-asset-progress"
        )
        self._subscription: Optional[Subscription[BridgeEvent]] = None
        self._consumer_task: Optional[asyncio.Task[None]] = None
        self._relay_task: Optional[asyncio.Task[None]] = None
        self._reset_view_state()

    def _default_bundle(self, load: LoadConfiguration) -> AssetBundleManager:
        return AssetBundleManager(load, fetcher=self._fetcher, sleep=self._sleep)

    def _reset_view_state(self) -> None:
        self._current_page = 1
        self._page_count = 0
        self._zoom_level = 1.0
        self._title: Optional[str] = None

    # -- observable state -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def config(self) -> Optional[SessionConfig]:
        return self._config

    @property
    def bundle(self) -> Optional[AssetBundleManager]:
        return self._bundle

    @property
    def last_error(self) -> Optional[SessionError]:
        return self._last_error

    @property
    def last_error_recoverable(self) -> bool:
        return bool(self._last_error and self._last_error.recoverable)

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def zoom_level(self) -> float:
        return self._zoom_level

    @property
    def title(self) -> Optional[str]:
        return self._title

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, event_name: str, callback: Callable[[Any], None]):
        """Register a listener; returns a callable that removes it."""
        return self._listeners.subscribe(event_name, callback)

    def asset_progress(self) -> Subscription[LoadProgress]:
        return self._asset_progress.subscribe(until=lambda p: p.is_terminal)

    # -- lifecycle --------------------------------------------------------

    def _stale(self, generation: int) -> bool:
        return generation != self._generation or self._disposed

    async def initialize_session(self, config: SessionConfig) -> SessionState:
        if self._disposed:
            raise PageStreamerError("Session controller has been disposed")
        if self._started:
            await self._teardown()
        self._started = True
        self._generation += 1
        generation = self._generation
        self._config = config
        self._reset_view_state()
        if config.debug_mode:
            set_debug(True)
        self._transition(SessionState.INITIALIZING, force=True)

        validation = validate_session_config(config)
        for warning in validation.warnings:
            logger.warning("Session %s config warning: %s", self.name, warning)
        if not validation.is_valid:
            self._fail(ConfigurationError(validation.errors))
            return self._state

        self._start_consumer(generation)
        self._transition(SessionState.LOADING_ASSETS)
        bundle = self._bundle_factory(config.load)
        self._bundle = bundle
        self._start_relay(bundle, generation)
        try:
            await bundle.load_all()
        except PageStreamerError as exc:
            if not self._stale(generation):
                self._fail(exc)
            return self._state
        if self._stale(generation):
            logger.debug("Session %s: discarding stale asset load", self.name)
            return self._state
        self._transition(SessionState.ASSETS_READY)

        params = DocumentParams(
            doc_id=config.doc_id,
            api_base_url=config.backend_url,
            viewer_options=config.viewer_options(),
        )
        try:
            document = bundle.build_document(params, protocol_version=PROTOCOL_VERSION)
            self.host.embed(document, self.bridge)
        except Exception as exc:
            self._fail(EmbedError(f"Failed to embed viewer document: {exc}"), cause=exc)
            return self._state

        self._transition(SessionState.LOADING_DOCUMENT)
        self.bridge.send(LoadDocument(config.doc_id, config.backend_url))
        return self._state

    async def reinitialize(self, config: Optional[SessionConfig] = None) -> SessionState:
        """Tear down and start again, optionally with a new configuration."""
        target = config or self._config
        if target is None:
            raise PageStreamerError("No session configuration to reinitialize with")
        logger.info("Session %s: reinitializing from %s", self.name, self._state.name)
        return await self.initialize_session(target)

    async def wait_until_ready(self, timeout_s: Optional[float] = None) -> SessionState:
        """Wait until the session is READY or has failed."""
        if self._state in _SETTLED:
            return self._state
        subscription = self._transitions.subscribe(until=lambda c: c.current in _SETTLED)

        async def _drain() -> None:
            async for _change in subscription:
                pass

        try:
            await asyncio.wait_for(_drain(), timeout=timeout_s)
        finally:
            subscription.close()
        return self._state

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._generation += 1
        await self._stop_tasks()
        self._drop_bundle()
        self._unembed()
        self.bridge.close()
        self._transitions.close()
        self._asset_progress.close()
        self._listeners.clear()
        logger.info("Session %s disposed", self.name)

    async def _teardown(self) -> None:
        self._generation += 1
        await self._stop_tasks()
        self._drop_bundle()
        self._unembed()

    def _drop_bundle(self) -> None:
        bundle = self._bundle
        self._bundle = None
        if bundle is not None:
            bundle.reset()
            bundle.dispose()

    def _unembed(self) -> None:
        try:
            self.host.unembed()
        except Exception as exc:
            logger.warning("Session %s: host failed to unembed: %s", self.name, exc)

    # -- background tasks -------------------------------------------------

    def _start_consumer(self, generation: int) -> None:
        subscription = self.bridge.events()
        self._subscription = subscription
        self._consumer_task = asyncio.create_task(
            self._consume_events(subscription, generation)
        )

    async def _consume_events(
        self, subscription: Subscription[BridgeEvent], generation: int
    ) -> None:
        async for event in subscription:
            if self._stale(generation):
                break
            try:
                self._handle_event(event)
            except Exception as exc:
                logger.error("Session %s: event handling failed: %s", self.name, exc)

    def _start_relay(self, bundle: AssetBundleManager, generation: int) -> None:
        stream = bundle.progress_stream()

        async def _relay() -> None:
            async for progress in stream:
                if self._stale(generation):
                    break
                self._asset_progress.publish(progress)

        self._relay_task = asyncio.create_task(_relay())

    async def _stop_tasks(self) -> None:
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            subscription.close()
        for attr in ("_consumer_task", "_relay_task"):
            task = getattr(self, attr)
            setattr(self, attr, None)
            if task is None or task is asyncio.current_task():
                continue
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    # -- state machine ----------------------------------------------------

    def _transition(self, new_state: SessionState, *, force: bool = False) -> bool:
        previous = self._state
        if new_state is previous:
            return False
        if not force and new_state not in _TRANSITIONS[previous]:
            logger.warning(
                "Session %s: ignoring transition %s -> %s",
                self.name,
                previous.name,
                new_state.name,
            )
            return False
        self._state = new_state
        if new_state is not SessionState.ERROR:
            self._last_error = None
        logger.info("Session %s: %s -> %s", self.name, previous.name, new_state.name)
        change = StateChanged(previous=previous, current=new_state)
        self._listeners.emit(ev.STATE_CHANGED, change)
        self._transitions.publish(change)
        return True

    def _fail(
        self, error: PageStreamerError, *, cause: Optional[BaseException] = None
    ) -> None:
        session_error = SessionError(
            message=error.message,
            code=error.code,
            recoverable=error.recoverable,
            cause=cause or error,
        )
        self._last_error = session_error
        self._transition(SessionState.ERROR)
        logger.error("Session %s failed [%s]: %s", self.name, error.code, error.message)
        self._listeners.emit(ev.ERROR, session_error)

    def _handle_event(self, event: BridgeEvent) -> None:
        if isinstance(event, DocumentLoaded):
            self._on_document_loaded(event)
        elif isinstance(event, PageChanged):
            self._current_page = event.current_page
            if event.total_pages > 0:
                self._page_count = event.total_pages
            self._listeners.emit(ev.PAGE_CHANGED, event)
        elif isinstance(event, ZoomChanged):
            self._zoom_level = event.zoom_level
            self._listeners.emit(ev.ZOOM_CHANGED, event)
        elif isinstance(event, LoadingChanged):
            self._listeners.emit(ev.LOADING_CHANGED, event)
        elif isinstance(event, ViewerError):
            self._fail(RemoteViewerError(event.message, remote_code=event.code))
        elif isinstance(event, UnknownEvent):
            logger.debug(
                "Session %s: ignoring unknown event %r", self.name, event.event_type
            )

    def _on_document_loaded(self, event: DocumentLoaded) -> None:
        config = self._config
        if config is not None and event.doc_id != config.doc_id:
            logger.warning(
                "Session %s: runtime loaded %s, expected %s",
                self.name,
                event.doc_id,
                config.doc_id,
            )
        self._page_count = event.page_count
        self._title = event.title
        if self._state is SessionState.LOADING_DOCUMENT:
            self._transition(SessionState.READY)
            self._send_initial_view()
        self._listeners.emit(ev.DOCUMENT_LOADED, event)

    def _send_initial_view(self) -> None:
        config = self._config
        if config is None:
            return
        if config.initial_page != 1:
            if self._page_count and config.initial_page > self._page_count:
                logger.warning(
                    "Session %s: initial page %d beyond page count %d",
                    self.name,
                    config.initial_page,
                    self._page_count,
                )
            else:
                self.bridge.send(SetPage(config.initial_page))
        if config.initial_zoom != 1.0:
            self.bridge.send(SetZoom(config.initial_zoom))

    # -- public commands --------------------------------------------------

    def _accepts_commands(self, action: str) -> bool:
        if self._state is not SessionState.READY or self._disposed:
            logger.debug(
                "Session %s: %s ignored in state %s", self.name, action, self._state.name
            )
            return False
        return True

    def navigate_to_page(self, page_number: int) -> bool:
        command = SetPage(page_number)
        if self._page_count and command.page_number > self._page_count:
            raise InvalidCommand(
                f"pageNumber {command.page_number} exceeds page count {self._page_count}"
            )
        if not self._accepts_commands("navigate_to_page"):
            return False
        if self._config is not None and not self._config.enable_navigation:
            logger.debug("Session %s: navigation disabled", self.name)
            return False
        return self.bridge.send(command)

    def set_zoom(self, zoom_level: float) -> bool:
        command = SetZoom(zoom_level)
        if not self._accepts_commands("set_zoom"):
            return False
        if self._config is not None and not self._config.enable_zoom:
            logger.debug("Session %s: zoom disabled", self.name)
            return False
        return self.bridge.send(command)

    def get_current_page(self) -> int:
        """Last page reported by the runtime; asks for a fresh one when READY."""
        if self._state is SessionState.READY:
            self.bridge.send(QueryCurrentPage())
        return self._current_page

    def get_page_count(self) -> int:
        if self._state is SessionState.READY:
            self.bridge.send(QueryPageCount())
        return self._page_count

    async def query_current_page(self, timeout_s: float = 2.0) -> int:
        """Ask the runtime for its current page and wait for the answer."""
        if self._state is not SessionState.READY:
            return self._current_page
        subscription = self.bridge.events()
        try:
            if not self.bridge.send(QueryCurrentPage()):
                return self._current_page
            loop = asyncio.get_running_loop()
            deadline = loop.time() + timeout_s
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    event = await subscription.get(timeout_s=remaining)
                except (asyncio.TimeoutError, StopAsyncIteration):
                    break
                if isinstance(event, PageChanged):
                    return event.current_page
        finally:
            subscription.close()
        logger.debug("Session %s: page query timed out", self.name)
        return self._current_page
