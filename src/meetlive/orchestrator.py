import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from meetlive import context, scripts, selectors
from meetlive.audio_graph import AudioGraphBuilder, MediaBackend, MixedStream, PageMediaBackend
from meetlive.audio_pipeline import AudioPipeline
from meetlive.cleanup import CleanupRegistry
from meetlive.config import BotConfig
from meetlive.models.audio import AudioChunkLog
from meetlive.models.session import Session, SessionState
from meetlive.participants import ParticipantRegistry
from meetlive.session_socket import SessionSocket, default_connector, default_scheduler
from meetlive.speaker_detection import SpeakerAttributionEngine

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    """Wires capture, socket and attribution together for one meeting.

    The host hands over a joined page and a config, then drives the session
    through ``start``, ``reconfigure`` and ``leave``. ``on_graceful_leave``
    fires once when the meeting looks over; ``on_left`` fires once after
    ``leave`` finished cleaning up.
    """

    def __init__(
        self,
        page: Any,
        config: BotConfig,
        media: Optional[MediaBackend] = None,
        connector=default_connector,
        scheduler=default_scheduler,
        on_graceful_leave: Optional[Callable[[], Any]] = None,
        on_left: Optional[Callable[[bool], Any]] = None,
        on_transcript: Optional[Callable[..., Any]] = None,
        watchdog_interval: float = context.WATCHDOG_INTERVAL_SECONDS,
        alone_timeout: float = context.ALONE_TIMEOUT_SECONDS,
        leave_settle_seconds: float = 1.0,
    ):
        self.page = page
        self.config = config
        self.media = media or PageMediaBackend(page)
        self.cleanup = CleanupRegistry()
        self.state = SessionState(language=config.language, task=config.task or "transcribe")
        self.chunk_log = AudioChunkLog()
        self.socket = SessionSocket(
            self.state,
            config,
            connector=connector,
            scheduler=scheduler,
            on_open=self._on_socket_open,
            on_close=self._on_socket_close,
            on_transcript=on_transcript,
        )
        self.registry = ParticipantRegistry(page, bot_name=config.bot_name)
        self.engine = SpeakerAttributionEngine(self.registry, self.socket, self.chunk_log, config)
        self.pipeline = AudioPipeline(self.socket, self.chunk_log)
        self.graph_builder = AudioGraphBuilder(self.media, self.cleanup)

        self.watchdog_interval = watchdog_interval
        self.alone_timeout = alone_timeout
        self.leave_settle_seconds = leave_settle_seconds
        self.alone_seconds = 0.0
        self.mixed_stream: Optional[MixedStream] = None

        self._on_graceful_leave = on_graceful_leave
        self._on_left = on_left
        self._watchdog_task: Optional[asyncio.Task] = None
        self._page_close_task: Optional[asyncio.Task] = None
        self._capture_stopped = False
        self._graceful_leave_fired = False
        self._leave_lock = asyncio.Lock()
        self._leave_result: Optional[bool] = None

    async def start(self) -> MixedStream:
        """Build the audio graph, open the socket and start monitoring.

        Raises ``NoActiveMedia`` / ``NoAudioTracks`` when capture cannot start.
        """
        if not self.config.websocket_url:
            raise ValueError("WhisperLive WebSocket URL is not configured")
        logger.info("Bot connection ID: %s", self.config.connection_id)

        try:
            self.mixed_stream = await self.graph_builder.build()
        except Exception:
            await self.cleanup.run()
            raise

        self.socket.connect()

        await self.media.start_processor(context.AUDIO_BLOCK_SIZE, self.pipeline.process_block)
        self.cleanup.add(self.stop_capture, "stop audio processor")
        logger.info("Audio processing pipeline connected and sending data.")

        await self.registry.open_panel_once()
        await self.install_page_listeners()

        self._watchdog_task = asyncio.create_task(self._watchdog_loop())
        self.cleanup.add(self.stop_monitoring, "stop participant watchdog")
        return self.mixed_stream

    async def reconfigure(self, language: Optional[str], task: Optional[str]) -> None:
        await self.socket.reconfigure(language, task)

    async def leave(self) -> bool:
        """Leave the call and tear everything down. Safe to call repeatedly."""
        async with self._leave_lock:
            if self._leave_result is not None:
                return self._leave_result

            logger.info("Attempting to leave the meeting...")
            try:
                left = await self._click_leave()
            except Exception as e:
                logger.warning("Error during leave attempt: %s", e)
                left = False

            self.stop_monitoring()
            await self.socket.shutdown()
            await self.cleanup.run()
            self._leave_result = left
            logger.info("Leave sequence completed (left=%s).", left)

        await self._fire(self._on_left, left)
        return left

    async def stop_capture(self) -> None:
        if self._capture_stopped:
            return
        self._capture_stopped = True
        await self.media.stop_processor()

    def stop_monitoring(self) -> None:
        self.engine.stop()
        if self._watchdog_task is not None and self._watchdog_task is not asyncio.current_task():
            self._watchdog_task.cancel()
        self._watchdog_task = None

    @property
    def current_session(self) -> Optional[Session]:
        return self.state.current_session

    # Page lifecycle

    async def install_page_listeners(self) -> None:
        """Hidden page -> graceful leave; closed page -> leave()."""
        await self.page.expose_function(scripts.PAGE_HIDDEN_BINDING, self._on_page_hidden)
        await self.page.evaluate(scripts.ADD_VISIBILITY_LISTENER_JS, scripts.PAGE_HIDDEN_BINDING)
        self.page.on("close", self._on_page_close)
        self.cleanup.add(self.remove_page_listeners, "remove page listeners")

    async def remove_page_listeners(self) -> None:
        self.page.remove_listener("close", self._on_page_close)
        if not self.page.is_closed():
            await self.page.evaluate(scripts.REMOVE_VISIBILITY_LISTENER_JS)

    async def _on_page_hidden(self) -> None:
        logger.info("Document is hidden. Stopping recorder...")
        await self.request_graceful_leave("page hidden")

    def _on_page_close(self, page: Any) -> None:
        logger.info("Page is closing. Stopping recorder and speaker detection...")
        self._page_close_task = asyncio.ensure_future(self.leave())

    # Socket listeners

    def _on_socket_open(self, session: Session) -> None:
        if not self._capture_stopped:
            self.engine.start()

    def _on_socket_close(self) -> None:
        self.engine.stop()

    # Idle / ended meeting watchdog

    async def _watchdog_loop(self) -> None:
        while True:
            await asyncio.sleep(self.watchdog_interval)
            if await self.check_participants():
                return

    async def check_participants(self) -> bool:
        """One watchdog tick. Returns True once graceful leave was requested."""
        try:
            count = await self.registry.visible_participant_count()
        except Exception as e:
            logger.warning("Error in participant check: %s", e)
            await self.request_graceful_leave("participant check failed")
            return True

        if count is None:
            await self.request_graceful_leave("participant list not found; assuming meeting ended")
            return True

        logger.info("Participant count: %d", count)
        if count <= 1:
            self.alone_seconds += self.watchdog_interval
            logger.info("Bot appears alone for %.0f seconds...", self.alone_seconds)
        else:
            self.alone_seconds = 0.0

        if count == 0 or self.alone_seconds >= self.alone_timeout:
            await self.request_graceful_leave("meeting ended or bot alone for too long")
            return True
        return False

    async def request_graceful_leave(self, reason: str) -> None:
        if self._graceful_leave_fired:
            return
        self._graceful_leave_fired = True
        logger.info("Requesting graceful leave: %s", reason)
        self.engine.stop()
        try:
            await self.stop_capture()
        except Exception as e:
            logger.warning("Error stopping capture: %s", e)
        await self._fire(self._on_graceful_leave)

    async def _click_leave(self) -> bool:
        if self.page.is_closed():
            logger.info("Page is already closed; nothing to click.")
            return False
        button = await self.page.query_selector(selectors.LEAVE_BUTTON)
        if button is None:
            logger.info("Primary leave button not found.")
            return False

        logger.info("Clicking primary leave button...")
        await button.click()
        await asyncio.sleep(self.leave_settle_seconds)

        for selector in selectors.LEAVE_CONFIRM_BUTTONS:
            confirm = await self.page.query_selector(selector)
            if confirm is not None:
                logger.info("Clicking secondary/confirmation leave button...")
                await confirm.click()
                break
        else:
            logger.info("Secondary leave button not found.")
        return True

    async def _fire(self, callback: Optional[Callable[..., Any]], *args) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Host callback failed")
