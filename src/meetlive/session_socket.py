import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed

from meetlive import context
from meetlive.config import BotConfig
from meetlive.errors import SocketClosed, SocketSetupError
from meetlive.message_handlers import handle_server_message
from meetlive.models.audio import AudioChunk
from meetlive.models.enums import ConnectionState, SocketEvent, Task
from meetlive.models.messages import AudioChunkMetadataMessage, InitialConfigMessage, TranscriptEvent
from meetlive.models.session import Session, SessionState
from meetlive.utils import samples_to_bytes

logger = logging.getLogger(__name__)

Callback = Callable[..., Optional[Awaitable[None]]]


async def default_connector(url: str):
    return await websockets.connect(url, max_size=None)


def default_scheduler(delay_seconds: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay_seconds, callback)


class SessionSocket:
    """Owns the WebSocket to the transcription service.

    Every socket-level happening is turned into a ``SocketEvent`` and routed
    through ``dispatch`` to the handler of the current ``ConnectionState``.
    A close in any state other than shutdown schedules exactly one reconnect
    after a constant delay.
    """

    def __init__(
        self,
        state: SessionState,
        config: BotConfig,
        connector: Callable[[str], Awaitable[Any]] = default_connector,
        scheduler: Callable[[float, Callable[[], None]], Any] = default_scheduler,
        on_open: Optional[Callback] = None,
        on_close: Optional[Callback] = None,
        on_transcript: Optional[Callback] = None,
        connect_timeout: float = context.CONNECT_TIMEOUT_SECONDS,
    ):
        self.state = state
        self.config = config
        self.connect_timeout = connect_timeout
        self._connector = connector
        self._scheduler = scheduler
        self._on_open = on_open
        self._on_close = on_close
        self._on_transcript = on_transcript
        self._send_lock = asyncio.Lock()
        self._connection_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._handlers = {
            ConnectionState.CONNECTING: self._on_connecting,
            ConnectionState.OPEN: self._on_open_state,
            ConnectionState.SERVER_READY: self._on_open_state,
            ConnectionState.CLOSING: self._on_closing,
            ConnectionState.CLOSED: self._on_closed,
        }

    @property
    def is_ready(self) -> bool:
        return self.state.server_ready and self.state.websocket is not None

    @property
    def retry_delay_seconds(self) -> float:
        return context.retry_delay_ms(self.config.reconnection_interval_ms) / 1000

    async def dispatch(self, event: SocketEvent, payload: Any = None) -> None:
        handler = self._handlers[self.state.connection_state]
        await handler(event, payload)

    # Public entry points

    def connect(self) -> None:
        if self.state.connection_state != ConnectionState.CLOSED:
            logger.info("Connect ignored while socket is %s", self.state.connection_state)
            return
        self._cancel_pending_retry()
        self._start_connect()

    async def reconfigure(self, language: Optional[str], task: Optional[str]) -> None:
        logger.info("Received reconfigure. New Lang: %s, New Task: %s", language, task)
        self.state.language = language
        self.state.task = str(task or Task.TRANSCRIBE)
        await self.dispatch(SocketEvent.RECONFIGURE)

    async def shutdown(self) -> None:
        self.state.shutdown_requested = True
        await self.dispatch(SocketEvent.SHUTDOWN)
        task = self._connection_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self.connect_timeout)
            except asyncio.TimeoutError:
                logger.warning("Socket did not finish closing within %ss", self.connect_timeout)

    async def close(self) -> None:
        if self.state.connection_state not in (ConnectionState.OPEN, ConnectionState.SERVER_READY):
            return
        self._transition(ConnectionState.CLOSING)
        ws = self.state.websocket
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:
            logger.warning("Error while closing WebSocket: %s", e)

    def mark_server_ready(self) -> None:
        if self.state.connection_state == ConnectionState.OPEN:
            self._transition(ConnectionState.SERVER_READY)
            logger.info("Server is ready.")

    async def emit_transcript(self, event: TranscriptEvent) -> None:
        await self._invoke(self._on_transcript, event)

    async def send_audio(self, samples, chunk: AudioChunk) -> bool:
        """Send one audio block followed by its metadata. Dropped unless ready."""
        if not self.is_ready:
            return False

        async with self._send_lock:
            if not self.is_ready:
                return False
            metadata = AudioChunkMetadataMessage(
                chunk_id=chunk.chunk_id,
                timestamp=chunk.captured_at,
                duration=chunk.duration_seconds,
                uid=self.state.session_id,
            )
            ws = self.state.websocket
            try:
                await ws.send(samples_to_bytes(samples))
                await ws.send(metadata.model_dump_json())
            except (ConnectionClosed, OSError) as e:
                logger.debug("Dropping audio chunk %d: %s", chunk.chunk_id, e)
                return False
        return True

    async def send_message(self, message: BaseModel) -> bool:
        if not self.is_ready:
            return False

        async with self._send_lock:
            if not self.is_ready:
                return False
            try:
                await self.state.websocket.send(message.model_dump_json())
            except (ConnectionClosed, OSError) as e:
                logger.debug("Dropping %s: %s", type(message).__name__, e)
                return False
        return True

    # State handlers

    async def _on_closed(self, event: SocketEvent, payload: Any) -> None:
        if event == SocketEvent.RETRY:
            self.state.pending_retry = None
            logger.info("Retrying WebSocket connection (attempt %d)...", self.state.retry_count)
            self._start_connect()
        elif event == SocketEvent.RECONFIGURE:
            logger.info("Socket is closed. Connecting directly with new config.")
            self._cancel_pending_retry()
            self._start_connect()
        elif event == SocketEvent.SHUTDOWN:
            self._cancel_pending_retry()

    async def _on_connecting(self, event: SocketEvent, payload: Any) -> None:
        if event == SocketEvent.OPENED:
            await self._handle_opened(payload)
        elif event == SocketEvent.CLOSED:
            await self._handle_closed(payload)
        elif event == SocketEvent.RECONFIGURE:
            logger.info("Socket is connecting. Reconnect will use new config.")

    async def _on_open_state(self, event: SocketEvent, payload: Any) -> None:
        if event == SocketEvent.MESSAGE:
            await handle_server_message(self, payload)
        elif event == SocketEvent.CLOSED:
            await self._handle_closed(payload)
        elif event == SocketEvent.RECONFIGURE:
            logger.info("Closing WebSocket to reconnect with new config.")
            await self.close()
        elif event == SocketEvent.SHUTDOWN:
            await self.close()

    async def _on_closing(self, event: SocketEvent, payload: Any) -> None:
        if event == SocketEvent.CLOSED:
            await self._handle_closed(payload)
        elif event == SocketEvent.RECONFIGURE:
            logger.info("Socket is closing. Reconnect will use new config.")

    # Transitions

    async def _handle_opened(self, ws: Any) -> None:
        self.state.websocket = ws
        if self.state.shutdown_requested:
            self._transition(ConnectionState.CLOSING)
            await ws.close()
            return

        session = Session(
            language=self.state.language,
            task=str(self.state.task or Task.TRANSCRIBE),
            meeting_id=self.config.native_meeting_id,
            token=self.config.token,
        )
        self.state.current_session = session
        self.state.retry_count = 0
        self._transition(ConnectionState.OPEN)
        logger.info(
            "WebSocket connection opened. Using Lang: %s, Task: %s, New UID: %s",
            session.language, session.task, session.session_id,
        )

        initial = InitialConfigMessage(
            uid=session.session_id,
            language=session.language or None,
            task=session.task,
            model=self.config.model,
            use_vad=self.config.use_vad,
            platform=self.config.platform,
            token=session.token,
            meeting_id=session.meeting_id,
            meeting_url=self.config.meeting_url or None,
        )
        payload = initial.model_dump_json()
        logger.info("Sending initial config message: %s", payload)
        await ws.send(payload)
        await self._invoke(self._on_open, session)

    async def _handle_closed(self, reason: Any) -> None:
        self._transition(ConnectionState.CLOSED)
        self.state.websocket = None
        logger.info("WebSocket connection closed: %s", reason)
        await self._invoke(self._on_close)

        if self.state.shutdown_requested:
            logger.info("Shutdown requested; not reconnecting.")
            return

        self.state.retry_count += 1
        delay = self.retry_delay_seconds
        logger.info(
            "Attempting to reconnect in %dms. Retry attempt %d",
            int(delay * 1000), self.state.retry_count,
        )
        self.state.pending_retry = self._scheduler(delay, self._on_retry_timer)

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state != self.state.connection_state:
            logger.debug("Socket state %s -> %s", self.state.connection_state, new_state)
            self.state.connection_state = new_state

    def _start_connect(self) -> None:
        if self.state.shutdown_requested:
            return
        self._transition(ConnectionState.CONNECTING)
        self._connection_task = self._spawn(self._run_connection())

    async def _run_connection(self) -> None:
        url = self.config.websocket_url
        try:
            ws = await asyncio.wait_for(self._connector(url), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            logger.warning("Connection attempt timed out after %sms. Forcing close.", int(self.connect_timeout * 1000))
            await self.dispatch(SocketEvent.CLOSED, SocketSetupError("connection timed out"))
            return
        except Exception as e:
            logger.warning("Error creating WebSocket: %s", e)
            await self.dispatch(SocketEvent.CLOSED, SocketSetupError(str(e)))
            return

        reason: Exception = SocketClosed("connection closed")
        try:
            await self.dispatch(SocketEvent.OPENED, ws)
            async for raw in ws:
                await self.dispatch(SocketEvent.MESSAGE, raw)
        except ConnectionClosed as e:
            reason = SocketClosed(str(e))
        except OSError as e:
            logger.warning("WebSocket error: %s", e)
            reason = SocketClosed(str(e))
        except Exception as e:
            logger.exception("Unexpected error on WebSocket; closing it")
            reason = SocketClosed(str(e))
            try:
                await ws.close()
            except Exception as close_error:
                logger.warning("Error while closing WebSocket: %s", close_error)
        finally:
            await self.dispatch(SocketEvent.CLOSED, reason)

    def _on_retry_timer(self) -> None:
        self._spawn(self.dispatch(SocketEvent.RETRY))

    def _cancel_pending_retry(self) -> None:
        if self.state.pending_retry is not None:
            self.state.pending_retry.cancel()
            self.state.pending_retry = None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Socket task failed", exc_info=task.exception())

    async def _invoke(self, callback: Optional[Callback], *args) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Socket listener %s failed", getattr(callback, "__name__", callback))
