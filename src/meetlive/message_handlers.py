import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from pydantic import ValidationError

from meetlive.errors import MessageParseError
from meetlive.models.enums import InboundKind, ServerStatus
from meetlive.models.messages import ServerMessage, TranscriptEvent

if TYPE_CHECKING:
    from meetlive.session_socket import SessionSocket

logger = logging.getLogger(__name__)


def parse_server_message(raw: str | bytes) -> ServerMessage:
    try:
        return ServerMessage.model_validate_json(raw)
    except ValidationError as e:
        raise MessageParseError(f"Invalid server message: {e.errors()}") from e


def classify(message: ServerMessage, server_ready: bool) -> InboundKind:
    # Order matters: the first non-status message only flips readiness.
    if message.status == ServerStatus.ERROR:
        return InboundKind.SERVER_ERROR
    if message.status == ServerStatus.WAIT:
        return InboundKind.SERVER_WAIT
    if not server_ready:
        return InboundKind.READY
    if message.language:
        return InboundKind.LANGUAGE
    if message.message == "DISCONNECT":
        return InboundKind.DISCONNECT
    if message.text or message.transcript:
        return InboundKind.TRANSCRIPT
    return InboundKind.UNKNOWN


def to_transcript_event(message: ServerMessage) -> TranscriptEvent | None:
    text = message.text or message.transcript or ""
    if not text.strip():
        return None
    return TranscriptEvent(
        speaker=message.speaker or message.speaker_name or "Unknown",
        text=text,
        completed=bool(message.completed or message.final),
        start=message.start if message.start is not None else message.start_time,
        end=message.end if message.end is not None else message.end_time,
    )


async def handle_server_error(socket: "SessionSocket", message: ServerMessage):
    logger.warning("WebSocket server error: %s", message.message)


async def handle_server_wait(socket: "SessionSocket", message: ServerMessage):
    logger.info("Server busy: %s", message.message)


async def handle_ready(socket: "SessionSocket", message: ServerMessage):
    socket.mark_server_ready()


async def handle_language(socket: "SessionSocket", message: ServerMessage):
    logger.info("Language detected: %s", message.language)


async def handle_disconnect(socket: "SessionSocket", message: ServerMessage):
    logger.info("Server requested disconnect.")
    await socket.close()


async def handle_transcript(socket: "SessionSocket", message: ServerMessage):
    event = to_transcript_event(message)
    if event is None:
        return

    status = "FINAL" if event.completed else "PARTIAL"
    time_info = f" [{event.start}-{event.end}]" if event.start and event.end else ""
    logger.info('%s | %s: "%s"%s', status, event.speaker, event.text, time_info)
    await socket.emit_transcript(event)


async def handle_unknown(socket: "SessionSocket", message: ServerMessage):
    pass


INBOUND_HANDLERS: dict[InboundKind, Callable[["SessionSocket", ServerMessage], Awaitable[None]]] = {
    InboundKind.SERVER_ERROR: handle_server_error,
    InboundKind.SERVER_WAIT: handle_server_wait,
    InboundKind.READY: handle_ready,
    InboundKind.LANGUAGE: handle_language,
    InboundKind.DISCONNECT: handle_disconnect,
    InboundKind.TRANSCRIPT: handle_transcript,
    InboundKind.UNKNOWN: handle_unknown,
}


async def handle_server_message(socket: "SessionSocket", raw: str | bytes):
    try:
        message = parse_server_message(raw)
    except MessageParseError as e:
        logger.warning("Error parsing WebSocket message: %s", e)
        return

    kind = classify(message, socket.state.server_ready)
    await INBOUND_HANDLERS[kind](socket, message)
