from enum import StrEnum


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    SERVER_READY = "server_ready"
    CLOSING = "closing"
    CLOSED = "closed"


class SocketEvent(StrEnum):
    OPENED = "opened"
    MESSAGE = "message"
    CLOSED = "closed"
    RECONFIGURE = "reconfigure"
    RETRY = "retry"
    SHUTDOWN = "shutdown"


class ServerStatus(StrEnum):
    ERROR = "ERROR"
    WAIT = "WAIT"


class InboundKind(StrEnum):
    SERVER_ERROR = "server_error"
    SERVER_WAIT = "server_wait"
    READY = "ready"
    LANGUAGE = "language"
    DISCONNECT = "disconnect"
    TRANSCRIPT = "transcript"
    UNKNOWN = "unknown"


class Task(StrEnum):
    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"


class OutboundMessageType(StrEnum):
    AUDIO_CHUNK_METADATA = "audio_chunk_metadata"
    SPEAKER_ACTIVITY_UPDATE = "speaker_activity_update"


class SpeakingTransition(StrEnum):
    STARTED = "started"
    STOPPED = "stopped"


class DetectionMethod(StrEnum):
    SELF_PANEL_INDICATOR = "self-panel-indicator"
    MUTE_BUTTON_STATE = "mute-button-state"
