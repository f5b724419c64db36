from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import uuid4

from meetlive.models.enums import ConnectionState, Task


def new_session_id() -> str:
    return str(uuid4())


@dataclass
class Session:
    """One logical transcription stream, minted on every OPEN transition."""

    language: Optional[str]
    task: str
    meeting_id: Optional[str]
    token: Optional[str]
    session_id: str = field(default_factory=new_session_id)


@dataclass
class SessionState:
    """Mutable socket state shared by the orchestrator and SessionSocket.

    ``language`` and ``task`` are the values the *next* connect will use;
    ``current_session`` carries the values the open socket was started with.
    """

    language: Optional[str] = None
    task: str = Task.TRANSCRIBE.value
    connection_state: ConnectionState = ConnectionState.CLOSED
    websocket: Any = None
    retry_count: int = 0
    current_session: Optional[Session] = None
    shutdown_requested: bool = False
    pending_retry: Any = None

    @property
    def server_ready(self) -> bool:
        return self.connection_state == ConnectionState.SERVER_READY

    @property
    def session_id(self) -> Optional[str]:
        if self.current_session is None:
            return None
        return self.current_session.session_id
