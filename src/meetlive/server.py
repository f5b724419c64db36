from typing import Optional

from fastapi import FastAPI
from pydantic import BaseModel

from meetlive.models.enums import Task
from meetlive.orchestrator import SessionOrchestrator


class ReconfigureRequest(BaseModel):
    language: Optional[str] = None
    task: Task = Task.TRANSCRIBE


class LeaveResponse(BaseModel):
    success: bool


class ParticipantStatus(BaseModel):
    participant_id: str
    display_name: str
    is_speaking: bool


class StatusResponse(BaseModel):
    connection_state: str
    server_ready: bool
    session_id: Optional[str] = None
    language: Optional[str] = None
    task: str
    retry_count: int
    chunks_sent: int
    current_speaker: str
    participants: list[ParticipantStatus]


def create_app(orchestrator: SessionOrchestrator) -> FastAPI:
    app = FastAPI(title="meetlive control")

    @app.get("/status", response_model=StatusResponse)
    async def status():
        state = orchestrator.state
        return StatusResponse(
            connection_state=state.connection_state,
            server_ready=state.server_ready,
            session_id=state.session_id,
            language=state.language,
            task=state.task,
            retry_count=state.retry_count,
            chunks_sent=orchestrator.chunk_log.counter,
            current_speaker=orchestrator.engine.current_speaker,
            participants=[
                ParticipantStatus(
                    participant_id=s.participant.participant_id,
                    display_name=s.participant.display_name,
                    is_speaking=s.is_speaking,
                )
                for s in orchestrator.engine.states.values()
            ],
        )

    @app.post("/reconfigure", status_code=202)
    async def reconfigure(request: ReconfigureRequest):
        await orchestrator.reconfigure(request.language, request.task)
        return {"language": orchestrator.state.language, "task": orchestrator.state.task}

    @app.post("/leave", response_model=LeaveResponse)
    async def leave():
        return LeaveResponse(success=await orchestrator.leave())

    return app
