from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from meetlive.models.enums import DetectionMethod, SpeakingTransition


class InitialConfigMessage(BaseModel):
    uid: str
    language: Optional[str] = None
    task: str = "transcribe"
    model: str = "medium"
    use_vad: bool = True
    platform: Optional[str] = None
    token: Optional[str] = None
    meeting_id: Optional[str] = None
    meeting_url: Optional[str] = None


class AudioChunkMetadataMessage(BaseModel):
    type: Literal["audio_chunk_metadata"] = "audio_chunk_metadata"
    chunk_id: int
    timestamp: str
    duration: float
    uid: str


class StateChange(BaseModel):
    timestamp: str
    state: SpeakingTransition


class SpeakerEntry(BaseModel):
    speaker_id: str
    speaker_name: str
    is_speaking: bool
    state_changes: list[StateChange] = Field(default_factory=list)
    detection_method: DetectionMethod


class AudioChunkRecord(BaseModel):
    chunk_id: int
    timestamp: str
    duration: float


class SpeakerActivityUpdateMessage(BaseModel):
    type: Literal["speaker_activity_update"] = "speaker_activity_update"
    uid: str
    meeting_id: Optional[str] = None
    call_name: Optional[str] = None
    timestamp: str
    current_speaker: str
    speakers: list[SpeakerEntry]
    recent_audio_chunks: list[AudioChunkRecord] = Field(default_factory=list)


class ServerMessage(BaseModel):
    """Anything the transcription service sends; fields are matched by shape."""

    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    message: Optional[str] = None
    language: Optional[str] = None
    text: Optional[str] = None
    transcript: Optional[str] = None
    speaker: Optional[str] = None
    speaker_name: Optional[str] = None
    completed: Optional[bool] = None
    final: Optional[bool] = None
    start: Optional[float | str] = None
    end: Optional[float | str] = None
    start_time: Optional[float | str] = None
    end_time: Optional[float | str] = None


class TranscriptEvent(BaseModel):
    speaker: str
    text: str
    completed: bool = False
    start: Optional[float | str] = None
    end: Optional[float | str] = None
