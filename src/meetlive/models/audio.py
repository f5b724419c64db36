from collections import deque
from dataclasses import dataclass

from meetlive.models.messages import AudioChunkRecord
from meetlive.utils import utc_timestamp


@dataclass(frozen=True)
class AudioChunk:
    chunk_id: int
    captured_at: str
    duration_seconds: float

    def to_record(self) -> AudioChunkRecord:
        return AudioChunkRecord(
            chunk_id=self.chunk_id,
            timestamp=self.captured_at,
            duration=self.duration_seconds,
        )


class AudioChunkLog:
    """Ring buffer of recently sent chunks, kept for speaker/audio correlation."""

    def __init__(self, capacity: int = 100):
        self.chunks: deque[AudioChunk] = deque(maxlen=capacity)
        self.counter = 0

    def record(self, duration_seconds: float) -> AudioChunk:
        chunk = AudioChunk(
            chunk_id=self.counter,
            captured_at=utc_timestamp(),
            duration_seconds=duration_seconds,
        )
        self.counter += 1
        self.chunks.append(chunk)
        return chunk

    def recent(self, count: int = 10) -> list[AudioChunk]:
        if count <= 0:
            return []
        return list(self.chunks)[-count:]

    def __len__(self):
        return len(self.chunks)
