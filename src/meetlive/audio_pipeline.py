import logging

from meetlive.models.audio import AudioChunkLog
from meetlive.session_socket import SessionSocket
from meetlive.utils import TARGET_SAMPLE_RATE, resample_block

logger = logging.getLogger(__name__)


class AudioPipeline:
    """Per-block path from the page's audio callback to the socket."""

    def __init__(self, socket: SessionSocket, chunk_log: AudioChunkLog):
        self.socket = socket
        self.chunk_log = chunk_log
        self.blocks_dropped = 0

    async def process_block(self, samples, sample_rate: float) -> bool:
        if not self.socket.is_ready:
            self.blocks_dropped += 1
            return False

        resampled = resample_block(samples, sample_rate, TARGET_SAMPLE_RATE)
        if resampled.size == 0:
            return False

        chunk = self.chunk_log.record(resampled.size / TARGET_SAMPLE_RATE)
        return await self.socket.send_audio(resampled, chunk)
