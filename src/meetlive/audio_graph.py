import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from meetlive import scripts
from meetlive.cleanup import CleanupRegistry
from meetlive.errors import NoActiveMedia, NoAudioTracks

logger = logging.getLogger(__name__)

BlockHandler = Callable[[list, float], Awaitable[None]]


@dataclass
class ElementStream:
    source: str
    audio_tracks: int


@dataclass
class MixedStream:
    """The single combined stream carrying the whole meeting mix."""

    sources_connected: int
    elements_found: int


class MediaBackend(ABC):
    """Primitive media operations performed inside the meeting page."""

    @abstractmethod
    async def playing_element_count(self) -> int:
        pass

    @abstractmethod
    async def attach_stream(self, index: int) -> Optional[ElementStream]:
        """Prefer the element's attached stream, otherwise capture one."""
        pass

    @abstractmethod
    async def create_mixer(self) -> None:
        pass

    @abstractmethod
    async def connect_to_mixer(self, index: int) -> None:
        pass

    @abstractmethod
    async def close_mixer(self) -> None:
        pass

    @abstractmethod
    async def start_processor(self, block_size: int, on_block: BlockHandler) -> None:
        pass

    @abstractmethod
    async def stop_processor(self) -> None:
        pass


class PageMediaBackend(MediaBackend):
    def __init__(self, page: Any):
        self.page = page
        self._block_handler: Optional[BlockHandler] = None
        self._binding_exposed = False

    async def playing_element_count(self) -> int:
        return int(await self.page.evaluate(scripts.PLAYING_MEDIA_JS))

    async def attach_stream(self, index: int) -> Optional[ElementStream]:
        result = await self.page.evaluate(scripts.ELEMENT_STREAM_JS, index)
        if not result:
            return None
        return ElementStream(source=result["source"], audio_tracks=int(result["audioTracks"]))

    async def create_mixer(self) -> None:
        await self.page.evaluate(scripts.CREATE_MIXER_JS)

    async def connect_to_mixer(self, index: int) -> None:
        await self.page.evaluate(scripts.CONNECT_TO_MIXER_JS, index)

    async def close_mixer(self) -> None:
        if self.page.is_closed():
            return
        await self.page.evaluate(scripts.CLOSE_MIXER_JS)

    async def start_processor(self, block_size: int, on_block: BlockHandler) -> None:
        self._block_handler = on_block
        if not self._binding_exposed:
            await self.page.expose_function(scripts.AUDIO_BLOCK_BINDING, self._on_block)
            self._binding_exposed = True
        await self.page.evaluate(
            scripts.START_PROCESSOR_JS,
            {"blockSize": block_size, "binding": scripts.AUDIO_BLOCK_BINDING},
        )

    async def stop_processor(self) -> None:
        self._block_handler = None
        if self.page.is_closed():
            return
        await self.page.evaluate(scripts.STOP_PROCESSOR_JS)

    async def _on_block(self, samples: list, sample_rate: float) -> None:
        if self._block_handler is not None:
            await self._block_handler(samples, sample_rate)


class AudioGraphBuilder:
    def __init__(self, media: MediaBackend, cleanup: CleanupRegistry):
        self.media = media
        self.cleanup = cleanup

    async def build(self) -> MixedStream:
        logger.info("Starting recording process.")
        count = await self.media.playing_element_count()
        if count == 0:
            raise NoActiveMedia()
        logger.info("Found %d active media elements.", count)

        await self.media.create_mixer()
        self.cleanup.add(self.media.close_mixer, "close audio mixer")

        connected = 0
        for index in range(count):
            try:
                stream = await self.media.attach_stream(index)
                if stream is None or stream.audio_tracks == 0:
                    logger.info("Element %d/%d has no audio track; skipping.", index + 1, count)
                    continue
                await self.media.connect_to_mixer(index)
            except Exception as e:
                logger.warning("Could not connect element %d: %s", index + 1, e)
                continue
            connected += 1
            logger.info("Connected audio stream from element %d/%d (%s).", index + 1, count, stream.source)

        if connected == 0:
            raise NoAudioTracks()
        if connected < count:
            logger.info("Partial capture: %d of %d elements carry audio.", connected, count)
        logger.info("Successfully combined %d audio streams.", connected)
        return MixedStream(sources_connected=connected, elements_found=count)
