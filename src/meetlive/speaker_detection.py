import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from meetlive import context, selectors
from meetlive.config import BotConfig
from meetlive.errors import DetectionError
from meetlive.models.audio import AudioChunkLog
from meetlive.models.enums import DetectionMethod
from meetlive.models.messages import SpeakerActivityUpdateMessage
from meetlive.models.participant import Participant, SpeakingState
from meetlive.participants import ParticipantRegistry
from meetlive.session_socket import SessionSocket
from meetlive.utils import utc_timestamp

logger = logging.getLogger(__name__)

NO_ONE = "No one"


@dataclass(frozen=True)
class Verdict:
    speaking: bool
    method: DetectionMethod


class SpeakingDetector(ABC):
    @abstractmethod
    async def detect(self, participant: Participant) -> Optional[Verdict]:
        """Return a verdict, or None when this detector does not apply."""
        pass


async def indicator_method(element) -> DetectionMethod:
    """Wire value for a row: the lit self mic indicator, else the mute control."""
    if element is not None and await element.query_selector(selectors.SELF_SPEAKING_INDICATOR) is not None:
        return DetectionMethod.SELF_PANEL_INDICATOR
    return DetectionMethod.MUTE_BUTTON_STATE


class BotDetector(SpeakingDetector):
    async def detect(self, participant: Participant) -> Optional[Verdict]:
        if participant.is_bot:
            return Verdict(False, await indicator_method(participant.element))
        return None


class SelfIndicatorDetector(SpeakingDetector):
    async def detect(self, participant: Participant) -> Optional[Verdict]:
        if not participant.is_self:
            return None
        method = await indicator_method(participant.element)
        return Verdict(method == DetectionMethod.SELF_PANEL_INDICATOR, method)


def mute_label_means_speaking(label: str, name: str, disabled: bool) -> bool:
    # Enabled "Mute <name>'s microphone" only shows while that person is talking;
    # otherwise the control is disabled ("You can't unmute someone else").
    return (
        not disabled
        and label.startswith("Mute ")
        and name in label
        and label.endswith("'s microphone")
        and "can't" not in label
    )


class MuteControlDetector(SpeakingDetector):
    async def detect(self, participant: Participant) -> Optional[Verdict]:
        name = participant.display_name.removesuffix(selectors.SELF_MARKER_TEXT).strip()
        for button in await participant.element.query_selector_all(selectors.MIC_BUTTONS):
            label = await button.get_attribute("aria-label") or ""
            disabled = await button.get_attribute("disabled") is not None
            if mute_label_means_speaking(label, name, disabled):
                return Verdict(True, DetectionMethod.MUTE_BUTTON_STATE)
        return Verdict(False, DetectionMethod.MUTE_BUTTON_STATE)


def default_detectors() -> list[SpeakingDetector]:
    return [BotDetector(), SelfIndicatorDetector(), MuteControlDetector()]


class SpeakerAttributionEngine:
    """Polls participant rows and reports who is speaking.

    Detection runs every cycle; the registry is rescanned every
    ``refresh_every`` cycles and an activity update is sent every
    ``send_every`` cycles. Nothing happens while the socket is not ready.
    """

    def __init__(
        self,
        registry: ParticipantRegistry,
        socket: SessionSocket,
        chunk_log: AudioChunkLog,
        config: BotConfig,
        detectors: Optional[Sequence[SpeakingDetector]] = None,
        poll_interval: float = context.SPEAKER_POLL_INTERVAL_SECONDS,
        refresh_every: int = context.PARTICIPANT_REFRESH_CYCLES,
        send_every: int = context.SPEAKER_SEND_CYCLES,
        summary_every: int = context.SPEAKER_SUMMARY_CYCLES,
    ):
        self.registry = registry
        self.socket = socket
        self.chunk_log = chunk_log
        self.config = config
        self.detectors = list(detectors) if detectors is not None else default_detectors()
        self.poll_interval = poll_interval
        self.refresh_every = refresh_every
        self.send_every = send_every
        self.summary_every = summary_every
        self.states: dict[str, SpeakingState] = {}
        self.cycle = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current_speaker(self) -> str:
        for state in self.states.values():
            if state.is_speaking:
                return state.participant.display_name
        return NO_ONE

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting participant panel speaker monitoring...")
        self.cycle = 0
        self.states = {}
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Stopped speaker monitoring")

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Speaker monitoring cycle failed")
            await asyncio.sleep(self.poll_interval)

    async def detect(self, participant: Participant) -> Verdict:
        for detector in self.detectors:
            verdict = await detector.detect(participant)
            if verdict is not None:
                return verdict
        return Verdict(False, DetectionMethod.MUTE_BUTTON_STATE)

    async def refresh(self) -> None:
        generation = self.registry.generation
        participants = await self.registry.refresh()
        if self.registry.generation == generation:
            return
        # Rows are fresh handles; speaking state and unsent transitions follow the id.
        states = {}
        for participant in participants:
            state = self.states.get(participant.participant_id)
            if state is None:
                state = SpeakingState(participant=participant)
            else:
                state.participant = participant
            states[participant.participant_id] = state
        self.states = states

    async def poll_once(self) -> None:
        if not self.socket.is_ready:
            return

        self.cycle += 1
        if (self.cycle - 1) % self.refresh_every == 0:
            await self.refresh()

        timestamp = utc_timestamp()
        for state in list(self.states.values()):
            participant = state.participant
            try:
                verdict = await self.detect(participant)
            except Exception as e:
                logger.warning("%s", DetectionError(participant.participant_id, e))
                continue

            change = state.update(verdict.speaking, timestamp, verdict.method)
            if change is not None:
                label = f"{participant.display_name} (Bot)" if participant.is_bot else participant.display_name
                logger.info(
                    "Speaker state change: %s %s speaking. Method: [%s]",
                    label, change.state.upper(), verdict.method if verdict.speaking else "none",
                )

        if self.cycle % self.summary_every == 0:
            active = [s.participant.display_name for s in self.states.values() if s.is_speaking]
            logger.info("Speaker summary: %s", ", ".join(active) + " speaking" if active else "No one speaking")

        if self.cycle % self.send_every == 0:
            await self.emit_activity()

    async def emit_activity(self) -> bool:
        if not self.states:
            logger.debug("Not sending speaker data: no participants known")
            return False
        if not self.socket.is_ready:
            return False

        states = list(self.states.values())
        message = SpeakerActivityUpdateMessage(
            uid=self.socket.state.session_id,
            meeting_id=self.config.native_meeting_id,
            call_name=self.registry.call_name,
            timestamp=utc_timestamp(),
            current_speaker=self.current_speaker,
            speakers=[s.to_entry() for s in states],
            recent_audio_chunks=[c.to_record() for c in self.chunk_log.recent(context.RECENT_CHUNKS_IN_UPDATE)],
        )
        sent = await self.socket.send_message(message)
        if sent:
            for state in states:
                state.flush()
            logger.debug("Speaker data sent. Current=%r UID=%s", message.current_speaker, message.uid)
        return sent
