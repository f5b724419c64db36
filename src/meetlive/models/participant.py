from dataclasses import dataclass, field
from typing import Any, Optional

from meetlive.models.enums import DetectionMethod, SpeakingTransition
from meetlive.models.messages import SpeakerEntry, StateChange


UNKNOWN_PARTICIPANT = "Unknown"


@dataclass
class Participant:
    participant_id: str
    display_name: str
    is_self: bool = False
    is_bot: bool = False
    element: Any = field(default=None, repr=False, compare=False)


@dataclass
class SpeakingState:
    participant: Participant
    is_speaking: bool = False
    detection_method: DetectionMethod = DetectionMethod.MUTE_BUTTON_STATE
    pending: list[StateChange] = field(default_factory=list)

    def update(self, speaking: bool, timestamp: str, method: Optional[DetectionMethod] = None) -> Optional[StateChange]:
        if method is not None:
            self.detection_method = method
        if speaking == self.is_speaking:
            return None
        change = StateChange(
            timestamp=timestamp,
            state=SpeakingTransition.STARTED if speaking else SpeakingTransition.STOPPED,
        )
        self.pending.append(change)
        self.is_speaking = speaking
        return change

    def flush(self) -> list[StateChange]:
        changes, self.pending = self.pending, []
        return changes

    def to_entry(self) -> SpeakerEntry:
        return SpeakerEntry(
            speaker_id=self.participant.participant_id,
            speaker_name=self.participant.display_name,
            is_speaking=self.is_speaking,
            state_changes=list(self.pending),
            detection_method=self.detection_method,
        )
