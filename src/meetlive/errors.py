class MeetLiveError(Exception):
    pass


class CaptureError(MeetLiveError):
    """Audio capture could not start. Surfaced to the host, never retried."""


class NoActiveMedia(CaptureError):
    def __init__(self, detail: str = "No active media elements found. Ensure the meeting media is playing."):
        super().__init__(detail)


class NoAudioTracks(CaptureError):
    def __init__(self, detail: str = "Could not connect any audio streams. Check media permissions."):
        super().__init__(detail)


class SocketSetupError(MeetLiveError):
    pass


class SocketClosed(MeetLiveError):
    pass


class MessageParseError(MeetLiveError):
    pass


class DetectionError(MeetLiveError):
    def __init__(self, participant_id: str, cause: Exception):
        super().__init__(f"Speaker detection failed for {participant_id}: {cause}")
        self.participant_id = participant_id
        self.cause = cause
