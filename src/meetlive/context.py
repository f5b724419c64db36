import os

WHISPER_LIVE_URL = os.getenv("WHISPER_LIVE_URL")
CONTROL_HOST = os.getenv("MEETLIVE_CONTROL_HOST", "127.0.0.1")
CONTROL_PORT = int(os.getenv("MEETLIVE_CONTROL_PORT", 8765))

CONNECT_TIMEOUT_SECONDS = 3.0
BASE_RETRY_DELAY_MS = 1000

AUDIO_BLOCK_SIZE = 4096
RECENT_CHUNKS_IN_UPDATE = 10

SPEAKER_POLL_INTERVAL_SECONDS = 0.05
PARTICIPANT_REFRESH_CYCLES = 50
SPEAKER_SEND_CYCLES = 20
SPEAKER_SUMMARY_CYCLES = 100
PANEL_SETTLE_SECONDS = 1.5

WATCHDOG_INTERVAL_SECONDS = 5.0
ALONE_TIMEOUT_SECONDS = 10.0


def retry_delay_ms(configured_interval_ms: int | None) -> int:
    if configured_interval_ms and configured_interval_ms <= BASE_RETRY_DELAY_MS:
        return configured_interval_ms
    return BASE_RETRY_DELAY_MS
