"""Configuration handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import yaml

from meetlive import context


@dataclass
class AutomaticLeaveConfig:
    waiting_room_timeout_ms: int = 300_000


@dataclass
class BotConfig:
    meeting_url: Optional[str] = None
    bot_name: str = "VexaBot"
    platform: str = "google_meet"
    token: Optional[str] = None
    native_meeting_id: Optional[str] = None
    connection_id: Optional[str] = None
    language: Optional[str] = None
    task: str = "transcribe"
    model: str = "medium"
    use_vad: bool = True
    whisper_live_url: Optional[str] = None
    reconnection_interval_ms: Optional[int] = None
    automatic_leave: AutomaticLeaveConfig = field(default_factory=AutomaticLeaveConfig)

    @property
    def websocket_url(self) -> Optional[str]:
        return self.whisper_live_url or context.WHISPER_LIVE_URL


def load_config(path: str) -> BotConfig:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    automatic_leave = AutomaticLeaveConfig(**data.get("automatic_leave", {}))

    return BotConfig(
        meeting_url=data.get("meeting_url"),
        bot_name=data.get("bot_name", "VexaBot"),
        platform=data.get("platform", "google_meet"),
        token=data.get("token"),
        native_meeting_id=data.get("native_meeting_id"),
        connection_id=data.get("connection_id"),
        language=data.get("language"),
        task=data.get("task") or "transcribe",
        model=data.get("model", "medium"),
        use_vad=bool(data.get("use_vad", True)),
        whisper_live_url=data.get("whisper_live_url"),
        reconnection_interval_ms=data.get("reconnection_interval_ms"),
        automatic_leave=automatic_leave,
    )


def save_config(path: str, config: BotConfig) -> None:
    data = {
        "meeting_url": config.meeting_url,
        "bot_name": config.bot_name,
        "platform": config.platform,
        "token": config.token,
        "native_meeting_id": config.native_meeting_id,
        "connection_id": config.connection_id,
        "language": config.language,
        "task": config.task,
        "model": config.model,
        "use_vad": config.use_vad,
        "whisper_live_url": config.whisper_live_url,
        "reconnection_interval_ms": config.reconnection_interval_ms,
        "automatic_leave": {
            "waiting_room_timeout_ms": config.automatic_leave.waiting_room_timeout_ms,
        },
    }
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
