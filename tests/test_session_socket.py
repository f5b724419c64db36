import asyncio
import json

import numpy as np

from conftest import FakeConnector, FakeScheduler, settle
from meetlive.models.audio import AudioChunkLog
from meetlive.models.enums import ConnectionState
from meetlive.models.session import SessionState
from meetlive.session_socket import SessionSocket

READY = {"uid": "server", "message": "SERVER_READY", "backend": "faster_whisper"}


class GatedConnector(FakeConnector):
    """Holds every connect attempt until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def __call__(self, url):
        await self.gate.wait()
        return await super().__call__(url)


class Harness:
    def __init__(self, config, connector=None, **kwargs):
        self.state = SessionState(language=config.language, task=config.task)
        self.connector = connector or FakeConnector()
        self.scheduler = FakeScheduler()
        self.opened = []
        self.closed = 0
        self.transcripts = []
        self.socket = SessionSocket(
            self.state,
            config,
            connector=self.connector,
            scheduler=self.scheduler,
            on_open=self.opened.append,
            on_close=self._closed,
            on_transcript=self.transcripts.append,
            **kwargs,
        )

    def _closed(self):
        self.closed += 1

    async def open_ready(self):
        self.socket.connect()
        await settle()
        self.connector.last.feed(READY)
        await settle()


def test_open_sends_initial_config(bot_config):
    async def scenario():
        h = Harness(bot_config)
        h.socket.connect()
        await settle()

        assert h.state.connection_state == ConnectionState.OPEN
        assert h.connector.urls == ["ws://whisperlive:9090"]
        initial = h.connector.last.sent_json[0]
        assert initial == {
            "uid": h.opened[0].session_id,
            "language": "en",
            "task": "transcribe",
            "model": "medium",
            "use_vad": True,
            "platform": "google_meet",
            "token": "token-123",
            "meeting_id": "abc-defg-hij",
            "meeting_url": "https://meet.google.com/abc-defg-hij",
        }
        assert h.state.retry_count == 0
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_first_server_message_makes_socket_ready(bot_config):
    async def scenario():
        h = Harness(bot_config)
        await h.open_ready()

        assert h.state.connection_state == ConnectionState.SERVER_READY
        assert h.socket.is_ready
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_server_error_before_ready_keeps_waiting(bot_config):
    async def scenario():
        h = Harness(bot_config)
        h.socket.connect()
        await settle()
        h.connector.last.feed({"status": "ERROR", "message": "invalid token"})
        h.connector.last.feed({"status": "WAIT", "message": "all slots busy"})
        await settle()

        assert h.state.connection_state == ConnectionState.OPEN
        assert not h.socket.is_ready
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_audio_is_dropped_until_ready(bot_config):
    async def scenario():
        h = Harness(bot_config)
        log = AudioChunkLog()
        h.socket.connect()
        await settle()

        sent = await h.socket.send_audio(np.zeros(16, dtype=np.float32), log.record(0.001))

        assert sent is False
        assert len(h.connector.last.sent) == 1
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_metadata_immediately_follows_its_audio(bot_config):
    async def scenario():
        h = Harness(bot_config)
        log = AudioChunkLog()
        await h.open_ready()

        results = await asyncio.gather(
            h.socket.send_audio(np.ones(1365, dtype=np.float32), log.record(1365 / 16000)),
            h.socket.send_audio(np.zeros(1365, dtype=np.float32), log.record(1365 / 16000)),
        )

        assert results == [True, True]
        frames = h.connector.last.sent[1:]
        assert [type(f) for f in frames] == [bytes, str, bytes, str]
        first, second = json.loads(frames[1]), json.loads(frames[3])
        assert first["type"] == "audio_chunk_metadata"
        assert [first["chunk_id"], second["chunk_id"]] == [0, 1]
        assert first["uid"] == h.state.session_id
        assert first["duration"] == 1365 / 16000
        assert len(frames[0]) == 1365 * 4
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_each_close_schedules_one_retry_and_mints_new_session(bot_config):
    async def scenario():
        h = Harness(bot_config)
        h.socket.connect()
        await settle()

        for attempt in range(5):
            h.connector.last.drop()
            await settle()
            assert h.state.connection_state == ConnectionState.CLOSED
            assert h.state.retry_count == 1
            assert len(h.scheduler.pending) == 1
            h.scheduler.fire_next()
            await settle()
            assert h.state.connection_state == ConnectionState.OPEN

        assert [t.delay for t in h.scheduler.timers] == [1.0] * 5
        assert len(h.connector.urls) == 6
        assert len({s.session_id for s in h.opened}) == 6
        assert h.closed == 5
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_retry_delay_honours_shorter_configured_interval(bot_config):
    bot_config.reconnection_interval_ms = 250
    assert Harness(bot_config).socket.retry_delay_seconds == 0.25

    bot_config.reconnection_interval_ms = 5000
    assert Harness(bot_config).socket.retry_delay_seconds == 1.0

    bot_config.reconnection_interval_ms = None
    assert Harness(bot_config).socket.retry_delay_seconds == 1.0


def test_failed_connect_keeps_retrying(bot_config):
    async def scenario():
        h = Harness(bot_config, connector=FakeConnector(fail=True))
        h.socket.connect()
        await settle()

        assert h.state.connection_state == ConnectionState.CLOSED
        assert h.state.retry_count == 1

        h.scheduler.fire_next()
        await settle()

        assert h.state.retry_count == 2
        assert len(h.scheduler.timers) == 2
        assert len(h.connector.urls) == 2
        assert h.opened == []

    asyncio.run(scenario())


def test_reconfigure_while_ready_reconnects_with_new_settings(bot_config):
    async def scenario():
        h = Harness(bot_config)
        await h.open_ready()

        await h.socket.reconfigure("de", "translate")
        await settle()

        assert h.state.connection_state == ConnectionState.CLOSED
        assert len(h.scheduler.pending) == 1

        h.scheduler.fire_next()
        await settle()

        initial = h.connector.last.sent_json[0]
        assert (initial["language"], initial["task"]) == ("de", "translate")
        assert len(h.connector.sockets) == 2
        assert h.opened[1].session_id != h.opened[0].session_id
        assert h.opened[1].language == "de"
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_reconfigure_while_closed_connects_immediately(bot_config):
    async def scenario():
        h = Harness(bot_config, connector=FakeConnector(fail=True))
        h.socket.connect()
        await settle()
        assert len(h.scheduler.pending) == 1

        h.connector.fail = False
        await h.socket.reconfigure("fr", None)
        await settle()

        assert h.scheduler.timers[0].cancelled
        assert h.scheduler.pending == []
        assert h.state.connection_state == ConnectionState.OPEN
        initial = h.connector.last.sent_json[0]
        assert (initial["language"], initial["task"]) == ("fr", "transcribe")
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_reconfigure_while_connecting_is_deferred(bot_config):
    async def scenario():
        connector = GatedConnector()
        h = Harness(bot_config, connector=connector)
        h.socket.connect()
        await settle()

        await h.socket.reconfigure("es", "translate")
        await settle()

        assert h.state.connection_state == ConnectionState.CONNECTING
        assert h.scheduler.timers == []

        connector.gate.set()
        await settle()

        assert len(connector.sockets) == 1
        initial = connector.last.sent_json[0]
        assert (initial["language"], initial["task"]) == ("es", "translate")
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_server_disconnect_closes_and_retries(bot_config):
    async def scenario():
        h = Harness(bot_config)
        await h.open_ready()

        h.connector.last.feed({"uid": "server", "message": "DISCONNECT"})
        await settle()

        assert h.connector.sockets[0].close_calls == 1
        assert h.state.connection_state == ConnectionState.CLOSED
        assert h.state.websocket is None
        assert len(h.scheduler.pending) == 1
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_transcripts_reach_listener(bot_config):
    async def scenario():
        h = Harness(bot_config)
        await h.open_ready()

        h.connector.last.feed({"text": "let's get started", "speaker": "Alice", "completed": True})
        h.connector.last.feed("definitely not json")
        await settle()

        assert [(t.speaker, t.text) for t in h.transcripts] == [("Alice", "let's get started")]
        assert h.socket.is_ready
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_shutdown_stops_reconnecting(bot_config):
    async def scenario():
        h = Harness(bot_config)
        await h.open_ready()

        await h.socket.shutdown()
        await settle()

        assert h.state.connection_state == ConnectionState.CLOSED
        assert h.scheduler.timers == []
        assert h.closed == 1

        h.socket.connect()
        await settle()
        assert len(h.connector.urls) == 1

    asyncio.run(scenario())


def test_shutdown_cancels_pending_retry(bot_config):
    async def scenario():
        h = Harness(bot_config, connector=FakeConnector(fail=True))
        h.socket.connect()
        await settle()

        await h.socket.shutdown()

        assert h.scheduler.timers[0].cancelled
        assert h.state.pending_retry is None

    asyncio.run(scenario())


def test_shutdown_while_connecting_never_opens_session(bot_config):
    async def scenario():
        connector = GatedConnector()
        h = Harness(bot_config, connector=connector)
        h.socket.connect()
        await settle()

        shutting_down = asyncio.create_task(h.socket.shutdown())
        await settle()
        connector.gate.set()
        await shutting_down

        assert h.opened == []
        assert connector.last.close_calls == 1
        assert h.state.connection_state == ConnectionState.CLOSED
        assert h.scheduler.timers == []

    asyncio.run(scenario())


def test_connect_is_ignored_unless_closed(bot_config):
    async def scenario():
        h = Harness(bot_config)
        await h.open_ready()

        h.socket.connect()
        await settle()

        assert len(h.connector.urls) == 1
        await h.socket.shutdown()

    asyncio.run(scenario())


def test_connect_attempt_that_hangs_is_timed_out(bot_config):
    class HangingConnector(FakeConnector):
        async def __call__(self, url):
            self.urls.append(url)
            await asyncio.sleep(3600)

    async def scenario():
        h = Harness(bot_config, connector=HangingConnector(), connect_timeout=0.05)
        h.socket.connect()
        await asyncio.sleep(0.2)

        assert h.state.connection_state == ConnectionState.CLOSED
        assert h.state.retry_count == 1
        assert len(h.scheduler.pending) == 1
        assert h.opened == []

    asyncio.run(scenario())
