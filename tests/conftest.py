"""
Fakes for the page, media backend, WebSocket and timers.
"""

import asyncio
import json
from typing import Optional

import pytest

from meetlive import selectors
from meetlive.audio_graph import ElementStream, MediaBackend
from meetlive.config import BotConfig

_CLOSED = object()


async def settle(rounds: int = 50):
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeWebSocket:
    def __init__(self):
        self.sent = []
        self.closed = False
        self.close_calls = 0
        self._incoming = asyncio.Queue()

    @property
    def sent_json(self):
        return [json.loads(item) for item in self.sent if isinstance(item, str)]

    def feed(self, message):
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self):
        """The server side goes away."""
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(_CLOSED)

    async def send(self, data):
        if self.closed:
            raise OSError("socket is closed")
        self.sent.append(data)

    async def close(self):
        self.close_calls += 1
        self.drop()

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.urls = []
        self.sockets: list[FakeWebSocket] = []

    async def __call__(self, url):
        self.urls.append(url)
        if self.fail:
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback()


class FakeScheduler:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self):
        self.pending[0].fire()


class FakeElement:
    def __init__(self, attrs=None, text="", children=None, on_click=None):
        self.attrs = dict(attrs or {})
        self.text = text
        self.children = children or {}
        self.clicks = 0
        self.on_click = on_click

    async def get_attribute(self, name):
        return self.attrs.get(name)

    async def inner_text(self):
        return self.text

    async def text_content(self):
        return self.text

    async def query_selector(self, selector):
        items = self.children.get(selector) or []
        return items[0] if items else None

    async def query_selector_all(self, selector):
        return list(self.children.get(selector, []))

    async def click(self):
        self.clicks += 1
        if self.on_click is not None:
            self.on_click(self)


class FakePage(FakeElement):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.closed = False
        self.bindings = {}
        self.evaluated = []
        self.listeners = {}

    def is_closed(self):
        return self.closed

    async def expose_function(self, name, callback):
        self.bindings[name] = callback

    async def evaluate(self, script, arg=None):
        self.evaluated.append((script, arg))

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners[event].remove(handler)

    async def close(self):
        self.closed = True
        for handler in list(self.listeners.get("close", [])):
            handler(self)


def mic_button(name: str, speaking: bool) -> FakeElement:
    if speaking:
        return FakeElement(attrs={"aria-label": f"Mute {name}'s microphone"})
    return FakeElement(attrs={"aria-label": "You can't unmute someone else", "disabled": ""})


def participant_row(participant_id: Optional[str], name: str, speaking: bool = False, is_self: bool = False) -> FakeElement:
    children = {".zWGUib": [FakeElement(text=name)]}
    if is_self:
        children[selectors.SELF_MARKER] = [FakeElement(text="(You)")]
        if speaking:
            children[selectors.SELF_SPEAKING_INDICATOR] = [FakeElement(attrs={"class": "jb1oQc yDdjGe"})]
    else:
        children[selectors.MIC_BUTTONS] = [mic_button(name, speaking)]
    attrs = {"data-participant-id": participant_id} if participant_id else {}
    return FakeElement(attrs=attrs, children=children)


def meeting_page(rows, panel_open: bool = True, call_name: str = "Weekly sync") -> FakePage:
    toggle = FakeElement(
        attrs={"aria-pressed": "true" if panel_open else "false", "aria-label": "People"},
        on_click=lambda el: el.attrs.update({"aria-pressed": "true"}),
    )
    people_list = FakeElement(children={selectors.PARTICIPANT_LIST_CHILDREN: list(rows)})
    return FakePage(children={
        selectors.PEOPLE_BUTTON: [toggle],
        selectors.PEOPLE_BUTTON_FALLBACKS[0]: [toggle],
        selectors.PARTICIPANT_ITEM: list(rows),
        selectors.CALL_NAME: [FakeElement(text=call_name)],
        selectors.PARTICIPANT_LIST: [people_list],
    })


class FakeMediaBackend(MediaBackend):
    def __init__(self, streams):
        self.streams = list(streams)
        self.connected = []
        self.mixer_created = False
        self.mixer_closed = 0
        self.on_block = None
        self.block_size = None
        self.processor_stopped = 0

    async def playing_element_count(self):
        return len(self.streams)

    async def attach_stream(self, index):
        stream = self.streams[index]
        if isinstance(stream, Exception):
            raise stream
        return stream

    async def create_mixer(self):
        self.mixer_created = True

    async def connect_to_mixer(self, index):
        self.connected.append(index)

    async def close_mixer(self):
        self.mixer_closed += 1

    async def start_processor(self, block_size, on_block):
        self.block_size = block_size
        self.on_block = on_block

    async def stop_processor(self):
        self.processor_stopped += 1
        self.on_block = None


def audio_stream(tracks: int = 1) -> ElementStream:
    return ElementStream(source="srcObject", audio_tracks=tracks)


@pytest.fixture
def bot_config():
    return BotConfig(
        meeting_url="https://meet.google.com/abc-defg-hij",
        bot_name="VexaBot",
        token="token-123",
        native_meeting_id="abc-defg-hij",
        language="en",
        task="transcribe",
        whisper_live_url="ws://whisperlive:9090",
        reconnection_interval_ms=1000,
    )
