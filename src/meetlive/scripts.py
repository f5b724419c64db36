"""JavaScript evaluated inside the meeting page.

Each snippet is a single arrow function for ``page.evaluate``. Page-side
state lives under ``window.__meetlive`` so that the Python side can address
elements and nodes by index between calls.
"""

LOG_BINDING = "logBot"
AUDIO_BLOCK_BINDING = "meetliveAudioBlock"
PAGE_HIDDEN_BINDING = "meetlivePageHidden"

PLAYING_MEDIA_JS = """
() => {
  const state = (window.__meetlive = window.__meetlive || {});
  state.elements = Array.from(document.querySelectorAll("audio, video")).filter((el) => !el.paused);
  state.streams = [];
  return state.elements.length;
}
"""

ELEMENT_STREAM_JS = """
(index) => {
  const state = window.__meetlive || {};
  const el = (state.elements || [])[index];
  if (!el) return null;
  let stream = null;
  let source = null;
  if (el.srcObject instanceof MediaStream) {
    stream = el.srcObject;
    source = "srcObject";
  } else if (typeof el.captureStream === "function") {
    stream = el.captureStream();
    source = "captureStream";
  } else if (typeof el.mozCaptureStream === "function") {
    stream = el.mozCaptureStream();
    source = "mozCaptureStream";
  }
  if (!(stream instanceof MediaStream)) return null;
  state.streams[index] = stream;
  return { source: source, audioTracks: stream.getAudioTracks().length };
}
"""

CREATE_MIXER_JS = """
() => {
  const state = (window.__meetlive = window.__meetlive || {});
  state.mixerContext = new AudioContext();
  state.mixerDestination = state.mixerContext.createMediaStreamDestination();
  return state.mixerContext.sampleRate;
}
"""

CONNECT_TO_MIXER_JS = """
(index) => {
  const state = window.__meetlive;
  const node = state.mixerContext.createMediaStreamSource(state.streams[index]);
  node.connect(state.mixerDestination);
  return true;
}
"""

CLOSE_MIXER_JS = """
() => {
  const state = window.__meetlive;
  if (state && state.mixerContext && state.mixerContext.state !== "closed") {
    state.mixerContext.close();
  }
}
"""

START_PROCESSOR_JS = """
({ blockSize, binding }) => {
  const state = window.__meetlive;
  const context = new AudioContext();
  const source = context.createMediaStreamSource(state.mixerDestination.stream);
  const processor = context.createScriptProcessor(blockSize, 1, 1);
  processor.onaudioprocess = (event) => {
    const data = event.inputBuffer.getChannelData(0);
    window[binding](Array.from(data), context.sampleRate);
  };
  source.connect(processor);
  processor.connect(context.destination);
  state.processorContext = context;
  state.processor = processor;
  return context.sampleRate;
}
"""

STOP_PROCESSOR_JS = """
() => {
  const state = window.__meetlive;
  if (!state) return;
  if (state.processor) {
    state.processor.onaudioprocess = null;
    state.processor.disconnect();
    state.processor = null;
  }
  if (state.processorContext && state.processorContext.state !== "closed") {
    state.processorContext.close();
  }
}
"""

ADD_VISIBILITY_LISTENER_JS = """
(binding) => {
  const state = (window.__meetlive = window.__meetlive || {});
  if (state.onVisibilityChange) return;
  state.onVisibilityChange = () => {
    if (document.visibilityState === "hidden") window[binding]();
  };
  document.addEventListener("visibilitychange", state.onVisibilityChange);
}
"""

REMOVE_VISIBILITY_LISTENER_JS = """
() => {
  const state = window.__meetlive;
  if (!state || !state.onVisibilityChange) return;
  document.removeEventListener("visibilitychange", state.onVisibilityChange);
  state.onVisibilityChange = null;
}
"""
