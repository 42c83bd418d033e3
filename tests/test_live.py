import asyncio
import json

from campusclear.config import Config
from campusclear.errors import StreamError
from campusclear.infrastructure.llm.live import (
    LiveConnector, LiveSessionHandle, LiveSessionState, ServerEvent,
)

SETUP_COMPLETE = json.dumps({"setupComplete": {}})


class FakeWebSocket:
    """Replays queued messages; then either waits forever or ends the stream."""

    def __init__(self, incoming, hang_when_empty=True):
        self.incoming = list(incoming)
        self.hang_when_empty = hang_when_empty
        self.sent = []
        self.closed = False

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def recv(self):
        return self.incoming.pop(0)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.incoming:
            return self.incoming.pop(0)
        if self.hang_when_empty:
            await asyncio.Event().wait()
        raise StopAsyncIteration

    async def close(self):
        self.closed = True


def test_server_message_is_translated():
    event = ServerEvent.from_message({"serverContent": {
        "modelTurn": {"parts": [
            {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": "AAA="}},
            {"text": "thinking"},
            {"inlineData": {"mimeType": "image/png", "data": "skip"}},
        ]},
        "inputTranscription": {"text": "hello"},
        "outputTranscription": {"text": "hi there"},
        "interrupted": True,
    }})

    assert event.audio == ["AAA="]
    assert event.input_transcription == "hello"
    assert event.output_transcription == "hi there"
    assert event.interrupted is True
    assert event.turn_complete is False


def test_non_content_messages_are_skipped():
    assert ServerEvent.from_message({"setupComplete": {}}) is None
    assert ServerEvent.from_message({"goAway": {"timeLeft": "10s"}}) is None


def test_setup_payload():
    connector = LiveConnector(Config(api_key="k"))
    setup = connector.build_setup("Be rigorous")["setup"]

    assert setup["model"] == f"models/{Config().live_model}"
    assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]
    voice = setup["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]
    assert voice["voiceName"] == "Puck"
    assert setup["systemInstruction"]["parts"][0]["text"] == "Be rigorous"
    assert setup["inputAudioTranscription"] == {}
    assert setup["outputAudioTranscription"] == {}


def test_vertex_model_resource():
    connector = LiveConnector(Config(google_cloud_project="proj"))
    assert connector.model_resource().startswith("projects/proj/locations/us-central1/publishers/google/models/")


def test_sends_are_dropped_until_open_and_after_close():
    async def scenario():
        ws = FakeWebSocket([SETUP_COMPLETE])
        handle = LiveSessionHandle(ws, on_event=lambda event: None)
        early = handle.send_realtime_input("AAA=", "audio/pcm;rate=16000")

        await handle.open({"setup": {}})
        sent = handle.send_realtime_input("AAA=", "audio/pcm;rate=16000")
        image = handle.send_realtime_input("/9j/", "image/jpeg")
        await asyncio.sleep(0.01)

        handle.close()
        handle.close()
        late = handle.send_realtime_input("AAA=", "audio/pcm;rate=16000")
        await asyncio.sleep(0.01)
        return ws, handle, early, sent, image, late

    ws, handle, early, sent, image, late = asyncio.run(scenario())

    assert (early, sent, image, late) == (False, True, True, False)
    assert handle.dropped_count == 2
    assert handle.sent_count == 2
    assert ws.sent[0] == {"setup": {}}
    assert ws.sent[1] == {"realtimeInput": {"audio": {"data": "AAA=", "mimeType": "audio/pcm;rate=16000"}}}
    assert ws.sent[2] == {"realtimeInput": {"video": {"data": "/9j/", "mimeType": "image/jpeg"}}}
    assert handle.state == LiveSessionState.CLOSED
    assert ws.closed is True


def test_incoming_content_reaches_handler():
    received = []
    message = json.dumps({"serverContent": {"outputTranscription": {"text": "Welcome"}}})

    async def scenario():
        ws = FakeWebSocket([SETUP_COMPLETE, message])
        handle = LiveSessionHandle(ws, on_event=received.append)
        await handle.open({"setup": {}})
        await asyncio.sleep(0.01)
        handle.close()

    asyncio.run(scenario())
    assert [e.output_transcription for e in received] == ["Welcome"]


def test_server_hangup_is_reported_once():
    errors = []

    async def scenario():
        ws = FakeWebSocket([SETUP_COMPLETE], hang_when_empty=False)
        handle = LiveSessionHandle(ws, on_event=lambda event: None, on_error=errors.append)
        await handle.open({"setup": {}})
        await asyncio.sleep(0.01)
        handle.close()
        return handle

    handle = asyncio.run(scenario())
    assert len(errors) == 1
    assert isinstance(errors[0], StreamError)
    assert handle.is_open is False
