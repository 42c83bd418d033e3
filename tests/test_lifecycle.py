import asyncio
from unittest.mock import Mock

import pytest

from campusclear.config import Config
from campusclear.errors import (
    ConfigurationError, DeviceAccessError, MissingContextError, SessionStateError, StreamError,
)
from campusclear.infrastructure.llm.live import ServerEvent
from campusclear.interview.events import EventType
from campusclear.interview.models import CandidateProfile, Difficulty, SessionStage, Speaker
from campusclear.interview.testing import (
    FakeLiveConnector, create_mock_session_setup, pcm_payload,
)

RESUME = "Built a REST API in Flask with JWT authentication and PostgreSQL."


def start(setup, resume=RESUME):
    async def scenario():
        return await setup["lifecycle"].start(resume, Difficulty.MEDIUM, CandidateProfile("Asha", "CSE"))
    return scenario


def assert_nothing_acquired(setup):
    assert setup["devices"].acquire.call_count == 0
    assert setup["connector"].connect_calls == 0
    assert setup["input_contexts"] == []
    assert setup["output_contexts"] == []


@pytest.mark.parametrize("resume", ["", "   \n"])
def test_blank_resume_acquires_nothing(mock_setup, resume):
    with pytest.raises(MissingContextError):
        asyncio.run(start(mock_setup, resume)())

    assert_nothing_acquired(mock_setup)
    assert mock_setup["coordinator"].warning
    assert mock_setup["coordinator"].stage == SessionStage.IDLE


def test_missing_credential_acquires_nothing():
    setup = create_mock_session_setup(config=Config())
    with pytest.raises(ConfigurationError):
        asyncio.run(start(setup)())
    assert_nothing_acquired(setup)


def test_denied_devices_release_audio_contexts():
    setup = create_mock_session_setup(deny_devices=True)
    with pytest.raises(DeviceAccessError):
        asyncio.run(start(setup)())

    assert [c.close_calls for c in setup["input_contexts"]] == [1]
    assert [c.close_calls for c in setup["output_contexts"]] == [1]
    assert setup["connector"].connect_calls == 0
    assert setup["lifecycle"].session is None
    assert setup["coordinator"].stage == SessionStage.IDLE


def test_failed_connect_releases_devices_and_contexts():
    setup = create_mock_session_setup(fail_connect=True)
    with pytest.raises(StreamError):
        asyncio.run(start(setup)())

    stream = setup["devices"].streams[0]
    assert [t.stop_calls for t in stream.get_tracks()] == [1, 1]
    assert setup["input_contexts"][0].close_calls == 1
    assert setup["output_contexts"][0].close_calls == 1
    assert setup["lifecycle"].is_live is False


def test_unavailable_speaker_is_a_device_error(mock_setup):
    mock_setup["lifecycle"].output_context_factory = Mock(side_effect=OSError("no output device"))
    with pytest.raises(DeviceAccessError):
        asyncio.run(start(mock_setup)())

    assert mock_setup["input_contexts"][0].close_calls == 1
    assert mock_setup["devices"].acquire.call_count == 0


def test_start_opens_session_with_interviewer_instruction(mock_setup):
    async def scenario():
        session = await start(mock_setup)()
        running = session.capture.running
        mock_setup["lifecycle"].force_teardown()
        return running

    assert asyncio.run(scenario()) is True
    live = mock_setup["connector"].last_session
    assert RESUME in live.system_instruction
    assert "Difficulty Level: Medium" in live.system_instruction
    assert "Candidate Name: Asha" in live.system_instruction
    assert "Candidate Branch: CSE" in live.system_instruction


def test_second_start_is_rejected_while_live(mock_setup):
    async def scenario():
        await start(mock_setup)()
        try:
            with pytest.raises(SessionStateError):
                await start(mock_setup)()
        finally:
            mock_setup["lifecycle"].force_teardown()

    asyncio.run(scenario())
    assert mock_setup["connector"].connect_calls == 1
    assert mock_setup["devices"].acquire.call_count == 1


def test_force_teardown_before_any_start_is_a_no_op(mock_setup):
    mock_setup["lifecycle"].force_teardown()
    mock_setup["lifecycle"].force_teardown()
    assert_nothing_acquired(mock_setup)


def test_force_teardown_is_idempotent(mock_setup):
    async def scenario():
        session = await start(mock_setup)()
        mock_setup["lifecycle"].force_teardown()
        mock_setup["lifecycle"].force_teardown()
        return session

    session = asyncio.run(scenario())

    stream = mock_setup["devices"].streams[0]
    assert [t.stop_calls for t in stream.get_tracks()] == [1, 1]
    assert mock_setup["input_contexts"][0].close_calls == 1
    assert mock_setup["output_contexts"][0].close_calls == 1
    assert mock_setup["connector"].last_session.close_calls == 1
    assert session.torn_down is True
    assert mock_setup["lifecycle"].session is None
    assert mock_setup["coordinator"].stage == SessionStage.IDLE


def test_failing_release_step_does_not_block_the_others(mock_setup):
    async def scenario():
        session = await start(mock_setup)()
        session.handle.close = Mock(side_effect=RuntimeError("socket already gone"))
        mock_setup["input_contexts"][0].close = Mock(side_effect=RuntimeError("already closed"))
        mock_setup["lifecycle"].force_teardown()

    asyncio.run(scenario())

    stream = mock_setup["devices"].streams[0]
    assert [t.stop_calls for t in stream.get_tracks()] == [1, 1]
    assert mock_setup["output_contexts"][0].close_calls == 1
    assert mock_setup["lifecycle"].session is None


def test_end_releases_in_order_and_returns_snapshot(mock_setup):
    order = []

    def record(name, fn):
        def wrapper(*args, **kwargs):
            order.append(name)
            return fn(*args, **kwargs)
        return wrapper

    async def scenario():
        session = await start(mock_setup)()
        session.capture.stop = record("capture", session.capture.stop)
        session.handle.close = record("session", session.handle.close)
        session.device_stream.stop = record("devices", session.device_stream.stop)
        session.input_context.close = record("input", session.input_context.close)
        session.output_context.close = record("output", session.output_context.close)
        session.playback.stop_all = record("playback", session.playback.stop_all)
        mock_setup["connector"].last_session.deliver(
            ServerEvent(output_transcription="Tell me about yourself.")
        )
        return await mock_setup["lifecycle"].end()

    snapshot = asyncio.run(scenario())

    first_seen = [name for i, name in enumerate(order) if name not in order[:i]]
    assert first_seen == ["capture", "session", "devices", "input", "output", "playback"]
    assert len(snapshot) == 1
    assert snapshot.entries[0].speaker == Speaker.ASSISTANT
    assert snapshot.snapshot_jpeg_b64
    assert mock_setup["lifecycle"].session is None


def test_end_without_session_is_rejected(mock_setup):
    with pytest.raises(SessionStateError):
        asyncio.run(mock_setup["lifecycle"].end())


def test_server_events_drive_playback_and_transcript(mock_setup):
    interrupted = []
    mock_setup["event_bus"].subscribe(EventType.PLAYBACK_INTERRUPTED, interrupted.append)

    async def scenario():
        session = await start(mock_setup)()
        live = mock_setup["connector"].last_session
        live.deliver(ServerEvent(audio=[pcm_payload(2400)], output_transcription="Hello"))
        live.deliver(ServerEvent(input_transcription="Hi there"))
        live.deliver(ServerEvent(interrupted=True))
        cursor = session.playback.next_start_time
        pending = set(session.playback.pending)
        mock_setup["lifecycle"].force_teardown()
        return cursor, pending

    cursor, pending = asyncio.run(scenario())

    sources = mock_setup["output_contexts"][0].sources
    assert len(sources) == 1
    assert sources[0].stop_calls == 1
    assert pending == set()
    assert cursor == 0.0
    lines = [e.as_line() for e in mock_setup["coordinator"].entries]
    assert lines == ["AI: Hello", "User: Hi there"]
    assert interrupted[0].data["cancelled_sources"] == 1


def test_stream_error_tears_session_down(mock_setup):
    errors = []
    mock_setup["lifecycle"].on_stream_error = errors.append

    async def scenario():
        await start(mock_setup)()
        mock_setup["connector"].last_session.fail()

    asyncio.run(scenario())

    assert len(errors) == 1
    assert isinstance(errors[0], StreamError)
    assert mock_setup["lifecycle"].is_live is False
    assert mock_setup["coordinator"].stage == SessionStage.IDLE
    stream = mock_setup["devices"].streams[0]
    assert [t.stop_calls for t in stream.get_tracks()] == [1, 1]


def test_teardown_during_start_closes_late_session():
    setup = create_mock_session_setup()
    lifecycle = setup["lifecycle"]

    class TearDownWhileConnecting(FakeLiveConnector):
        async def connect(self, system_instruction, on_event, on_error=None):
            session = await super().connect(system_instruction, on_event, on_error)
            lifecycle.force_teardown()
            return session

    connector = TearDownWhileConnecting()
    lifecycle._connector = connector

    with pytest.raises(StreamError):
        asyncio.run(start(setup)())

    assert connector.last_session.close_calls == 1
    stream = setup["devices"].streams[0]
    assert [t.stop_calls for t in stream.get_tracks()] == [1, 1]
    assert setup["output_contexts"][0].close_calls == 1
    assert lifecycle.session is None
