import logging

from campusclear.interview.events import (
    EventLogger, EventType, FeedbackReadyEvent, SessionEventBus, SessionMetrics,
    SessionStartedEvent, TranscriptAppendedEvent,
)


def started():
    return SessionStartedEvent("s1", 0.0, "Medium", "Asha")


def test_subscribers_receive_matching_events():
    bus = SessionEventBus()
    specific, everything = [], []
    bus.subscribe(EventType.SESSION_STARTED, specific.append)
    bus.subscribe_all(everything.append)

    bus.emit(started())
    bus.emit(FeedbackReadyEvent("s1", 1.0, 8))

    assert [e.event_type for e in specific] == [EventType.SESSION_STARTED]
    assert [e.event_type for e in everything] == [EventType.SESSION_STARTED, EventType.FEEDBACK_READY]
    assert specific[0].data == {"difficulty": "Medium", "candidate": "Asha"}


def test_failing_handler_does_not_stop_delivery():
    bus = SessionEventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(EventType.SESSION_STARTED, broken)
    bus.subscribe(EventType.SESSION_STARTED, received.append)
    bus.emit(started())

    assert len(received) == 1


def test_unsubscribe_and_clear():
    bus = SessionEventBus()
    received = []
    bus.subscribe(EventType.SESSION_STARTED, received.append)
    bus.unsubscribe(EventType.SESSION_STARTED, received.append)
    bus.unsubscribe(EventType.SESSION_STARTED, received.append)
    bus.emit(started())

    bus.subscribe_all(received.append)
    bus.clear_handlers()
    bus.emit(started())

    assert received == []


def test_metrics_count_each_kind():
    metrics = SessionMetrics()
    metrics.handle_event(started())
    metrics.handle_event(TranscriptAppendedEvent("s1", 0.0, 0, "assistant", "Hi"))
    metrics.handle_event(TranscriptAppendedEvent("s1", 0.0, 1, "user", "Hello"))

    counts = metrics.get_metrics()
    assert counts["sessions_started"] == 1
    assert counts["transcript_entries"] == 2
    assert counts["errors_occurred"] == 0

    metrics.reset()
    assert set(metrics.get_metrics().values()) == {0}


def test_event_logger_writes_lifecycle_events(caplog):
    with caplog.at_level(logging.INFO, logger="event_logger"):
        EventLogger().handle_event(started())
        EventLogger().handle_event(TranscriptAppendedEvent("s1", 0.0, 0, "user", "secret answer"))

    assert "session_started" in caplog.text
    assert "secret answer" not in caplog.text
