import random
from unittest.mock import Mock

import pytest

from campusclear.interview.playback import PlaybackScheduler
from campusclear.interview.testing import FakeOutputContext, pcm_payload


def make_scheduler():
    context = FakeOutputContext()
    return context, PlaybackScheduler(context)


def test_chunks_play_back_to_back():
    context, scheduler = make_scheduler()

    first = scheduler.handle_audio(pcm_payload(2400))   # 0.1 s at 24 kHz
    second = scheduler.handle_audio(pcm_payload(4800))  # 0.2 s

    assert first.start_time == 0.0
    assert second.start_time == pytest.approx(0.1)
    assert scheduler.next_start_time == pytest.approx(0.3)
    assert scheduler.pending == {first, second}


def test_late_chunk_starts_at_current_time():
    context, scheduler = make_scheduler()
    scheduler.handle_audio(pcm_payload(2400))
    context.current_time = 5.0

    source = scheduler.handle_audio(pcm_payload(2400))

    assert source.start_time == pytest.approx(5.0)
    assert scheduler.next_start_time == pytest.approx(5.1)


def test_cursor_is_max_of_cursor_and_clock_plus_duration():
    context, scheduler = make_scheduler()
    rng = random.Random(7)

    for _ in range(50):
        context.current_time += rng.choice([0.0, 0.01, 0.05, 0.4])
        num_samples = rng.randint(1, 9600)
        before = scheduler.next_start_time
        source = scheduler.handle_audio(pcm_payload(num_samples))
        expected_start = max(before, context.current_time)
        assert source.start_time == pytest.approx(expected_start)
        assert scheduler.next_start_time == pytest.approx(expected_start + num_samples / 24000)


def test_natural_end_leaves_pending_set():
    context, scheduler = make_scheduler()
    source = scheduler.handle_audio(pcm_payload(240))
    source.finish()
    assert source not in scheduler.pending
    assert not scheduler.is_playing


def test_interruption_stops_every_pending_chunk_and_resets_cursor():
    context, scheduler = make_scheduler()
    sources = [scheduler.handle_audio(pcm_payload(2400)) for _ in range(3)]

    cancelled = scheduler.interrupt()

    assert cancelled == 3
    assert [s.stop_calls for s in sources] == [1, 1, 1]
    assert scheduler.pending == set()
    assert scheduler.next_start_time == 0.0

    following = scheduler.handle_audio(pcm_payload(2400))
    assert following.start_time == 0.0


def test_interruption_resets_to_zero_not_to_current_time():
    # The cursor goes to absolute zero; the next chunk still starts at "now"
    # because max(0, current_time) is taken when it is scheduled.
    context, scheduler = make_scheduler()
    context.current_time = 2.0
    for _ in range(3):
        scheduler.handle_audio(pcm_payload(2400))

    scheduler.interrupt()
    assert scheduler.next_start_time == 0.0

    following = scheduler.handle_audio(pcm_payload(2400))
    assert following.start_time == pytest.approx(2.0)
    assert following.start_time < 2.3


def test_interrupt_with_nothing_pending():
    context, scheduler = make_scheduler()
    assert scheduler.interrupt() == 0
    assert scheduler.next_start_time == 0.0


def test_chunks_after_close_are_ignored():
    context, scheduler = make_scheduler()
    context.close()
    assert scheduler.handle_audio(pcm_payload(2400)) is None
    assert context.sources == []


def test_empty_chunk_is_ignored():
    context, scheduler = make_scheduler()
    assert scheduler.handle_audio("") is None
    assert scheduler.next_start_time == 0.0


def test_failing_stop_does_not_skip_other_sources():
    context, scheduler = make_scheduler()
    good = scheduler.handle_audio(pcm_payload(2400))
    broken = Mock()
    broken.stop.side_effect = RuntimeError("already stopped")
    scheduler.pending.add(broken)

    assert scheduler.stop_all() == 2
    assert good.stop_calls == 1
    assert scheduler.pending == set()
