import asyncio
from unittest.mock import patch

import numpy as np
import pytest

pytest.importorskip("pyaudio")

from campusclear.infrastructure.audio import output  # noqa: E402

RATE = 8000


def make_context():
    with patch.object(output.pyaudio, "PyAudio"):
        return output.OutputAudioContext(sample_rate=RATE, channels=1)


def play(context, value, when, ended):
    source = context.create_buffer_source(context.create_buffer(np.full(100, value, dtype=np.float32)))
    source.on_ended = ended.append
    source.start(when)
    return source


def render(context, frames):
    data, flag = context._render(None, frames, None, 0)
    assert flag == output.pyaudio.paContinue
    return np.frombuffer(data, dtype=np.float32)


def test_back_to_back_sources_play_without_gap():
    async def scenario():
        context = make_context()
        ended = []
        first = play(context, 0.5, 0.0, ended)
        second = play(context, 0.25, 100 / RATE, ended)

        mix = render(context, 300)
        await asyncio.sleep(0)
        return context, mix, ended, [first, second]

    context, mix, ended, sources = asyncio.run(scenario())

    assert np.all(mix[:100] == 0.5)
    assert np.all(mix[100:200] == 0.25)
    assert np.all(mix[200:] == 0.0)
    assert context.current_time == pytest.approx(300 / RATE)
    assert context._active == []
    assert ended == sources


def test_overlapping_sources_are_mixed_and_clipped():
    async def scenario():
        context = make_context()
        play(context, 0.75, 0.0, [])
        play(context, 0.75, 0.0, [])
        return render(context, 100)

    mix = asyncio.run(scenario())
    assert np.all(mix == 1.0)


def test_start_in_the_past_is_clamped_to_now():
    async def scenario():
        context = make_context()
        render(context, 300)
        source = play(context, 0.5, 0.0, [])
        mix = render(context, 100)
        return source, mix

    source, mix = asyncio.run(scenario())

    assert source.start_frame == 300
    assert source.start_time == pytest.approx(300 / RATE)
    assert np.all(mix == 0.5)


def test_stop_silences_source_and_fires_on_ended():
    async def scenario():
        context = make_context()
        ended = []
        source = play(context, 0.5, 0.0, ended)
        source.stop()
        source.stop()
        mix = render(context, 100)
        await asyncio.sleep(0)
        return source, mix, ended

    source, mix, ended = asyncio.run(scenario())

    assert np.all(mix == 0.0)
    assert ended == [source]
    assert source.ended


def test_closed_context_refuses_new_sources():
    async def scenario():
        context = make_context()
        context.close()
        context.close()
        with pytest.raises(RuntimeError):
            play(context, 0.5, 0.0, [])
        return context

    context = asyncio.run(scenario())

    assert context.state == "closed"
    context._pa.terminate.assert_called_once()
