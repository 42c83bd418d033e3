"""
Output audio-processing graph (24 kHz mono) with a sample-accurate clock.

Buffers are scheduled against ``current_time``, which counts frames the
speaker callback has rendered. The PyAudio callback mixes every active
source that overlaps the block being rendered, so back-to-back sources play
without gaps.
"""
import asyncio
import logging
import threading
from typing import Callable, List, Optional

import numpy as np
import pyaudio

from ...config import OUTPUT_BUFFER_SIZE, OUTPUT_CHANNELS, OUTPUT_SAMPLE_RATE
from ...utils import with_suppressed_audio_warnings

logger = logging.getLogger("audio_output")


class AudioBuffer:
    """Float32 samples shaped (frames, channels) at a fixed sample rate."""

    def __init__(self, samples: np.ndarray, sample_rate: int):
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        self.samples = samples
        self.sample_rate = sample_rate

    @property
    def length(self) -> int:
        return self.samples.shape[0]

    @property
    def number_of_channels(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.length / float(self.sample_rate)


class AudioBufferSource:
    """One-shot playback of a buffer. ``on_ended`` fires after natural end or ``stop``."""

    def __init__(self, context: 'OutputAudioContext', buffer: AudioBuffer):
        self.context = context
        self.buffer = buffer
        self.on_ended: Optional[Callable[['AudioBufferSource'], None]] = None
        self.start_frame: Optional[int] = None
        self.ended = False

    @property
    def start_time(self) -> Optional[float]:
        if self.start_frame is None:
            return None
        return self.start_frame / float(self.context.sample_rate)

    def start(self, when: float = 0.0) -> None:
        if self.start_frame is not None:
            raise RuntimeError("start() may only be called once per source")
        self.context._schedule(self, when)

    def stop(self) -> None:
        if self.ended:
            return
        self.context._unschedule(self)


class OutputAudioContext:
    """Speaker playback graph driven by a PyAudio callback stream."""

    @with_suppressed_audio_warnings
    def __init__(self,
                 sample_rate: int = OUTPUT_SAMPLE_RATE,
                 channels: int = OUTPUT_CHANNELS,
                 output_device: Optional[int] = None,
                 buffer_size: int = OUTPUT_BUFFER_SIZE,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.loop = loop or asyncio.get_running_loop()
        self.state = "running"
        self._frames_rendered = 0
        self._active: List[AudioBufferSource] = []
        self._lock = threading.Lock()
        self._pa = pyaudio.PyAudio()
        try:
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=channels,
                rate=sample_rate,
                output=True,
                output_device_index=output_device,
                frames_per_buffer=buffer_size,
                stream_callback=self._render,
            )
            self._stream.start_stream()
        except Exception:
            self._pa.terminate()
            raise

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / float(self.sample_rate)

    def create_buffer(self, samples: np.ndarray) -> AudioBuffer:
        return AudioBuffer(samples, self.sample_rate)

    def create_buffer_source(self, buffer: AudioBuffer) -> AudioBufferSource:
        return AudioBufferSource(self, buffer)

    def _schedule(self, source: AudioBufferSource, when: float) -> None:
        with self._lock:
            if self.state == "closed":
                raise RuntimeError("OutputAudioContext is closed")
            # A start time in the past plays immediately
            source.start_frame = max(int(round(when * self.sample_rate)), self._frames_rendered)
            self._active.append(source)

    def _unschedule(self, source: AudioBufferSource) -> None:
        with self._lock:
            if source in self._active:
                self._active.remove(source)
        self._finish(source)

    def _finish(self, source: AudioBufferSource) -> None:
        if source.ended:
            return
        source.ended = True
        if source.on_ended is None:
            return
        try:
            self.loop.call_soon_threadsafe(source.on_ended, source)
        except RuntimeError:
            logger.debug("Dropped ended callback: event loop is closed")

    def _render(self, in_data, frame_count, time_info, status):
        # Runs on the PortAudio thread
        mix = np.zeros((frame_count, self.channels), dtype=np.float32)
        finished = []
        with self._lock:
            t0 = self._frames_rendered
            t1 = t0 + frame_count
            for source in self._active:
                s0 = source.start_frame
                s1 = s0 + source.buffer.length
                lo, hi = max(s0, t0), min(s1, t1)
                if lo < hi:
                    mix[lo - t0:hi - t0, :] += source.buffer.samples[lo - s0:hi - s0, :self.channels]
                if s1 <= t1:
                    finished.append(source)
            for source in finished:
                self._active.remove(source)
            self._frames_rendered = t1
        for source in finished:
            self._finish(source)
        np.clip(mix, -1.0, 1.0, out=mix)
        return (mix.tobytes(), pyaudio.paContinue)

    def close(self) -> None:
        with self._lock:
            if self.state == "closed":
                return
            self.state = "closed"
            self._active.clear()
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._pa.terminate()
        logger.info("Output audio context closed")
