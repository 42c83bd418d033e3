"""
Input audio-processing graph (16 kHz mono).

Samples arrive from the microphone track on the PortAudio thread. A
``ScriptProcessor`` re-chunks them into fixed-size blocks and hands each
block to its callback on the asyncio event loop.
"""
import asyncio
import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from ...config import CAPTURE_BLOCK_SIZE, INPUT_SAMPLE_RATE

logger = logging.getLogger("audio_input")

BlockCallback = Callable[[np.ndarray], None]


class ScriptProcessor:
    """Fixed-size block tap on a microphone track."""

    def __init__(self, context: 'InputAudioContext', track, block_size: int, on_block: BlockCallback):
        self.context = context
        self.track = track
        self.block_size = block_size
        self.on_block = on_block
        self.connected = True
        self._pending = np.zeros(0, dtype=np.float32)
        self._lock = threading.Lock()
        track.add_listener(self._feed)

    def _feed(self, samples: np.ndarray) -> None:
        """Accumulate driver samples; called from the audio driver thread."""
        blocks = []
        with self._lock:
            if not self.connected:
                return
            self._pending = np.concatenate([self._pending, samples.astype(np.float32, copy=False)])
            while len(self._pending) >= self.block_size:
                blocks.append(self._pending[:self.block_size].copy())
                self._pending = self._pending[self.block_size:]
        for block in blocks:
            self.context._dispatch(self, block)

    def _deliver(self, block: np.ndarray) -> None:
        if self.connected and self.context.state != "closed":
            self.on_block(block)

    def disconnect(self) -> None:
        with self._lock:
            if not self.connected:
                return
            self.connected = False
            self._pending = np.zeros(0, dtype=np.float32)
        try:
            self.track.remove_listener(self._feed)
        except Exception as e:
            logger.debug(f"Processor detach after track stop: {e}")


class InputAudioContext:
    """Processing graph for microphone capture at a fixed sample rate."""

    def __init__(self, sample_rate: int = INPUT_SAMPLE_RATE, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.sample_rate = sample_rate
        self.loop = loop or asyncio.get_running_loop()
        self.state = "running"
        self._processors: List[ScriptProcessor] = []

    def create_script_processor(self, track, on_block: BlockCallback,
                                block_size: int = CAPTURE_BLOCK_SIZE) -> ScriptProcessor:
        if self.state == "closed":
            raise RuntimeError("InputAudioContext is closed")
        if getattr(track, "sample_rate", self.sample_rate) != self.sample_rate:
            raise ValueError(f"Track rate {track.sample_rate} does not match context rate {self.sample_rate}")
        processor = ScriptProcessor(self, track, block_size, on_block)
        self._processors.append(processor)
        return processor

    def _dispatch(self, processor: ScriptProcessor, block: np.ndarray) -> None:
        if self.state == "closed":
            return
        try:
            self.loop.call_soon_threadsafe(processor._deliver, block)
        except RuntimeError:
            logger.debug("Dropped input block: event loop is closed")

    def close(self) -> None:
        if self.state == "closed":
            return
        self.state = "closed"
        for processor in self._processors:
            processor.disconnect()
        self._processors.clear()
        logger.info("Input audio context closed")
