"""
Outbound capture: microphone PCM blocks and periodic camera frames.
"""
import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from ..config import (
    AUDIO_MIME_TYPE, IMAGE_MIME_TYPE, VIDEO_FRAME_INTERVAL, CAPTURE_BLOCK_SIZE,
    FRAME_WIDTH, FRAME_HEIGHT, FRAME_JPEG_QUALITY,
    SNAPSHOT_WIDTH, SNAPSHOT_HEIGHT, SNAPSHOT_JPEG_QUALITY,
)
from ..infrastructure.audio.pcm import encode_pcm_block
from ..infrastructure.video.frames import encode_frame_base64

logger = logging.getLogger("capture")

# (frame, width, height, quality) -> base64 JPEG, or None when there is no frame
FrameEncoder = Callable[[Optional[np.ndarray], int, int, int], Optional[str]]


class CapturePipeline:
    """
    Streams one session's microphone and camera into its live handle.

    Audio is pushed from the input context's processor callback; video is
    pulled on a fixed interval by a background task. The pipeline references
    the device stream and the handle but owns neither.
    """

    def __init__(self,
                 handle,
                 device_stream,
                 input_context,
                 frame_interval: float = VIDEO_FRAME_INTERVAL,
                 block_size: int = CAPTURE_BLOCK_SIZE,
                 frame_encoder: FrameEncoder = encode_frame_base64):
        self.handle = handle
        self.device_stream = device_stream
        self.input_context = input_context
        self.frame_interval = frame_interval
        self.block_size = block_size
        self.frame_encoder = frame_encoder
        self.running = False
        self.audio_blocks_sent = 0
        self.frames_sent = 0
        self._processor = None
        self._video_task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Attach to the microphone and start the frame timer. Must run on the event loop."""
        if self.running:
            return
        self._processor = self.input_context.create_script_processor(
            self.device_stream.microphone, self._on_audio_block, block_size=self.block_size
        )
        self.running = True
        self._video_task = asyncio.create_task(self._video_loop())
        logger.info(f"Capture started (block={self.block_size}, frame every {self.frame_interval}s)")

    def _on_audio_block(self, block: np.ndarray) -> None:
        if not self.running:
            return
        if self.handle.send_realtime_input(encode_pcm_block(block), AUDIO_MIME_TYPE):
            self.audio_blocks_sent += 1

    async def _video_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.frame_interval)
            try:
                await self.send_frame()
            except Exception as e:
                logger.warning(f"Video frame skipped: {e}")

    async def send_frame(self) -> bool:
        """Grab, downscale and send the current camera frame. Returns True if it was queued."""
        frame = await asyncio.to_thread(self.device_stream.read_frame)
        if not self.running:
            return False
        payload = self.frame_encoder(frame, FRAME_WIDTH, FRAME_HEIGHT, FRAME_JPEG_QUALITY)
        if payload is None:
            return False
        sent = self.handle.send_realtime_input(payload, IMAGE_MIME_TYPE)
        if sent:
            self.frames_sent += 1
        return sent

    async def capture_snapshot(self) -> str:
        """
        Full-size frame for the evaluator, as base64 JPEG.

        Works after ``stop``; returns an empty string when no frame is available.
        """
        try:
            frame = await asyncio.to_thread(self.device_stream.read_frame)
            payload = self.frame_encoder(frame, SNAPSHOT_WIDTH, SNAPSHOT_HEIGHT, SNAPSHOT_JPEG_QUALITY)
        except Exception as e:
            logger.warning(f"Snapshot capture failed: {e}")
            return ""
        return payload or ""

    def stop(self) -> None:
        """Detach the audio processor and cancel the frame timer. Idempotent."""
        if not self.running and self._processor is None and self._video_task is None:
            return
        self.running = False
        if self._processor is not None:
            self._processor.disconnect()
            self._processor = None
        if self._video_task is not None:
            if not self._video_task.done():
                self._video_task.cancel()
            self._video_task = None
        logger.info(f"Capture stopped (audio blocks={self.audio_blocks_sent}, frames={self.frames_sent})")
