"""
Inbound playback: gapless scheduling of streamed response audio.
"""
import logging
from typing import Set

from ..config import OUTPUT_CHANNELS
from ..infrastructure.audio.pcm import decode_pcm_payload

logger = logging.getLogger("playback")


class PlaybackScheduler:
    """
    Schedules decoded audio chunks back to back on the output context clock.

    ``next_start_time`` marks where the next chunk begins. A chunk starts at
    ``max(next_start_time, current_time)`` so it never overlaps earlier audio
    and never waits longer than needed. An interruption stops the backlog and
    resets the cursor to zero.
    """

    def __init__(self, output_context, num_channels: int = OUTPUT_CHANNELS):
        self.output_context = output_context
        self.num_channels = num_channels
        self.next_start_time = 0.0
        self.pending: Set = set()
        self.chunks_scheduled = 0

    def handle_audio(self, payload: str):
        """
        Decode one base64 int16 chunk and schedule it.

        Returns the playback source, or None if the chunk was ignored.
        """
        if self.output_context.state == "closed":
            logger.debug("Output context closed; dropping audio chunk")
            return None

        samples = decode_pcm_payload(payload, self.num_channels)
        if len(samples) == 0:
            logger.debug("Empty audio chunk ignored")
            return None

        buffer = self.output_context.create_buffer(samples)
        source = self.output_context.create_buffer_source(buffer)
        source.on_ended = self._on_source_ended

        start_at = max(self.next_start_time, self.output_context.current_time)
        source.start(start_at)
        self.next_start_time = start_at + buffer.duration
        self.pending.add(source)
        self.chunks_scheduled += 1
        logger.debug(f"Chunk scheduled at {start_at:.3f}s for {buffer.duration:.3f}s")
        return source

    def _on_source_ended(self, source) -> None:
        self.pending.discard(source)

    def interrupt(self) -> int:
        """Barge-in: cancel every pending chunk. Returns how many were cancelled."""
        cancelled = self.stop_all()
        # Absolute zero, not current_time; the output context clamps past start times to now
        self.next_start_time = 0.0
        logger.info(f"Playback interrupted ({cancelled} chunk(s) cancelled)")
        return cancelled

    def stop_all(self) -> int:
        """Stop and forget every pending source; each stop is guarded on its own."""
        sources = list(self.pending)
        for source in sources:
            try:
                source.stop()
            except Exception as e:
                logger.warning(f"Error stopping playback source: {e}")
        self.pending.clear()
        return len(sources)

    @property
    def is_playing(self) -> bool:
        return bool(self.pending)
