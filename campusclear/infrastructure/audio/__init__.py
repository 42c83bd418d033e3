"""
Audio codecs and processing graphs.

- pcm: float <-> int16 PCM and base64 payload conversions
- input: 16 kHz microphone processing graph
- output: 24 kHz scheduled playback graph
"""

from .pcm import (
    float_to_pcm16,
    pcm16_to_float,
    encode_pcm_block,
    decode_pcm_payload,
    encode_base64,
    decode_base64,
)


# Lazy imports for the device graphs (avoid importing pyaudio unless needed)
def __getattr__(name):
    if name == "InputAudioContext":
        from .input import InputAudioContext
        return InputAudioContext
    if name in ("OutputAudioContext", "AudioBuffer", "AudioBufferSource"):
        from . import output
        return getattr(output, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "float_to_pcm16",
    "pcm16_to_float",
    "encode_pcm_block",
    "decode_pcm_payload",
    "encode_base64",
    "decode_base64",
    "InputAudioContext",
    "OutputAudioContext",
    "AudioBuffer",
    "AudioBufferSource",
]
