"""
PCM and base64 conversions between float sample blocks and wire payloads.
"""
import base64
from typing import Union

import numpy as np

from ...config import PCM_SCALE


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Linear scale float samples by 32768 and clamp into the int16 range."""
    scaled = np.asarray(samples, dtype=np.float64) * PCM_SCALE
    return np.clip(scaled, -32768, 32767).astype(np.int16)


def pcm16_to_float(pcm: np.ndarray) -> np.ndarray:
    """Convert int16 samples to float32 in [-1, 1)."""
    return (np.asarray(pcm, dtype=np.int16).astype(np.float32) / PCM_SCALE).astype(np.float32)


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(payload: Union[str, bytes]) -> bytes:
    return base64.b64decode(payload)


def encode_pcm_block(samples: np.ndarray) -> str:
    """Float mono block -> little-endian int16 bytes -> base64 text."""
    return encode_base64(float_to_pcm16(samples).astype('<i2').tobytes())


def decode_pcm_payload(payload: Union[str, bytes], num_channels: int = 1) -> np.ndarray:
    """
    Decode a base64 int16 PCM payload into float samples.

    Returns an array shaped (frames, channels). A trailing odd byte or a
    partial frame is dropped.
    """
    raw = decode_base64(payload)
    usable = len(raw) - (len(raw) % 2)
    pcm = np.frombuffer(raw[:usable], dtype='<i2')
    frames = len(pcm) // num_channels
    pcm = pcm[:frames * num_channels].reshape(frames, num_channels)
    return pcm16_to_float(pcm)
