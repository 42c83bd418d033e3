"""
Camera frame helpers: downscale, JPEG encode, base64 for the wire.
"""
import base64
import logging
from typing import Optional

import cv2
import numpy as np

from ...config import FRAME_HEIGHT, FRAME_JPEG_QUALITY, FRAME_WIDTH

logger = logging.getLogger("video_frames")


def encode_jpeg(frame: np.ndarray,
                width: int = FRAME_WIDTH,
                height: int = FRAME_HEIGHT,
                quality: int = FRAME_JPEG_QUALITY) -> bytes:
    """Resize a BGR frame to ``width`` x ``height`` and JPEG encode it."""
    if frame.shape[1] != width or frame.shape[0] != height:
        frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
    ok, encoded = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return encoded.tobytes()


def encode_frame_base64(frame: Optional[np.ndarray],
                        width: int = FRAME_WIDTH,
                        height: int = FRAME_HEIGHT,
                        quality: int = FRAME_JPEG_QUALITY) -> Optional[str]:
    """JPEG + base64 text without any data-URI prefix; None when there is no frame."""
    if frame is None:
        return None
    return base64.b64encode(encode_jpeg(frame, width, height, quality)).decode("ascii")
