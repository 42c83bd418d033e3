"""Camera frame encoding."""

from .frames import encode_jpeg, encode_frame_base64

__all__ = ["encode_jpeg", "encode_frame_base64"]
