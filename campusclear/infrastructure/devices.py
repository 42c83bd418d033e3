"""
Combined microphone + camera acquisition.

A ``DeviceStream`` is the Python counterpart of a browser media stream: one
microphone track (PyAudio input stream) and one camera track (OpenCV
capture). Each track stops exactly once no matter how many times ``stop``
is called.
"""
import logging
import threading
from typing import Callable, List, Optional

import cv2
import numpy as np
import pyaudio

from ..config import CAMERA_INDEX, CAPTURE_BLOCK_SIZE, INPUT_CHANNELS, INPUT_SAMPLE_RATE
from ..errors import DeviceAccessError
from ..utils import with_suppressed_audio_warnings

logger = logging.getLogger("devices")

SampleListener = Callable[[np.ndarray], None]


class MediaTrack:
    """Base class for a capture track with an idempotent ``stop``."""
    kind = "unknown"

    def __init__(self, label: str):
        self.label = label
        self._stopped = False
        self._stop_lock = threading.Lock()

    @property
    def ended(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
        self._release()
        logger.info(f"Stopped {self.kind} track: {self.label}")

    def _release(self) -> None:
        raise NotImplementedError


class MicrophoneTrack(MediaTrack):
    """PyAudio float32 input stream that fans samples out to listeners."""
    kind = "audio"

    @with_suppressed_audio_warnings
    def __init__(self,
                 input_device: Optional[int] = None,
                 sample_rate: int = INPUT_SAMPLE_RATE,
                 channels: int = INPUT_CHANNELS,
                 frames_per_buffer: int = CAPTURE_BLOCK_SIZE):
        super().__init__(label=f"microphone:{'default' if input_device is None else input_device}")
        self.sample_rate = sample_rate
        self.channels = channels
        self._listeners: List[SampleListener] = []
        self._listeners_lock = threading.Lock()
        self._pa = pyaudio.PyAudio()
        try:
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=channels,
                rate=sample_rate,
                input=True,
                input_device_index=input_device,
                frames_per_buffer=frames_per_buffer,
                stream_callback=self._on_audio,
            )
            self._stream.start_stream()
        except Exception:
            self._pa.terminate()
            raise

    def add_listener(self, listener: SampleListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SampleListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _on_audio(self, in_data, frame_count, time_info, status):
        # Runs on the PortAudio thread
        samples = np.frombuffer(in_data, dtype=np.float32)
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels)[:, 0]
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(samples)
            except Exception as e:
                logger.error(f"Microphone listener failed: {e}")
        return (None, pyaudio.paContinue)

    def _release(self) -> None:
        with self._listeners_lock:
            self._listeners.clear()
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._pa.terminate()


class CameraTrack(MediaTrack):
    """OpenCV camera capture returning the most recent BGR frame on demand."""
    kind = "video"

    def __init__(self, camera_index: int = CAMERA_INDEX):
        super().__init__(label=f"camera:{camera_index}")
        self._capture_lock = threading.Lock()
        self._capture = cv2.VideoCapture(camera_index)
        if not self._capture.isOpened():
            self._capture.release()
            raise OSError(f"Camera {camera_index} could not be opened")
        self._capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

    def read_frame(self) -> Optional[np.ndarray]:
        """Blocking read of the current frame; None once stopped or on a failed grab."""
        with self._capture_lock:
            if self._stopped:
                return None
            ok, frame = self._capture.read()
        return frame if ok else None

    def _release(self) -> None:
        with self._capture_lock:
            self._capture.release()


class DeviceStream:
    """The microphone and camera tracks acquired for one session."""

    def __init__(self, microphone: MicrophoneTrack, camera: Optional[CameraTrack]):
        self.microphone = microphone
        self.camera = camera

    def get_tracks(self) -> List[MediaTrack]:
        return [t for t in (self.microphone, self.camera) if t is not None]

    def read_frame(self) -> Optional[np.ndarray]:
        if self.camera is None:
            return None
        return self.camera.read_frame()

    def stop(self) -> None:
        """Stop every track; a failure on one never skips the others."""
        for track in self.get_tracks():
            try:
                track.stop()
            except Exception as e:
                logger.warning(f"Error stopping {track.kind} track {track.label}: {e}")


class DeviceProvider:
    """Opens the combined audio+video capture used by one interview session."""

    def __init__(self,
                 input_device: Optional[int] = None,
                 camera_index: int = CAMERA_INDEX,
                 sample_rate: int = INPUT_SAMPLE_RATE,
                 frames_per_buffer: int = CAPTURE_BLOCK_SIZE):
        self.input_device = input_device
        self.camera_index = camera_index
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer

    def acquire(self) -> DeviceStream:
        """
        Open microphone then camera.

        Raises:
            DeviceAccessError: If either device cannot be opened. Whatever was
                already opened is released first.
        """
        try:
            microphone = MicrophoneTrack(
                input_device=self.input_device,
                sample_rate=self.sample_rate,
                frames_per_buffer=self.frames_per_buffer,
            )
        except Exception as e:
            logger.error(f"Microphone access failed: {e}")
            raise DeviceAccessError(f"Microphone unavailable: {e}") from e

        try:
            camera = CameraTrack(self.camera_index)
        except Exception as e:
            logger.error(f"Camera access failed: {e}")
            microphone.stop()
            raise DeviceAccessError(f"Camera unavailable: {e}") from e

        logger.info(f"Acquired devices: {microphone.label}, {camera.label}")
        return DeviceStream(microphone, camera)
