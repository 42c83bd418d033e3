"""Infrastructure components for CampusCLEAR.

This module contains low-level technical components: audio codecs and
processing graphs, camera frame encoding, device acquisition, Gemini clients,
and local data storage. Device-backed modules (PyAudio, OpenCV) are imported
on demand so the rest of the package loads without audio hardware.
"""
