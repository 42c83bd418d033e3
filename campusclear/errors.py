"""
Error taxonomy for mock interview sessions.
"""


class InterviewError(Exception):
    """Base class for all interview session errors."""


class ConfigurationError(InterviewError):
    """No API credential is configured. Raised before any resource is touched."""


class MissingContextError(InterviewError):
    """No resume text was supplied. User-correctable; nothing is acquired."""


class DeviceAccessError(InterviewError):
    """Microphone or camera permission denied, or the device is missing."""


class StreamError(InterviewError):
    """The realtime stream failed to open or broke mid-session."""


class EvaluationError(InterviewError):
    """The post-interview scoring call failed. The transcript is kept for a retry."""


class SessionStateError(InterviewError):
    """An operation was attempted in a stage where it is not valid."""
