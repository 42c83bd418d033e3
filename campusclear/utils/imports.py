"""
Helpers for silencing native audio library chatter (ALSA, JACK).
"""
import os
import functools


# Keep PortAudio from trying to launch a JACK server on Linux hosts
os.environ.setdefault("JACK_NO_START_SERVER", "1")


def with_suppressed_audio_warnings(func):
    """
    Decorator that redirects file descriptor 2 to /dev/null while ``func`` runs.

    PyAudio prints ALSA probe errors straight to the C-level stderr, which
    Python's ``sys.stderr`` redirection cannot catch.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            original_stderr_fd = os.dup(2)
            null_fd = os.open(os.devnull, os.O_WRONLY)
            os.dup2(null_fd, 2)
            os.close(null_fd)
        except OSError:
            original_stderr_fd = None

        try:
            return func(*args, **kwargs)
        finally:
            if original_stderr_fd is not None:
                os.dup2(original_stderr_fd, 2)
                os.close(original_stderr_fd)

    return wrapper
