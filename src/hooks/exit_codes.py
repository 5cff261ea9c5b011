"""Hook process exit codes."""

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    # Non-blocking: shown to the user, the session continues (missing
    # transcript, bad payload).
    WARNING = 1
    # Blocking: database failure or schema mismatch.
    ERROR = 2
