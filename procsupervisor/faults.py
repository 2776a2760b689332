"""Fault codes and the exception that carries them."""

from __future__ import annotations

from enum import IntEnum


class FaultCode(IntEnum):
    """Numeric fault codes reported to remote callers."""

    UNKNOWN_METHOD = 1
    INCORRECT_PARAMETERS = 2
    BAD_ARGUMENTS = 3
    SIGNATURE_UNSUPPORTED = 4
    SHUTDOWN_STATE = 6
    BAD_NAME = 10
    BAD_SIGNAL = 11
    NO_FILE = 20
    NOT_EXECUTABLE = 21
    FAILED = 30
    ABNORMAL_TERMINATION = 40
    SPAWN_ERROR = 50
    ALREADY_STARTED = 60
    NOT_RUNNING = 70
    SUCCESS = 80
    ALREADY_ADDED = 90
    STILL_RUNNING = 91
    CANT_REREAD = 92


class Fault(Exception):
    """An error with a fault code and a description."""

    def __init__(self, code, description):
        super().__init__(code, description)
        self.code = int(code)
        self.description = description

    def __str__(self) -> str:
        return f"{self.code}: {self.description}"