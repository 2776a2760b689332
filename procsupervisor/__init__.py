"""Configuration, start ordering, readiness checks, events and program logs for supervising processes."""

__version__ = "0.1.0"