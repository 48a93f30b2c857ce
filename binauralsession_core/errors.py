"""Exceptions raised by the session engine."""


class SessionEngineError(Exception):
    """Base class for engine errors."""


class InvalidTimeline(SessionEngineError, ValueError):
    """Raised when a stage list is empty or a stage breaks its invariants."""


class ContextUnavailable(SessionEngineError, RuntimeError):
    """Raised when the platform refuses to provide an audio output."""


__all__ = ["SessionEngineError", "InvalidTimeline", "ContextUnavailable"]
