"""Exception types raised by the attention engine."""

from __future__ import annotations


class AttentionEngineError(Exception):
    """Base class for every error the engine raises on purpose."""


class ModelsNotReadyError(AttentionEngineError):
    """``start()`` was called before the vision collaborator signalled readiness.

    Recoverable: call :meth:`SessionEngine.mark_ready` (or wait for the
    collaborator to do so) and retry.
    """

    def __init__(self, message: str = "Vision models not loaded yet") -> None:
        super().__init__(message)


class InvalidLandmarkSetError(AttentionEngineError):
    """Landmark input is short, malformed or missing an anchor point.

    Only raised inside the classifier; it is always turned into an
    "unknown" sample before reaching a caller.
    """
