from __future__ import annotations


class DesignerError(Exception):
    """Base exception for the design engine."""


class GeometryValidationError(DesignerError, ValueError):
    """Raised when a ring or line violates its invariants."""


class DrawStateError(DesignerError):
    """Raised on an illegal draw/edit transition."""


class PersistenceError(DesignerError):
    """Raised when a segment store operation fails."""


class SegmentNotFoundError(PersistenceError, KeyError):
    """Raised when a segment id is unknown to the store."""
