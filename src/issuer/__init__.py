"""portable-issuer: issue tracking with enforced hierarchy and blocking invariants."""

__version__ = "0.1.0"
