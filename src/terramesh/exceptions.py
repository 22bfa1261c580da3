"""Custom exceptions for terrain generation."""


class TerrainError(Exception):
    """Base exception for terrain errors."""

    pass


class InvalidParameterError(TerrainError, ValueError):
    """Raised when a generation parameter is out of its valid domain."""

    pass


class PersistenceError(TerrainError):
    """Raised when a saved record is malformed."""

    pass
