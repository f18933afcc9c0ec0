"""Database error types."""


class DatabaseError(Exception):
    """Raised when an unexpected persistence error occurs."""
    kind = 'internal'


class DatabaseSchemaError(DatabaseError):
    """Raised when schema loading or migration fails."""
    pass
